"""FastAPI server that exposes the quest engine to web clients."""

from __future__ import annotations

from dataclasses import asdict
from datetime import date
import logging
from threading import Thread

from fastapi import Depends, FastAPI, Query, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel
import uvicorn

from quest_app.constants.about import APP_ABOUT_TEXT, APP_LICENSE, APP_NAME, APP_VERSION
from quest_app.constants.network_constants import (
    DEFAULT_HOST,
    DEFAULT_PORT,
    SERVER_THREAD_NAME,
    UVICORN_LOG_LEVEL,
)
from quest_app.constants.quest_constants import LEADERBOARD_DEFAULT_LIMIT
from quest_app.core import progression
from quest_app.core.errors import (
    InvalidCategoryError,
    InvalidSessionError,
    InvalidStateError,
    QuestError,
    QuestionSourceError,
    UnknownSessionError,
    UnknownUserError,
)
from quest_app.core.markdown_renderer import renderer
from quest_app.core.models import Question, SessionSnapshot
from quest_app.core.quest_manager import QuestManager
from quest_app.core.services.leaderboard import stat_label

logger = logging.getLogger(__name__)

_ERROR_STATUS: dict[type[QuestError], int] = {
    UnknownUserError: 404,
    UnknownSessionError: 404,
    InvalidStateError: 409,
    InvalidCategoryError: 422,
    QuestionSourceError: 502,
    InvalidSessionError: 502,
}


class RegisterPayload(BaseModel):
    """Payload schema for user registration."""

    username: str


class LoginPayload(BaseModel):
    """Payload schema for recording a login; defaults to the server's today."""

    today: date | None = None


class StartQuestPayload(BaseModel):
    """Payload schema for entering a quest level."""

    topic: str
    level: int | None = None


class AnswerPayload(BaseModel):
    """Payload schema for submitted answers."""

    selected_option_index: int


def _get_quest_manager_dependency(quest_manager: QuestManager):
    def dependency() -> QuestManager:
        return quest_manager

    return dependency


def _question_payload(question: Question) -> dict[str, object]:
  return {
    "id": question.id,
    "question_text": question.question_text,
    "question_html": renderer.render_fragment(question.question_text),
    "options": list(question.options),
    "options_html": [renderer.render_inline(option) for option in question.options],
    "difficulty": question.difficulty,
  }


def _session_payload(snapshot: SessionSnapshot) -> dict[str, object]:
  feedback_payload = None
  if snapshot.feedback is not None:
    feedback_payload = asdict(snapshot.feedback)
    feedback_payload["explanation_html"] = renderer.render_fragment(snapshot.feedback.explanation)
  return {
    "session_id": snapshot.session_id,
    "topic": snapshot.topic,
    "level": snapshot.level,
    "difficulty": progression.difficulty_label(snapshot.level),
    "phase": snapshot.phase.value,
    "question_index": snapshot.question_index,
    "question_count": snapshot.question_count,
    "time_remaining_seconds": snapshot.time_remaining_seconds,
    "question": _question_payload(snapshot.question) if snapshot.question is not None else None,
    "feedback": feedback_payload,
    "answers": snapshot.answers,
    "auto_answered": snapshot.auto_answered,
    "score": snapshot.score,
    "passed": snapshot.passed,
    "started_at": snapshot.started_at,
    "completed_at": snapshot.completed_at,
    "result": asdict(snapshot.result) if snapshot.result is not None else None,
  }


def create_api_app(quest_manager: QuestManager) -> FastAPI:
    """Create a FastAPI application wired to the provided quest manager."""
    app = FastAPI(
        title=f"{APP_NAME} API",
        version=APP_VERSION,
        description=APP_ABOUT_TEXT,
        license_info={"name": APP_LICENSE},
    )
    quest_manager_dep = _get_quest_manager_dependency(quest_manager)

    @app.exception_handler(QuestError)
    async def handle_quest_error(request: Request, exc: QuestError) -> JSONResponse:
        status_code = next(
            (code for error_type, code in _ERROR_STATUS.items() if isinstance(exc, error_type)),
            400,
        )
        if status_code >= 500:
            logger.warning("%s %s failed: %s", request.method, request.url.path, exc)
        return JSONResponse(status_code=status_code, content={"detail": str(exc)})

    @app.exception_handler(ValueError)
    async def handle_value_error(request: Request, exc: ValueError) -> JSONResponse:
        return JSONResponse(status_code=422, content={"detail": str(exc)})

    @app.get("/health")
    def health() -> dict[str, str]:
        return {"status": "ok"}

    @app.post("/users", status_code=201)
    def register_user(
        payload: RegisterPayload,
        manager: QuestManager = Depends(quest_manager_dep),
    ) -> dict[str, object]:
        user = manager.register_user(payload.username)
        return asdict(manager.get_profile(user.user_id))

    @app.get("/users/{user_id}")
    def get_profile(
        user_id: str,
        manager: QuestManager = Depends(quest_manager_dep),
    ) -> dict[str, object]:
        return asdict(manager.get_profile(user_id))

    @app.post("/users/{user_id}/login")
    def record_login(
        user_id: str,
        payload: LoginPayload | None = None,
        manager: QuestManager = Depends(quest_manager_dep),
    ) -> dict[str, object]:
        today = payload.today if payload is not None else None
        return asdict(manager.record_login(user_id, today=today))

    @app.get("/users/{user_id}/attempts")
    def get_attempts(
        user_id: str,
        manager: QuestManager = Depends(quest_manager_dep),
    ) -> list[dict[str, object]]:
        return [asdict(attempt) for attempt in manager.get_attempts(user_id)]

    @app.get("/topics")
    def list_topics(manager: QuestManager = Depends(quest_manager_dep)) -> dict[str, object]:
        return {"topics": manager.list_topics()}

    @app.get("/users/{user_id}/topics/{topic}")
    def get_topic_levels(
        user_id: str,
        topic: str,
        manager: QuestManager = Depends(quest_manager_dep),
    ) -> dict[str, object]:
        statuses = manager.get_topic_levels(user_id, topic)
        return {
            "topic": topic,
            "levels": [
                {
                    "level": level,
                    "difficulty": progression.difficulty_label(level),
                    "status": status.value,
                }
                for level, status in sorted(statuses.items())
            ],
        }

    @app.post("/users/{user_id}/quests", status_code=201)
    def start_quest(
        user_id: str,
        payload: StartQuestPayload,
        manager: QuestManager = Depends(quest_manager_dep),
    ) -> dict[str, object]:
        session = manager.start_quest(user_id, payload.topic, payload.level)
        return _session_payload(manager.describe_session(session.session_id))

    @app.get("/sessions/{session_id}")
    def get_session(
        session_id: str,
        manager: QuestManager = Depends(quest_manager_dep),
    ) -> dict[str, object]:
        return _session_payload(manager.describe_session(session_id))

    @app.post("/sessions/{session_id}/answer")
    def submit_answer(
        session_id: str,
        payload: AnswerPayload,
        manager: QuestManager = Depends(quest_manager_dep),
    ) -> dict[str, object]:
        manager.submit_answer(session_id, payload.selected_option_index)
        return _session_payload(manager.describe_session(session_id))

    @app.post("/sessions/{session_id}/advance")
    def advance_session(
        session_id: str,
        manager: QuestManager = Depends(quest_manager_dep),
    ) -> dict[str, object]:
        manager.advance_session(session_id)
        return _session_payload(manager.describe_session(session_id))

    @app.delete("/sessions/{session_id}", status_code=204)
    def abandon_session(
        session_id: str,
        manager: QuestManager = Depends(quest_manager_dep),
    ) -> None:
        manager.abandon_session(session_id)

    @app.get("/leaderboard")
    def get_leaderboard(
        category: str = "overall",
        user_id: str | None = None,
        limit: int = Query(LEADERBOARD_DEFAULT_LIMIT, ge=1),
        manager: QuestManager = Depends(quest_manager_dep),
    ) -> dict[str, object]:
        board = manager.get_leaderboard(category, user_id=user_id, limit=limit)
        return {
            "category": board.category,
            "my_rank": board.my_rank,
            "entries": [
                {**asdict(entry), "stat": stat_label(entry, board.category)}
                for entry in board.entries
            ],
        }

    return app


def start_api_server(
    quest_manager: QuestManager,
    host: str = DEFAULT_HOST,
    port: int = DEFAULT_PORT,
) -> Thread:
    """Start the FastAPI server in a background daemon thread."""
    app = create_api_app(quest_manager)
    config = uvicorn.Config(app=app, host=host, port=port, log_level=UVICORN_LOG_LEVEL)
    server = uvicorn.Server(config)

    def run_server() -> None:
        server.run()

    thread = Thread(target=run_server, name=SERVER_THREAD_NAME, daemon=True)
    thread.start()
    return thread
