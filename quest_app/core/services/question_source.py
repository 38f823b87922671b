"""Question sources: the contract the quest engine consumes and the bundled template bank."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import MutableMapping, Protocol

from quest_app.constants.quest_constants import QUESTIONS_PER_QUEST
from quest_app.core import progression
from quest_app.core.errors import QuestionSourceError
from quest_app.core.models import Question
from quest_app.core.question_bank_importer import (
    ImportedTopic,
    QuestionBankImportError,
    load_question_bank,
)

logger = logging.getLogger(__name__)

_DEFAULT_BANK_PATH = Path(__file__).resolve().parent.parent.parent / "data" / "question_bank"

QuestionCache = MutableMapping[tuple[str, int], list[Question]]


class QuestionSource(Protocol):
    """Supplies an ordered, fixed-size question list for a topic and level."""

    def available_topics(self) -> list[str]: ...

    def fetch_questions(self, topic: str, level: int) -> list[Question]: ...


class TemplateQuestionSource:
    """Builds quests from canned templates, cycling them by position.

    Generated sets are memoised in ``cache`` (any mutable mapping keyed by
    ``(topic, level)``); each instance gets its own dict unless one is injected.
    """

    def __init__(
        self,
        topics: dict[str, ImportedTopic],
        cache: QuestionCache | None = None,
        questions_per_quest: int = QUESTIONS_PER_QUEST,
    ) -> None:
        if questions_per_quest <= 0:
            raise ValueError("Questions per quest must be a positive integer.")
        self._topics = {name.lower(): topic for name, topic in topics.items()}
        self._cache: QuestionCache = cache if cache is not None else {}
        self._questions_per_quest = questions_per_quest

    @classmethod
    def from_directory(cls, directory: Path, **kwargs) -> "TemplateQuestionSource":
        try:
            topics = load_question_bank(directory)
        except (OSError, QuestionBankImportError) as exc:
            raise QuestionSourceError(f"Unable to load question bank from {directory}: {exc}") from exc
        return cls(topics, **kwargs)

    @classmethod
    def from_default_bank(cls, **kwargs) -> "TemplateQuestionSource":
        return cls.from_directory(_DEFAULT_BANK_PATH, **kwargs)

    def available_topics(self) -> list[str]:
        return sorted(topic.name for topic in self._topics.values())

    def fetch_questions(self, topic: str, level: int) -> list[Question]:
        imported = self._topics.get(topic.strip().lower())
        if imported is None:
            logger.warning("Question source has no templates for topic %r", topic)
            raise QuestionSourceError(f"Topic '{topic}' is not supported.")
        try:
            difficulty = progression.difficulty_for_level(level)
        except ValueError as exc:
            raise QuestionSourceError(str(exc)) from exc

        key = (imported.name, level)
        cached = self._cache.get(key)
        if cached is not None:
            return list(cached)

        templates = imported.templates_for(difficulty) or imported.templates_for("beginner")
        if not templates:
            raise QuestionSourceError(
                f"Topic '{imported.name}' has no {difficulty} questions."
            )

        slug = imported.name.lower().replace(" ", "-")
        questions = [
            Question(
                id=f"{slug}-{level}-{index}",
                question_text=template.question_text,
                options=template.options,
                correct_option_index=template.correct_option_index,
                explanation=template.explanation,
                topic=imported.name,
                level=level,
                difficulty=difficulty,
            )
            for index, template in (
                (i, templates[i % len(templates)]) for i in range(self._questions_per_quest)
            )
        ]
        self._cache[key] = questions
        logger.debug("Generated %d %s questions for %s", len(questions), difficulty, imported.name)
        return list(questions)
