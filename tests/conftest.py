from __future__ import annotations

from typing import Callable

import pytest

from quest_app.core.models import Question
from quest_app.core.services.quiz_session import QuizSession


class ManualTask:
    def __init__(self, due: float, interval: float | None, callback: Callable[[], None]) -> None:
        self.due = due
        self.interval = interval
        self.callback = callback
        self._cancelled = False
        self.fired = 0

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def cancel(self) -> None:
        self._cancelled = True


class ManualScheduler:
    """Scheduler whose tasks only fire when a test moves its clock forward."""

    def __init__(self) -> None:
        self.now = 0.0
        self._tasks: list[ManualTask] = []

    def call_every(self, interval: float, callback: Callable[[], None]) -> ManualTask:
        task = ManualTask(self.now + interval, interval, callback)
        self._tasks.append(task)
        return task

    def call_later(self, delay: float, callback: Callable[[], None]) -> ManualTask:
        task = ManualTask(self.now + delay, None, callback)
        self._tasks.append(task)
        return task

    def pending(self) -> list[ManualTask]:
        return [task for task in self._tasks if not task.cancelled]

    def advance(self, seconds: float) -> None:
        target = self.now + seconds
        while True:
            due = [task for task in self._tasks if not task.cancelled and task.due <= target]
            if not due:
                break
            task = min(due, key=lambda t: t.due)
            self.now = task.due
            if task.interval is None:
                self._tasks.remove(task)
            else:
                task.due += task.interval
            task.fired += 1
            task.callback()
        self.now = target


def make_questions(count: int = 10, topic: str = "Python", level: int = 0) -> list[Question]:
    return [
        Question(
            id=f"q{index}",
            question_text=f"Question {index}?",
            options=("alpha", "beta", "gamma", "delta"),
            correct_option_index=index % 4,
            explanation=f"Because {index}.",
            topic=topic,
            level=level,
        )
        for index in range(count)
    ]


def correct_option(session: QuizSession) -> int:
    return session.get_current_question().correct_option_index


def wrong_option(session: QuizSession) -> int:
    return (correct_option(session) + 1) % 4


def play(session: QuizSession, correct_flags: list[bool]) -> None:
    """Answer every question per ``correct_flags`` and advance past each feedback window."""
    for is_correct in correct_flags:
        session.select_answer(correct_option(session) if is_correct else wrong_option(session))
        session.advance()


@pytest.fixture
def scheduler() -> ManualScheduler:
    return ManualScheduler()


@pytest.fixture
def questions() -> list[Question]:
    return make_questions()
