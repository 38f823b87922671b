from __future__ import annotations

from pathlib import Path

import pytest

from quest_app.constants.quest_constants import OPTIONS_PER_QUESTION, QUESTIONS_PER_QUEST
from quest_app.core.errors import QuestionSourceError
from quest_app.core.question_bank_importer import (
    QuestionBankImportError,
    load_question_bank,
    parse_topic_text,
)
from quest_app.core.services.question_source import TemplateQuestionSource

SAMPLE_TOPIC = """
TOPIC: Go

## beginner

Q: Which keyword declares a function?
A: func
B: def
C: fn
D: function
CORRECT: A
EXPLANATION: Go functions start with `func`.

---

Q: What does `len("go")` return?
A: 1
B: 2
C: 3
D: an error
CORRECT: B

## advanced

Q: Which statement starts a goroutine?
A: async f()
B: spawn f()
C: go f()
D: run f()
CORRECT: C
"""


@pytest.fixture
def source() -> TemplateQuestionSource:
    return TemplateQuestionSource({"Go": parse_topic_text(SAMPLE_TOPIC)})


def test_parse_topic_groups_templates_by_difficulty():
    topic = parse_topic_text(SAMPLE_TOPIC)

    assert topic.name == "Go"
    assert len(topic.templates_for("beginner")) == 2
    assert topic.templates_for("intermediate") == []
    advanced = topic.templates_for("advanced")[0]
    assert advanced.correct_option_index == 2
    assert advanced.explanation is None
    assert topic.templates_for("beginner")[0].explanation == "Go functions start with `func`."


@pytest.mark.parametrize(
    "text",
    [
        "## beginner\n\nQ: x\nA: 1\nB: 2\nC: 3\nD: 4\nCORRECT: A\n",
        "TOPIC: X\n\nQ: x\nA: 1\nB: 2\nC: 3\nD: 4\nCORRECT: A\n",
        "TOPIC: X\n## expert\n\nQ: x\nA: 1\nB: 2\nC: 3\nD: 4\nCORRECT: A\n",
        "TOPIC: X\n## beginner\n\nQ: x\nA: 1\nB: 2\nC: 3\nCORRECT: A\n",
        "TOPIC: X\n## beginner\n\nQ: x\nA: 1\nB: 2\nC: 3\nD: 4\n",
        "TOPIC: X\n## beginner\n\nQ: x\nA: 1\nB: 2\nC: 3\nD: 4\nCORRECT: E\n",
        "TOPIC: X\n## beginner\n",
    ],
)
def test_malformed_bank_text_is_rejected(text):
    with pytest.raises(QuestionBankImportError):
        parse_topic_text(text)


def test_duplicate_topic_files_are_rejected(tmp_path: Path):
    (tmp_path / "a.txt").write_text(SAMPLE_TOPIC, encoding="utf-8")
    (tmp_path / "b.txt").write_text(SAMPLE_TOPIC, encoding="utf-8")

    with pytest.raises(QuestionBankImportError):
        load_question_bank(tmp_path)


def test_unreadable_directory_surfaces_as_source_error(tmp_path: Path):
    (tmp_path / "broken.txt").write_text("no header here", encoding="utf-8")

    with pytest.raises(QuestionSourceError):
        TemplateQuestionSource.from_directory(tmp_path)


def test_fetch_returns_fixed_size_set(source):
    questions = source.fetch_questions("Go", 0)

    assert len(questions) == QUESTIONS_PER_QUEST
    assert all(len(q.options) == OPTIONS_PER_QUESTION for q in questions)
    assert all(0 <= q.correct_option_index < OPTIONS_PER_QUESTION for q in questions)
    assert [q.id for q in questions] == [f"go-0-{i}" for i in range(QUESTIONS_PER_QUEST)]
    assert {q.topic for q in questions} == {"Go"}
    assert questions[0].question_text == questions[2].question_text


def test_level_selects_difficulty(source):
    advanced = source.fetch_questions("go", 5)

    assert {q.difficulty for q in advanced} == {"advanced"}
    assert {q.level for q in advanced} == {5}
    assert advanced[0].question_text == "Which statement starts a goroutine?"


def test_missing_difficulty_falls_back_to_beginner_templates(source):
    intermediate = source.fetch_questions("Go", 2)

    assert intermediate[0].difficulty == "intermediate"
    assert intermediate[0].question_text == "Which keyword declares a function?"


def test_unsupported_topic_raises(source):
    with pytest.raises(QuestionSourceError):
        source.fetch_questions("COBOL", 0)


@pytest.mark.parametrize("level", [-1, 6])
def test_invalid_level_raises(source, level):
    with pytest.raises(QuestionSourceError):
        source.fetch_questions("Go", level)


def test_generated_sets_are_cached_in_injected_mapping():
    cache = {}
    source = TemplateQuestionSource({"Go": parse_topic_text(SAMPLE_TOPIC)}, cache=cache)

    first = source.fetch_questions("Go", 1)
    second = source.fetch_questions("GO", 1)

    assert list(cache) == [("Go", 1)]
    assert first == second
    assert first is not second


def test_questions_per_quest_must_be_positive():
    with pytest.raises(ValueError):
        TemplateQuestionSource({}, questions_per_quest=0)


def test_default_bank_covers_every_topic_and_difficulty():
    source = TemplateQuestionSource.from_default_bank()

    assert source.available_topics() == ["JavaScript", "Python", "React"]
    for topic in source.available_topics():
        for level in range(6):
            questions = source.fetch_questions(topic, level)
            assert len(questions) == QUESTIONS_PER_QUEST
            assert len({q.question_text for q in questions}) == QUESTIONS_PER_QUEST
