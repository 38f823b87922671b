"""Utilities for loading question templates from the plain-text question bank.

File format (one file per topic):

    TOPIC: Python

    ## beginner

    Q: Question text (supports markdown). Additional lines until the next
       marker are treated as part of the question.
    A: First option text
    B: Second option text
    C: Third option text
    D: Fourth option text
    CORRECT: A|B|C|D
    EXPLANATION: optional text shown in the feedback window

    ---

    Q: ...

    ## intermediate
    ...

Blocks are separated by blank lines or '---'. ``## <difficulty>`` lines open
a difficulty section; every question belongs to the section above it.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

_OPTION_ORDER = ["A", "B", "C", "D"]
DIFFICULTIES = ("beginner", "intermediate", "advanced")


class QuestionBankImportError(Exception):
    """Raised when a question bank file cannot be parsed."""


@dataclass(slots=True, frozen=True)
class QuestionTemplate:
    """A bank question before it is bound to a topic, level and position."""

    question_text: str
    options: tuple[str, ...]
    correct_option_index: int
    explanation: str | None = None


@dataclass(slots=True)
class ImportedTopic:
    """Container for one topic's templates, grouped by difficulty."""

    name: str
    source_path: Path | None
    templates: dict[str, list[QuestionTemplate]] = field(default_factory=dict)

    def templates_for(self, difficulty: str) -> list[QuestionTemplate]:
        return list(self.templates.get(difficulty, []))


def load_topic_from_file(file_path: Path) -> ImportedTopic:
    text = file_path.read_text(encoding="utf-8")
    topic = parse_topic_text(text, source_path=file_path)
    return topic


def load_question_bank(directory: Path) -> dict[str, ImportedTopic]:
    """Load every ``*.txt`` topic file in ``directory``, keyed by topic name."""
    topics: dict[str, ImportedTopic] = {}
    for file_path in sorted(directory.glob("*.txt")):
        topic = load_topic_from_file(file_path)
        if topic.name in topics:
            raise QuestionBankImportError(
                f"Topic '{topic.name}' is defined more than once ({file_path.name})."
            )
        topics[topic.name] = topic
    return topics


def parse_topic_text(text: str, source_path: Path | None = None) -> ImportedTopic:
    topic_name: str | None = None
    difficulty: str | None = None
    sections: dict[str, list[str]] = {}
    current_block: list[str] = []

    def finish_block() -> None:
        if not current_block:
            return
        if difficulty is None:
            raise QuestionBankImportError("Question found before any '## <difficulty>' section.")
        sections.setdefault(difficulty, []).append("\n".join(current_block).strip())
        current_block.clear()

    for raw_line in text.splitlines():
        stripped = raw_line.strip()
        if stripped.upper().startswith("TOPIC:"):
            topic_name = stripped.split(":", 1)[1].strip()
            continue
        if stripped.startswith("##"):
            finish_block()
            difficulty = stripped.lstrip("#").strip().lower()
            if difficulty not in DIFFICULTIES:
                raise QuestionBankImportError(f"Unknown difficulty section '{difficulty}'.")
            continue
        if stripped == "---":
            finish_block()
            continue
        if stripped:
            current_block.append(raw_line)
        else:
            finish_block()
    finish_block()

    if not topic_name:
        raise QuestionBankImportError("Question bank file is missing a 'TOPIC:' header.")
    templates = {
        name: [_parse_block(block) for block in blocks if block]
        for name, blocks in sections.items()
    }
    if not any(templates.values()):
        raise QuestionBankImportError(f"Topic '{topic_name}' did not contain any questions.")
    return ImportedTopic(name=topic_name, source_path=source_path, templates=templates)


def _parse_block(block: str) -> QuestionTemplate:
    question_lines: list[str] = []
    options: dict[str, str] = {}
    correct_letter: str | None = None
    explanation: str | None = None
    current_section: str | None = None

    for raw_line in block.splitlines():
        line = raw_line.strip()
        if not line:
            continue

        upper = line.upper()
        if upper.startswith("Q:"):
            question_lines = [line[2:].strip()]
            current_section = "Q"
            continue

        if upper.startswith("CORRECT:"):
            correct_letter = line.split(":", 1)[1].strip().upper()
            current_section = None
            continue

        if upper.startswith("EXPLANATION:"):
            explanation = line.split(":", 1)[1].strip()
            current_section = "EXPLANATION"
            continue

        if len(line) > 2 and line[0].upper() in _OPTION_ORDER and line[1] == ":":
            letter = line[0].upper()
            options[letter] = line[2:].strip()
            current_section = letter
            continue

        if current_section == "Q":
            question_lines.append(line)
        elif current_section == "EXPLANATION":
            explanation = f"{explanation}\n{line}" if explanation else line
        elif current_section in _OPTION_ORDER:
            options[current_section] = options[current_section] + f"\n{line}"
        else:
            raise QuestionBankImportError(
                f"Encountered text outside of a known section: '{line}'."
            )

    if not question_lines:
        raise QuestionBankImportError("Question text missing (Q: ...)")
    if len(options) != 4:
        raise QuestionBankImportError("Each question must define exactly four options (A-D).")

    option_list = tuple(options.get(letter, "").strip() for letter in _OPTION_ORDER)
    if any(not opt for opt in option_list):
        raise QuestionBankImportError("Option text cannot be empty.")

    if correct_letter is None:
        raise QuestionBankImportError("Each question must name its CORRECT option.")
    if correct_letter not in _OPTION_ORDER:
        raise QuestionBankImportError("CORRECT must be one of A, B, C, or D.")

    question_text = "\n".join(question_lines).strip()
    if not question_text:
        raise QuestionBankImportError("Question text cannot be empty.")

    return QuestionTemplate(
        question_text=question_text,
        options=option_list,
        correct_option_index=_OPTION_ORDER.index(correct_letter),
        explanation=explanation or None,
    )
