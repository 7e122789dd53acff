"""Utilities for exporting a question bank to the plain-text import format."""

from __future__ import annotations

from pathlib import Path
import string

from greenmind.core.models import QuizItem
from greenmind.core.question_bank import QuestionBank


def save_bank_to_file(file_path: Path, bank: QuestionBank) -> None:
    """Persist the bank to disk in the text import format."""
    file_path = file_path.resolve()
    file_path.parent.mkdir(parents=True, exist_ok=True)
    file_path.write_text(serialize_bank(bank), encoding="utf-8")


def serialize_bank(bank: QuestionBank) -> str:
    blocks = [_serialize_item(item) for item in bank]
    return "\n\n---\n\n".join(blocks) + "\n"


def _serialize_item(item: QuizItem) -> str:
    lines: list[str] = [f"ID: {item.id}"]

    question_lines = item.prompt.splitlines() or [item.prompt]
    lines.append(f"Q: {question_lines[0]}")
    lines.extend(question_lines[1:])

    for letter, option_text in zip(string.ascii_uppercase, item.options):
        option_lines = option_text.splitlines() or [option_text]
        lines.append(f"{letter}: {option_lines[0]}")
        lines.extend(option_lines[1:])

    lines.append(f"CORRECT: {string.ascii_uppercase[item.correct_option_index]}")
    lines.append(f"CATEGORY: {item.category}")
    lines.append(f"DIFFICULTY: {item.difficulty}")
    if item.explanation:
        lines.append(f"EXPLANATION: {' '.join(item.explanation.splitlines())}")

    return "\n".join(lines)
