"""Utilities for importing a question bank from a human-friendly text file.

File format (repeat blocks separated by blank lines or '---'):

    Q: Question text. Additional lines until the next marker are treated as
       part of the question.
    A: First option text
    B: Second option text
    ...                (at least two options, lettered consecutively from A)
    CORRECT: B
    CATEGORY: Recycling
    DIFFICULTY: easy|medium|hard   (optional, defaults to medium)
    EXPLANATION: Shown next to the answer once the quiz is submitted.
    ID: 12             (optional, defaults to the block's position)

Example:

    Q: Which bin takes paper and cardboard?
    A: Green bin
    B: Blue bin
    CORRECT: B
    CATEGORY: Recycling
    EXPLANATION: Blue bins are used for paper in most programs.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
import string

from greenmind.core.errors import InvalidBankError
from greenmind.core.models import QuizItem
from greenmind.core.question_bank import QuestionBank


class BankImportError(InvalidBankError):
    """Raised when a bank definition cannot be parsed."""


@dataclass(slots=True)
class ImportedBank:
    """Container for an imported bank and where it came from."""

    source_path: Path
    bank: QuestionBank


_OPTION_LETTERS = string.ascii_uppercase
_FIELD_MARKERS = ("CORRECT:", "CATEGORY:", "DIFFICULTY:", "EXPLANATION:", "ID:")


def load_bank_from_file(file_path: Path) -> ImportedBank:
    text = file_path.read_text(encoding="utf-8")
    return ImportedBank(source_path=file_path, bank=parse_bank_text(text))


def parse_bank_text(text: str) -> QuestionBank:
    items = [_parse_block(block, position) for position, block in enumerate(_split_blocks(text), start=1)]
    if not items:
        raise BankImportError("Bank file did not contain any questions.")
    return QuestionBank(items)


def _split_blocks(text: str) -> list[str]:
    blocks: list[str] = []
    current_block: list[str] = []
    for raw_line in text.splitlines():
        stripped = raw_line.strip()
        if stripped == "---":
            if current_block:
                blocks.append("\n".join(current_block).strip())
                current_block = []
            continue
        if stripped:
            current_block.append(raw_line)
        elif current_block:
            blocks.append("\n".join(current_block).strip())
            current_block = []
    if current_block:
        blocks.append("\n".join(current_block).strip())
    return [block for block in blocks if block]


def _parse_block(block: str, position: int) -> QuizItem:
    question_lines: list[str] = []
    options: dict[str, str] = {}
    fields: dict[str, str] = {}
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

        marker = next((m for m in _FIELD_MARKERS if upper.startswith(m)), None)
        if marker is not None:
            key = marker[:-1]
            fields[key] = line.split(":", 1)[1].strip()
            current_section = key if key == "EXPLANATION" else None
            continue

        if len(line) > 2 and line[0].upper() in _OPTION_LETTERS and line[1] == ":":
            letter = line[0].upper()
            options[letter] = line[2:].strip()
            current_section = letter
            continue

        if current_section == "Q":
            question_lines.append(line)
        elif current_section == "EXPLANATION":
            fields["EXPLANATION"] = f"{fields['EXPLANATION']} {line}"
        elif current_section in options:
            options[current_section] = options[current_section] + f"\n{line}"
        else:
            raise BankImportError(f"Encountered text outside of a known section: '{line}'.")

    if not question_lines:
        raise BankImportError(f"Question {position}: text missing (Q: ...)")

    letters = _OPTION_LETTERS[: len(options)]
    if len(options) < 2 or set(options) != set(letters):
        raise BankImportError(
            f"Question {position}: options must be lettered consecutively from A and number at least two."
        )

    correct_letter = fields.get("CORRECT", "").upper()
    if not correct_letter:
        raise BankImportError(f"Question {position}: CORRECT is required.")
    if correct_letter not in letters:
        raise BankImportError(f"Question {position}: CORRECT must be one of {', '.join(letters)}.")

    category = fields.get("CATEGORY", "")
    if not category:
        raise BankImportError(f"Question {position}: CATEGORY is required.")

    question_id = position
    if "ID" in fields:
        try:
            question_id = int(fields["ID"])
        except ValueError as exc:
            raise BankImportError(f"Question {position}: ID must be an integer.") from exc

    return QuizItem(
        id=question_id,
        category=category,
        prompt="\n".join(question_lines).strip(),
        options=tuple(options[letter] for letter in letters),
        correct_option_index=letters.index(correct_letter),
        difficulty=fields.get("DIFFICULTY", "medium") or "medium",
        explanation=fields.get("EXPLANATION", ""),
    )
