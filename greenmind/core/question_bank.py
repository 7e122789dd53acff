"""Service for holding the ordered, read-only collection of quiz questions."""

from __future__ import annotations

from collections.abc import Iterable, Iterator

from greenmind.constants.quiz_constants import DIFFICULTY_LEVELS
from greenmind.core.errors import InvalidBankError, OutOfRangeError
from greenmind.core.models import QuizItem


class QuestionBank:
    """Validated quiz items in presentation order."""

    def __init__(self, items: Iterable[QuizItem]) -> None:
        prepared = [self._prepare_item(item) for item in items]
        if not prepared:
            raise InvalidBankError("Question bank must contain at least one question.")
        seen: set[int] = set()
        for item in prepared:
            if item.id in seen:
                raise InvalidBankError(f"Duplicate question id {item.id}.")
            seen.add(item.id)
        self._items: tuple[QuizItem, ...] = tuple(prepared)

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[QuizItem]:
        return iter(self._items)

    @property
    def items(self) -> tuple[QuizItem, ...]:
        return self._items

    def get_item_at_index(self, index: int) -> QuizItem:
        if not 0 <= index < len(self._items):
            raise OutOfRangeError(f"Question index {index} out of range")
        return self._items[index]

    def get_item(self, question_id: int) -> QuizItem:
        for item in self._items:
            if item.id == question_id:
                return item
        raise OutOfRangeError(f"Unknown question id {question_id}")

    def categories(self) -> list[str]:
        """Return categories in order of first appearance."""
        return list(dict.fromkeys(item.category for item in self._items))

    @classmethod
    def default(cls) -> "QuestionBank":
        return cls(_default_items())

    @staticmethod
    def _prepare_item(item: QuizItem) -> QuizItem:
        options = tuple(option.strip() for option in item.options)
        if len(options) < 2:
            raise InvalidBankError(f"Question {item.id} must have at least two options.")
        if any(not option for option in options):
            raise InvalidBankError(f"Question {item.id} has an empty option.")
        if not 0 <= item.correct_option_index < len(options):
            raise InvalidBankError(
                f"Question {item.id} correct option index {item.correct_option_index} "
                f"is outside 0..{len(options) - 1}."
            )
        prompt = item.prompt.strip()
        if not prompt:
            raise InvalidBankError(f"Question {item.id} text must not be empty.")
        category = item.category.strip()
        if not category:
            raise InvalidBankError(f"Question {item.id} needs a category.")
        difficulty = item.difficulty.strip().lower()
        if difficulty not in DIFFICULTY_LEVELS:
            raise InvalidBankError(
                f"Question {item.id} difficulty must be one of {', '.join(DIFFICULTY_LEVELS)}."
            )
        return QuizItem(
            id=item.id,
            category=category,
            prompt=prompt,
            options=options,
            correct_option_index=item.correct_option_index,
            difficulty=difficulty,
            explanation=item.explanation.strip(),
        )


def _default_items() -> list[QuizItem]:
    return [
        QuizItem(
            id=1,
            category="Recycling",
            prompt="What color recycling bin is typically used for paper and cardboard?",
            options=("Green bin", "Blue bin", "Yellow bin", "Red bin"),
            correct_option_index=1,
            difficulty="easy",
            explanation="Blue bins are commonly used for paper and cardboard recycling in most recycling programs.",
        ),
        QuizItem(
            id=2,
            category="Energy Conservation",
            prompt="Which type of light bulb uses the least amount of energy?",
            options=("Incandescent bulbs", "Halogen bulbs", "CFL bulbs", "LED bulbs"),
            correct_option_index=3,
            difficulty="easy",
            explanation="LED bulbs use up to 75% less energy than incandescent bulbs and last 25 times longer.",
        ),
        QuizItem(
            id=3,
            category="Water Conservation",
            prompt="How much water can a dripping faucet waste per year?",
            options=("100 gallons", "500 gallons", "1,000 gallons", "3,000+ gallons"),
            correct_option_index=3,
            difficulty="medium",
            explanation=(
                "A single dripping faucet can waste over 3,000 gallons of water per year, "
                "which is enough for more than 180 showers!"
            ),
        ),
        QuizItem(
            id=4,
            category="Climate Change",
            prompt="What is the main greenhouse gas responsible for climate change?",
            options=("Oxygen (O2)", "Carbon Dioxide (CO2)", "Nitrogen (N2)", "Hydrogen (H2)"),
            correct_option_index=1,
            difficulty="easy",
            explanation=(
                "Carbon dioxide (CO2) is the primary greenhouse gas emitted through human "
                "activities, mainly from burning fossil fuels."
            ),
        ),
        QuizItem(
            id=5,
            category="Recycling",
            prompt="Which of these items should NOT be put in regular recycling bins?",
            options=("Clean pizza boxes", "Plastic bottles", "Batteries", "Aluminum cans"),
            correct_option_index=2,
            difficulty="medium",
            explanation=(
                "Batteries contain hazardous materials and should be taken to special "
                "recycling centers, not put in regular recycling bins."
            ),
        ),
        QuizItem(
            id=6,
            category="Energy Conservation",
            prompt="What percentage of home energy can be saved by properly sealing air leaks?",
            options=("5-10%", "10-20%", "20-30%", "30-40%"),
            correct_option_index=1,
            difficulty="medium",
            explanation=(
                "Sealing air leaks around windows, doors, and other openings can save "
                "10-20% on heating and cooling costs."
            ),
        ),
        QuizItem(
            id=7,
            category="Water Conservation",
            prompt="What is the average amount of water used in a 10-minute shower?",
            options=("15-25 gallons", "25-35 gallons", "35-45 gallons", "45-55 gallons"),
            correct_option_index=1,
            difficulty="medium",
            explanation=(
                "A typical 10-minute shower uses about 25-35 gallons of water, depending "
                "on the showerhead flow rate."
            ),
        ),
        QuizItem(
            id=8,
            category="Climate Change",
            prompt="How much has the global average temperature increased since 1880?",
            options=("0.5°C (0.9°F)", "1.1°C (2°F)", "2.0°C (3.6°F)", "3.0°C (5.4°F)"),
            correct_option_index=1,
            difficulty="hard",
            explanation=(
                "The global average temperature has increased by approximately 1.1°C (2°F) "
                "since 1880, with most warming occurring in the past 40 years."
            ),
        ),
        QuizItem(
            id=9,
            category="Recycling",
            prompt="What percentage of plastic waste is actually recycled globally?",
            options=("Less than 10%", "10-20%", "20-30%", "More than 50%"),
            correct_option_index=0,
            difficulty="hard",
            explanation=(
                "Less than 10% of all plastic waste ever produced has been recycled. "
                "Most ends up in landfills or the environment."
            ),
        ),
        QuizItem(
            id=10,
            category="Energy Conservation",
            prompt="Which home appliance typically uses the most electricity?",
            options=("Refrigerator", "Washing machine", "Air conditioning/heating system", "Television"),
            correct_option_index=2,
            difficulty="medium",
            explanation=(
                "Heating and cooling systems typically account for about 48% of home energy "
                "use, making them the largest energy consumer in most homes."
            ),
        ),
    ]
