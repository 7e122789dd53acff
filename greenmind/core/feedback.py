"""Performance feedback derived from a score: levels, messages and tips."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass

from greenmind.core.models import CategoryScore
from greenmind.core.services.score_calculator import score_percent

PERFORMANCE_LEVELS: tuple[str, ...] = ("excellent", "good", "fair", "needs_improvement", "poor")

_LEVEL_THRESHOLDS: tuple[tuple[int, str], ...] = (
    (90, "excellent"),
    (80, "good"),
    (70, "fair"),
    (60, "needs_improvement"),
)

_LEVEL_MESSAGES: dict[str, str] = {
    "excellent": "Outstanding! You're an environmental champion!",
    "good": "Excellent work! You have great environmental knowledge!",
    "fair": "Good job! You're on the right track with environmental awareness!",
    "needs_improvement": "Not bad! Keep learning about environmental conservation!",
    "poor": "There's room for improvement. Check out our Learn page for more info!",
}

_CATEGORY_TIPS: dict[str, tuple[str, str]] = {
    "Recycling": (
        "Improve Your Recycling Knowledge",
        "Learn more about what can and cannot be recycled in your area. "
        "Check with your local waste management for specific guidelines.",
    ),
    "Energy Conservation": (
        "Focus on Energy Saving",
        "Simple changes like using LED bulbs, unplugging devices, and adjusting your "
        "thermostat can significantly reduce energy consumption.",
    ),
    "Water Conservation": (
        "Water-Saving Strategies",
        "Fix leaky faucets, take shorter showers, and consider installing low-flow "
        "fixtures to conserve water at home.",
    ),
    "Climate Change": (
        "Understanding Climate Change",
        "Stay informed about climate science and learn about actions you can take to "
        "reduce your carbon footprint.",
    ),
}

WEAK_CATEGORY_PERCENT = 70
MAX_TIPS = 3


@dataclass(slots=True, frozen=True)
class Tip:
    title: str
    content: str


@dataclass(slots=True, frozen=True)
class CategoryPerformance:
    score: int
    correct: int
    total: int
    level: str


def performance_level(score: int) -> str:
    for threshold, level in _LEVEL_THRESHOLDS:
        if score >= threshold:
            return level
    return "poor"


def performance_message(score: int) -> str:
    return _LEVEL_MESSAGES[performance_level(score)]


def category_level(percentage: int) -> str:
    if percentage >= 80:
        return "strong"
    if percentage >= 60:
        return "moderate"
    return "weak"


def category_performance(categories: Mapping[str, CategoryScore]) -> dict[str, CategoryPerformance]:
    """Percentage and level per category; accepts anything with ``correct``/``total``."""
    performance = {}
    for name, tally in categories.items():
        percentage = score_percent(tally.correct, tally.total) if tally.total else 0
        performance[name] = CategoryPerformance(
            score=percentage,
            correct=tally.correct,
            total=tally.total,
            level=category_level(percentage),
        )
    return performance


def personalized_tips(score: int, categories: Mapping[str, CategoryScore]) -> list[Tip]:
    tips: list[Tip] = []
    for name, tally in categories.items():
        if not tally.total:
            continue
        if tally.correct / tally.total * 100 < WEAK_CATEGORY_PERCENT and name in _CATEGORY_TIPS:
            tips.append(Tip(*_CATEGORY_TIPS[name]))

    if score >= 80:
        tips.append(
            Tip(
                "Share Your Knowledge",
                "You have excellent environmental awareness! Consider sharing your knowledge "
                "with friends and family.",
            )
        )
    elif score >= 60:
        tips.append(
            Tip(
                "Keep Learning",
                "You're making good progress! Visit our Learn page to deepen your understanding "
                "of environmental topics.",
            )
        )
    else:
        tips.append(
            Tip(
                "Start Your Environmental Journey",
                "Begin with small changes like recycling properly, conserving water, and learning "
                "about sustainable practices. Every action counts!",
            )
        )
    return tips[:MAX_TIPS]


@dataclass(slots=True, frozen=True)
class ResultFeedback:
    level: str
    message: str
    categories: dict[str, CategoryPerformance]
    tips: list[Tip]


def build_feedback(score: int, categories: Mapping[str, CategoryScore]) -> ResultFeedback:
    return ResultFeedback(
        level=performance_level(score),
        message=performance_message(score),
        categories=category_performance(categories),
        tips=personalized_tips(score, categories),
    )
