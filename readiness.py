"""
Category readiness

A category becomes quiz-eligible once the marks of its questions reach
MARKS_CAP. Status is always derivable from the question collection; the copy
kept in the config document is a cache refreshed after every question change.
"""

import logging
from typing import Dict, Iterable, List, Optional

from pymongo.database import Database

from errors import CapacityExceeded
from quiz_config import load_config, save_category_status
from schemas import Category, CategoryStatus, QuizConfig, parse_category

logger = logging.getLogger(__name__)

MARKS_CAP = 100


def effective_marks(question: dict) -> int:
    # Missing or zero marks count as one point.
    return question.get("marks") or 1


def summarize(questions: Iterable[dict]) -> CategoryStatus:
    marks = [effective_marks(q) for q in questions]
    total = sum(marks)
    count = len(marks)
    return CategoryStatus(
        total_marks=total,
        question_count=count,
        is_ready=total >= MARKS_CAP,
        percentage=total / MARKS_CAP * 100,
        remaining_marks=MARKS_CAP - total,
        average_marks=round(total / count, 2) if count else 0,
    )


def evaluate(db: Database, category) -> CategoryStatus:
    category = parse_category(category)
    return summarize(db["question"].find({"category": category.value}, {"marks": 1}))


def evaluate_all(db: Database) -> Dict[str, CategoryStatus]:
    return {c.value: evaluate(db, c) for c in Category}


def refresh_category_status(db: Database) -> Dict[str, CategoryStatus]:
    """Recompute every category and replace the cached copy in the config."""
    statuses = evaluate_all(db)
    save_category_status(db, statuses)
    logger.debug("Category status refreshed: %s", {k: v.is_ready for k, v in statuses.items()})
    return statuses


def cached_category_status(config: QuizConfig) -> Dict[str, CategoryStatus]:
    return {c.value: config.category_status.get(c.value, CategoryStatus()) for c in Category}


def check_capacity(db: Database, category, new_marks: int) -> CategoryStatus:
    """Reject a question that would push the category over the cap."""
    category = parse_category(category)
    status = evaluate(db, category)
    if status.total_marks + new_marks > MARKS_CAP:
        remaining = MARKS_CAP - status.total_marks
        logger.info("Rejected %d-mark question for %s: %d/%d used",
                    new_marks, category.value, status.total_marks, MARKS_CAP)
        raise CapacityExceeded(
            f'Cannot add question. Category "{category.value}" already has '
            f"{status.total_marks}/{MARKS_CAP} marks. Only {remaining} marks remaining.",
            current_marks=status.total_marks,
            remaining_marks=remaining,
        )
    return status


def is_available(config: QuizConfig, category) -> bool:
    category = parse_category(category)
    return cached_category_status(config)[category.value].is_ready


def available_categories(db: Database, config: Optional[QuizConfig] = None) -> List[dict]:
    """Categories students may take, according to the cached ready flags."""
    config = config or load_config(db)
    out = []
    for category in Category:
        if not is_available(config, category):
            continue
        status = evaluate(db, category)
        out.append({
            "value": category.value,
            "label": category.label,
            "icon": category.icon,
            "total_marks": status.total_marks,
            "question_count": status.question_count,
            "is_ready": True,
        })
    return out
