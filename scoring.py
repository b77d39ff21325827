"""
Quiz scoring

Grades a participant's answers against the first `total_questions` questions
of their category, in creation order, and stores the result on the
participant document.
"""

import logging
from typing import Dict, List, Optional

from pymongo.database import Database

from database import to_object_id, utcnow
from errors import NotFound
from question_bank import questions_in_storage_order
from readiness import effective_marks
from schemas import QuizConfig, ScoreResult


logger = logging.getLogger(__name__)


def correct_option_text(question: dict) -> Optional[str]:
    for option in question.get("options", []):
        if option.get("is_correct"):
            return option.get("text")
    return None


def grade(questions: List[dict], answers: Dict[str, str], config: QuizConfig, category) -> ScoreResult:
    graded = questions[:min(len(questions), config.total_questions)]

    score = 0
    marks_obtained = 0
    total_possible = 0
    for question in graded:
        marks = effective_marks(question)
        total_possible += marks
        answer = answers.get(str(question["_id"]))
        if not answer:
            continue
        # Exact match, no case or whitespace folding.
        expected = correct_option_text(question)
        if expected is not None and answer == expected:
            score += 1
            marks_obtained += marks

    percentage = marks_obtained / total_possible * 100 if total_possible > 0 else 0
    return ScoreResult(
        score=score,
        marks_obtained=marks_obtained,
        total_marks=total_possible,
        percentage=percentage,
        total_questions=len(graded),
        passed=percentage >= config.passing_percentage,
        category=category,
    )


def score_participant(db: Database, participant_id: str, answers: Dict[str, str], config: QuizConfig) -> ScoreResult:
    oid = to_object_id(participant_id)
    participant = db["participant"].find_one({"_id": oid}) if oid else None
    if not participant:
        raise NotFound("User not found")

    questions = questions_in_storage_order(db, participant["category"], limit=config.total_questions)
    result = grade(questions, answers, config, participant["category"])

    # Re-submission overwrites the previous result; attempts keeps the count.
    db["participant"].update_one(
        {"_id": oid},
        {
            "$set": {
                "score": result.score,
                "marks_obtained": result.marks_obtained,
                "total_marks": result.total_marks,
                "percentage": result.percentage,
                "submitted_at": utcnow(),
            },
            "$inc": {"attempts": 1},
        },
    )
    logger.info("Scored participant %s: %d marks of %d (%.2f%%)",
                participant_id, result.marks_obtained, result.total_marks, result.percentage)
    return result
