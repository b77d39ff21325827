"""Question bank mutations. Every change is followed by a category status refresh."""

import logging
from typing import List, Optional

from pymongo import ASCENDING, DESCENDING
from pymongo.database import Database

from database import create_document, get_documents, to_object_id
from errors import NotFound, ValidationError
from readiness import MARKS_CAP, check_capacity, refresh_category_status
from schemas import Option, QuestionPayload, QuizQuestion, parse_category

logger = logging.getLogger(__name__)


def serialize_question(doc: dict, include_answers: bool = True) -> dict:
    options = doc.get("options", [])
    if include_answers:
        options = [{"text": o.get("text", ""), "is_correct": bool(o.get("is_correct"))} for o in options]
    else:
        options = [{"text": o.get("text", "")} for o in options]
    return {
        "id": str(doc["_id"]),
        "category": doc.get("category"),
        "question_text": doc.get("question_text", ""),
        "options": options,
        "marks": doc.get("marks", 1),
        "difficulty": doc.get("difficulty", "medium"),
        "created_at": doc.get("created_at"),
    }


def build_question(payload: QuestionPayload) -> QuizQuestion:
    text = (payload.question_text or "").strip()
    if not payload.category or not text or not payload.options:
        raise ValidationError("Category, question text, and options are required")
    category = parse_category(payload.category)

    options = [Option(text=o.text.strip(), is_correct=o.is_correct) for o in payload.options if o.text and o.text.strip()]
    if len(options) < 2:
        raise ValidationError("At least 2 options are required")
    if not any(o.is_correct for o in options):
        raise ValidationError("At least one option must be marked as correct")

    return QuizQuestion(
        category=category,
        question_text=text,
        options=options,
        marks=payload.marks or 1,
        difficulty=payload.difficulty or "medium",
    )


def add_question(db: Database, payload: QuestionPayload) -> dict:
    question = build_question(payload)
    before = check_capacity(db, question.category, question.marks)

    question_id = create_document(db, "question", question)
    statuses = refresh_category_status(db)
    logger.info("Added %d-mark question %s to %s", question.marks, question_id, question.category)

    current = before.total_marks + question.marks
    doc = db["question"].find_one({"_id": to_object_id(question_id)})
    return {
        "question": serialize_question(doc),
        "category_status": {
            "current_marks": current,
            "is_ready": statuses[question.category].is_ready,
            "remaining": MARKS_CAP - current,
        },
    }


def delete_question(db: Database, question_id: str) -> dict:
    oid = to_object_id(question_id)
    doc = db["question"].find_one({"_id": oid}) if oid else None
    if not doc:
        raise NotFound("Question not found")

    db["question"].delete_one({"_id": oid})
    refresh_category_status(db)
    logger.info("Deleted question %s from %s", question_id, doc.get("category"))
    return {
        "id": question_id,
        "category": doc.get("category"),
        "question_text": doc.get("question_text", ""),
    }


def list_questions(db: Database, category: Optional[str] = None) -> List[dict]:
    filter_dict = {"category": parse_category(category).value} if category else {}
    docs = get_documents(db, "question", filter_dict,
                         sort=[("category", ASCENDING), ("created_at", DESCENDING)])
    return [serialize_question(d) for d in docs]


def questions_in_storage_order(db: Database, category, limit: Optional[int] = None) -> List[dict]:
    """Questions of a category in creation order, optionally only the first `limit`."""
    category = parse_category(category)
    return get_documents(db, "question", {"category": category.value}, limit=limit, sort=[("_id", ASCENDING)])
