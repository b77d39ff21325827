"""
Quiz configuration

The config is a single document in the "config" collection. It is loaded per
request, created with defaults when missing, and passed explicitly to the
readiness and scoring code.
"""

import logging
from typing import Dict

from pymongo.database import Database

from database import utcnow
from schemas import CategoryStatus, ConfigUpdate, QuizConfig

logger = logging.getLogger(__name__)

CONFIG_ID = "quiz_config"


def _defaults() -> dict:
    doc = QuizConfig().model_dump()
    doc["updated_at"] = utcnow()
    return doc


def load_config(db: Database) -> QuizConfig:
    """Return the config singleton, inserting the defaults on first access."""
    db["config"].update_one({"_id": CONFIG_ID}, {"$setOnInsert": _defaults()}, upsert=True)
    doc = db["config"].find_one({"_id": CONFIG_ID})
    doc.pop("_id", None)
    return QuizConfig(**doc)


def update_config(db: Database, changes: ConfigUpdate) -> QuizConfig:
    config = load_config(db)
    fields = changes.model_dump(exclude_none=True)
    if fields:
        fields["updated_at"] = utcnow()
        db["config"].update_one({"_id": CONFIG_ID}, {"$set": fields})
        logger.info("Quiz config updated: %s", fields)
        config = config.model_copy(update=fields)
    return config


def save_category_status(db: Database, statuses: Dict[str, CategoryStatus]) -> None:
    load_config(db)
    db["config"].update_one(
        {"_id": CONFIG_ID},
        {"$set": {
            "category_status": {name: status.model_dump() for name, status in statuses.items()},
            "updated_at": utcnow(),
        }},
    )


def public_config(config: QuizConfig) -> dict:
    return {
        "quiz_time": config.quiz_time,
        "passing_percentage": config.passing_percentage,
        "total_questions": config.total_questions,
        "category_status": {name: status.model_dump() for name, status in config.category_status.items()},
        "updated_at": config.updated_at,
    }
