"""
Database helpers

MongoDB access through pymongo. The connection is configured from the
DATABASE_URL and DATABASE_NAME environment variables; routes receive the
database through the `get_db` dependency so tests can swap it out.
"""

import os
from datetime import datetime, timezone
from typing import Optional

from bson import ObjectId
from bson.errors import InvalidId
from pydantic import BaseModel
from pymongo import ASCENDING, MongoClient
from pymongo.database import Database

from errors import StorageUnavailable

DATABASE_URL = os.getenv("DATABASE_URL")
DATABASE_NAME = os.getenv("DATABASE_NAME")

db: Optional[Database] = None

if DATABASE_URL and DATABASE_NAME:
    _client = MongoClient(DATABASE_URL, serverSelectionTimeoutMS=5000)
    db = _client[DATABASE_NAME]


def get_db() -> Database:
    if db is None:
        raise StorageUnavailable("Database is not configured")
    return db


def utcnow() -> datetime:
    # Mongo hands datetimes back naive in UTC; keep ours comparable with them.
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_object_id(value: str) -> Optional[ObjectId]:
    try:
        return ObjectId(value)
    except (InvalidId, TypeError):
        return None


def create_document(database: Database, collection_name: str, data) -> str:
    """Insert a pydantic model or dict, stamping created_at. Returns the new id."""
    doc = data.model_dump() if isinstance(data, BaseModel) else dict(data)
    doc.setdefault("created_at", utcnow())
    result = database[collection_name].insert_one(doc)
    return str(result.inserted_id)


def get_documents(database: Database, collection_name: str, filter_dict: Optional[dict] = None,
                  limit: Optional[int] = None, sort=None) -> list:
    cursor = database[collection_name].find(filter_dict or {})
    if sort:
        cursor = cursor.sort(sort)
    if limit:
        cursor = cursor.limit(limit)
    return list(cursor)


def ensure_indexes(database: Database) -> None:
    database["participant"].create_index([("roll_number", ASCENDING)], unique=True)
    database["admin"].create_index([("username", ASCENDING)], unique=True)
    database["session"].create_index([("token", ASCENDING)], unique=True)
    database["question"].create_index([("category", ASCENDING)])

