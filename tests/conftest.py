import os
import sys

import mongomock
import pytest
from fastapi.testclient import TestClient

sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

import auth
from database import ensure_indexes, get_db
from main import app
from schemas import QuestionPayload


@pytest.fixture
def db():
    database = mongomock.MongoClient()["quiz_test"]
    ensure_indexes(database)
    return database


@pytest.fixture
def client(db):
    app.dependency_overrides[get_db] = lambda: db
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def admin_headers(client, db):
    auth.create_admin(db, "admin", "s3cret", "admin@quiz.io")
    resp = client.post("/api/admin/login", json={"username": "admin", "password": "s3cret"})
    assert resp.status_code == 200
    return {"Authorization": f"Bearer {resp.json()['token']}"}


def question_payload(category="node", marks=1, text="Which runtime?", correct="V8", wrong="SpiderMonkey"):
    return {
        "category": category,
        "question_text": text,
        "options": [
            {"text": correct, "is_correct": True},
            {"text": wrong, "is_correct": False},
        ],
        "marks": marks,
    }


def make_question(category="node", marks=1, **kwargs) -> QuestionPayload:
    return QuestionPayload(**question_payload(category, marks, **kwargs))
