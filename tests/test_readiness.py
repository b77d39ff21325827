"""
Tests for category readiness

Covers:
- mark totals and derived metrics
- admission control at the 100-mark cap
- cache refresh after question changes
- availability listing
"""

import pytest

from conftest import make_question
from errors import CapacityExceeded, ValidationError
from question_bank import add_question, delete_question
from quiz_config import load_config
from readiness import (available_categories, cached_category_status, evaluate, evaluate_all,
                       refresh_category_status, summarize)


def test_empty_category_status():
    status = summarize([])
    assert status.total_marks == 0
    assert status.question_count == 0
    assert status.is_ready is False
    assert status.remaining_marks == 100
    assert status.average_marks == 0


def test_total_equals_sum_of_marks(db):
    for marks in (10, 20, 5):
        add_question(db, make_question("react", marks))

    status = evaluate(db, "react")
    assert status.total_marks == 35
    assert status.question_count == 3
    assert status.percentage == 35
    assert status.remaining_marks == 65
    assert status.average_marks == pytest.approx(11.67)


def test_category_name_is_case_insensitive(db):
    add_question(db, make_question("Node", 7))
    assert evaluate(db, "NODE").total_marks == 7
    assert db["question"].find_one()["category"] == "node"


def test_unknown_category_rejected(db):
    with pytest.raises(ValidationError):
        evaluate(db, "django")


def test_zero_or_missing_marks_count_as_one(db):
    db["question"].insert_many([
        {"category": "express", "question_text": "a", "options": [], "marks": 0},
        {"category": "express", "question_text": "b", "options": []},
    ])
    assert evaluate(db, "express").total_marks == 2


def test_full_category_is_ready_and_rejects_more(db):
    for marks in (40, 30, 30):
        add_question(db, make_question("node", marks))

    status = evaluate(db, "node")
    assert status.is_ready is True
    assert status.remaining_marks == 0

    with pytest.raises(CapacityExceeded) as exc:
        add_question(db, make_question("node", 5))
    assert exc.value.current_marks == 100
    assert exc.value.remaining_marks == 0
    assert db["question"].count_documents({"category": "node"}) == 3


def test_rejection_reports_remaining_capacity(db):
    add_question(db, make_question("mongodb", 90))
    with pytest.raises(CapacityExceeded) as exc:
        add_question(db, make_question("mongodb", 11))
    assert exc.value.remaining_marks == 10

    add_question(db, make_question("mongodb", 10))
    assert evaluate(db, "mongodb").total_marks == 100


def test_overshoot_is_not_clamped(db):
    db["question"].insert_many([{"category": "mern", "marks": 60}, {"category": "mern", "marks": 60}])
    status = evaluate(db, "mern")
    assert status.percentage == 120
    assert status.remaining_marks == -20
    assert status.is_ready is True


def test_cache_matches_fresh_evaluation_after_changes(db):
    add_question(db, make_question("node", 60))
    result = add_question(db, make_question("node", 40))
    assert result["category_status"] == {"current_marks": 100, "is_ready": True, "remaining": 0}
    assert cached_category_status(load_config(db)) == evaluate_all(db)

    delete_question(db, result["question"]["id"])
    cached = cached_category_status(load_config(db))
    assert cached == evaluate_all(db)
    assert cached["node"].is_ready is False


def test_refresh_replaces_stale_cache(db):
    db["question"].insert_one({"category": "react", "marks": 100})
    assert cached_category_status(load_config(db))["react"].is_ready is False

    statuses = refresh_category_status(db)
    assert statuses["react"].is_ready is True
    assert cached_category_status(load_config(db))["react"].is_ready is True


def test_only_ready_categories_are_available(db):
    add_question(db, make_question("node", 100))
    add_question(db, make_question("react", 99))

    available = available_categories(db)
    assert [c["value"] for c in available] == ["node"]
    assert available[0]["label"] == "Node.js"
    assert available[0]["total_marks"] == 100
    assert available[0]["question_count"] == 1
