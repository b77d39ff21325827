import pytest
from bson import ObjectId

from conftest import make_question
from errors import NotFound
from question_bank import add_question, questions_in_storage_order
from schemas import QuizConfig
from scoring import grade, score_participant


def _question(marks, correct="Paris", wrong="Rome"):
    return {
        "_id": ObjectId(),
        "marks": marks,
        "options": [{"text": wrong, "is_correct": False}, {"text": correct, "is_correct": True}],
    }


def _register(db, category="node", roll="R-1"):
    return str(db["participant"].insert_one({
        "name": "Ayesha", "roll_number": roll, "category": category,
        "score": 0, "marks_obtained": 0, "total_marks": 0, "percentage": 0, "attempts": 0,
    }).inserted_id)


class TestGrade:

    def test_all_correct(self):
        questions = [_question(50), _question(50)]
        answers = {str(q["_id"]): "Paris" for q in questions}
        result = grade(questions, answers, QuizConfig(passing_percentage=40), "node")
        assert result.score == 2
        assert result.marks_obtained == 100
        assert result.total_marks == 100
        assert result.percentage == 100
        assert result.total_questions == 2
        assert result.passed is True

    def test_match_is_exact(self):
        questions = [_question(1), _question(1)]
        answers = {str(questions[0]["_id"]): "paris", str(questions[1]["_id"]): "Paris "}
        result = grade(questions, answers, QuizConfig(), "node")
        assert result.score == 0
        assert result.marks_obtained == 0
        assert result.total_marks == 2

    def test_missing_answers_still_count_towards_total(self):
        questions = [_question(30), _question(70)]
        result = grade(questions, {str(questions[1]["_id"]): "Paris"}, QuizConfig(), "node")
        assert result.score == 1
        assert result.marks_obtained == 70
        assert result.percentage == 70

    def test_only_first_n_questions_graded(self):
        questions = [_question(10), _question(90)]
        answers = {str(q["_id"]): "Paris" for q in questions}
        result = grade(questions, answers, QuizConfig(total_questions=1), "node")
        assert result.total_questions == 1
        assert result.total_marks == 10
        assert result.marks_obtained == 10

    def test_zero_marks_default_to_one(self):
        questions = [_question(0)]
        result = grade(questions, {str(questions[0]["_id"]): "Paris"}, QuizConfig(), "node")
        assert result.total_marks == 1
        assert result.marks_obtained == 1

    def test_empty_category(self):
        result = grade([], {}, QuizConfig(), "node")
        assert result.total_marks == 0
        assert result.percentage == 0
        assert result.passed is False

    def test_empty_category_passes_with_zero_threshold(self):
        result = grade([], {}, QuizConfig(passing_percentage=0), "node")
        assert result.passed is True

    @pytest.mark.parametrize("threshold", [0, 39.5, 40, 40.01, 100])
    def test_passed_follows_threshold(self, threshold):
        questions = [_question(40), _question(60)]
        result = grade(questions, {str(questions[0]["_id"]): "Paris"}, QuizConfig(passing_percentage=threshold), "node")
        assert result.passed == (result.percentage >= threshold)


class TestScoreParticipant:

    def test_unknown_participant(self, db):
        with pytest.raises(NotFound):
            score_participant(db, str(ObjectId()), {}, QuizConfig())

    def test_malformed_participant_id(self, db):
        with pytest.raises(NotFound):
            score_participant(db, "not-an-id", {}, QuizConfig())

    def test_result_is_persisted(self, db):
        add_question(db, make_question("node", 50, correct="V8"))
        add_question(db, make_question("node", 50, correct="libuv"))
        participant_id = _register(db)
        questions = questions_in_storage_order(db, "node")
        answers = {str(questions[0]["_id"]): "V8", str(questions[1]["_id"]): "wrong"}

        result = score_participant(db, participant_id, answers, QuizConfig())

        assert result.score == 1
        assert result.percentage == 50
        assert result.passed is True
        doc = db["participant"].find_one({"_id": ObjectId(participant_id)})
        assert doc["score"] == 1
        assert doc["marks_obtained"] == 50
        assert doc["total_marks"] == 100
        assert doc["percentage"] == 50
        assert doc["attempts"] == 1
        assert doc["submitted_at"] is not None

    def test_scoring_is_deterministic(self, db):
        for marks in (20, 30, 50):
            add_question(db, make_question("react", marks))
        participant_id = _register(db, "react")
        first = questions_in_storage_order(db, "react")[0]
        answers = {str(first["_id"]): "V8"}

        results = [score_participant(db, participant_id, answers, QuizConfig(total_questions=2)) for _ in range(3)]

        assert all(r == results[0] for r in results)
        assert results[0].total_marks == 50
        assert db["participant"].find_one({"_id": ObjectId(participant_id)})["attempts"] == 3

    def test_participant_in_empty_category(self, db):
        participant_id = _register(db, "express")
        result = score_participant(db, participant_id, {}, QuizConfig())
        assert result.total_questions == 0
        assert result.total_marks == 0
        assert result.passed is False
