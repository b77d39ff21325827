import os
from contextlib import asynccontextmanager
from datetime import datetime, time
from typing import Optional

from fastapi import Depends, FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pymongo import DESCENDING
from pymongo.database import Database
from pymongo.errors import DuplicateKeyError, PyMongoError

import auth
import database
from database import create_document, ensure_indexes, get_db, get_documents, to_object_id, utcnow
from errors import NotFound, QuizError, StorageUnavailable, ValidationError
from logging_config import configure_logging
from question_bank import add_question, delete_question, list_questions, questions_in_storage_order, serialize_question
from quiz_config import load_config, public_config, update_config
from readiness import (available_categories, cached_category_status, evaluate_all, is_available,
                       refresh_category_status)
from schemas import (Category, ConfigUpdate, LoginPayload, Participant, QuestionPayload, QuizConfig,
                     RegisterPayload, SubmitPayload, TokenResponse, parse_category)
from scoring import score_participant

logger = configure_logging()


@asynccontextmanager
async def lifespan(app: FastAPI):
    if database.db is not None:
        try:
            ensure_indexes(database.db)
            auth.seed_admin_if_needed(database.db)
        except PyMongoError:
            logger.exception("Could not prepare the database at startup")
    else:
        logger.warning("DATABASE_URL / DATABASE_NAME not set; storage-backed endpoints will fail")
    yield


app = FastAPI(title="Quiz Administration API", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",")],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ---------- Error rendering ----------

DEFAULT_CONFIG = public_config(QuizConfig())

# Safe bodies for read-only routes when storage is missing or failing.
READ_FALLBACKS = {
    "/api/admin/config": {"config": DEFAULT_CONFIG},
    "/api/admin/questions": {"count": 0, "questions": []},
    "/api/admin/results": {"count": 0, "results": []},
    "/api/admin/dashboard": {
        "stats": {
            "total_students": 0,
            "total_questions": 0,
            "total_attempts": 0,
            "today_attempts": 0,
            "average_score": 0,
            "pass_rate": 0,
            "category_status": {},
            "recent_results": [],
            "config": DEFAULT_CONFIG,
        }
    },
    "/api/admin/category-stats": {"stats": {c.value: {} for c in Category}},
    "/api/admin/category-status": {"category_status": {}},
    "/api/user/categories": {"categories": [], "total_available": 0},
    "/api/user/questions/{category}": {
        "questions": [],
        "time_limit": DEFAULT_CONFIG["quiz_time"],
        "total_questions": DEFAULT_CONFIG["total_questions"],
    },
}


def read_fallback(request: Request) -> dict:
    if request.method != "GET":
        return {}
    route = request.scope.get("route")
    return READ_FALLBACKS.get(getattr(route, "path", None), {})


@app.exception_handler(QuizError)
async def quiz_error_handler(request: Request, exc: QuizError):
    body = {"success": False, "message": exc.message}
    body.update(exc.payload())
    return JSONResponse(status_code=exc.status_code, content=jsonable_encoder(body))


@app.exception_handler(StorageUnavailable)
async def storage_unavailable_handler(request: Request, exc: StorageUnavailable):
    logger.error("Storage unavailable on %s %s: %s", request.method, request.url.path, exc.message)
    body = {"success": False, "message": exc.message}
    body.update(read_fallback(request))
    return JSONResponse(status_code=exc.status_code, content=jsonable_encoder(body))


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=422,
        content=jsonable_encoder({"success": False, "message": "Invalid request body", "errors": exc.errors()}),
    )


@app.exception_handler(PyMongoError)
async def storage_error_handler(request: Request, exc: PyMongoError):
    logger.error("Storage failure on %s %s", request.method, request.url.path, exc_info=exc)
    body = {"success": False, "message": "Storage unavailable"}
    body.update(read_fallback(request))
    return JSONResponse(status_code=503, content=jsonable_encoder(body))


def serialize_participant(doc: dict, passing_percentage: Optional[float] = None) -> dict:
    out = {
        "id": str(doc["_id"]),
        "name": doc.get("name"),
        "roll_number": doc.get("roll_number"),
        "category": doc.get("category"),
        "score": doc.get("score") or 0,
        "percentage": round(doc.get("percentage") or 0, 2),
        "marks_obtained": doc.get("marks_obtained") or 0,
        "total_marks": doc.get("total_marks") or 0,
        "attempts": doc.get("attempts") or 0,
        "created_at": doc.get("created_at"),
        "submitted_at": doc.get("submitted_at"),
    }
    if passing_percentage is not None:
        out["passed"] = (doc.get("percentage") or 0) >= passing_percentage
    return out


@app.get("/")
def root():
    return {"message": "Quiz Administration API running", "health": "/api/health"}


@app.get("/api/health")
def health():
    response = {
        "success": True,
        "backend": "running",
        "database": "not configured",
        "collections": [],
        "timestamp": utcnow(),
    }
    if database.db is not None:
        try:
            response["collections"] = database.db.list_collection_names()[:10]
            response["database"] = "connected"
        except PyMongoError as e:
            logger.error("Health check could not reach the database: %s", e)
            response["database"] = f"error: {str(e)[:50]}"
    response["database_url"] = "set" if os.getenv("DATABASE_URL") else "not set"
    response["database_name"] = "set" if os.getenv("DATABASE_NAME") else "not set"
    return response


# ---------- Admin ----------

@app.post("/api/admin/login", response_model=TokenResponse)
def admin_login(payload: LoginPayload, db: Database = Depends(get_db)):
    return auth.login(db, payload.username, payload.password)


@app.post("/api/admin/logout")
def admin_logout(token: Optional[str] = Depends(auth.bearer_token),
                 admin: dict = Depends(auth.require_admin), db: Database = Depends(get_db)):
    auth.logout(db, token)
    return {"success": True}


@app.get("/api/admin/config")
def get_config(admin: dict = Depends(auth.require_admin), db: Database = Depends(get_db)):
    config = load_config(db)
    return {"success": True, "config": public_config(config)}


@app.post("/api/admin/config")
def post_config(payload: ConfigUpdate, admin: dict = Depends(auth.require_admin), db: Database = Depends(get_db)):
    config = update_config(db, payload)
    return {
        "success": True,
        "message": "Configuration updated successfully",
        "config": {
            "quiz_time": config.quiz_time,
            "passing_percentage": config.passing_percentage,
            "total_questions": config.total_questions,
        },
    }


@app.get("/api/admin/questions")
def get_questions(category: Optional[str] = None, admin: dict = Depends(auth.require_admin),
                  db: Database = Depends(get_db)):
    questions = list_questions(db, category)
    return {"success": True, "count": len(questions), "questions": questions}


@app.post("/api/admin/questions")
def post_question(payload: QuestionPayload, admin: dict = Depends(auth.require_admin),
                  db: Database = Depends(get_db)):
    result = add_question(db, payload)
    return {"success": True, "message": "Question added successfully", **result}


@app.delete("/api/admin/questions/{question_id}")
def remove_question(question_id: str, admin: dict = Depends(auth.require_admin), db: Database = Depends(get_db)):
    deleted = delete_question(db, question_id)
    return {"success": True, "message": "Question deleted successfully", "deleted_question": deleted}


@app.get("/api/admin/results")
def get_results(admin: dict = Depends(auth.require_admin), db: Database = Depends(get_db)):
    config = load_config(db)
    docs = get_documents(db, "participant", sort=[("created_at", DESCENDING)])
    results = [serialize_participant(d, config.passing_percentage) for d in docs]
    return {"success": True, "count": len(results), "results": results}


@app.delete("/api/admin/results/{participant_id}")
def remove_result(participant_id: str, admin: dict = Depends(auth.require_admin), db: Database = Depends(get_db)):
    oid = to_object_id(participant_id)
    deleted = db["participant"].delete_one({"_id": oid}).deleted_count if oid else 0
    if not deleted:
        raise NotFound("Result not found")
    logger.info("Deleted participant %s", participant_id)
    return {"success": True, "message": "Result deleted successfully"}


@app.delete("/api/admin/results")
def remove_all_results(admin: dict = Depends(auth.require_admin), db: Database = Depends(get_db)):
    deleted = db["participant"].delete_many({}).deleted_count
    logger.info("Purged %d participants", deleted)
    return {"success": True, "message": "All results deleted successfully", "deleted": deleted}


@app.get("/api/admin/dashboard")
def dashboard(admin: dict = Depends(auth.require_admin), db: Database = Depends(get_db)):
    config = load_config(db)
    total_students = db["participant"].count_documents({})
    total_questions = db["question"].count_documents({})
    scored = get_documents(db, "participant", {"attempts": {"$gt": 0}})
    today = datetime.combine(utcnow().date(), time.min)
    today_attempts = db["participant"].count_documents({"created_at": {"$gte": today}})
    recent = get_documents(db, "participant", limit=5, sort=[("created_at", DESCENDING)])
    statuses = evaluate_all(db)

    percentages = [d.get("percentage") or 0 for d in scored]
    average_score = round(sum(percentages) / len(percentages), 2) if percentages else 0
    passed = [p for p in percentages if p >= config.passing_percentage]
    pass_rate = round(len(passed) / len(percentages) * 100, 2) if percentages else 0

    return {
        "success": True,
        "stats": {
            "total_students": total_students,
            "total_questions": total_questions,
            "total_attempts": len(scored),
            "today_attempts": today_attempts,
            "average_score": average_score,
            "pass_rate": pass_rate,
            "category_status": {name: s.model_dump() for name, s in statuses.items()},
            "recent_results": [serialize_participant(d, config.passing_percentage) for d in recent],
            "config": public_config(config),
        },
        "timestamp": utcnow(),
    }


@app.get("/api/admin/category-stats")
def category_stats(admin: dict = Depends(auth.require_admin), db: Database = Depends(get_db)):
    statuses = evaluate_all(db)
    return {"success": True, "stats": {name: s.model_dump() for name, s in statuses.items()}, "timestamp": utcnow()}


@app.get("/api/admin/category-status")
def category_status(admin: dict = Depends(auth.require_admin), db: Database = Depends(get_db)):
    config = load_config(db)
    statuses = cached_category_status(config)
    return {
        "success": True,
        "category_status": {name: s.model_dump() for name, s in statuses.items()},
        "updated_at": config.updated_at,
    }


@app.post("/api/admin/update-category-status")
def update_category_status(admin: dict = Depends(auth.require_admin), db: Database = Depends(get_db)):
    statuses = refresh_category_status(db)
    return {
        "success": True,
        "message": "Category status updated successfully",
        "category_status": {name: s.model_dump() for name, s in statuses.items()},
    }


# ---------- Students ----------

@app.get("/api/user/categories")
def get_available_categories(db: Database = Depends(get_db)):
    categories = available_categories(db)
    return {"success": True, "categories": categories, "total_available": len(categories)}


@app.post("/api/user/register")
def register(payload: RegisterPayload, db: Database = Depends(get_db)):
    name = payload.name.strip()
    roll_number = payload.roll_number.strip()
    if not name or not roll_number:
        raise ValidationError("Name and roll number are required")
    category = parse_category(payload.category)

    if db["participant"].find_one({"roll_number": roll_number}):
        raise ValidationError("Roll number already exists")

    participant = Participant(name=name, roll_number=roll_number, category=category)
    try:
        participant_id = create_document(db, "participant", participant)
    except DuplicateKeyError:
        raise ValidationError("Roll number already exists")

    logger.info("Registered participant %s for %s", roll_number, category.value)
    return {
        "success": True,
        "user": {
            "id": participant_id,
            "name": participant.name,
            "roll_number": participant.roll_number,
            "category": participant.category,
        },
    }


@app.get("/api/user/questions/{category}")
def get_quiz_questions(category: str, db: Database = Depends(get_db)):
    category = parse_category(category)
    config = load_config(db)
    if not is_available(config, category):
        raise NotFound("No questions available for this category")
    questions = questions_in_storage_order(db, category, limit=config.total_questions)
    if not questions:
        raise NotFound("No questions available for this category")

    return {
        "success": True,
        "questions": [serialize_question(q, include_answers=False) for q in questions],
        "time_limit": config.quiz_time,
        "total_questions": config.total_questions,
    }


@app.post("/api/user/submit")
def submit_quiz(payload: SubmitPayload, db: Database = Depends(get_db)):
    config = load_config(db)
    result = score_participant(db, payload.participant_id, payload.answers, config)
    body = result.model_dump()
    body["percentage"] = round(result.percentage, 2)
    return {"success": True, **body}


if __name__ == "__main__":
    import uvicorn
    port = int(os.getenv("PORT", 8000))
    uvicorn.run(app, host="0.0.0.0", port=port)
