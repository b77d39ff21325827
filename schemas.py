"""
Database Schemas

MongoDB collection schemas and request payloads as Pydantic models.
Collection documents use the lowercase model name as the collection name
(question, participant, admin, session); the config singleton lives in
"config" under a fixed _id.
"""

from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field

from errors import ValidationError


class Category(str, Enum):
    MERN = "mern"
    REACT = "react"
    NODE = "node"
    MONGODB = "mongodb"
    EXPRESS = "express"

    @property
    def label(self) -> str:
        return CATEGORY_META[self]["label"]

    @property
    def icon(self) -> str:
        return CATEGORY_META[self]["icon"]


CATEGORY_META = {
    Category.MERN: {"label": "MERN Stack", "icon": "⚛️"},
    Category.REACT: {"label": "React.js", "icon": "⚛️"},
    Category.NODE: {"label": "Node.js", "icon": "🟢"},
    Category.MONGODB: {"label": "MongoDB", "icon": "🍃"},
    Category.EXPRESS: {"label": "Express.js", "icon": "🚀"},
}


def parse_category(value) -> Category:
    """Lower-case and match against the closed category set."""
    if isinstance(value, Category):
        return value
    if not value or not isinstance(value, str):
        raise ValidationError("Category is required")
    try:
        return Category(value.strip().lower())
    except ValueError:
        allowed = ", ".join(c.value for c in Category)
        raise ValidationError(f'Unknown category "{value}". Expected one of: {allowed}')


# ---- Collections ----

class Option(BaseModel):
    text: str = Field(..., description="Option text shown to the student")
    is_correct: bool = Field(False, description="Whether this option is the right answer")


class QuizQuestion(BaseModel):
    model_config = ConfigDict(use_enum_values=True)

    category: Category = Field(..., description="Owning category")
    question_text: str = Field(..., description="The quiz question text")
    options: List[Option] = Field(..., min_length=2, description="Ordered multiple choice options")
    marks: int = Field(1, ge=1, description="Point value")
    difficulty: str = Field("medium", description="Free-form difficulty label")


class CategoryStatus(BaseModel):
    total_marks: int = 0
    question_count: int = 0
    is_ready: bool = False
    percentage: float = 0
    remaining_marks: int = 100
    average_marks: float = 0


class QuizConfig(BaseModel):
    quiz_time: int = Field(30, ge=1, le=180, description="Minutes allowed per attempt")
    passing_percentage: float = Field(40, ge=0, le=100, description="Pass threshold")
    total_questions: int = Field(100, ge=1, description="Questions graded per attempt")
    category_status: Dict[str, CategoryStatus] = Field(
        default_factory=lambda: {c.value: CategoryStatus() for c in Category}
    )
    updated_at: Optional[datetime] = None


class Participant(BaseModel):
    model_config = ConfigDict(use_enum_values=True)

    name: str = Field(..., description="Student name")
    roll_number: str = Field(..., description="Unique roll number")
    category: Category = Field(..., description="Chosen quiz category")
    score: int = Field(0, ge=0, description="Correctly answered questions")
    marks_obtained: int = Field(0, ge=0)
    total_marks: int = Field(0, ge=0, description="Possible marks of the graded subset")
    percentage: float = Field(0, ge=0)
    attempts: int = Field(0, ge=0)
    submitted_at: Optional[datetime] = None


class Admin(BaseModel):
    username: str = Field(..., description="Unique login name")
    email: EmailStr = Field(..., description="Contact address")
    password_hash: str = Field(..., description="Salted sha256 password hash")
    role: str = Field("admin")


class ScoreResult(BaseModel):
    model_config = ConfigDict(use_enum_values=True)

    score: int
    marks_obtained: int
    total_marks: int
    percentage: float
    total_questions: int
    passed: bool
    category: Category


# ---- Payloads ----

class OptionPayload(BaseModel):
    text: str = ""
    is_correct: bool = False


class QuestionPayload(BaseModel):
    category: Optional[str] = None
    question_text: Optional[str] = None
    options: List[OptionPayload] = Field(default_factory=list)
    # 0 falls back to a one-mark question
    marks: Optional[int] = Field(None, ge=0)
    difficulty: Optional[str] = None


class ConfigUpdate(BaseModel):
    quiz_time: Optional[int] = Field(None, ge=1, le=180)
    passing_percentage: Optional[float] = Field(None, ge=0, le=100)
    total_questions: Optional[int] = Field(None, ge=1)


class RegisterPayload(BaseModel):
    name: str
    roll_number: str
    category: str


class SubmitPayload(BaseModel):
    participant_id: str
    answers: Dict[str, str] = Field(default_factory=dict)


class LoginPayload(BaseModel):
    username: str
    password: str


class TokenResponse(BaseModel):
    success: bool = True
    token: str
    username: str
    email: EmailStr
    role: str
