# backend/schemas.py

from pydantic import BaseModel, Field
from typing import Annotated, Optional, List, Literal, Union
from datetime import datetime


class UserCreate(BaseModel):
    username: str = Field(min_length=1, max_length=100)


class User(BaseModel):
    id: int
    username: str
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class Category(BaseModel):
    id: int
    name: str
    description: Optional[str] = None

    class Config:
        from_attributes = True


class Skill(BaseModel):
    id: int
    name: str
    description: Optional[str] = None
    category_id: int
    difficulty_base: Optional[float] = None

    class Config:
        from_attributes = True


# ========== QUESTIONS ==========

class QuestionOut(BaseModel):
    id: int
    user_id: int
    category_id: int
    category_name: str
    skill_id: int
    skill_name: str
    question_text: str
    options: Optional[List[str]] = None
    # Withheld when EXPOSE_CORRECT_ANSWER is false
    correct_option_index: Optional[int] = None
    explanation: Optional[str] = None
    difficulty: float
    source: str
    asked_at: datetime


class HistoryItem(BaseModel):
    id: int
    category_id: int
    category_name: str
    skill_id: int
    skill_name: str
    question_text: str
    summary: Optional[str] = None
    difficulty: float
    asked_at: datetime
    answered_at: Optional[datetime] = None
    user_answer_index: Optional[int] = None
    is_correct: Optional[bool] = None


# ========== ANSWERS ==========
# Two answer modalities on one question entity, told apart by ``mode``

class FreeTextAnswer(BaseModel):
    mode: Literal["free_text"] = "free_text"
    answer_text: str
    is_correct: bool  # client-confirmed grading
    time_taken: Optional[float] = Field(default=None, ge=0)


class MultipleChoiceAnswer(BaseModel):
    mode: Literal["multiple_choice"] = "multiple_choice"
    selected_option_index: int
    time_taken: Optional[float] = Field(default=None, ge=0)


Answer = Annotated[Union[FreeTextAnswer, MultipleChoiceAnswer], Field(discriminator="mode")]


class AnswerSubmission(BaseModel):
    question_id: int
    user_id: int
    answer: Answer


class AbilitySnapshot(BaseModel):
    skill_id: int
    skill_name: str
    category_id: Optional[int] = None
    theta: float
    confidence: float
    total_attempts: int
    correct_attempts: int
    last_attempt_at: Optional[datetime] = None


class AnswerResult(BaseModel):
    question_id: int
    is_correct: bool
    correct_option_index: Optional[int] = None
    explanation: Optional[str] = None
    theta_before: Optional[float] = None
    theta_after: Optional[float] = None
    ability: Optional[AbilitySnapshot] = None
