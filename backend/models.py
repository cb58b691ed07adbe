from datetime import datetime, timezone

from sqlalchemy import (
    JSON, Boolean, Column, DateTime, Float, ForeignKey, Index, Integer, String, Text, UniqueConstraint,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from database import Base


def utcnow() -> datetime:
    """Naive UTC timestamp (SQLite drops tzinfo on the way in)"""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    username = Column(String(100), unique=True, index=True, nullable=False)
    created_at = Column(DateTime, server_default=func.now())

    skill_levels = relationship("UserSkillLevel", back_populates="user", cascade="all, delete-orphan",
                                passive_deletes=True)
    questions = relationship("QuestionHistory", back_populates="user", cascade="all, delete-orphan",
                             passive_deletes=True)


class Category(Base):
    __tablename__ = "categories"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), unique=True, nullable=False)
    description = Column(Text, nullable=True)
    created_at = Column(DateTime, server_default=func.now())

    skills = relationship("Skill", back_populates="category", order_by="Skill.id")


class Skill(Base):
    __tablename__ = "skills"
    __table_args__ = (UniqueConstraint("name", "category_id", name="uq_skill_name_category"),)

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), nullable=False)
    description = Column(Text, nullable=True)
    category_id = Column(Integer, ForeignKey("categories.id", ondelete="CASCADE"), nullable=False, index=True)
    # Calibration report value; question targeting uses the learner theta only
    difficulty_base = Column(Float, default=2.5)
    created_at = Column(DateTime, server_default=func.now())

    category = relationship("Category", back_populates="skills")


class UserSkillLevel(Base):
    """Per learner x skill ability state; mutated only when an answer is recorded"""
    __tablename__ = "user_skill_levels"
    __table_args__ = (UniqueConstraint("user_id", "skill_id", name="uq_user_skill"),)

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    skill_id = Column(Integer, ForeignKey("skills.id", ondelete="CASCADE"), nullable=False, index=True)
    theta = Column(Float, nullable=False, default=0.0)
    confidence = Column(Float, nullable=False, default=1.0)
    total_attempts = Column(Integer, nullable=False, default=0)
    correct_attempts = Column(Integer, nullable=False, default=0)
    last_attempt_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    user = relationship("User", back_populates="skill_levels")
    skill = relationship("Skill")


class QuestionHistory(Base):
    """A question generated for one learner; answered at most once"""
    __tablename__ = "question_history"
    __table_args__ = (
        Index("idx_question_history_user_asked_at", "user_id", "asked_at"),
        Index("idx_question_history_user_hash", "user_id", "question_hash"),
    )

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    category_id = Column(Integer, ForeignKey("categories.id", ondelete="CASCADE"), nullable=False)
    skill_id = Column(Integer, ForeignKey("skills.id", ondelete="CASCADE"), nullable=False)

    question_hash = Column(String(64), nullable=False)
    question_text = Column(Text, nullable=False)
    options = Column(JSON, nullable=True)  # multiple-choice mode only
    correct_option_index = Column(Integer, nullable=True)
    explanation = Column(Text, nullable=True)
    summary = Column(String(255), nullable=True)
    abstract_hash = Column(String(255), nullable=True)
    difficulty = Column(Float, nullable=False)
    source = Column(String(20), nullable=False, default="fallback")
    asked_at = Column(DateTime, nullable=False, default=utcnow)

    # Answer fields: written exactly once
    answered_at = Column(DateTime, nullable=True)
    answer_text = Column(Text, nullable=True)
    user_answer_index = Column(Integer, nullable=True)
    is_correct = Column(Boolean, nullable=True)
    time_taken = Column(Float, nullable=True)
    theta_before = Column(Float, nullable=True)
    theta_after = Column(Float, nullable=True)

    user = relationship("User", back_populates="questions")
    category = relationship("Category")
    skill = relationship("Skill")

    @property
    def is_multiple_choice(self) -> bool:
        return bool(self.options)

    @property
    def is_answered(self) -> bool:
        return self.answered_at is not None
