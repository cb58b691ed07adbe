# backend/repository.py
"""
SQLAlchemy-backed storage operations used by the quiz engine.

Every write goes through ``transaction()`` so that multi-row updates (an
answer plus the learner's ability state) commit together or not at all.
"""

from contextlib import contextmanager
from datetime import datetime
from typing import Dict, Iterable, List, Optional
import logging

from sqlalchemy import and_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, joinedload

from exceptions import PersistenceError
import models

logger = logging.getLogger(__name__)


class QuizRepository:
    """Storage collaborator bound to one SQLAlchemy session"""

    def __init__(self, db: Session):
        self.db = db

    @contextmanager
    def transaction(self):
        """
        Commit on success, roll back on any error.

        Usage:
            with repository.transaction():
                repository.save_question_record(record)
        """
        try:
            yield self
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Transaction rolled back: {e}")
            raise PersistenceError(str(e)) from e
        except Exception:
            self.db.rollback()
            raise

    def _flush(self) -> None:
        try:
            self.db.flush()
        except SQLAlchemyError as e:
            raise PersistenceError(str(e)) from e

    # ========== USERS ==========

    def find_user(self, user_id: int) -> Optional[models.User]:
        return self.db.get(models.User, user_id)

    def get_or_create_user(self, username: str) -> models.User:
        user = self.db.query(models.User).filter(models.User.username == username).first()
        if user:
            return user
        with self.transaction():
            user = models.User(username=username)
            self.db.add(user)
            self._flush()
        logger.info(f"Created user '{username}' with id {user.id}")
        return user

    # ========== CATEGORIES & SKILLS ==========

    def find_all_categories(self) -> List[models.Category]:
        return self.db.query(models.Category).order_by(models.Category.id).all()

    def find_category(self, category_id: int) -> Optional[models.Category]:
        return self.db.get(models.Category, category_id)

    def find_skill(self, skill_id: int) -> Optional[models.Skill]:
        return self.db.get(models.Skill, skill_id)

    def find_skills_by_category(self, category_id: int) -> List[models.Skill]:
        return self.db.query(models.Skill).filter(
            models.Skill.category_id == category_id
        ).order_by(models.Skill.id).all()

    # Same storage operation under the collaborator's second name
    find_all_skills_in_category = find_skills_by_category

    # ========== ABILITY STATE ==========

    def find_ability_state(self, user_id: int, skill_id: int) -> Optional[models.UserSkillLevel]:
        return self.db.query(models.UserSkillLevel).filter(
            and_(
                models.UserSkillLevel.user_id == user_id,
                models.UserSkillLevel.skill_id == skill_id
            )
        ).first()

    def find_ability_states(self, user_id: int, skill_ids: Iterable[int]) -> Dict[int, models.UserSkillLevel]:
        skill_ids = list(skill_ids)
        if not skill_ids:
            return {}
        rows = self.db.query(models.UserSkillLevel).filter(
            and_(
                models.UserSkillLevel.user_id == user_id,
                models.UserSkillLevel.skill_id.in_(skill_ids)
            )
        ).all()
        return {row.skill_id: row for row in rows}

    def find_ability_states_for_user(self, user_id: int) -> List[models.UserSkillLevel]:
        return self.db.query(models.UserSkillLevel).options(
            joinedload(models.UserSkillLevel.skill).joinedload(models.Skill.category)
        ).filter(
            models.UserSkillLevel.user_id == user_id
        ).order_by(models.UserSkillLevel.skill_id).all()

    def save_ability_state(self, state: models.UserSkillLevel) -> models.UserSkillLevel:
        self.db.add(state)
        self._flush()
        return state

    # ========== QUESTION HISTORY ==========

    def find_recent_question_records(self, user_id: int, limit: int,
                                     newest_first: bool = True) -> List[models.QuestionHistory]:
        order = models.QuestionHistory.asked_at.desc() if newest_first else models.QuestionHistory.asked_at.asc()
        id_order = models.QuestionHistory.id.desc() if newest_first else models.QuestionHistory.id.asc()
        return self.db.query(models.QuestionHistory).options(
            joinedload(models.QuestionHistory.category),
            joinedload(models.QuestionHistory.skill)
        ).filter(
            models.QuestionHistory.user_id == user_id
        ).order_by(order, id_order).limit(limit).all()

    def find_question_record(self, question_id: int, user_id: int) -> Optional[models.QuestionHistory]:
        return self.db.query(models.QuestionHistory).options(
            joinedload(models.QuestionHistory.skill)
        ).filter(
            and_(
                models.QuestionHistory.id == question_id,
                models.QuestionHistory.user_id == user_id
            )
        ).first()

    def has_recent_question_hash(self, user_id: int, question_hash: str, since: datetime) -> bool:
        match = self.db.query(models.QuestionHistory.id).filter(
            and_(
                models.QuestionHistory.user_id == user_id,
                models.QuestionHistory.question_hash == question_hash,
                models.QuestionHistory.asked_at > since
            )
        ).first()
        return match is not None

    def find_answered_records_for_skill(self, skill_id: int) -> List[models.QuestionHistory]:
        return self.db.query(models.QuestionHistory).filter(
            and_(
                models.QuestionHistory.skill_id == skill_id,
                models.QuestionHistory.answered_at.isnot(None),
                models.QuestionHistory.theta_before.isnot(None)
            )
        ).all()

    def save_question_record(self, record: models.QuestionHistory) -> models.QuestionHistory:
        self.db.add(record)
        self._flush()
        return record
