# backend/services.py
"""
Question generation and answer recording services.

QuestionOrchestrator composes the skill selector, the ability model, the
content history aggregator and a question generator; AnswerRecorder applies a
learner's response and moves the ability state in the same transaction.
"""

from dataclasses import dataclass
from datetime import timedelta
from typing import Callable, Dict, List, Optional
import logging

from config import Config
from content_history import ContentHistoryAggregator
from exceptions import (
    AlreadyAnsweredError, InvalidChoiceError, NotFoundError, ProviderError, ProviderNotConfiguredError,
    ValidationError,
)
from question_generator import FallbackGenerator, GeneratedQuestion, GenerationProvider, SOURCE_PROVIDER
from repository import QuizRepository
from skill_selector import SkillSelector
import irt_engine
import models
import schemas
import text_analysis

logger = logging.getLogger(__name__)


# ========== PROJECTIONS ==========

def question_projection(record: models.QuestionHistory, expose_correct_answer: bool = True) -> schemas.QuestionOut:
    """Client-facing view of a freshly generated question"""
    return schemas.QuestionOut(
        id=record.id,
        user_id=record.user_id,
        category_id=record.category_id,
        category_name=record.category.name if record.category else "",
        skill_id=record.skill_id,
        skill_name=record.skill.name if record.skill else "",
        question_text=record.question_text,
        options=list(record.options) if record.options else None,
        correct_option_index=record.correct_option_index if expose_correct_answer else None,
        explanation=record.explanation if expose_correct_answer else None,
        difficulty=record.difficulty,
        source=record.source,
        asked_at=record.asked_at,
    )


def history_projection(record: models.QuestionHistory) -> schemas.HistoryItem:
    return schemas.HistoryItem(
        id=record.id,
        category_id=record.category_id,
        category_name=record.category.name if record.category else "",
        skill_id=record.skill_id,
        skill_name=record.skill.name if record.skill else "",
        question_text=record.question_text,
        summary=record.summary,
        difficulty=record.difficulty,
        asked_at=record.asked_at,
        answered_at=record.answered_at,
        user_answer_index=record.user_answer_index,
        is_correct=record.is_correct,
    )


def ability_snapshot(state: models.UserSkillLevel) -> schemas.AbilitySnapshot:
    skill = state.skill
    return schemas.AbilitySnapshot(
        skill_id=state.skill_id,
        skill_name=skill.name if skill else "",
        category_id=skill.category_id if skill else None,
        theta=state.theta,
        confidence=state.confidence,
        total_attempts=state.total_attempts,
        correct_attempts=state.correct_attempts,
        last_attempt_at=state.last_attempt_at,
    )


# ========== QUESTION GENERATION ==========

class QuestionOrchestrator:
    """
    Produce, persist and return the next question for a learner.

    Generation never fails from the caller's point of view: provider errors
    of any kind end in the local fallback generator. Only storage failures
    and invalid/unknown ids propagate.
    """

    def __init__(self, repository: QuizRepository,
                 selector: Optional[SkillSelector] = None,
                 aggregator: Optional[ContentHistoryAggregator] = None,
                 provider: Optional[GenerationProvider] = None,
                 fallback: Optional[FallbackGenerator] = None,
                 irt_config: Optional[Dict] = None,
                 generation_config: Optional[Dict] = None,
                 clock: Callable = models.utcnow):
        self.repository = repository
        self.selector = selector or SkillSelector(repository)
        self.aggregator = aggregator or ContentHistoryAggregator(repository)
        self.provider = provider or GenerationProvider()
        self.fallback = fallback or FallbackGenerator()
        self.irt_config = irt_config or Config.get_irt_config()
        self.generation_config = generation_config or Config.get_generation_config()
        self.clock = clock

    def generate(self, learner_id: int, category_id: Optional[int] = None,
                 skill_id: Optional[int] = None) -> models.QuestionHistory:
        if self.repository.find_user(learner_id) is None:
            raise NotFoundError(f"User {learner_id} not found")

        choice = self.selector.select(learner_id, category_id=category_id, skill_id=skill_id)
        category, skill = choice.category, choice.skill

        state = self.repository.find_ability_state(learner_id, skill.id)
        theta = state.theta if state is not None else self.irt_config["initial_theta"]

        target_probability = irt_engine.target_probability_for(
            theta, self.irt_config["base_target_probability"], self.irt_config["strong_learner_step"]
        )
        target_difficulty = irt_engine.estimate_optimal_difficulty(theta, target_probability)
        logger.info(
            f"User {learner_id} skill {skill.id}: theta={theta:.3f}, "
            f"target p={target_probability:.2f}, target difficulty={target_difficulty:.3f}"
        )

        avoidance = self.aggregator.build(learner_id, category_id=category.id)

        since = self.clock() - timedelta(days=self.generation_config["duplicate_window_days"])

        def is_duplicate(fingerprint: str) -> bool:
            return self.repository.has_recent_question_hash(learner_id, fingerprint, since)

        generated = self._generate_with_provider(category, skill, target_difficulty, avoidance, is_duplicate)
        if generated is None:
            generated = self.fallback.generate(category.name, skill.name, target_difficulty,
                                               is_duplicate=is_duplicate)
            logger.info(f"Fallback question generated for user {learner_id}, skill {skill.id}")

        record = self._build_record(learner_id, category, skill, generated)
        with self.repository.transaction():
            self.repository.save_question_record(record)

        logger.info(f"Question {record.id} stored for user {learner_id} (source={record.source})")
        return record

    def _generate_with_provider(self, category, skill, target_difficulty, avoidance,
                                is_duplicate) -> Optional[GeneratedQuestion]:
        """Provider question not seen within the duplicate window, or None"""
        attempts = self.generation_config["max_generation_attempts"]
        for attempt in range(1, attempts + 1):
            try:
                candidate = self.provider.generate_question(category.name, skill.name,
                                                            target_difficulty, avoidance)
            except ProviderNotConfiguredError:
                logger.info("Generation provider not configured; using fallback generator")
                return None
            except ProviderError as e:
                logger.warning(f"Question generation failed (attempt {attempt}/{attempts}): {e}")
                return None

            if not is_duplicate(candidate.fingerprint):
                return candidate
            logger.info(f"Provider returned a recently asked question (attempt {attempt}/{attempts})")

        logger.info(f"No fresh provider question after {attempts} attempts")
        return None

    def _build_record(self, learner_id: int, category: models.Category, skill: models.Skill,
                      generated: GeneratedQuestion) -> models.QuestionHistory:
        if generated.source == SOURCE_PROVIDER:
            summary, abstract = self.provider.describe(generated.question_text, generated.options)
        else:
            summary = text_analysis.simple_summary(generated.question_text)
            abstract = text_analysis.abstract_hash(generated.question_text)

        return models.QuestionHistory(
            user_id=learner_id,
            category_id=category.id,
            skill_id=skill.id,
            category=category,
            skill=skill,
            question_hash=generated.fingerprint,
            question_text=generated.question_text,
            options=list(generated.options),
            correct_option_index=generated.correct_answer_index,
            explanation=generated.explanation,
            summary=summary,
            abstract_hash=abstract,
            difficulty=irt_engine.clamp_difficulty(generated.difficulty),
            source=generated.source,
            asked_at=self.clock(),
        )

    def get_history(self, learner_id: int, limit: int = 10) -> List[models.QuestionHistory]:
        if self.repository.find_user(learner_id) is None:
            raise NotFoundError(f"User {learner_id} not found")
        return self.repository.find_recent_question_records(learner_id, limit=limit, newest_first=True)


# ========== ANSWER RECORDING ==========

@dataclass
class AnswerOutcome:
    record: models.QuestionHistory
    ability_state: Optional[models.UserSkillLevel]


class AnswerRecorder:
    """Unanswered -> answered, exactly once per question record"""

    def __init__(self, repository: QuizRepository, irt_config: Optional[Dict] = None,
                 clock: Callable = models.utcnow):
        self.repository = repository
        self.irt_config = irt_config or Config.get_irt_config()
        self.clock = clock

    def record_answer(self, question_id: int, learner_id: int, answer) -> AnswerOutcome:
        """
        Apply a learner's answer and update the ability state.

        Args:
            question_id: question record to answer
            learner_id: learner the record was generated for
            answer: schemas.FreeTextAnswer or schemas.MultipleChoiceAnswer

        Raises:
            NotFoundError: no such record for this learner
            AlreadyAnsweredError: the record already holds an answer
            InvalidChoiceError: option index outside the record's options
            ValidationError: multiple-choice answer for a record without options
        """
        record = self.repository.find_question_record(question_id, learner_id)
        if record is None:
            raise NotFoundError(f"Question {question_id} not found for user {learner_id}")
        if record.is_answered:
            raise AlreadyAnsweredError(f"Question {question_id} has already been answered")

        selected_index, answer_text, is_correct = self._grade(record, answer)
        now = self.clock()

        with self.repository.transaction():
            record.answered_at = now
            record.user_answer_index = selected_index
            record.answer_text = answer_text
            record.is_correct = is_correct
            record.time_taken = answer.time_taken

            state = None
            if record.skill_id is not None:
                state = self._update_ability(record, is_correct, now)

            self.repository.save_question_record(record)

        logger.info(
            f"Answer recorded for question {question_id} by user {learner_id}: "
            f"correct={is_correct}, theta {record.theta_before} -> {record.theta_after}"
        )
        return AnswerOutcome(record=record, ability_state=state)

    @staticmethod
    def _grade(record: models.QuestionHistory, answer):
        if isinstance(answer, schemas.MultipleChoiceAnswer):
            if not record.is_multiple_choice:
                raise ValidationError(f"Question {record.id} has no options to choose from")
            index = answer.selected_option_index
            if not 0 <= index < len(record.options):
                raise InvalidChoiceError(
                    f"Option index {index} out of range for {len(record.options)} options"
                )
            return index, record.options[index], index == record.correct_option_index

        if isinstance(answer, schemas.FreeTextAnswer):
            return None, answer.answer_text, answer.is_correct

        raise ValidationError(f"Unsupported answer type: {type(answer).__name__}")

    def _update_ability(self, record: models.QuestionHistory, is_correct: bool, now) -> models.UserSkillLevel:
        state = self.repository.find_ability_state(record.user_id, record.skill_id)
        if state is None:
            state = models.UserSkillLevel(
                user_id=record.user_id,
                skill_id=record.skill_id,
                theta=self.irt_config["initial_theta"],
                confidence=1.0,
                total_attempts=0,
                correct_attempts=0,
            )

        correct_ratio = state.correct_attempts / state.total_attempts if state.total_attempts else 0.5
        learning_rate = irt_engine.adaptive_learning_rate(self.irt_config["theta_learning_rate"], correct_ratio)
        discrimination = irt_engine.discrimination_for_confidence(state.confidence)

        theta_before = state.theta
        state.theta = irt_engine.update_theta(theta_before, record.difficulty, is_correct,
                                              learning_rate, discrimination)
        state.total_attempts += 1
        if is_correct:
            state.correct_attempts += 1
        state.confidence = irt_engine.confidence_for_attempts(state.total_attempts)
        state.last_attempt_at = now

        record.theta_before = theta_before
        record.theta_after = state.theta

        logger.debug(
            f"User {record.user_id} skill {record.skill_id}: lr={learning_rate:.3f}, "
            f"a={discrimination:.2f}, theta {theta_before:.3f} -> {state.theta:.3f}"
        )
        return self.repository.save_ability_state(state)


class AbilityService:
    """Read side of the ability states"""

    def __init__(self, repository: QuizRepository):
        self.repository = repository

    def get_abilities(self, learner_id: int) -> List[schemas.AbilitySnapshot]:
        if self.repository.find_user(learner_id) is None:
            raise NotFoundError(f"User {learner_id} not found")
        return [ability_snapshot(state) for state in self.repository.find_ability_states_for_user(learner_id)]
