# tests/conftest.py

import os
import tempfile
from datetime import datetime, timedelta

# Must be set before config is imported anywhere
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["GENERATION_API_KEY"] = ""
os.environ["LOG_FILE"] = os.path.join(tempfile.gettempdir(), "adaptive_quiz_test.log")

import pytest
import requests
from sqlalchemy.pool import StaticPool

from database import build_engine, build_session_factory, init_db
from question_generator import GeneratedQuestion, SOURCE_PROVIDER
from repository import QuizRepository
import models


class FixedClock:
    """Callable clock that only moves when told to"""

    def __init__(self, moment: datetime):
        self.moment = moment

    def __call__(self) -> datetime:
        return self.moment

    def advance(self, **kwargs):
        self.moment += timedelta(**kwargs)


class FakeProvider:
    """Stands in for GenerationProvider; returns canned questions or raises"""

    def __init__(self, questions=None, error=None):
        self.questions = list(questions or [])
        self.error = error
        self.calls = []
        self.is_configured = True

    def generate_question(self, category_name, skill_name, target_difficulty, avoidance):
        self.calls.append({
            "category_name": category_name,
            "skill_name": skill_name,
            "target_difficulty": target_difficulty,
            "avoidance": avoidance,
        })
        if self.error is not None:
            raise self.error
        if len(self.questions) > 1:
            return self.questions.pop(0)
        return self.questions[0]

    def describe(self, question_text, options):
        return "Provider summary", "provider,keywords"


class FakeResponse:
    def __init__(self, content=None, status_code=200, body=None):
        self.status_code = status_code
        self._body = body if body is not None else {"choices": [{"message": {"content": content}}]}

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} error")

    def json(self):
        if isinstance(self._body, Exception):
            raise self._body
        return self._body


class FakeSession:
    def __init__(self, *responses):
        self.responses = list(responses)
        self.requests = []

    def post(self, url, json=None, headers=None, timeout=None):
        self.requests.append({"url": url, "json": json, "headers": headers, "timeout": timeout})
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


def provider_question(text="What is the derivative of x squared?", difficulty=1.2):
    return GeneratedQuestion(
        question_text=text,
        options=["2x", "x", "x^2", "2"],
        correct_answer_index=0,
        explanation="Power rule: d/dx x^n = n x^(n-1).",
        difficulty=difficulty,
        source=SOURCE_PROVIDER,
    )


@pytest.fixture
def engine():
    engine = build_engine("sqlite://", poolclass=StaticPool)
    init_db(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def db(engine):
    session = build_session_factory(engine)()
    yield session
    session.close()


@pytest.fixture
def repository(db):
    return QuizRepository(db)


@pytest.fixture
def catalog(db):
    """Two categories: Mathematics (3 skills) and Science (2 skills)"""
    math = models.Category(name="Mathematics", description="Numbers and functions")
    science = models.Category(name="Science", description="Natural phenomena")
    db.add_all([math, science])
    db.flush()

    algebra = models.Skill(name="Algebra", category_id=math.id, difficulty_base=2.0)
    geometry = models.Skill(name="Geometry", category_id=math.id, difficulty_base=2.5)
    calculus = models.Skill(name="Calculus", category_id=math.id, difficulty_base=3.5)
    physics = models.Skill(name="Physics", category_id=science.id, difficulty_base=3.2)
    chemistry = models.Skill(name="Chemistry", category_id=science.id, difficulty_base=3.0)
    db.add_all([algebra, geometry, calculus, physics, chemistry])
    db.commit()

    return {
        "math": math,
        "science": science,
        "algebra": algebra,
        "geometry": geometry,
        "calculus": calculus,
        "physics": physics,
        "chemistry": chemistry,
    }


@pytest.fixture
def learner(repository):
    return repository.get_or_create_user("alice")


@pytest.fixture
def clock():
    return FixedClock(datetime(2024, 5, 1, 10, 3))


@pytest.fixture
def make_record(db):
    """Insert a QuestionHistory row with sensible defaults"""
    counter = {"n": 0}

    def _make(user, category, skill, asked_at, **fields):
        counter["n"] += 1
        values = {
            "question_hash": f"hash-{counter['n']}",
            "question_text": f"Question number {counter['n']}",
            "options": ["a", "b", "c", "d"],
            "correct_option_index": 0,
            "explanation": "Because.",
            "difficulty": 2.0,
            "source": "fallback",
        }
        values.update(fields)
        record = models.QuestionHistory(
            user_id=user.id, category_id=category.id, skill_id=skill.id, asked_at=asked_at, **values
        )
        db.add(record)
        db.commit()
        return record

    return _make


@pytest.fixture
def make_ability(db):
    def _make(user, skill, theta, total_attempts=5, correct_attempts=2, confidence=1.5):
        state = models.UserSkillLevel(
            user_id=user.id,
            skill_id=skill.id,
            theta=theta,
            confidence=confidence,
            total_attempts=total_attempts,
            correct_attempts=correct_attempts,
        )
        db.add(state)
        db.commit()
        return state

    return _make
