# backend/main.py

from typing import List, Optional
import logging
import random

from fastapi import FastAPI, Depends, HTTPException, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from caching import FIFOCache
from config import get_config
from content_history import ContentHistoryAggregator
from database import get_db, init_db
from exceptions import AlreadyAnsweredError, NotFoundError, PersistenceError, ValidationError
from models import utcnow
from question_generator import FallbackGenerator, GenerationProvider
from repository import QuizRepository
from services import (
    AbilityService,
    AnswerRecorder,
    QuestionOrchestrator,
    ability_snapshot,
    history_projection,
    question_projection,
)
from skill_selector import SkillSelector
import schemas

# Get configuration
config = get_config()
config.validate_config()

# Setup logging
logging.basicConfig(
    level=getattr(logging, config.LOGGING_CONFIG["level"]),
    format=config.LOGGING_CONFIG["format"],
    handlers=[
        logging.FileHandler(config.LOGGING_CONFIG["log_file"]),
        logging.StreamHandler()
    ]
)
logger = logging.getLogger(__name__)

# Create database tables
init_db()

app = FastAPI(
    title=config.API_CONFIG["title"],
    version=config.API_CONFIG["version"],
    description="Adaptive quiz API - IRT-driven question generation with repetition avoidance"
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=config.API_CONFIG["cors_origins"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Shared across requests; repositories are per request
seed = config.SELECTION_CONFIG["random_seed"]
history_cache = FIFOCache(max_size=config.HISTORY_CONFIG["cache_max_size"], name="history_cache")
selection_rng = random.Random(seed)
generation_provider = GenerationProvider(config.GENERATION_CONFIG)
fallback_generator = FallbackGenerator(rng=random.Random(seed))


def get_repository(db: Session = Depends(get_db)) -> QuizRepository:
    return QuizRepository(db)


def get_orchestrator(repository: QuizRepository = Depends(get_repository)) -> QuestionOrchestrator:
    return QuestionOrchestrator(
        repository,
        selector=SkillSelector(repository, rng=selection_rng),
        aggregator=ContentHistoryAggregator(repository, cache=history_cache),
        provider=generation_provider,
        fallback=fallback_generator,
    )


def get_answer_recorder(repository: QuizRepository = Depends(get_repository)) -> AnswerRecorder:
    return AnswerRecorder(repository)


# ========== ERROR MAPPING ==========

@app.exception_handler(ValidationError)
async def validation_error_handler(request: Request, exc: ValidationError):
    return JSONResponse(status_code=400, content={"detail": str(exc)})


@app.exception_handler(NotFoundError)
async def not_found_handler(request: Request, exc: NotFoundError):
    return JSONResponse(status_code=404, content={"detail": str(exc)})


@app.exception_handler(AlreadyAnsweredError)
async def already_answered_handler(request: Request, exc: AlreadyAnsweredError):
    return JSONResponse(status_code=409, content={"detail": str(exc)})


@app.exception_handler(PersistenceError)
async def persistence_error_handler(request: Request, exc: PersistenceError):
    logger.error(f"Persistence failure on {request.method} {request.url.path}: {exc}")
    return JSONResponse(status_code=500, content={"detail": "Storage error"})


# ========== HEALTH ==========

@app.get("/health")
def health():
    return {
        "status": "ok",
        "timestamp": utcnow().isoformat(),
        "provider_configured": generation_provider.is_configured,
    }


# ========== USER ENDPOINTS ==========

@app.post("/api/users/", response_model=schemas.User)
def create_user(user: schemas.UserCreate, repository: QuizRepository = Depends(get_repository)):
    """Create a new user or get existing user"""
    return repository.get_or_create_user(user.username)


@app.get("/api/users/{user_id}/abilities", response_model=List[schemas.AbilitySnapshot])
def get_user_abilities(user_id: int, repository: QuizRepository = Depends(get_repository)):
    """Ability state for every skill the user has answered"""
    return AbilityService(repository).get_abilities(user_id)


# ========== CATEGORIES & SKILLS ==========

@app.get("/api/categories", response_model=List[schemas.Category])
def list_categories(repository: QuizRepository = Depends(get_repository)):
    return repository.find_all_categories()


@app.get("/api/categories/{category_id}/skills", response_model=List[schemas.Skill])
def list_skills(category_id: int, repository: QuizRepository = Depends(get_repository)):
    if repository.find_category(category_id) is None:
        raise HTTPException(status_code=404, detail="Category not found")
    return repository.find_skills_by_category(category_id)


# ========== QUESTIONS ==========

@app.get("/api/questions", response_model=schemas.QuestionOut)
def get_next_question(
        user_id: int,
        category_id: Optional[int] = None,
        skill_id: Optional[int] = None,
        orchestrator: QuestionOrchestrator = Depends(get_orchestrator)
):
    """Generate the next question for a user, optionally pinned to a category or skill"""
    record = orchestrator.generate(user_id, category_id=category_id, skill_id=skill_id)
    return question_projection(record, config.GENERATION_CONFIG["expose_correct_answer"])


@app.get("/api/questions/history", response_model=List[schemas.HistoryItem])
def get_question_history(
        user_id: int,
        limit: int = Query(10, ge=1, le=50),
        orchestrator: QuestionOrchestrator = Depends(get_orchestrator)
):
    """Most recent questions for a user, newest first"""
    return [history_projection(record) for record in orchestrator.get_history(user_id, limit=limit)]


# ========== ANSWERS ==========

@app.post("/api/answers", response_model=schemas.AnswerResult)
def submit_answer(
        submission: schemas.AnswerSubmission,
        recorder: AnswerRecorder = Depends(get_answer_recorder)
):
    """Record an answer; the question can be answered only once"""
    outcome = recorder.record_answer(submission.question_id, submission.user_id, submission.answer)
    record = outcome.record

    return schemas.AnswerResult(
        question_id=record.id,
        is_correct=record.is_correct,
        correct_option_index=record.correct_option_index,
        explanation=record.explanation,
        theta_before=record.theta_before,
        theta_after=record.theta_after,
        ability=ability_snapshot(outcome.ability_state) if outcome.ability_state else None,
    )


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        app,
        host=config.API_CONFIG["host"],
        port=config.API_CONFIG["port"]
    )
