#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Recalibrate Skill Difficulty

Nudges each skill's base difficulty with the information-weighted update
from irt_engine.update_difficulty, using every answered question of that
skill (the learner's theta before answering plus the outcome).

Usage:
    python recalibrate_skill_difficulty.py
    python recalibrate_skill_difficulty.py --min-responses 20 --dry-run
"""

import argparse
import logging
import os
import sys
from dataclasses import dataclass
from typing import List, Optional

script_dir = os.path.dirname(os.path.abspath(__file__))
backend_dir = os.path.dirname(script_dir)
sys.path.insert(0, backend_dir)

from sqlalchemy.orm import Session

from config import Config
from database import build_engine, build_session_factory, init_db
from repository import QuizRepository
import irt_engine
import models

logger = logging.getLogger(__name__)


@dataclass
class RecalibrationResult:
    """Difficulty change for one skill"""
    skill_id: int
    skill_name: str
    old_difficulty: float
    new_difficulty: float
    n_responses: int
    accuracy: float


def recalibrate(db: Session, learning_rate: Optional[float] = None, min_responses: int = 10,
                dry_run: bool = False) -> List[RecalibrationResult]:
    """Apply one difficulty update per skill with at least ``min_responses`` answers"""
    repository = QuizRepository(db)
    if learning_rate is None:
        learning_rate = Config.get_irt_config()["difficulty_learning_rate"]

    results = []
    with repository.transaction():
        for skill in db.query(models.Skill).order_by(models.Skill.id).all():
            records = repository.find_answered_records_for_skill(skill.id)
            if len(records) < min_responses:
                logger.debug(f"Skill {skill.id}: {len(records)} responses, skipped")
                continue

            responses = [{"is_correct": bool(r.is_correct), "theta": r.theta_before} for r in records]
            old = skill.difficulty_base if skill.difficulty_base is not None else 2.5
            new = irt_engine.update_difficulty(old, responses, learning_rate)

            correct = sum(1 for r in records if r.is_correct)
            results.append(RecalibrationResult(
                skill_id=skill.id,
                skill_name=skill.name,
                old_difficulty=old,
                new_difficulty=new,
                n_responses=len(records),
                accuracy=correct / len(records),
            ))
            if not dry_run:
                skill.difficulty_base = new

    return results


def generate_report(results: List[RecalibrationResult]) -> str:
    lines = ["=" * 80, "SKILL DIFFICULTY RECALIBRATION", "=" * 80, ""]
    for r in results:
        lines.append(f"{r.skill_name} (id {r.skill_id}):")
        lines.append(f"  b: {r.old_difficulty:.3f} -> {r.new_difficulty:.3f} "
                     f"({r.new_difficulty - r.old_difficulty:+.3f})")
        lines.append(f"  Responses: {r.n_responses}, Accuracy: {r.accuracy:.2f}")
        lines.append("")
    lines.append("=" * 80)
    return "\n".join(lines)


def main():
    parser = argparse.ArgumentParser(description="Recalibrate skill base difficulties")
    parser.add_argument("--database-url", default=Config.DATABASE_URL, help="SQLAlchemy database URL")
    parser.add_argument("--learning-rate", type=float, default=None,
                        help="Difficulty learning rate (default: DIFFICULTY_LEARNING_RATE)")
    parser.add_argument("--min-responses", type=int, default=10,
                        help="Min answered questions per skill (default: 10)")
    parser.add_argument("--dry-run", action="store_true", help="Report without writing")
    parser.add_argument("--report", help="Output report file (optional)")
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO, format=Config.LOGGING_CONFIG["format"])

    engine = build_engine(args.database_url)
    init_db(bind=engine)
    db = build_session_factory(engine)()
    try:
        results = recalibrate(db, args.learning_rate, args.min_responses, args.dry_run)
    finally:
        db.close()

    if not results:
        print(f"\nNo skills with >= {args.min_responses} answered questions")
        return

    report = generate_report(results)
    print("\n" + report)

    if args.report:
        with open(args.report, 'w') as f:
            f.write(report)
        print(f"\nReport saved: {args.report}")


if __name__ == "__main__":
    main()
