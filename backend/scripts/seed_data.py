#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Seed Default Categories and Skills

Inserts the five default subjects with seven skills each. Existing
categories/skills (matched by name) are left untouched, so the script can be
re-run safely.

Usage:
    python seed_data.py
    python seed_data.py --database-url sqlite:///./adaptive_quiz.db
"""

import argparse
import logging
import os
import sys
from typing import Dict, List, Tuple

script_dir = os.path.dirname(os.path.abspath(__file__))
backend_dir = os.path.dirname(script_dir)
sys.path.insert(0, backend_dir)

from sqlalchemy.orm import Session

from config import Config
from database import build_engine, build_session_factory, init_db
from repository import QuizRepository
import models

logger = logging.getLogger(__name__)

DEFAULT_CATEGORIES: List[Dict] = [
    {
        "name": "Mathematics",
        "description": "Numbers, shapes and functions; builds logical reasoning",
        "skills": [
            ("Numbers and Expressions", "From arithmetic to equations and inequalities", 2.0),
            ("Geometry", "Plane and solid figures, proofs", 2.5),
            ("Functions", "Linear, quadratic, exponential and logarithmic functions", 3.0),
            ("Probability and Statistics", "Counting, probability and statistical analysis", 2.7),
            ("Calculus", "Differentiation and integration", 3.5),
            ("Linear Algebra", "Vectors and matrices", 3.2),
            ("Sets and Logic", "Sets, propositions and logic", 2.3),
        ],
    },
    {
        "name": "Language Arts",
        "description": "Reading comprehension, expression and feel for language",
        "skills": [
            ("Modern Prose Reading", "Reading and analysing contemporary texts", 2.2),
            ("Classical Literature", "Reading classical texts and their grammar", 3.0),
            ("Classical Chinese", "Reading classical Chinese and its constructions", 3.2),
            ("Grammar", "Grammar and vocabulary", 2.5),
            ("Rhetoric", "Techniques of written expression", 2.8),
            ("Essay Writing", "Structuring and writing an argument", 3.0),
            ("Literary History", "History of national and world literature", 2.7),
        ],
    },
    {
        "name": "Social Studies",
        "description": "How society works, through history, geography and civics",
        "skills": [
            ("Japanese History", "Japanese history and culture", 2.5),
            ("World History", "World history and civilisations", 2.7),
            ("Geography", "Natural environments and human activity", 2.3),
            ("Contemporary Society", "Current social issues and challenges", 2.0),
            ("Politics and Economics", "Political systems and how economies work", 2.8),
            ("Ethics", "Thought, morality and ways of living", 3.0),
            ("Current Affairs", "Recent social and international events", 2.5),
        ],
    },
    {
        "name": "English",
        "description": "Communication skills and international awareness",
        "skills": [
            ("English Grammar", "Grammar and sentence structure", 2.3),
            ("Vocabulary", "Building vocabulary", 2.0),
            ("Reading", "Reading and understanding English texts", 2.5),
            ("Listening", "Understanding spoken English", 2.7),
            ("Speaking", "Conversation and spoken expression", 3.0),
            ("Writing", "Composing texts in English", 3.0),
            ("Idioms and Expressions", "Idiomatic phrases and set expressions", 2.8),
        ],
    },
    {
        "name": "Science",
        "description": "Exploring how natural phenomena work and the laws behind them",
        "skills": [
            ("Physics", "Mechanics, electromagnetism, thermodynamics", 3.2),
            ("Chemistry", "Properties of matter and chemical reactions", 3.0),
            ("Biology", "Life processes and biodiversity", 2.8),
            ("Earth Science", "Structure and change of the earth and space", 2.7),
            ("Experiments", "Scientific experiment and observation methods", 2.5),
            ("Environmental Science", "Environmental problems and sustainability", 2.3),
            ("History of Science", "How science developed", 2.0),
        ],
    },
]


def seed(db: Session, categories: List[Dict] = DEFAULT_CATEGORIES) -> Tuple[int, int]:
    """
    Insert missing categories and skills.

    Returns:
        (categories_added, skills_added)
    """
    repository = QuizRepository(db)
    categories_added = 0
    skills_added = 0

    with repository.transaction():
        for entry in categories:
            category = db.query(models.Category).filter(models.Category.name == entry["name"]).first()
            if category is None:
                category = models.Category(name=entry["name"], description=entry["description"])
                db.add(category)
                db.flush()
                categories_added += 1
                logger.info(f"Category '{category.name}' created")

            existing = {skill.name for skill in repository.find_skills_by_category(category.id)}
            for name, description, difficulty in entry["skills"]:
                if name in existing:
                    continue
                db.add(models.Skill(
                    name=name,
                    description=description,
                    category_id=category.id,
                    difficulty_base=difficulty,
                ))
                skills_added += 1

    return categories_added, skills_added


def main():
    parser = argparse.ArgumentParser(description="Seed default categories and skills")
    parser.add_argument("--database-url", default=Config.DATABASE_URL,
                        help=f"SQLAlchemy database URL (default: {Config.DATABASE_URL})")
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO, format=Config.LOGGING_CONFIG["format"])

    engine = build_engine(args.database_url)
    init_db(bind=engine)
    db = build_session_factory(engine)()
    try:
        categories_added, skills_added = seed(db)
    finally:
        db.close()

    print("\n" + "=" * 60)
    print(f"Categories added: {categories_added}")
    print(f"Skills added:     {skills_added}")
    print("=" * 60 + "\n")


if __name__ == "__main__":
    main()
