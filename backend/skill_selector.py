"""Category/skill resolution biased toward the learner's weakest skills"""

from dataclasses import dataclass
from typing import Dict, List, Optional
import logging
import random

from config import Config
from exceptions import NotFoundError, ValidationError
import models

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SkillChoice:
    category: models.Category
    skill: models.Skill
    strategy: str  # "explicit" | "weak" | "uniform"


class SkillSelector:
    """
    Resolve a concrete (category, skill) pair for the next question.

    With ability data for the category, the weakest skills are targeted with
    probability ``exploit_probability``; otherwise (or without any ability
    data) a skill is drawn uniformly from the whole category.
    """

    def __init__(self, repository, rng: Optional[random.Random] = None, config: Optional[Dict] = None):
        self.repository = repository
        self.config = config or Config.get_selection_config()
        self.rng = rng or random.Random(self.config.get("random_seed"))

    def select(self, learner_id: int, category_id: Optional[int] = None,
               skill_id: Optional[int] = None) -> SkillChoice:
        if skill_id is not None:
            return self._resolve_explicit_skill(category_id, skill_id)

        category = self._resolve_category(category_id)
        skills = self.repository.find_skills_by_category(category.id)
        if not skills:
            raise NotFoundError(f"Category {category.id} has no skills")

        skill, strategy = self._choose_skill(learner_id, skills)
        logger.info(f"Selected skill {skill.id} ({skill.name}) in category {category.id} via {strategy}")
        return SkillChoice(category=category, skill=skill, strategy=strategy)

    def _resolve_explicit_skill(self, category_id: Optional[int], skill_id: int) -> SkillChoice:
        skill = self.repository.find_skill(skill_id)
        if skill is None:
            raise NotFoundError(f"Skill {skill_id} not found")

        if category_id is not None:
            category = self.repository.find_category(category_id)
            if category is None:
                raise NotFoundError(f"Category {category_id} not found")
            if skill.category_id != category.id:
                raise ValidationError(f"Skill {skill_id} does not belong to category {category_id}")
        else:
            category = skill.category or self.repository.find_category(skill.category_id)
            if category is None:
                raise NotFoundError(f"Category {skill.category_id} not found")

        return SkillChoice(category=category, skill=skill, strategy="explicit")

    def _resolve_category(self, category_id: Optional[int]) -> models.Category:
        if category_id is not None:
            category = self.repository.find_category(category_id)
            if category is None:
                raise NotFoundError(f"Category {category_id} not found")
            return category

        categories = self.repository.find_all_categories()
        if not categories:
            raise NotFoundError("No categories available")
        return self.rng.choice(categories)

    def _choose_skill(self, learner_id: int, skills: List[models.Skill]):
        states = self.repository.find_ability_states(learner_id, [s.id for s in skills])
        if states and self.rng.random() < self.config["exploit_probability"]:
            weak = self.weakest_skills(skills, states, self.config["weak_fraction"])
            return self.rng.choice(weak), "weak"
        return self.rng.choice(skills), "uniform"

    @staticmethod
    def weakest_skills(skills: List[models.Skill], states: Dict[int, models.UserSkillLevel],
                       fraction: float) -> List[models.Skill]:
        """
        Skills whose theta lies in the bottom ``fraction`` of the observed theta span.

        Only skills with an ability state take part; order follows a stable
        ascending sort on theta, so equal thetas keep the category's order.
        """
        rated = sorted((s for s in skills if s.id in states), key=lambda s: states[s.id].theta)
        thetas = [states[s.id].theta for s in rated]
        lowest, highest = thetas[0], thetas[-1]
        cutoff = lowest + fraction * (highest - lowest)
        return [s for s in rated if states[s.id].theta <= cutoff]
