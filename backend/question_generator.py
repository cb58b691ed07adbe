# backend/question_generator.py
"""
Question authoring: external chat-completions provider plus a local fallback.

The provider is only ever trusted through ``QuestionPayload``: anything that
does not validate is reported as ProviderError, exactly like a timeout or an
HTTP failure, so callers have a single failure mode to handle.
"""

from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Sequence, Tuple
import json
import logging
import random
import re

import requests
from pydantic import AliasChoices, BaseModel, Field, field_validator
from pydantic import ValidationError as PayloadValidationError

from caching import FIFOCache
from config import Config
from content_history import AvoidanceContext
from exceptions import ProviderError, ProviderNotConfiguredError
import text_analysis

logger = logging.getLogger(__name__)

SOURCE_PROVIDER = "provider"
SOURCE_FALLBACK = "fallback"

_JSON_OBJECT_RX = re.compile(r"\{[\s\S]*\}")


class QuestionPayload(BaseModel):
    """Shape the provider must return for a generated question"""
    question: str = Field(min_length=1, validation_alias=AliasChoices("questionText", "question"))
    options: List[str] = Field(min_length=4, max_length=4)
    correct_answer_index: int = Field(
        ge=0, le=3, validation_alias=AliasChoices("correctAnswerIndex", "correct_answer_index")
    )
    explanation: str = Field(min_length=1)
    difficulty: float

    @field_validator("question", "explanation")
    @classmethod
    def not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("must not be blank")
        return value.strip()

    @field_validator("options")
    @classmethod
    def options_not_blank(cls, value: List[str]) -> List[str]:
        cleaned = [option.strip() for option in value]
        if any(not option for option in cleaned):
            raise ValueError("options must not be blank")
        return cleaned


@dataclass(frozen=True)
class GeneratedQuestion:
    question_text: str
    options: List[str]
    correct_answer_index: int
    explanation: str
    difficulty: float
    source: str

    @property
    def fingerprint(self) -> str:
        return text_analysis.content_fingerprint(self.question_text, self.options)


class GenerationProvider:
    """
    Client for an OpenAI-compatible chat-completions endpoint.

    Every public call either returns a validated result or raises
    ProviderError; requests never block longer than ``timeout`` seconds.
    """

    def __init__(self, config: Optional[Dict] = None, session=None):
        self.config = config or Config.get_generation_config()
        self.session = session or requests.Session()
        self.timeout = self.config["timeout"]
        cache_size = self.config.get("subcall_cache_size", 1000)
        self.summary_cache = FIFOCache(max_size=cache_size, name="summary_cache")
        self.keyword_cache = FIFOCache(max_size=cache_size, name="keyword_cache")

    @property
    def is_configured(self) -> bool:
        return bool(self.config.get("api_key"))

    # ========== QUESTION GENERATION ==========

    def generate_question(self, category_name: str, skill_name: str, target_difficulty: float,
                          avoidance: AvoidanceContext) -> GeneratedQuestion:
        prompt = self._question_prompt(category_name, skill_name, target_difficulty, avoidance)
        content = self._complete(prompt, temperature=self.config["temperature"],
                                 max_tokens=self.config["max_tokens"])
        payload = self._parse_question(content)
        return GeneratedQuestion(
            question_text=payload.question,
            options=payload.options,
            correct_answer_index=payload.correct_answer_index,
            explanation=payload.explanation,
            difficulty=payload.difficulty,
            source=SOURCE_PROVIDER,
        )

    @staticmethod
    def _question_prompt(category_name: str, skill_name: str, target_difficulty: float,
                         avoidance: AvoidanceContext) -> str:
        return f"""
You are an educational assistant. Write one quiz question under these conditions.

## Basics
- Category: {category_name}
- Skill: {skill_name}
- Difficulty: {target_difficulty:.2f}/5 (0 is easiest, 5 is hardest)

## Requirements
- Multiple choice with exactly 4 clearly distinct options and exactly one correct answer
- A clear question that measures the learner's understanding
- A detailed explanation of the correct answer

## Avoid overlap with earlier questions
{avoidance.to_prompt()}

## Output format
Reply with JSON only:
{{
  "question": "question text",
  "options": ["option 1", "option 2", "option 3", "option 4"],
  "correctAnswerIndex": <index of the correct option, 0-3>,
  "explanation": "explanation text",
  "difficulty": <actual difficulty on the 0-5 scale>
}}
"""

    @staticmethod
    def _parse_question(content: str) -> QuestionPayload:
        match = _JSON_OBJECT_RX.search(content or "")
        raw = match.group(0) if match else (content or "")
        try:
            data = json.loads(raw)
            return QuestionPayload.model_validate(data)
        except (ValueError, TypeError, PayloadValidationError) as e:
            raise ProviderError(f"Malformed question payload: {e}") from e

    # ========== SUMMARY / KEYWORD SUB-CALLS ==========

    def summarize(self, question_text: str, options: Sequence[str]) -> str:
        """Provider summary of at most 30 characters"""
        prompt = f"""
Summarise the following question and options in at most 30 characters.
Name the main topic and what is being asked. Reply with the summary only.

## Question
{question_text}

## Options
{chr(10).join(options)}
"""
        summary = self._complete(prompt, temperature=0.3, max_tokens=100).strip()
        if not summary:
            raise ProviderError("Empty summary")
        return text_analysis.truncate_summary(summary)

    def extract_keywords(self, question_text: str, options: Sequence[str]) -> str:
        """Provider keywords, comma-joined"""
        prompt = f"""
Extract 3 to 5 key concepts or keywords from the question below and reply with
them comma-separated, nothing else. Prefer specific terms over generic words.
Example: quadratic equation,quadratic formula,discriminant

## Question
{question_text}

## Options
{chr(10).join(options)}
"""
        keywords = text_analysis.bounded_keywords(
            text_analysis.split_keywords(self._complete(prompt, temperature=0.3, max_tokens=100))
        )
        if not keywords:
            raise ProviderError("Empty keyword list")
        return ",".join(keywords)

    def describe(self, question_text: str, options: Sequence[str]) -> Tuple[str, str]:
        """
        (summary, abstract_hash) for a question, cached per question content.

        Falls back to the local heuristics whenever the provider call fails.
        """
        key = text_analysis.cache_key(question_text, options)

        def summary_factory() -> str:
            try:
                return self.summarize(question_text, options)
            except ProviderError as e:
                logger.warning(f"Summary sub-call failed, using local summary: {e}")
                return text_analysis.simple_summary(question_text)

        def keyword_factory() -> str:
            try:
                return self.extract_keywords(question_text, options)
            except ProviderError as e:
                logger.warning(f"Keyword sub-call failed, using local keywords: {e}")
                return text_analysis.abstract_hash(question_text)

        return self.summary_cache.get_or_set(key, summary_factory), self.keyword_cache.get_or_set(key, keyword_factory)

    # ========== TRANSPORT ==========

    def _complete(self, prompt: str, temperature: float, max_tokens: int) -> str:
        if not self.is_configured:
            raise ProviderNotConfiguredError("Generation provider API key is not configured")

        body = {
            "model": self.config["model"],
            "messages": [{"role": "user", "content": prompt}],
            "temperature": temperature,
            "max_tokens": max_tokens,
        }
        headers = {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self.config['api_key']}",
        }
        try:
            response = self.session.post(self.config["endpoint"], json=body, headers=headers,
                                         timeout=self.timeout)
            response.raise_for_status()
            content = response.json()["choices"][0]["message"]["content"]
        except requests.RequestException as e:
            raise ProviderError(f"Provider request failed: {e}") from e
        except (ValueError, KeyError, IndexError, TypeError) as e:
            raise ProviderError(f"Unexpected provider response: {e}") from e

        if not isinstance(content, str):
            raise ProviderError(f"Provider content is {type(content).__name__}, expected text")
        return content


# ========== LOCAL FALLBACK ==========

_TEMPLATES = [
    {
        "question": "In {category}, which of the following best characterises {skill}?",
        "options": [
            "Consistency of its theoretical framework",
            "Breadth of its practical applications",
            "Peculiarity of its historical development",
            "High level of conceptual abstraction",
        ],
        "correct": 1,
        "explanation": "{skill} is distinguished less by its theory than by how widely it is applied. "
                       "Its usefulness is shown across many practical situations.",
    },
    {
        "question": "Which concept matters most when learning {skill}?",
        "options": [
            "Structural consistency",
            "Functional diversity",
            "Narrowly defined scope",
            "Flexibility of application",
        ],
        "correct": 3,
        "explanation": "The most important aspect of {skill} is that it adapts to many situations. "
                       "That flexibility lets it work across different problem settings.",
    },
    {
        "question": "When applying {skill} in {category}, which approach is usually most effective?",
        "options": [
            "Incremental application with verification",
            "Exhaustive theoretical analysis first",
            "Unstructured trial and error",
            "Designing the whole system up front",
        ],
        "correct": 0,
        "explanation": "Applying {skill} to {category} works best step by step. "
                       "Checking the result of each step keeps the work on track.",
    },
    {
        "question": "Which habit best helps a learner retain {skill} over time?",
        "options": [
            "Rereading notes the night before a test",
            "Spaced practice with increasingly varied problems",
            "Memorising one worked example",
            "Avoiding mistakes by skipping hard exercises",
        ],
        "correct": 1,
        "explanation": "Spacing practice and varying the problems forces retrieval of {skill}, "
                       "which builds durable understanding in {category}.",
    },
]

_HARD_STEM = "Seen from an advanced perspective in {category}, what is the most essential element of {skill}?"
_EASY_STEM = "As a fundamental of {category}, what is the main purpose of {skill}?"


class FallbackGenerator:
    """Template-based generator that never needs the network"""

    def __init__(self, rng: Optional[random.Random] = None):
        self.rng = rng or random.Random()

    def generate(self, category_name: str, skill_name: str, target_difficulty: float,
                 is_duplicate: Optional[Callable[[str], bool]] = None) -> GeneratedQuestion:
        """
        Build a four-option question for the target difficulty.

        Templates are tried in random order; the first whose fingerprint is not
        reported by ``is_duplicate`` wins. When all are duplicates the first
        candidate is used anyway.
        """
        order = list(range(len(_TEMPLATES)))
        self.rng.shuffle(order)

        candidates = [self._render(_TEMPLATES[i], category_name, skill_name, target_difficulty) for i in order]
        if is_duplicate is not None:
            for candidate in candidates:
                if not is_duplicate(candidate.fingerprint):
                    return candidate
            logger.info(f"All fallback templates recently asked for skill '{skill_name}'; reusing one")
        return candidates[0]

    @staticmethod
    def _render(template: Dict, category_name: str, skill_name: str,
                target_difficulty: float) -> GeneratedQuestion:
        names = {"category": category_name, "skill": skill_name}
        if target_difficulty > 3:
            stem = _HARD_STEM
        elif target_difficulty < 2:
            stem = _EASY_STEM
        else:
            stem = template["question"]

        return GeneratedQuestion(
            question_text=stem.format(**names),
            options=list(template["options"]),
            correct_answer_index=template["correct"],
            explanation=template["explanation"].format(**names),
            difficulty=target_difficulty,
            source=SOURCE_FALLBACK,
        )
