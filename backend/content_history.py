"""
Content history aggregation for repetition avoidance.

A learner's recent question records are compressed into three tiers that a
question generator can use to steer away from content already seen:

- recent (records 1-5):    near-verbatim summaries with their category
- mid-term (records 6-20): concept keywords grouped by category
- older (records 21-50):   one flat keyword cloud

Results are cached per learner for the current 10-minute wall-clock bucket.
"""

from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Callable, Dict, List, Optional
import logging

from caching import FIFOCache, bucketed_key
from config import Config
from text_analysis import looks_like_content_hash, split_keywords

logger = logging.getLogger(__name__)

UNKNOWN_CATEGORY = "Unknown"


@dataclass(frozen=True)
class AvoidanceContext:
    """Tiered summary/keyword bundle handed to a question generator"""
    recent_summaries: List[Dict[str, str]] = field(default_factory=list)
    structured_keywords: Dict[str, List[str]] = field(default_factory=dict)
    older_keywords: List[str] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not (self.recent_summaries or self.structured_keywords or self.older_keywords)

    def to_dict(self) -> Dict:
        return {
            "recent_summaries": [dict(s) for s in self.recent_summaries],
            "structured_keywords": {k: list(v) for k, v in self.structured_keywords.items()},
            "older_keywords": list(self.older_keywords),
        }

    def to_prompt(self) -> str:
        """Render the three tiers as instructions for a text generator"""
        lines = ["### Recently asked questions (write something different from these):"]
        if self.recent_summaries:
            for index, summary in enumerate(self.recent_summaries, start=1):
                lines.append(f"{index}. [{summary['category_name']}] {summary['text']}")
        else:
            lines.append("None")

        lines.append("")
        lines.append("### Concepts covered recently (avoid combining these again):")
        entries = [(name, words) for name, words in self.structured_keywords.items() if words]
        if entries:
            for name, words in entries:
                lines.append(f"- {name}: {', '.join(words)}")
        else:
            lines.append("None")

        lines.append("")
        lines.append("### Topics asked in the past (avoid questions built from these):")
        lines.append(", ".join(self.older_keywords) if self.older_keywords else "None")
        return "\n".join(lines)


@dataclass(frozen=True)
class _CachedHistory:
    context: AvoidanceContext
    category_names: Dict[int, str]


class ContentHistoryAggregator:
    """Builds AvoidanceContext objects from a learner's question history"""

    def __init__(self, repository, cache: Optional[FIFOCache] = None,
                 clock: Callable[[], datetime] = datetime.now, config: Optional[Dict] = None):
        self.repository = repository
        self.config = config or Config.get_history_config()
        self.cache = cache if cache is not None else FIFOCache(
            max_size=self.config["cache_max_size"], name="history_cache"
        )
        self.clock = clock

    def cache_key(self, learner_id: int) -> str:
        return bucketed_key(learner_id, self.clock(), self.config["cache_bucket_minutes"])

    def build(self, learner_id: int, category_id: Optional[int] = None) -> AvoidanceContext:
        """
        Get the avoidance context for a learner.

        Args:
            learner_id: learner whose history is summarised
            category_id: category being generated for; its keywords are listed first

        Returns:
            AvoidanceContext (all tiers empty for a learner without history)
        """
        key = self.cache_key(learner_id)
        cached = self.cache.get(key)
        if cached is None:
            cached = self._aggregate(learner_id)
            self.cache.set(key, cached)
            logger.debug(f"Avoidance context built for learner {learner_id} ({key})")
        else:
            logger.debug(f"Avoidance context cache hit for learner {learner_id} ({key})")

        if category_id is None:
            return cached.context
        return self._prioritise_category(cached, category_id)

    def _aggregate(self, learner_id: int) -> _CachedHistory:
        records = self.repository.find_recent_question_records(
            learner_id, limit=self.config["window"], newest_first=True
        )

        recent_end = self.config["recent_tier_end"]
        mid_end = self.config["mid_tier_end"]
        older_end = self.config["older_tier_end"]

        recent = records[:recent_end]
        mid = records[recent_end:mid_end]
        older = records[mid_end:older_end]

        category_names: Dict[int, str] = {}
        for record in records:
            if record.category is not None:
                category_names[record.category_id] = record.category.name

        recent_summaries = [
            {"text": record.summary, "category_name": self._category_name(record)}
            for record in recent
            if record.summary and record.summary.strip()
        ]

        structured: Dict[str, Dict[str, None]] = {}
        for record in mid:
            keywords = self._keywords(record)
            if not keywords:
                continue
            bucket = structured.setdefault(self._category_name(record), {})
            for keyword in keywords:
                bucket.setdefault(keyword, None)

        older_keywords: Dict[str, None] = {}
        for record in older:
            for keyword in self._keywords(record):
                older_keywords.setdefault(keyword, None)

        context = AvoidanceContext(
            recent_summaries=recent_summaries,
            structured_keywords={name: list(words) for name, words in structured.items()},
            older_keywords=list(older_keywords),
        )
        logger.info(
            f"History for learner {learner_id}: {len(records)} records, "
            f"{len(recent_summaries)} summaries, {len(context.structured_keywords)} keyword groups, "
            f"{len(context.older_keywords)} older keywords"
        )
        return _CachedHistory(context=context, category_names=category_names)

    @staticmethod
    def _category_name(record) -> str:
        return record.category.name if record.category is not None else UNKNOWN_CATEGORY

    @staticmethod
    def _keywords(record) -> List[str]:
        value = record.abstract_hash
        if not value or looks_like_content_hash(value):
            return []
        return split_keywords(value)

    @staticmethod
    def _prioritise_category(cached: _CachedHistory, category_id: int) -> AvoidanceContext:
        name = cached.category_names.get(category_id)
        keywords = cached.context.structured_keywords
        if name is None or name not in keywords:
            return cached.context

        reordered = {name: keywords[name]}
        for other, words in keywords.items():
            if other != name:
                reordered[other] = words
        return replace(cached.context, structured_keywords=reordered)
