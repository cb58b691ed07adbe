"""Keyword, summary and fingerprint heuristics shared by history and generation"""

import hashlib
import json
import re
from collections import Counter
from typing import List, Sequence

SUMMARY_MAX_CHARS = 30
SUMMARY_WORDS = 5
MIN_KEYWORDS = 3
MAX_KEYWORDS = 5
# 5 keywords of 50 chars plus separators fit the 255-char keyword column
MAX_KEYWORD_CHARS = 50

STOP_WORDS = frozenset({
    "the", "and", "that", "this", "for", "with", "what", "which",
    "are", "was", "were", "from", "following", "most", "its", "into",
    "how", "why", "when", "does", "not", "you", "your", "their", "has",
    "have", "one", "about", "main",
})

_PUNCTUATION_RX = re.compile(r"[.,?!;:(){}\[\]<>]")


def tokenize(text: str) -> List[str]:
    """Split on whitespace after stripping punctuation; drop tokens of <= 2 chars"""
    if not text:
        return []
    cleaned = _PUNCTUATION_RX.sub(" ", text)
    return [word for word in cleaned.split() if len(word) > 2]


def extract_keywords(text: str, min_k: int = MIN_KEYWORDS, max_k: int = MAX_KEYWORDS) -> List[str]:
    """
    Frequency-ranked, stop-word filtered, lowercased keywords.

    Ties keep first-seen order. At most ``max_k`` keywords are returned;
    fewer when the text does not contain ``min_k`` distinct candidates.
    """
    words = [w.lower() for w in tokenize(text)]
    counts = Counter(w for w in words if w not in STOP_WORDS)
    # Counter preserves insertion order and sorted() is stable
    ranked = sorted(counts, key=lambda w: counts[w], reverse=True)
    keyword_count = min(max(min_k, len(ranked)), max_k)
    return ranked[:keyword_count]


def abstract_hash(text: str) -> str:
    return ",".join(bounded_keywords(extract_keywords(text)))


def simple_summary(text: str) -> str:
    words = (text or "").split()
    return truncate_summary(" ".join(words[:SUMMARY_WORDS]))


def truncate_summary(summary: str) -> str:
    summary = summary.strip()
    if len(summary) > SUMMARY_MAX_CHARS:
        summary = summary[:SUMMARY_MAX_CHARS - 3] + "..."
    return summary


def split_keywords(value: str) -> List[str]:
    return [part.strip() for part in (value or "").split(",") if part.strip()]


def bounded_keywords(keywords: Sequence[str]) -> List[str]:
    """First MAX_KEYWORDS keywords, each cut to MAX_KEYWORD_CHARS"""
    return [keyword[:MAX_KEYWORD_CHARS].strip() for keyword in keywords[:MAX_KEYWORDS]]


def looks_like_content_hash(value: str) -> bool:
    """Abstract hashes holding an id-style value rather than keywords carry a '-'"""
    return "-" in (value or "")


def content_fingerprint(question_text: str, options: Sequence[str]) -> str:
    """sha256 over the question text followed by the compact JSON of its options"""
    payload = question_text + json.dumps(list(options or []), ensure_ascii=False, separators=(",", ":"))
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()


def cache_key(question_text: str, options: Sequence[str]) -> str:
    payload = question_text + json.dumps(list(options or []), ensure_ascii=False, separators=(",", ":"))
    return hashlib.md5(payload.encode("utf-8")).hexdigest()
