# tests/test_content_history.py

from datetime import datetime, timedelta

import pytest

from caching import FIFOCache
from content_history import AvoidanceContext, ContentHistoryAggregator

BASE = datetime(2024, 5, 1, 9, 0)


@pytest.fixture
def sixty_records(catalog, learner, make_record):
    """
    60 records, index 0 newest:
    0-4 summaries, 5-19 mid keywords, 20-49 older keywords, 50-59 outside the window.
    """
    math, science = catalog["math"], catalog["science"]
    for i in range(60):
        fields = {}
        if i < 5:
            fields["summary"] = f"Recent question {i}"
        elif i < 20:
            fields["abstract_hash"] = f"mid{i},shared"
        elif i < 50:
            fields["abstract_hash"] = f"old{i}, common"
        else:
            fields["summary"] = f"Ancient question {i}"
            fields["abstract_hash"] = f"ancient{i}"

        category = math if i % 2 else science
        skill = catalog["algebra"] if category is math else catalog["physics"]
        make_record(learner, category, skill, BASE - timedelta(minutes=i), **fields)


@pytest.fixture
def aggregator(repository, clock):
    return ContentHistoryAggregator(repository, clock=clock)


def test_learner_without_history_gets_empty_tiers(aggregator, learner):
    context = aggregator.build(learner.id)
    assert context.is_empty
    assert context.to_dict() == {"recent_summaries": [], "structured_keywords": {}, "older_keywords": []}


def test_tiers_come_from_their_own_bands(aggregator, learner, sixty_records):
    context = aggregator.build(learner.id)

    assert [s["text"] for s in context.recent_summaries] == [f"Recent question {i}" for i in range(5)]
    assert context.recent_summaries[0]["category_name"] == "Science"
    assert context.recent_summaries[1]["category_name"] == "Mathematics"

    mid_keywords = {kw for words in context.structured_keywords.values() for kw in words}
    assert mid_keywords == {f"mid{i}" for i in range(5, 20)} | {"shared"}

    assert set(context.older_keywords) == {f"old{i}" for i in range(20, 50)} | {"common"}
    assert not any(kw.startswith("ancient") for kw in context.older_keywords)


def test_mid_tier_grouped_by_category_in_first_seen_order(aggregator, learner, sixty_records):
    context = aggregator.build(learner.id)

    # record 5 (odd) is Mathematics, record 6 is Science
    assert list(context.structured_keywords) == ["Mathematics", "Science"]
    assert context.structured_keywords["Mathematics"][:2] == ["mid5", "shared"]
    assert context.structured_keywords["Science"] == ["mid6", "shared"] + [f"mid{i}" for i in range(8, 20, 2)]
    assert context.structured_keywords["Mathematics"].count("shared") == 1


def test_current_category_listed_first(aggregator, learner, catalog, sixty_records):
    context = aggregator.build(learner.id, category_id=catalog["science"].id)
    assert list(context.structured_keywords) == ["Science", "Mathematics"]

    # cached copy is not reordered in place
    assert list(aggregator.build(learner.id).structured_keywords) == ["Mathematics", "Science"]


def test_records_without_summary_or_keywords_are_skipped(aggregator, learner, catalog, make_record):
    math, algebra = catalog["math"], catalog["algebra"]
    make_record(learner, math, algebra, BASE, summary="  ")
    make_record(learner, math, algebra, BASE - timedelta(minutes=1), summary="Kept summary")
    for i in range(2, 8):
        make_record(learner, math, algebra, BASE - timedelta(minutes=i), abstract_hash="1f3a-22bc")
    make_record(learner, math, algebra, BASE - timedelta(minutes=8), abstract_hash="vectors, matrices")

    context = aggregator.build(learner.id)

    assert [s["text"] for s in context.recent_summaries] == ["Kept summary"]
    assert context.structured_keywords == {"Mathematics": ["vectors", "matrices"]}


def test_cache_hit_within_ten_minute_bucket(aggregator, learner, catalog, make_record, clock):
    math, algebra = catalog["math"], catalog["algebra"]
    make_record(learner, math, algebra, BASE, summary="First")

    clock.moment = datetime(2024, 5, 1, 10, 3)
    first = aggregator.build(learner.id)

    make_record(learner, math, algebra, BASE + timedelta(minutes=1), summary="Second")

    clock.moment = datetime(2024, 5, 1, 10, 7)
    second = aggregator.build(learner.id)
    assert second == first
    assert aggregator.cache.hits == 1

    clock.moment = datetime(2024, 5, 1, 10, 11)
    third = aggregator.build(learner.id)
    assert [s["text"] for s in third.recent_summaries] == ["Second", "First"]


def test_cache_is_bounded_fifo(repository, clock, catalog):
    cache = FIFOCache(max_size=2)
    aggregator = ContentHistoryAggregator(repository, cache=cache, clock=clock)

    users = [repository.get_or_create_user(name) for name in ("u1", "u2", "u3")]
    for user in users:
        aggregator.build(user.id)

    assert len(cache) == 2
    assert aggregator.cache_key(users[0].id) not in cache
    assert aggregator.cache_key(users[2].id) in cache


def test_prompt_rendering():
    context = AvoidanceContext(
        recent_summaries=[{"text": "Area of a circle", "category_name": "Mathematics"}],
        structured_keywords={"Mathematics": ["radius", "pi"]},
        older_keywords=["photosynthesis"],
    )
    prompt = context.to_prompt()
    assert "1. [Mathematics] Area of a circle" in prompt
    assert "- Mathematics: radius, pi" in prompt
    assert "photosynthesis" in prompt

    assert AvoidanceContext().to_prompt().count("None") == 3
