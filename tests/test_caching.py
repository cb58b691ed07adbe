# tests/test_caching.py

from datetime import datetime
from threading import Thread

import pytest

from caching import FIFOCache, bucketed_key, time_bucket


def test_get_and_set():
    cache = FIFOCache(max_size=3)
    cache.set("a", 1)
    assert cache.get("a") == 1
    assert cache.get("missing") is None
    assert cache.get("missing", "default") == "default"
    assert cache.hits == 1
    assert cache.misses == 2


def test_evicts_oldest_inserted_not_least_recently_used():
    cache = FIFOCache(max_size=2)
    cache.set("first", 1)
    cache.set("second", 2)
    cache.get("first")  # a read does not refresh position
    cache.set("third", 3)

    assert "first" not in cache
    assert cache.keys() == ["second", "third"]


def test_overwrite_keeps_position_and_does_not_evict():
    cache = FIFOCache(max_size=2)
    cache.set("a", 1)
    cache.set("b", 2)
    cache.set("a", 10)

    assert len(cache) == 2
    assert cache.get("a") == 10
    cache.set("c", 3)
    assert cache.keys() == ["b", "c"]


def test_get_or_set_computes_once():
    cache = FIFOCache(max_size=5)
    calls = []

    def factory():
        calls.append(1)
        return "value"

    assert cache.get_or_set("k", factory) == "value"
    assert cache.get_or_set("k", factory) == "value"
    assert len(calls) == 1


def test_rejects_non_positive_size():
    with pytest.raises(ValueError):
        FIFOCache(max_size=0)


def test_concurrent_inserts_respect_bound():
    cache = FIFOCache(max_size=50)

    def writer(offset):
        for i in range(200):
            cache.set(f"{offset}-{i}", i)

    threads = [Thread(target=writer, args=(n,)) for n in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert len(cache) == 50


@pytest.mark.parametrize("minute,expected", [(0, "00"), (3, "00"), (9, "00"), (10, "10"), (59, "50")])
def test_time_bucket_floors_to_ten_minutes(minute, expected):
    assert time_bucket(datetime(2024, 5, 1, 10, minute)) == f"2024-05-01T10:{expected}"


def test_bucketed_key():
    moment = datetime(2024, 5, 1, 10, 7)
    assert bucketed_key(42, moment) == "42_2024-05-01T10:00"
    assert bucketed_key(42, moment, prefix="history") == "history_42_2024-05-01T10:00"
    assert bucketed_key(42, moment) != bucketed_key(42, datetime(2024, 5, 1, 10, 11))
