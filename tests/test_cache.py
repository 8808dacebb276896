import threading

import pytest

from voter_analytics.persistence.cache import MISS, QueryResultCache


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


def key(n):
    return (f"SELECT {n}", ())


def test_miss_then_hit():
    cache = QueryResultCache(max_entries=4, ttl_sec=60)

    assert cache.get(key(1)) is MISS
    cache.put(key(1), [{"a": 1}])

    assert cache.get(key(1)) == [{"a": 1}]
    assert cache.stats.hits == 1
    assert cache.stats.misses == 1


def test_params_are_part_of_the_key():
    cache = QueryResultCache()
    statement = "SELECT COUNT(*) FROM voters WHERE county_name = %s"
    cache.put((statement, ("FULTON",)), [{"count": 10}])

    assert cache.get((statement, ("COBB",))) is MISS


def test_returned_rows_are_copies():
    cache = QueryResultCache()
    rows = [{"a": 1}]
    cache.put(key(1), rows)
    rows[0]["a"] = 99

    first = cache.get(key(1))
    first[0]["a"] = 42
    first.append({"a": 2})

    assert cache.get(key(1)) == [{"a": 1}]


def test_entries_expire_after_ttl():
    clock = FakeClock()
    cache = QueryResultCache(max_entries=4, ttl_sec=10, clock=clock)
    cache.put(key(1), [])

    clock.now += 9
    assert cache.get(key(1)) == []

    clock.now += 1
    assert cache.get(key(1)) is MISS
    assert len(cache) == 0
    assert cache.stats.expirations == 1


def test_least_recently_used_is_evicted():
    cache = QueryResultCache(max_entries=2, ttl_sec=60)
    cache.put(key(1), [])
    cache.put(key(2), [])
    cache.get(key(1))

    cache.put(key(3), [])

    assert len(cache) == 2
    assert key(1) in cache
    assert key(2) not in cache
    assert key(3) in cache
    assert cache.stats.evictions == 1


def test_last_writer_wins():
    cache = QueryResultCache()
    cache.put(key(1), [{"v": 1}])
    cache.put(key(1), [{"v": 2}])

    assert cache.get(key(1)) == [{"v": 2}]
    assert len(cache) == 1


def test_invalidate_and_clear():
    cache = QueryResultCache()
    cache.put(key(1), [])
    cache.put(key(2), [])

    assert cache.invalidate(key(1)) is True
    assert cache.invalidate(key(1)) is False
    cache.clear()
    assert len(cache) == 0


@pytest.mark.parametrize("kwargs", [{"max_entries": 0}, {"ttl_sec": 0}])
def test_invalid_bounds(kwargs):
    with pytest.raises(ValueError):
        QueryResultCache(**kwargs)


def test_concurrent_writers_stay_bounded():
    cache = QueryResultCache(max_entries=50, ttl_sec=60)

    def worker(offset):
        for n in range(200):
            cache.put(key(offset * 1000 + n), [{"n": n}])
            cache.get(key(offset * 1000 + n))

    threads = [threading.Thread(target=worker, args=(i,)) for i in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert len(cache) == 50
    assert cache.stats.evictions == 8 * 200 - 50
