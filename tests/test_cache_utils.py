"""Tests for utils/cache.py: namespaced TTL cache."""
import threading
import time

from utils.cache import TTLCache


class TestTTLCache:
    def test_basic_set_get(self):
        cache = TTLCache()
        cache.set(("revenue",), {"totalRevenue": 1})
        assert cache.get(("revenue",)) == {"totalRevenue": 1}

    def test_miss_returns_none(self):
        assert TTLCache().get(("nope",)) is None

    def test_ttl_expiry(self):
        cache = TTLCache(ttl_seconds=0.05)
        cache.set(("k",), "v")
        assert cache.get(("k",)) == "v"
        time.sleep(0.1)
        assert cache.get(("k",)) is None
        assert len(cache) == 0

    def test_ttl_property(self):
        assert TTLCache(ttl_seconds=60).ttl_seconds == 60

    def test_get_or_set_calls_factory_once(self):
        cache = TTLCache()
        calls = []

        def factory():
            calls.append(1)
            return 42

        assert cache.get_or_set(("answer",), factory) == 42
        assert cache.get_or_set(("answer",), factory) == 42
        assert len(calls) == 1

    def test_write_during_compute_is_not_cached(self):
        cache = TTLCache()
        totals = {"revenue": 100}

        def compute():
            snapshot = totals["revenue"]
            totals["revenue"] = 200
            cache.invalidate()
            return snapshot

        assert cache.get_or_set(("revenue",), compute) == 100
        assert cache.get(("revenue",)) is None
        assert cache.get_or_set(("revenue",), lambda: totals["revenue"]) == 200

    def test_namespace_invalidate_during_compute_is_not_cached(self):
        cache = TTLCache()

        def compute():
            cache.invalidate("due-dates")
            return 1

        cache.get_or_set(("revenue",), compute)
        assert cache.get(("revenue",)) is None

    def test_overwrite_existing(self):
        cache = TTLCache()
        cache.set(("k",), "old")
        cache.set(("k",), "new")
        assert cache.get(("k",)) == "new"

    def test_maxsize_eviction(self):
        cache = TTLCache(maxsize=2)
        for i in range(3):
            cache.set(("k", i), i)
        assert len(cache) == 2
        assert cache.get(("k", 2)) == 2


class TestInvalidate:
    def test_invalidate_all(self):
        cache = TTLCache()
        cache.set(("revenue",), 1)
        cache.set(("due-dates", 5), 2)
        assert cache.invalidate() == 2
        assert cache.get(("revenue",)) is None

    def test_invalidate_namespace(self):
        cache = TTLCache()
        cache.set(("revenue",), 1)
        cache.set(("revenue", "totalPaid"), 2)
        cache.set(("due-dates", 5), 3)
        assert cache.invalidate("revenue") == 2
        assert cache.get(("due-dates", 5)) == 3

    def test_invalidate_counted(self):
        cache = TTLCache()
        cache.invalidate()
        cache.invalidate("revenue")
        assert cache.stats()["invalidations"] == 2


class TestStats:
    def test_hits_misses_size(self):
        cache = TTLCache()
        cache.set(("k",), "v")
        cache.get(("k",))
        cache.get(("nope",))
        assert cache.stats() == {"hits": 1, "misses": 1, "invalidations": 0, "size": 1}

    def test_counters_survive_invalidate(self):
        cache = TTLCache()
        cache.set(("k",), "v")
        cache.get(("k",))
        cache.invalidate()
        stats = cache.stats()
        assert stats["hits"] == 1
        assert stats["size"] == 0

    def test_reset_zeroes_counters(self):
        cache = TTLCache()
        cache.set(("k",), "v")
        cache.get(("k",))
        cache.reset()
        assert cache.stats() == {"hits": 0, "misses": 0, "invalidations": 0, "size": 0}

    def test_thread_safety(self):
        cache = TTLCache(maxsize=100)
        errors = []

        def worker():
            try:
                for i in range(50):
                    cache.set(("k", i), i)
                    cache.get(("k", i))
                    if i % 10 == 0:
                        cache.invalidate("k")
            except Exception as e:
                errors.append(e)

        threads = [threading.Thread(target=worker) for _ in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        assert not errors
