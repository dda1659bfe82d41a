"""Tests for the TTL result cache."""

import pytest

from lanscout.cache import ResultCache


class FakeClock:
    def __init__(self, now: float = 0.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


@pytest.fixture
def clock():
    return FakeClock(100.0)


@pytest.fixture
def cache(clock):
    return ResultCache("foundCache", ttl=600, clock=clock)


class TestResultCache:
    """Test insert, expiry and conditional delete."""

    def test_lookup_missing(self, cache):
        assert cache.lookup("fe80::1") is None

    def test_insert_and_lookup(self, cache):
        cache.insert("fe80::1", "AA:BB:CC:DD:EE:FF")
        assert cache.lookup("fe80::1") == "AA:BB:CC:DD:EE:FF"
        assert "fe80::1" in cache
        assert len(cache) == 1

    def test_entry_expires(self, cache, clock):
        cache.insert("fe80::1", "AA:BB:CC:DD:EE:FF")
        clock.now += 599
        assert cache.lookup("fe80::1") == "AA:BB:CC:DD:EE:FF"
        clock.now += 1
        assert cache.lookup("fe80::1") is None
        assert len(cache) == 0

    def test_later_insert_overwrites(self, cache, clock):
        cache.insert("fe80::1", "AA:AA:AA:AA:AA:AA")
        clock.now += 500
        cache.insert("fe80::1", "BB:BB:BB:BB:BB:BB")
        clock.now += 500
        assert cache.lookup("fe80::1") == "BB:BB:BB:BB:BB:BB"

    def test_delete_if_matching_value(self, cache):
        cache.insert("fe80::1", "AA:BB:CC:DD:EE:FF")
        assert cache.delete_if("fe80::1", "AA:BB:CC:DD:EE:FF")
        assert cache.lookup("fe80::1") is None

    def test_delete_if_different_value_is_noop(self, cache):
        cache.insert("fe80::1", "AA:BB:CC:DD:EE:FF")
        assert not cache.delete_if("fe80::1", "11:22:33:44:55:66")
        assert cache.lookup("fe80::1") == "AA:BB:CC:DD:EE:FF"

    def test_delete_absent_is_noop(self, cache):
        assert not cache.delete_if("fe80::2", "AA:BB:CC:DD:EE:FF")
        cache.delete("fe80::2")
        assert len(cache) == 0
