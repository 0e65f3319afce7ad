"""Tests for the on-disk remote document cache."""

import json

from prompt_registry.cache import CacheStore

URL = "https://registry.example.com/registry.json"


class FakeClock:
    def __init__(self, now=1_000_000.0):
        self.now = now

    def __call__(self):
        return self.now


def test_put_then_get_within_ttl(tmp_path):
    clock = FakeClock()
    cache = CacheStore(tmp_path / "cache", ttl=60, clock=clock)

    cache.put(URL, {"prompts": {}})
    clock.now += 59

    assert cache.get(URL) == {"prompts": {}}


def test_stale_entry_is_ignored_but_kept(tmp_path):
    clock = FakeClock()
    cache = CacheStore(tmp_path, ttl=60, clock=clock)

    cache.put(URL, {"prompts": {}})
    clock.now += 60

    assert cache.get(URL) is None
    assert cache.path_for(URL).exists()


def test_cache_file_layout(tmp_path):
    cache = CacheStore(tmp_path, ttl=60, clock=FakeClock(42.0))
    cache.put(URL, {"prompts": {"a": 1}})

    entry = json.loads(cache.path_for(URL).read_text())
    assert entry == {"timestamp": 42.0, "url": URL, "data": {"prompts": {"a": 1}}}


def test_key_is_deterministic_per_url(tmp_path):
    cache = CacheStore(tmp_path, ttl=60)
    assert cache.path_for(URL) == cache.path_for(URL)
    assert cache.path_for(URL) != cache.path_for(URL + "?v=2")


def test_newer_put_supersedes(tmp_path):
    clock = FakeClock()
    cache = CacheStore(tmp_path, ttl=60, clock=clock)

    cache.put(URL, {"v": 1})
    clock.now += 10
    cache.put(URL, {"v": 2})

    assert cache.get(URL) == {"v": 2}


def test_missing_and_corrupt_entries_are_misses(tmp_path):
    cache = CacheStore(tmp_path, ttl=60)
    assert cache.get(URL) is None

    cache.path_for(URL).write_text("{not json")
    assert cache.get(URL) is None

    cache.path_for(URL).write_text(json.dumps({"url": URL}))
    assert cache.get(URL) is None


def test_put_failure_does_not_raise(tmp_path):
    blocker = tmp_path / "blocker"
    blocker.write_text("a file, not a directory")
    cache = CacheStore(blocker / "cache", ttl=60)

    cache.put(URL, {"prompts": {}})

    assert cache.get(URL) is None

    cache.path_for(URL).write_text(json.dumps({"timestamp": 9e18, "url": URL, "data": ["x"]}))
    assert cache.get(URL) is None
