"""Tests for the client-side regeneration throttle."""

from datetime import date, timedelta

from treasury.client.throttle import RegenerationThrottle, cache_key, default_state_path
from treasury.domain.clock import FixedClock


def test_cache_key():
    assert cache_key("alice", "acme") == "regenerate:alice:acme"
    assert cache_key("alice") == "regenerate:alice:all"
    assert cache_key() == "regenerate:all:all"


def test_first_run_is_allowed(tmp_path):
    throttle = RegenerationThrottle(tmp_path / "state.json", clock=FixedClock(date(2025, 1, 10)))

    assert throttle.should_run("regenerate:alice:all")
    assert throttle.last_run("regenerate:alice:all") is None


def test_run_is_throttled_within_interval(tmp_path):
    clock = FixedClock(date(2025, 1, 10))
    throttle = RegenerationThrottle(tmp_path / "state.json", clock=clock)
    key = cache_key("alice")

    throttle.mark_run(key)

    assert not throttle.should_run(key)
    assert throttle.should_run(key, force=True)
    assert throttle.should_run(cache_key("bob"))


def test_run_allowed_after_interval(tmp_path):
    clock = FixedClock(date(2025, 1, 10))
    throttle = RegenerationThrottle(tmp_path / "state.json", clock=clock)
    key = cache_key("alice")
    throttle.mark_run(key)

    clock.advance(days=1)

    assert throttle.should_run(key)


def test_custom_interval(tmp_path):
    clock = FixedClock(date(2025, 1, 10))
    throttle = RegenerationThrottle(tmp_path / "state.json", interval=timedelta(days=2), clock=clock)
    key = cache_key("alice")
    throttle.mark_run(key)

    clock.advance(days=1)

    assert not throttle.should_run(key)


def test_state_persists_across_instances(tmp_path):
    clock = FixedClock(date(2025, 1, 10))
    path = tmp_path / "nested" / "state.json"
    RegenerationThrottle(path, clock=clock).mark_run("regenerate:alice:all")

    assert path.exists()
    assert not RegenerationThrottle(path, clock=clock).should_run("regenerate:alice:all")


def test_unreadable_state_is_ignored(tmp_path):
    path = tmp_path / "state.json"
    path.write_text("{not json")

    throttle = RegenerationThrottle(path, clock=FixedClock(date(2025, 1, 10)))

    assert throttle.should_run("regenerate:alice:all")


def test_default_state_path_from_env(tmp_path, monkeypatch):
    monkeypatch.setenv("TREASURY_STATE_PATH", str(tmp_path / "custom.json"))

    assert default_state_path() == tmp_path / "custom.json"
    assert RegenerationThrottle().state_path == tmp_path / "custom.json"
