"""
Unit tests for the sliding-window rate limiter and its state stores.
"""

import json
import threading
from concurrent.futures import ThreadPoolExecutor

import pytest

from formrelay.services.rate_limiter import (
    FileRateStateStore,
    InMemoryRateStateStore,
    RateLimiter,
    client_fingerprint,
)

from conftest import RecordingEventSink

FINGERPRINT = client_fingerprint("203.0.113.7", "Mozilla/5.0")


@pytest.fixture(params=["memory", "file"])
def store(request, clock, tmp_path):
    if request.param == "memory":
        return InMemoryRateStateStore(clock=clock)
    return FileRateStateStore(str(tmp_path / "cache"), clock=clock)


class TestClientFingerprint:
    def test_stable_hex_digest(self):
        assert client_fingerprint("1.2.3.4", "UA") == client_fingerprint("1.2.3.4", "UA")
        assert len(FINGERPRINT) == 64
        assert all(c in "0123456789abcdef" for c in FINGERPRINT)

    def test_user_agent_changes_fingerprint(self):
        assert client_fingerprint("1.2.3.4", "UA-1") != client_fingerprint("1.2.3.4", "UA-2")


class TestAdmit:
    """N requests per window; the (N+1)th is rejected and not recorded."""

    def test_remaining_counts_down(self, store, clock):
        limiter = RateLimiter(store, window_minutes=15, max_requests=3, clock=clock)

        remaining = [limiter.admit(FINGERPRINT).remaining for _ in range(3)]

        assert remaining == [2, 1, 0]

    def test_scenario_eleventh_request_rejected(self, store, clock):
        limiter = RateLimiter(store, window_minutes=15, max_requests=10, clock=clock)

        for _ in range(10):
            assert limiter.admit(FINGERPRINT).allowed is True
            clock.advance(seconds=30)

        decision = limiter.admit(FINGERPRINT)

        assert decision.allowed is False
        assert decision.remaining == 0
        assert decision.limit == 10
        assert decision.reset_at >= clock.now

    def test_rejected_requests_are_not_recorded(self, store, clock):
        limiter = RateLimiter(store, window_minutes=15, max_requests=2, clock=clock)
        limiter.admit(FINGERPRINT)
        limiter.admit(FINGERPRINT)

        for _ in range(5):
            assert limiter.admit(FINGERPRINT).allowed is False

        assert len(store.load(FINGERPRINT)) == 2

    def test_admitted_again_once_oldest_leaves_window(self, store, clock):
        limiter = RateLimiter(store, window_minutes=15, max_requests=2, clock=clock)
        limiter.admit(FINGERPRINT)
        clock.advance(minutes=5)
        limiter.admit(FINGERPRINT)

        rejected = limiter.admit(FINGERPRINT)
        assert rejected.allowed is False

        clock.now = rejected.reset_at
        decision = limiter.admit(FINGERPRINT)

        assert decision.allowed is True
        assert decision.remaining == 0

    def test_reset_at_tracks_oldest_entry(self, store, clock):
        start = clock.now
        limiter = RateLimiter(store, window_minutes=15, max_requests=5, clock=clock)
        limiter.admit(FINGERPRINT)
        clock.advance(minutes=3)

        decision = limiter.admit(FINGERPRINT)

        assert decision.reset_at == start + limiter.window

    def test_fingerprints_are_independent(self, store, clock):
        limiter = RateLimiter(store, window_minutes=15, max_requests=1, clock=clock)
        other = client_fingerprint("198.51.100.1", "curl/8")

        assert limiter.admit(FINGERPRINT).allowed is True
        assert limiter.admit(FINGERPRINT).allowed is False
        assert limiter.admit(other).allowed is True

    def test_exceeded_event(self, store, clock):
        events = RecordingEventSink()
        limiter = RateLimiter(store, window_minutes=15, max_requests=1, clock=clock, events=events)

        limiter.admit(FINGERPRINT)
        limiter.admit(FINGERPRINT)

        [event] = events.of("rate_limit.exceeded")
        assert event["limit"] == 1
        assert FINGERPRINT.startswith(event["fingerprint"])


class TestDisabledLimiter:
    @pytest.mark.parametrize("max_requests", [0, -1])
    def test_always_admits(self, max_requests, clock):
        store = InMemoryRateStateStore(clock=clock)
        limiter = RateLimiter(store, max_requests=max_requests, clock=clock)

        decisions = [limiter.admit(FINGERPRINT) for _ in range(50)]

        assert all(d.allowed for d in decisions)
        assert decisions[-1].enabled is False
        assert store.keys() == []


class TestConcurrency:
    """2N simultaneous requests from one client admit exactly N."""

    @pytest.mark.parametrize("limit", [5, 10])
    def test_exactly_n_admitted(self, store, clock, limit):
        limiter = RateLimiter(store, window_minutes=15, max_requests=limit, clock=clock)
        barrier = threading.Barrier(2 * limit)

        def hit():
            barrier.wait()
            return limiter.admit(FINGERPRINT).allowed

        with ThreadPoolExecutor(max_workers=2 * limit) as pool:
            results = list(pool.map(lambda _: hit(), range(2 * limit)))

        assert results.count(True) == limit
        assert results.count(False) == limit
        assert len(store.load(FINGERPRINT)) == limit


class TestStatus:
    def test_status_does_not_record(self, store, clock):
        limiter = RateLimiter(store, window_minutes=15, max_requests=3, clock=clock)
        limiter.admit(FINGERPRINT)

        for _ in range(5):
            status = limiter.status(FINGERPRINT)

        assert status.allowed is True
        assert status.remaining == 2
        assert len(store.load(FINGERPRINT)) == 1


class TestSweep:
    """State untouched for more than 24 hours is removed."""

    def test_removes_only_stale_keys(self, store, clock):
        limiter = RateLimiter(store, window_minutes=15, max_requests=5, clock=clock)
        stale = client_fingerprint("10.0.0.1", "old")
        fresh = client_fingerprint("10.0.0.2", "new")

        limiter.admit(stale)
        clock.advance(hours=25)
        limiter.admit(fresh)

        removed = limiter.sweep()

        assert removed == 1
        assert store.keys() == [fresh]

    def test_nothing_to_sweep(self, store, clock):
        limiter = RateLimiter(store, clock=clock)
        limiter.admit(FINGERPRINT)

        assert limiter.sweep() == 0


class TestFileRateStateStore:
    def test_state_survives_new_store_instance(self, tmp_path, clock):
        directory = str(tmp_path / "cache")
        RateLimiter(FileRateStateStore(directory, clock=clock), max_requests=2, clock=clock).admit(FINGERPRINT)

        limiter = RateLimiter(FileRateStateStore(directory, clock=clock), max_requests=2, clock=clock)

        assert limiter.admit(FINGERPRINT).remaining == 0

    def test_file_layout(self, tmp_path, clock):
        store = FileRateStateStore(str(tmp_path), clock=clock)
        store.save(FINGERPRINT, [clock.now])

        path = tmp_path / f"rate_limit_{FINGERPRINT}.json"
        assert path.exists()
        assert json.loads(path.read_text()) == {"requests": [clock.now.timestamp()]}
        assert store.last_modified(FINGERPRINT) == clock.now

    def test_unsafe_keys_are_hashed(self, tmp_path, clock):
        store = FileRateStateStore(str(tmp_path), clock=clock)

        store.save("../../etc/passwd", [clock.now])

        assert store.load("../../etc/passwd") == [clock.now]
        [name] = [p.name for p in tmp_path.iterdir()]
        assert name.startswith("rate_limit_")
        assert ".." not in name and "/" not in name

    def test_corrupt_file_starts_fresh(self, tmp_path, clock):
        store = FileRateStateStore(str(tmp_path), clock=clock)
        (tmp_path / f"rate_limit_{FINGERPRINT}.json").write_text("{not json")

        assert store.load(FINGERPRINT) == []

    def test_delete_missing_key_is_noop(self, tmp_path, clock):
        store = FileRateStateStore(str(tmp_path), clock=clock)
        store.delete("nope")
        assert store.last_modified("nope") is None
