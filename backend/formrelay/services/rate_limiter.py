"""
Per-client sliding-window rate limiter.

Each client fingerprint (sha256 of IP + user agent) maps to the list of its
admitted request timestamps inside the trailing window. A request is
admitted while fewer than max_requests timestamps remain after pruning;
rejected attempts are not recorded.

The prune / check / append / persist sequence runs under a per-fingerprint
lock, so concurrent requests from one client can never be admitted past the
cap while distinct clients never wait on each other.

Public API:
  RateLimiter.admit(fingerprint) -> AdmitDecision
  RateLimiter.status(fingerprint) -> AdmitDecision   (read-only)
  RateLimiter.sweep() -> int
  client_fingerprint(ip, user_agent) -> str
"""

import hashlib
import json
import logging
import os
import re
import threading
import weakref
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Dict, List, Optional, Protocol

from formrelay.clock import Clock, utc_now
from formrelay.models.notification import AdmitDecision
from formrelay.services.events import EventSink, NullEventSink

logger = logging.getLogger(__name__)

STALE_AFTER = timedelta(hours=24)


def client_fingerprint(ip: str, user_agent: str) -> str:
    return hashlib.sha256(f"{ip or ''}|{user_agent or ''}".encode("utf-8")).hexdigest()


# ---------------------------------------------------------------------------
# State stores
# ---------------------------------------------------------------------------

class RateStateStore(Protocol):
    def load(self, key: str) -> List[datetime]:
        ...

    def save(self, key: str, timestamps: List[datetime]) -> None:
        ...

    def delete(self, key: str) -> None:
        ...

    def keys(self) -> List[str]:
        ...

    def last_modified(self, key: str) -> Optional[datetime]:
        ...


class InMemoryRateStateStore:
    """Process-local store. Used by tests and when no storage dir is writable."""

    def __init__(self, clock: Clock = utc_now):
        self.clock = clock
        self._data: Dict[str, List[datetime]] = {}
        self._modified: Dict[str, datetime] = {}
        self._guard = threading.Lock()

    def load(self, key: str) -> List[datetime]:
        with self._guard:
            return list(self._data.get(key, []))

    def save(self, key: str, timestamps: List[datetime]) -> None:
        with self._guard:
            self._data[key] = list(timestamps)
            self._modified[key] = self.clock()

    def delete(self, key: str) -> None:
        with self._guard:
            self._data.pop(key, None)
            self._modified.pop(key, None)

    def keys(self) -> List[str]:
        with self._guard:
            return list(self._data)

    def last_modified(self, key: str) -> Optional[datetime]:
        with self._guard:
            return self._modified.get(key)


_SAFE_KEY = re.compile(r"^[A-Za-z0-9_-]{1,128}$")
_FILE_PREFIX = "rate_limit_"


class FileRateStateStore:
    """
    One JSON file per key: {directory}/rate_limit_{key}.json

    Writes go through a temp file and os.replace so a reader never sees a
    half-written file. File mtime is set from the injected clock and is
    what sweep() compares against.
    """

    def __init__(self, directory: str, clock: Clock = utc_now):
        self.directory = Path(directory)
        self.clock = clock
        self.directory.mkdir(parents=True, exist_ok=True)

    def _file_key(self, key: str) -> str:
        if _SAFE_KEY.match(key):
            return key
        return hashlib.sha256(key.encode("utf-8")).hexdigest()

    def _path(self, key: str) -> Path:
        return self.directory / f"{_FILE_PREFIX}{self._file_key(key)}.json"

    def load(self, key: str) -> List[datetime]:
        path = self._path(key)
        try:
            raw = json.loads(path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return []
        except (OSError, ValueError) as e:
            logger.warning(f"Unreadable rate limit state {path.name}, starting fresh: {e}")
            return []

        stamps = raw.get("requests", []) if isinstance(raw, dict) else raw
        result: List[datetime] = []
        for value in stamps:
            if isinstance(value, (int, float)):
                result.append(datetime.fromtimestamp(value, tz=timezone.utc))
        return sorted(result)

    def save(self, key: str, timestamps: List[datetime]) -> None:
        path = self._path(key)
        tmp = path.with_name(f".{path.name}.{threading.get_ident()}.tmp")
        payload = {"requests": [t.timestamp() for t in timestamps]}
        tmp.write_text(json.dumps(payload), encoding="utf-8")
        os.replace(tmp, path)
        stamp = self.clock().timestamp()
        os.utime(path, (stamp, stamp))

    def delete(self, key: str) -> None:
        try:
            self._path(key).unlink()
        except FileNotFoundError:
            pass

    def keys(self) -> List[str]:
        return [
            p.stem[len(_FILE_PREFIX):]
            for p in self.directory.glob(f"{_FILE_PREFIX}*.json")
            if p.is_file()
        ]

    def last_modified(self, key: str) -> Optional[datetime]:
        try:
            mtime = self._path(key).stat().st_mtime
        except FileNotFoundError:
            return None
        return datetime.fromtimestamp(mtime, tz=timezone.utc)


# ---------------------------------------------------------------------------
# Limiter
# ---------------------------------------------------------------------------

class _KeyLock:
    """A lock that lives only as long as someone holds a reference to it."""

    __slots__ = ("_lock", "__weakref__")

    def __init__(self):
        self._lock = threading.Lock()

    def __enter__(self):
        self._lock.acquire()
        return self

    def __exit__(self, *exc):
        self._lock.release()
        return False


class RateLimiter:
    def __init__(
        self,
        store: RateStateStore,
        window_minutes: int = 15,
        max_requests: int = 10,
        clock: Clock = utc_now,
        events: Optional[EventSink] = None,
        stale_after: timedelta = STALE_AFTER,
    ):
        self.store = store
        self.window_minutes = window_minutes
        self.max_requests = max_requests
        self.clock = clock
        self.events = events or NullEventSink()
        self.stale_after = stale_after

        self._locks: "weakref.WeakValueDictionary[str, _KeyLock]" = weakref.WeakValueDictionary()
        self._locks_guard = threading.Lock()

    @property
    def enabled(self) -> bool:
        return self.max_requests > 0

    @property
    def window(self) -> timedelta:
        return timedelta(minutes=self.window_minutes)

    def _lock_for(self, key: str) -> _KeyLock:
        with self._locks_guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = _KeyLock()
                self._locks[key] = lock
            return lock

    def _prune(self, history: List[datetime], now: datetime) -> List[datetime]:
        # An entry exactly W old has left the window.
        cutoff = now - self.window
        return sorted(t for t in history if t > cutoff)

    def _disabled_decision(self, now: datetime) -> AdmitDecision:
        return AdmitDecision(allowed=True, limit=0, remaining=0, reset_at=now, window_minutes=self.window_minutes)

    def admit(self, fingerprint: str) -> AdmitDecision:
        """Record and admit the request, or reject it without recording."""
        now = self.clock()
        if not self.enabled:
            return self._disabled_decision(now)

        with self._lock_for(fingerprint):
            history = self._prune(self.store.load(fingerprint), now)

            if len(history) >= self.max_requests:
                reset_at = history[0] + self.window
                self.events.emit(
                    "rate_limit.exceeded",
                    fingerprint=fingerprint[:12],
                    limit=self.max_requests,
                    window_minutes=self.window_minutes,
                    reset_at=reset_at.isoformat(),
                )
                return AdmitDecision(
                    allowed=False,
                    limit=self.max_requests,
                    remaining=0,
                    reset_at=reset_at,
                    window_minutes=self.window_minutes,
                )

            history.append(now)
            self.store.save(fingerprint, history)

        return AdmitDecision(
            allowed=True,
            limit=self.max_requests,
            remaining=self.max_requests - len(history),
            reset_at=history[0] + self.window,
            window_minutes=self.window_minutes,
        )

    def status(self, fingerprint: str) -> AdmitDecision:
        """What admit() would answer right now, without recording anything."""
        now = self.clock()
        if not self.enabled:
            return self._disabled_decision(now)

        history = self._prune(self.store.load(fingerprint), now)
        reset_at = (history[0] if history else now) + self.window
        return AdmitDecision(
            allowed=len(history) < self.max_requests,
            limit=self.max_requests,
            remaining=max(0, self.max_requests - len(history)),
            reset_at=reset_at,
            window_minutes=self.window_minutes,
        )

    def sweep(self) -> int:
        """Delete state not touched for stale_after. Returns how many keys were removed."""
        cutoff = self.clock() - self.stale_after
        removed = 0
        for key in self.store.keys():
            with self._lock_for(key):
                modified = self.store.last_modified(key)
                if modified is not None and modified < cutoff:
                    self.store.delete(key)
                    removed += 1
        if removed:
            logger.info(f"Rate limit sweep removed {removed} stale entr{'y' if removed == 1 else 'ies'}")
        return removed
