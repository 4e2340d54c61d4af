"""
cache.py — Calculation cache.

The cache memoizes meal-rate, balance and settlement outputs keyed by
(group, period[, user]). It is derived state only: every ledger writer calls
invalidate_on_commit() after its flush, and a miss or a full flush
never changes a computed result, only its latency.

The store is passed to services as an argument (like the SQLAlchemy session)
so a multi-process deployment can swap InMemoryCacheStore for a shared
key-value store implementing the same CacheStore interface.
"""

from __future__ import annotations

import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from threading import RLock
from typing import Any, Callable

from sqlalchemy import event
from sqlalchemy.orm import Session

logger = logging.getLogger(__name__)


# ── Key builders ───────────────────────────────────────────────────────────

PREFIX_CALCULATIONS = "calc"


def _join(*parts: Any) -> str:
    return ":".join(str(p) for p in parts if p is not None)


def calculations_key(
        group_id: int,
        period_id: int | None = None,
        user_id: int | None = None,
        kind: str | None = None,
) -> str:
    """
    calc:<group>:<period>[:u<user>][:<kind>]

    A missing period is written as "none" so that a user-scoped key can never
    collide with a period-scoped one.
    """
    period_part = period_id if period_id is not None else "none"
    user_part = f"u{user_id}" if user_id is not None else None
    return _join(PREFIX_CALCULATIONS, group_id, period_part, user_part, kind)


def group_prefixes(group_id: int) -> list[str]:
    """Every key prefix owned by one group. The trailing colon keeps group 1
    from matching group 10."""
    return [f"{PREFIX_CALCULATIONS}:{group_id}:"]


# ── Stores ─────────────────────────────────────────────────────────────────

@dataclass
class CacheEntry:
    value: Any
    expires_at: float

    def is_expired(self, now: float) -> bool:
        return now >= self.expires_at


@dataclass
class CacheStats:
    hits: int = 0
    misses: int = 0
    expirations: int = 0
    invalidations: int = 0


class CacheStore(ABC):
    """
    Minimal key-value contract the calculation services depend on.

    A store also carries the two TTL classes so services never need to read
    Flask config: short for active-period data, long for closed periods.
    """

    def __init__(self, active_ttl: int = 120, closed_ttl: int = 3600) -> None:
        self.active_ttl = active_ttl
        self.closed_ttl = closed_ttl

    @abstractmethod
    def get(self, key: str) -> Any | None:
        ...

    @abstractmethod
    def set(self, key: str, value: Any, ttl: int) -> None:
        ...

    @abstractmethod
    def delete(self, key: str) -> bool:
        ...

    @abstractmethod
    def delete_prefix(self, prefix: str) -> int:
        ...

    @abstractmethod
    def clear(self) -> None:
        ...


class InMemoryCacheStore(CacheStore):
    """
    Process-local TTL store.

    Expired entries are dropped lazily on read. Values are stored as-is, so
    callers must treat anything they get back as read-only.
    """

    def __init__(
            self,
            active_ttl: int = 120,
            closed_ttl: int = 3600,
            clock: Callable[[], float] = time.monotonic,
    ) -> None:
        super().__init__(active_ttl, closed_ttl)
        self._entries: dict[str, CacheEntry] = {}
        self._lock = RLock()
        self._clock = clock
        self.stats = CacheStats()

    def get(self, key: str) -> Any | None:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                self.stats.misses += 1
                return None
            if entry.is_expired(self._clock()):
                del self._entries[key]
                self.stats.expirations += 1
                self.stats.misses += 1
                return None
            self.stats.hits += 1
            return entry.value

    def set(self, key: str, value: Any, ttl: int) -> None:
        if ttl <= 0:
            return
        with self._lock:
            self._entries[key] = CacheEntry(value=value, expires_at=self._clock() + ttl)

    def delete(self, key: str) -> bool:
        with self._lock:
            return self._entries.pop(key, None) is not None

    def delete_prefix(self, prefix: str) -> int:
        with self._lock:
            doomed = [k for k in self._entries if k.startswith(prefix)]
            for key in doomed:
                del self._entries[key]
            return len(doomed)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


# ── Helpers used by services ───────────────────────────────────────────────

def ttl_for_period(period, active_ttl: int = 120, closed_ttl: int = 3600) -> int:
    """Active (or missing) periods get the short TTL, closed ones the long one."""
    from mealsphere.app.models.enums import PeriodStatus  # local import: models import db

    if period is None or period.status == PeriodStatus.ACTIVE:
        return active_ttl
    return closed_ttl


def cached(
        cache: CacheStore | None,
        key: str,
        compute: Callable[[], Any],
        period=None,
        ttl: int | None = None,
) -> Any:
    """
    Read-through helper. With no cache configured it simply computes, which
    keeps every service usable (and unit-testable) without a store.

    The TTL defaults to the store's class for `period`.
    """
    if cache is None:
        return compute()

    value = cache.get(key)
    if value is not None:
        logger.debug("cache hit %s", key)
        return value

    logger.debug("cache miss %s", key)
    value = compute()
    if ttl is None:
        ttl = ttl_for_period(period, cache.active_ttl, cache.closed_ttl)
    cache.set(key, value, ttl)
    return value


def invalidate_group(
        cache: CacheStore | None,
        group_id: int,
        period_id: int | None = None,
        user_id: int | None = None,
) -> int:
    """
    Drops every cached entry for a group.

    Group-wide aggregates (meal rate, settlement rows) depend on every
    member's writes, so a write by one user in one period clears the whole
    group; period_id and user_id are accepted for logging. Safe to call any
    number of times.
    """
    if cache is None:
        return 0

    removed = 0
    for prefix in group_prefixes(group_id):
        removed += cache.delete_prefix(prefix)

    if isinstance(cache, InMemoryCacheStore):
        cache.stats.invalidations += 1

    logger.debug(
        "cache invalidated group=%s period=%s user=%s removed=%d",
        group_id, period_id, user_id, removed,
    )
    return removed


# ── Commit-time invalidation ───────────────────────────────────────────────
# A reader that runs between a writer's flush and its commit still sees the
# old rows and may cache them. Writers therefore clear the group twice: at
# flush, and again once their transaction has committed.

_PENDING_KEY = "mealsphere_pending_invalidations"


def invalidate_on_commit(
        session: Session,
        cache: CacheStore | None,
        group_id: int,
        period_id: int | None = None,
        user_id: int | None = None,
) -> None:
    """Clears the group now and queues it to be cleared after `session` commits."""
    if cache is None:
        return
    invalidate_group(cache, group_id, period_id, user_id)
    session.info.setdefault(_PENDING_KEY, set()).add((cache, group_id))


@event.listens_for(Session, "after_commit")
def _invalidate_committed_groups(session: Session) -> None:
    for cache, group_id in session.info.pop(_PENDING_KEY, set()):
        invalidate_group(cache, group_id)


@event.listens_for(Session, "after_rollback")
def _drop_pending_invalidations(session: Session) -> None:
    session.info.pop(_PENDING_KEY, None)
