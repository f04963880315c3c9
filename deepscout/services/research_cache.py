"""In-process TTL caches with an injected clock and lazy eviction."""

from __future__ import annotations

import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Generic, TypeVar

from loguru import logger

from deepscout.models.research import CacheEntry, RankedSource, ResearchPlan, Source
from deepscout.tools.web_utils import normalize_query

V = TypeVar("V")
Clock = Callable[[], float]

DEFAULT_RESEARCH_TTL_SECONDS = 600.0


@dataclass(slots=True)
class _Slot(Generic[V]):
    timestamp: float
    value: V


class TTLCache(Generic[V]):
    """Key/value store whose entries expire ``ttl_seconds`` after being written.

    Expired entries are removed opportunistically on every read and write.
    An entry written at ``t0`` is served while ``now - t0 <= ttl``.
    """

    def __init__(self, ttl_seconds: float, *, clock: Clock = time.time):
        self.ttl_seconds = float(ttl_seconds)
        self._clock = clock
        self._slots: dict[str, _Slot[V]] = {}

    def now(self) -> float:
        return self._clock()

    def _expired(self, slot: _Slot[V], now: float) -> bool:
        return now - slot.timestamp > self.ttl_seconds

    def sweep(self) -> int:
        now = self.now()
        stale = [key for key, slot in self._slots.items() if self._expired(slot, now)]
        for key in stale:
            del self._slots[key]
        return len(stale)

    def get(self, key: str) -> V | None:
        self.sweep()
        slot = self._slots.get(key)
        if slot is None:
            return None
        return slot.value

    def set(self, key: str, value: V, *, timestamp: float | None = None) -> None:
        self.sweep()
        self._slots[key] = _Slot(
            timestamp=self.now() if timestamp is None else timestamp,
            value=value,
        )

    def delete(self, key: str) -> None:
        self._slots.pop(key, None)

    def clear(self) -> None:
        self._slots.clear()

    def __len__(self) -> int:
        return len(self._slots)


class ResearchCache:
    """Research bundles keyed by ``mode:normalized query``.

    Construct once per process and pass it to each orchestrator. Concurrent
    runs for the same key are last-writer-wins.
    """

    def __init__(
        self,
        *,
        ttl_seconds: float = DEFAULT_RESEARCH_TTL_SECONDS,
        clock: Clock = time.time,
    ):
        self._store: TTLCache[CacheEntry] = TTLCache(ttl_seconds, clock=clock)

    @property
    def ttl_seconds(self) -> float:
        return self._store.ttl_seconds

    @staticmethod
    def key(mode: str, query: str) -> str:
        return f"{mode}:{normalize_query(query)}"

    def get(self, mode: str, query: str) -> CacheEntry | None:
        return self._store.get(self.key(mode, query))

    def put(
        self,
        mode: str,
        query: str,
        *,
        sources: list[Source],
        ranked_sources: list[RankedSource],
        plan: ResearchPlan,
        answer_summary: str | None = None,
    ) -> CacheEntry:
        now = self._store.now()
        entry = CacheEntry(
            timestamp=now,
            sources=tuple(sources),
            ranked_sources=tuple(ranked_sources),
            plan=plan.model_copy(deep=True),
            answer_summary=answer_summary,
        )
        key = self.key(mode, query)
        self._store.set(key, entry, timestamp=now)
        logger.debug(f"Research cache write: {key} ({len(ranked_sources)} ranked sources)")
        return entry

    def sweep(self) -> int:
        return self._store.sweep()

    def clear(self) -> None:
        self._store.clear()

    def __len__(self) -> int:
        return len(self._store)
