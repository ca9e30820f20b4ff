"""Per-engine call counters against a static per-window budget."""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from datetime import datetime, timezone
from threading import Lock
from typing import Any

logger = logging.getLogger(__name__)


def utc_day_window(now: datetime | None = None) -> str:
    """Window key for the UTC calendar day."""
    moment = now or datetime.now(timezone.utc)
    return moment.astimezone(timezone.utc).date().isoformat()


class EngineUsageCounter:
    """Thread-safe usage counts that reset automatically when the window rolls over."""

    def __init__(
        self,
        budgets: Mapping[str, int],
        *,
        window: Callable[[], str] = utc_day_window,
    ) -> None:
        self._budgets = dict(budgets)
        self._window = window
        self._lock = Lock()
        self._counts: dict[str, int] = {}
        self._window_key = window()

    def increment(self, engine: str) -> int:
        """Record one call and return the engine's new count for the window."""
        with self._lock:
            self._roll_window()
            count = self._counts.get(engine, 0) + 1
            self._counts[engine] = count
            return count

    def release(self, engine: str) -> int:
        """Give back one recorded call; the count never drops below zero."""
        with self._lock:
            self._roll_window()
            count = max(self._counts.get(engine, 0) - 1, 0)
            self._counts[engine] = count
            return count

    def count(self, engine: str) -> int:
        with self._lock:
            self._roll_window()
            return self._counts.get(engine, 0)

    def budget(self, engine: str) -> int | None:
        return self._budgets.get(engine)

    def is_under_budget(self, engine: str) -> bool:
        budget = self._budgets.get(engine)
        if budget is None:
            return True
        return self.count(engine) < budget

    def snapshot(self) -> dict[str, dict[str, Any]]:
        with self._lock:
            self._roll_window()
            counts = dict(self._counts)
        summary: dict[str, dict[str, Any]] = {}
        for engine, budget in self._budgets.items():
            count = counts.get(engine, 0)
            summary[engine] = {
                "count": count,
                "budget": budget,
                "pct_used": round(count / budget * 100) if budget > 0 else 0,
            }
        return summary

    def reset(self) -> None:
        with self._lock:
            self._counts.clear()
            self._window_key = self._window()

    def _roll_window(self) -> None:
        current = self._window()
        if current != self._window_key:
            logger.info(
                "router.usage.window_reset",
                extra={"previous": self._window_key, "current": current, "counts": dict(self._counts)},
            )
            self._counts.clear()
            self._window_key = current
