"""Session and lifetime usage counters for translation calls."""

from __future__ import annotations

import threading
from dataclasses import dataclass, field, replace
from typing import Dict, Mapping, Optional


@dataclass(frozen=True)
class UsageTotals:
    calls: int = 0
    tokens: int = 0
    cost: float = 0.0

    def add(self, tokens: int, cost: float) -> "UsageTotals":
        return replace(
            self,
            calls=self.calls + 1,
            tokens=self.tokens + tokens,
            cost=self.cost + cost,
        )


@dataclass(frozen=True)
class UsageSnapshot:
    """Point-in-time copy of the counters; safe to hand to display code."""

    session: UsageTotals
    lifetime: UsageTotals
    session_by_provider: Mapping[str, UsageTotals] = field(default_factory=dict)
    lifetime_by_provider: Mapping[str, UsageTotals] = field(default_factory=dict)


class UsageStats:
    """Counts completed translation calls, tokens and cost per provider.

    One instance is created by the caller and passed to whatever needs it.
    Lifetime totals may be seeded from an earlier snapshot; storing them
    between runs is the caller's business.
    """

    def __init__(self, lifetime: Optional[UsageSnapshot] = None) -> None:
        self._lock = threading.Lock()
        self._session = UsageTotals()
        self._session_by_provider: Dict[str, UsageTotals] = {}
        if lifetime is None:
            self._lifetime = UsageTotals()
            self._lifetime_by_provider: Dict[str, UsageTotals] = {}
        else:
            self._lifetime = lifetime.lifetime
            self._lifetime_by_provider = dict(lifetime.lifetime_by_provider)

    def record(self, *, tokens: int, cost: float, provider: str) -> None:
        """Count one completed translation call."""

        with self._lock:
            self._session = self._session.add(tokens, cost)
            self._lifetime = self._lifetime.add(tokens, cost)
            self._session_by_provider[provider] = self._session_by_provider.get(
                provider, UsageTotals()
            ).add(tokens, cost)
            self._lifetime_by_provider[provider] = self._lifetime_by_provider.get(
                provider, UsageTotals()
            ).add(tokens, cost)

    def snapshot(self) -> UsageSnapshot:
        with self._lock:
            return UsageSnapshot(
                session=self._session,
                lifetime=self._lifetime,
                session_by_provider=dict(self._session_by_provider),
                lifetime_by_provider=dict(self._lifetime_by_provider),
            )

    def reset(self) -> None:
        """Start a new session; lifetime totals are kept."""

        with self._lock:
            self._session = UsageTotals()
            self._session_by_provider = {}


def format_cost(cost: float, currency: str = "USD") -> str:
    if cost == 0:
        return "Free"
    return f"${cost:.6f} {currency}"


def format_count(value: int) -> str:
    if value >= 1_000_000:
        return f"{value / 1_000_000:.1f}M"
    if value >= 1_000:
        return f"{value / 1_000:.1f}K"
    return str(value)
