"""Endpoint selection strategies for the proxy pool.

Each strategy picks one endpoint out of a non-empty candidate list. Strategies
may keep their own state (the round-robin cursor) but never mutate pool stats;
the pool manager calls them while holding its lock.
"""

from __future__ import annotations

import random
from collections.abc import Mapping, Sequence
from enum import Enum

from orchestrator.proxy.types import ProxyEndpoint, ProxyStats

# Success rate assumed for endpoints that have not served a request yet
_UNTRIED_SUCCESS_RATE = 0.5
_RECENCY_WEIGHT = 0.5


class RotationStrategy(str, Enum):
    """Supported rotation strategies."""

    RANDOM = "random"
    ROUND_ROBIN = "round_robin"
    SMART = "smart"


class SelectionStrategy:
    """Base class for selection strategies."""

    name: RotationStrategy

    def choose(
        self,
        candidates: Sequence[ProxyEndpoint],
        stats: Mapping[ProxyEndpoint, ProxyStats],
        now: float,
    ) -> ProxyEndpoint:
        raise NotImplementedError


class RandomStrategy(SelectionStrategy):
    """Uniform choice among the candidates."""

    name = RotationStrategy.RANDOM

    def __init__(self, rng: random.Random | None = None) -> None:
        self._rng = rng or random.Random()

    def choose(self, candidates, stats, now):
        return candidates[self._rng.randrange(len(candidates))]


class RoundRobinStrategy(SelectionStrategy):
    """Cyclic cursor over the candidate list.

    The cursor is an index, not an endpoint identity: when the candidate list
    changes between calls an endpoint may be skipped or repeated.
    """

    name = RotationStrategy.ROUND_ROBIN

    def __init__(self) -> None:
        self._index = 0

    def choose(self, candidates, stats, now):
        if self._index >= len(candidates):
            self._index = 0
        endpoint = candidates[self._index]
        self._index += 1
        return endpoint


class AdaptiveStrategy(SelectionStrategy):
    """Score-based exploit/explore selection.

    score = success_rate + 0.5 * min(1, seconds_since_last_use / recency_window)

    With probability ``exploit_probability`` the top scorer is returned,
    otherwise a uniform pick among the rest. A single candidate is always
    returned as-is.
    """

    name = RotationStrategy.SMART

    def __init__(
        self,
        rng: random.Random | None = None,
        exploit_probability: float = 0.8,
        recency_window_seconds: float = 300.0,
    ) -> None:
        self._rng = rng or random.Random()
        self._exploit_probability = exploit_probability
        self._recency_window = recency_window_seconds

    def score(self, endpoint_stats: ProxyStats | None, now: float) -> float:
        endpoint_stats = endpoint_stats or ProxyStats()
        rate = endpoint_stats.success_rate
        if rate is None:
            rate = _UNTRIED_SUCCESS_RATE
        idle = max(0.0, now - endpoint_stats.last_used_at)
        return rate + _RECENCY_WEIGHT * min(1.0, idle / self._recency_window)

    def choose(self, candidates, stats, now):
        # sorted() is stable, so equal scores keep pool insertion order
        ranked = sorted(
            candidates,
            key=lambda endpoint: self.score(stats.get(endpoint), now),
            reverse=True,
        )
        if len(ranked) == 1 or self._rng.random() < self._exploit_probability:
            return ranked[0]
        return ranked[1 + self._rng.randrange(len(ranked) - 1)]


def build_strategy(
    name: str | RotationStrategy,
    *,
    rng: random.Random | None = None,
    exploit_probability: float = 0.8,
    recency_window_seconds: float = 300.0,
) -> SelectionStrategy:
    """Instantiate the strategy registered under *name*."""
    strategy = RotationStrategy(name)
    if strategy is RotationStrategy.ROUND_ROBIN:
        return RoundRobinStrategy()
    if strategy is RotationStrategy.SMART:
        return AdaptiveStrategy(
            rng=rng,
            exploit_probability=exploit_probability,
            recency_window_seconds=recency_window_seconds,
        )
    return RandomStrategy(rng=rng)
