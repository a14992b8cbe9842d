"""Fallback substitution for failed or empty sub-queries.

Two policies produce datasets shaped exactly like the real result:

  - literal: a fixed dataset returned verbatim. Used for genuine empty
    states ("nothing deployed yet": three named models, all zero).
  - synthetic: a fixed baseline per dimension plus bounded random jitter,
    clamped to the value's domain. Used when the store is unreachable and
    the dashboard should keep rendering plausible numbers.

Datasets are built by callables so each request gets a fresh copy; nothing
here is cached.
"""

from __future__ import annotations

import logging
import random
from dataclasses import dataclass
from typing import Any, Callable

from sienna.core.aggregation import SubQueryResult

logger = logging.getLogger(__name__)

LITERAL = "literal"
SYNTHETIC = "synthetic"


def jitter(
    base: float,
    spread: float,
    rng: random.Random | None = None,
    lo: float | None = None,
    hi: float | None = None,
) -> float:
    """base +/- uniform(spread), clamped to [lo, hi] when given."""
    value = base + (rng or random).uniform(-spread, spread)
    if lo is not None:
        value = max(lo, value)
    if hi is not None:
        value = min(hi, value)
    return value


def jitter_pct(base: float, spread: float, rng: random.Random | None = None) -> float:
    """A percentage with jitter, kept inside [0, 100]."""
    return jitter(base, spread, rng, lo=0.0, hi=100.0)


def jitter_latency(base_ms: float, spread_ms: float, rng: random.Random | None = None) -> float:
    """A latency with jitter, kept strictly positive."""
    return jitter(base_ms, spread_ms, rng, lo=1.0)


def scale(value: float, lo: float, hi: float, rng: random.Random | None = None) -> float:
    """value multiplied by a random factor in [lo, hi]."""
    return value * (rng or random).uniform(lo, hi)


def _is_empty(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, (list, tuple, dict)):
        return len(value) == 0
    return False


@dataclass
class Fallback:
    """Replacement datasets for one sub-query.

    ``on_failure`` runs when the sub-query raised. ``on_empty`` runs when it
    succeeded but ``is_empty`` says there is nothing to show; without it an
    empty result is passed through unchanged.
    """

    on_failure: Callable[[], Any]
    on_empty: Callable[[], Any] | None = None
    is_empty: Callable[[Any], bool] = _is_empty
    failure_policy: str = SYNTHETIC

    def apply(self, result: SubQueryResult) -> tuple[Any, bool]:
        """Return (value, substituted_for_failure)."""
        if not result.ok:
            logger.info(
                "Substituting %s data for %s after failure", self.failure_policy, result.name,
            )
            return self.on_failure(), True
        if self.on_empty is not None and self.is_empty(result.value):
            return self.on_empty(), False
        return result.value, False
