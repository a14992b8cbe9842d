"""Response assembly with a fixed top-level key set."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from sienna.core.aggregation import SubQueryResult
from sienna.core.fallback import Fallback


@dataclass
class Assembled:
    payload: dict
    fallback_sections: list[str] = field(default_factory=list)

    @property
    def degraded(self) -> bool:
        return bool(self.fallback_sections)

    @property
    def data_source(self) -> str:
        """Value for the X-Data-Source response header."""
        if not self.fallback_sections:
            return "live"
        return "fallback:" + ",".join(self.fallback_sections)


class ResponseAssembler:
    """Collects overview scalars, breakdowns and trends into one payload.

    The key set is declared up front and checked in ``build()``, so a real
    and a substituted response can never differ in shape. Overview totals
    and breakdown sums are not reconciled with each other.
    """

    def __init__(self, keys: tuple[str, ...] | list[str]):
        self.keys = tuple(keys)
        self._payload: dict[str, Any] = {}
        self._fallback: list[str] = []

    def put(self, key: str, value: Any) -> Any:
        if key not in self.keys:
            raise KeyError(f"{key!r} is not part of this response")
        self._payload[key] = value
        return value

    def section(self, key: str, result: SubQueryResult, fallback: Fallback) -> Any:
        """Store a sub-query's value under ``key``, substituting when needed."""
        value, substituted = fallback.apply(result)
        if substituted:
            self.mark_fallback(key)
        return self.put(key, value)

    def mark_fallback(self, name: str) -> None:
        if name not in self._fallback:
            self._fallback.append(name)

    def build(self) -> Assembled:
        missing = [k for k in self.keys if k not in self._payload]
        if missing:
            raise RuntimeError(f"response is missing keys: {', '.join(missing)}")
        return Assembled(
            payload={k: self._payload[k] for k in self.keys},
            fallback_sections=list(self._fallback),
        )
