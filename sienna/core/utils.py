"""Shared utilities for Sienna core modules. Errors and numeric helpers."""

from __future__ import annotations

import math
from datetime import date, datetime
from decimal import Decimal


class ValidationError(Exception):
    """Raised when request input fails validation."""


class NotFoundError(Exception):
    """Raised when the target row of a read or write does not exist."""


class ConflictError(Exception):
    """Raised when a write would violate a uniqueness rule."""


class IntegrationError(Exception):
    """Raised when an external collaborator (storage, identity, LLM) fails."""

    def __init__(self, message: str, status: int | None = None, body=None):
        super().__init__(message)
        self.status = status
        self.body = body


def to_number(value, default: float = 0.0) -> float:
    """Coerce a driver value (Decimal, str, None) to float. NaN/None -> default."""
    if value is None:
        return default
    if isinstance(value, Decimal):
        value = float(value)
    try:
        value = float(value)
    except (TypeError, ValueError):
        return default
    if math.isnan(value) or math.isinf(value):
        return default
    return value


def to_int(value, default: int = 0) -> int:
    return int(to_number(value, default))


def safe_rate(count, total, digits: int | None = None) -> float:
    """(count / total) * 100, 0 when total is 0, clamped to [0, 100]."""
    total = to_number(total)
    if total <= 0:
        return 0.0
    rate = min(100.0, max(0.0, to_number(count) / total * 100))
    return round(rate, digits) if digits is not None else rate


def safe_avg(values) -> float:
    """Arithmetic mean; 0 for an empty sequence."""
    values = [to_number(v) for v in values]
    return sum(values) / len(values) if values else 0.0


def pct_change(current, previous) -> float:
    """Period-over-period growth percent; 100 from zero to non-zero, else 0."""
    current, previous = to_number(current), to_number(previous)
    if previous > 0:
        return (current - previous) / previous * 100
    return 100.0 if current > 0 else 0.0


def round_half_up(value: float) -> int:
    """Round .5 away from zero for positive counts, like a spreadsheet would."""
    return int(math.floor(to_number(value) + 0.5))


def iso(value):
    """ISO-format dates and datetimes; pass anything else through."""
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return value
