"""Severity and diff-state enumerations shared by every pipeline stage."""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, Mapping


class Severity(str, Enum):
    """Normalized vulnerability severity, most severe first."""

    CRITICAL = "CRITICAL"
    HIGH = "HIGH"
    MEDIUM = "MEDIUM"
    LOW = "LOW"
    UNKNOWN = "UNKNOWN"

    @property
    def rank(self) -> int:
        """Sort rank; 0 is the most severe."""

        return SEVERITY_ORDER.index(self)

    @property
    def weight(self) -> int:
        return RISK_WEIGHTS[self]

    @classmethod
    def parse(cls, value: Any) -> "Severity":
        if isinstance(value, Severity):
            return value
        if not value:
            return cls.UNKNOWN
        text = str(value).strip().upper()
        if text == "NEGLIGIBLE":
            return cls.LOW
        try:
            return cls(text)
        except ValueError:
            return cls.UNKNOWN


class DiffState(str, Enum):
    NEW = "NEW"
    REMOVED = "REMOVED"
    UNCHANGED = "UNCHANGED"


SEVERITY_ORDER = (
    Severity.CRITICAL,
    Severity.HIGH,
    Severity.MEDIUM,
    Severity.LOW,
    Severity.UNKNOWN,
)

STATE_ORDER = (DiffState.NEW, DiffState.REMOVED, DiffState.UNCHANGED)

RISK_WEIGHTS: Mapping[Severity, int] = {
    Severity.CRITICAL: 5,
    Severity.HIGH: 3,
    Severity.MEDIUM: 2,
    Severity.LOW: 1,
    Severity.UNKNOWN: 0,
}


def worst(first: Severity, second: Severity) -> Severity:
    """Return the more severe of two severities."""

    return first if first.rank <= second.rank else second


def at_or_above(severity: Severity, threshold: Severity) -> bool:
    return severity.rank <= threshold.rank


def empty_severity_counts() -> Dict[str, int]:
    return {level.value: 0 for level in SEVERITY_ORDER}


def empty_state_counts() -> Dict[str, int]:
    return {state.value: 0 for state in STATE_ORDER}


def empty_matrix() -> Dict[str, Dict[str, int]]:
    return {level.value: empty_state_counts() for level in SEVERITY_ORDER}
