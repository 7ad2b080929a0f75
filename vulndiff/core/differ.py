"""Classify occurrences of two revisions as NEW, REMOVED or UNCHANGED."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Iterable, List

from vulndiff.core.models import BRANCHES, DiffItem, Occurrence, presentation_key
from vulndiff.core.severity import DiffState, empty_matrix, empty_state_counts


@dataclass
class DiffResult:
    items: List[DiffItem]
    summary: Dict[str, Any]


def diff_occurrences(base: Iterable[Occurrence], head: Iterable[Occurrence]) -> DiffResult:
    """Partition the union of base and head ``match_key``s.

    Keys on both sides are UNCHANGED and carry the head occurrence; base-only
    keys are REMOVED, head-only keys are NEW.
    """

    base_by_key = _by_key(base)
    head_by_key = _by_key(head)

    items: List[DiffItem] = []
    for key, occurrence in base_by_key.items():
        if key in head_by_key:
            items.append(_item(head_by_key[key], DiffState.UNCHANGED))
        else:
            items.append(_item(occurrence, DiffState.REMOVED))
    for key, occurrence in head_by_key.items():
        if key not in base_by_key:
            items.append(_item(occurrence, DiffState.NEW))

    ordered = sort_items(items)
    return DiffResult(items=ordered, summary=build_summary(ordered))


def build_summary(items: Iterable[DiffItem]) -> Dict[str, Any]:
    totals = empty_state_counts()
    matrix = empty_matrix()
    for item in items:
        totals[item.state.value] += 1
        matrix[item.severity.value][item.state.value] += 1
    return {"totals": totals, "by_severity_and_state": matrix}


def sort_items(items: Iterable[DiffItem]) -> List[DiffItem]:
    return sorted(items, key=lambda item: presentation_key(item.occurrence))


def _by_key(occurrences: Iterable[Occurrence]) -> Dict[str, Occurrence]:
    return {occurrence.match_key: occurrence for occurrence in occurrences}


def _item(occurrence: Occurrence, state: DiffState) -> DiffItem:
    return DiffItem(occurrence=occurrence, state=state, branches=BRANCHES[state])
