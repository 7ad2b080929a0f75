"""Derived views over a diff: module attribution, risk KPIs and fix rollups.

Nothing computed here is authoritative; every figure is recomputed from the
diff items (and their dependency paths) on demand.
"""

from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass
from typing import Any, Collection, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from vulndiff.core import coordinates
from vulndiff.core.differ import DiffResult, build_summary
from vulndiff.core.models import DiffItem, Occurrence
from vulndiff.core.severity import RISK_WEIGHTS, SEVERITY_ORDER, DiffState, Severity
from vulndiff.core.validation import DocumentError, require_paths

_LOG = logging.getLogger(__name__)

TAIL_SEPARATOR = " -> "
DEFAULT_TOP_COMPONENTS = 10

HEAD_STATES = frozenset({DiffState.NEW, DiffState.UNCHANGED})
BASE_STATES = frozenset({DiffState.REMOVED, DiffState.UNCHANGED})

DIFF_REQUIRED_PATHS = (
    "schema_version",
    "generated_at",
    "summary.totals.NEW",
    "summary.totals.REMOVED",
    "summary.totals.UNCHANGED",
    "summary.by_severity_and_state",
    "items",
)


@dataclass(frozen=True)
class ModuleAttribution:
    modules: Tuple[str, ...]
    module_paths: Mapping[str, Tuple[str, ...]]

    @property
    def is_multi_module(self) -> bool:
        return len(self.modules) > 1


def module_and_tail(path: Sequence[str]) -> Optional[Tuple[str, List[str]]]:
    """Attribute a single root-to-target path to its owning build module.

    The first hop's group id is the root group. The last later hop sharing
    that group names the module; the hops after it form the tail. Returns
    ``None`` when the first hop does not parse or no later hop matches.
    """

    if not path:
        return None
    first = coordinates.parse_hop(path[0])
    if first is None:
        return None
    module_index: Optional[int] = None
    module = ""
    for position in range(1, len(path)):
        hop = coordinates.parse_hop(path[position])
        if hop is not None and hop.group_id == first.group_id:
            module_index, module = position, hop.artifact_id
    if module_index is None:
        return None
    tail = []
    for raw in path[module_index + 1 :]:
        hop = coordinates.parse_hop(raw)
        tail.append(str(hop) if hop is not None else raw)
    return module, tail


def attribute(occurrence: Occurrence) -> ModuleAttribution:
    tails: Dict[str, set] = {}
    for path in occurrence.paths:
        result = module_and_tail(path)
        if result is None:
            continue
        module, tail = result
        tails.setdefault(module, set()).add(TAIL_SEPARATOR.join(tail))
    return ModuleAttribution(
        modules=tuple(sorted(tails)),
        module_paths={module: tuple(sorted(values)) for module, values in sorted(tails.items())},
    )


def by_module_severity_state(items: Iterable[DiffItem]) -> Dict[str, Dict[str, Any]]:
    grouped: Dict[str, List[DiffItem]] = {}
    for item in items:
        for module in attribute(item.occurrence).modules:
            grouped.setdefault(module, []).append(item)
    return {module: build_summary(grouped[module]) for module in sorted(grouped)}


def multi_module(items: Iterable[DiffItem]) -> Dict[str, Any]:
    entries = []
    for item in items:
        attribution = attribute(item.occurrence)
        if not attribution.is_multi_module:
            continue
        entries.append(
            {
                "id": item.occurrence.id,
                "match_key": item.match_key,
                "severity": item.severity.value,
                "state": item.state.value,
                "modules": list(attribution.modules),
                "module_paths": {module: list(tails) for module, tails in attribution.module_paths.items()},
            }
        )
    return {"total": len(entries), "items": entries}


def weighted_sum(counts: Mapping[str, int], weights: Mapping[Severity, int] = RISK_WEIGHTS) -> int:
    return sum(weights[level] * int(counts.get(level.value, 0)) for level in SEVERITY_ORDER)


def severity_counts(matrix: Mapping[str, Mapping[str, int]], states: Collection[DiffState]) -> Dict[str, int]:
    """Collapse a severity x state matrix to per-severity counts over *states*."""

    counts: Dict[str, int] = {}
    for level in SEVERITY_ORDER:
        row = matrix.get(level.value) or {}
        counts[level.value] = sum(int(row.get(state.value, 0)) for state in states)
    return counts


def risk_kpis(matrix: Mapping[str, Mapping[str, int]], weights: Mapping[Severity, int] = RISK_WEIGHTS) -> Dict[str, Any]:
    new_weighted = weighted_sum(severity_counts(matrix, [DiffState.NEW]), weights)
    removed_weighted = weighted_sum(severity_counts(matrix, [DiffState.REMOVED]), weights)
    return {
        "weights": {level.value: weights[level] for level in SEVERITY_ORDER},
        "components": {"new_weighted": new_weighted, "removed_weighted": removed_weighted},
        "kpis": {
            "net_risk": new_weighted - removed_weighted,
            "head_stock_risk": weighted_sum(severity_counts(matrix, HEAD_STATES), weights),
            "base_stock_risk": weighted_sum(severity_counts(matrix, BASE_STATES), weights),
        },
    }


def fix_rollup(items: Iterable[DiffItem], states: Collection[DiffState]) -> Dict[str, Any]:
    by_severity = {level.value: {"with_fix": 0, "without_fix": 0} for level in SEVERITY_ORDER}
    totals = {"with_fix": 0, "without_fix": 0}
    for item in items:
        if item.state not in states:
            continue
        fix = item.occurrence.fix
        bucket = "with_fix" if fix is not None and fix.has_fix else "without_fix"
        by_severity[item.severity.value][bucket] += 1
        totals[bucket] += 1
    return {"by_severity": by_severity, "totals": totals}


def top_components_head(items: Iterable[DiffItem], top_n: int = DEFAULT_TOP_COMPONENTS) -> List[Dict[str, Any]]:
    counts: Counter = Counter()
    refs: Dict[str, Optional[str]] = {}
    for item in items:
        if item.state not in HEAD_STATES:
            continue
        gav = item.occurrence.package.gav
        counts[gav] += 1
        refs.setdefault(gav, item.occurrence.package.component_ref)
    ranked = sorted(counts.items(), key=lambda entry: (-entry[1], entry[0]))
    return [{"gav": gav, "component_ref": refs[gav], "count": count} for gav, count in ranked[:top_n]]


def aggregate(
    diff: DiffResult,
    top_n: int = DEFAULT_TOP_COMPONENTS,
    weights: Mapping[Severity, int] = RISK_WEIGHTS,
) -> Dict[str, Any]:
    return _aggregate(diff.items, diff.summary["by_severity_and_state"], top_n, weights)


def aggregate_from_document(
    document: Mapping[str, Any],
    top_n: int = DEFAULT_TOP_COMPONENTS,
    weights: Mapping[Severity, int] = RISK_WEIGHTS,
) -> Dict[str, Any]:
    """Aggregate a previously written diff document."""

    require_paths(document, DIFF_REQUIRED_PATHS, "diff.json")
    raw_items = document["items"]
    if not isinstance(raw_items, list):
        raise DocumentError("diff.json", "items", "expects a list at")
    items = [_parse_item(raw, f"items[{position}]") for position, raw in enumerate(raw_items)]
    matrix = _checked_matrix(document["summary"]["by_severity_and_state"], "summary.by_severity_and_state")
    return _aggregate(items, matrix, top_n, weights)


def _parse_item(raw: Any, where: str) -> DiffItem:
    if not isinstance(raw, Mapping):
        raise DocumentError("diff.json", where, "expects an object at")
    for key in ("ids", "package", "cvss_max", "fix"):
        if raw.get(key) is not None and not isinstance(raw[key], Mapping):
            raise DocumentError("diff.json", f"{where}.{key}", "expects an object at")
    for key in ("urls", "paths"):
        if raw.get(key) is not None and not isinstance(raw[key], list):
            raise DocumentError("diff.json", f"{where}.{key}", "expects a list at")
    for position, path in enumerate(raw.get("paths") or []):
        if not isinstance(path, list):
            raise DocumentError("diff.json", f"{where}.paths[{position}]", "expects a list at")
    try:
        DiffState(str(raw.get("state") or "").upper())
    except ValueError:
        raise DocumentError("diff.json", f"{where}.state", "has an invalid diff state at") from None
    return DiffItem.from_dict(raw)


def _checked_matrix(matrix: Any, where: str) -> Mapping[str, Mapping[str, int]]:
    if not isinstance(matrix, Mapping):
        raise DocumentError("diff.json", where, "expects an object at")
    for level, row in matrix.items():
        if not isinstance(row, Mapping):
            raise DocumentError("diff.json", f"{where}.{level}", "expects an object at")
        for state, count in row.items():
            if isinstance(count, bool) or not isinstance(count, int):
                raise DocumentError("diff.json", f"{where}.{level}.{state}", "expects an integer at")
    return matrix


def _aggregate(
    items: Sequence[DiffItem],
    matrix: Mapping[str, Mapping[str, int]],
    top_n: int,
    weights: Mapping[Severity, int],
) -> Dict[str, Any]:
    head = severity_counts(matrix, HEAD_STATES)
    base = severity_counts(matrix, BASE_STATES)
    multi = multi_module(items)
    if multi["total"]:
        _LOG.info("%d findings span more than one module", multi["total"])
    return {
        "summary": {
            "by_severity_in_head": head,
            "by_severity_in_base": base,
            "severity_totals_overall": severity_counts(matrix, list(DiffState)),
        },
        "aggregates": {
            "head_vs_base_by_severity": {
                level.value: {"head": head[level.value], "base": base[level.value]} for level in SEVERITY_ORDER
            },
            "top_components_head": top_components_head(items, top_n),
            "fixes_head": fix_rollup(items, HEAD_STATES),
            "fixes_new": fix_rollup(items, [DiffState.NEW]),
            "risk": risk_kpis(matrix, weights),
            "by_module_severity_state": by_module_severity_state(items),
            "multi_module": multi,
        },
    }
