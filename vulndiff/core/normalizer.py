"""Normalize one revision's raw scanner matches into canonical occurrences."""

from __future__ import annotations

import functools
import logging
from dataclasses import dataclass, replace
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from vulndiff.core import coordinates
from vulndiff.core.models import (
    ArtifactRef,
    CvssScore,
    LabelPath,
    Occurrence,
    PackageCoordinates,
    RawMatch,
    make_match_key,
    presentation_key,
)
from vulndiff.core.sbom_index import DEFAULT_PATH_LIMIT, SbomIndex
from vulndiff.core.severity import Severity, at_or_above, empty_severity_counts, worst

_LOG = logging.getLogger(__name__)

DEFAULT_MAX_PATHS = 5


@dataclass
class SideResult:
    """Normalized occurrences for one revision plus their severity counts."""

    occurrences: List[Occurrence]
    by_severity: Dict[str, int]

    @property
    def total(self) -> int:
        return len(self.occurrences)


def normalize_side(
    matches: Iterable[RawMatch],
    index: SbomIndex,
    limit_paths: int = DEFAULT_PATH_LIMIT,
    max_paths: int = DEFAULT_MAX_PATHS,
    min_severity: Optional[Severity] = None,
) -> SideResult:
    """Convert raw matches into at most one occurrence per ``match_key``."""

    candidates = (
        to_occurrence(match, index, limit_paths=limit_paths, max_paths=max_paths)
        for match in matches
        if min_severity is None or at_or_above(Severity.parse(match.severity), min_severity)
    )
    accumulate = functools.partial(_accumulate, max_paths=max_paths)
    merged: Dict[str, Occurrence] = functools.reduce(accumulate, candidates, {})
    occurrences = sorted(merged.values(), key=presentation_key)
    return SideResult(occurrences=occurrences, by_severity=count_by_severity(occurrences))


def count_by_severity(occurrences: Iterable[Occurrence]) -> Dict[str, int]:
    counts = empty_severity_counts()
    for occurrence in occurrences:
        counts[occurrence.severity.value] += 1
    return counts


def primary_id(match: RawMatch) -> Tuple[str, Optional[str], Optional[str]]:
    """Return ``(id, ghsa, cve)``: GHSA preferred, then CVE, then the scanner id."""

    ghsa = next((alias for alias in match.aliases if alias.upper().startswith("GHSA-")), None)
    cve = next((alias for alias in match.aliases if alias.upper().startswith("CVE-")), None)
    return ghsa or cve or match.vulnerability_id or "UNKNOWN", ghsa, cve


def resolve_package(artifact: ArtifactRef, index: SbomIndex) -> Tuple[PackageCoordinates, Optional[str]]:
    """Resolve coordinates through the SBOM, falling back to the scanner's fields.

    Returns the coordinates and the component ref to compute paths for.
    """

    component, resolved_ref = index.resolve(purl=artifact.purl, ref=artifact.ref)
    if component is not None:
        gav = index.coordinates(component)
        purl = component.purl or artifact.purl
    else:
        _LOG.debug(
            "Component not in SBOM (purl=%s ref=%s); using scanner coordinates",
            artifact.purl,
            artifact.ref,
        )
        gav = coordinates.synthesize_coordinates(artifact.purl, artifact.name, artifact.version, artifact.group)
        purl = artifact.purl
    target_ref = resolved_ref or artifact.ref
    package = PackageCoordinates(
        group_id=gav.group_id,
        artifact_id=gav.artifact_id,
        version=gav.version,
        purl=purl,
        component_ref=target_ref or purl,
    )
    return package, target_ref


def to_occurrence(
    match: RawMatch,
    index: SbomIndex,
    limit_paths: int = DEFAULT_PATH_LIMIT,
    max_paths: int = DEFAULT_MAX_PATHS,
) -> Occurrence:
    identifier, ghsa, cve = primary_id(match)
    severity = Severity.parse(match.severity)
    package, target_ref = resolve_package(match.artifact, index)
    paths = index.paths_to_target(target_ref, limit_paths) if target_ref else []
    return Occurrence(
        id=identifier,
        ids={"ghsa": ghsa, "cve": cve, "aliases": list(match.aliases)},
        severity=severity,
        cvss_max=max(match.cvss, key=lambda entry: entry.score, default=None),
        fix=match.fix,
        urls=tuple(sorted(set(match.urls))),
        package=package,
        paths=_bounded([tuple(path) for path in paths], max_paths),
        match_key=make_match_key(identifier, package),
        description=match.description,
        cvss_severity=severity,
    )


def merge(first: Occurrence, second: Occurrence, max_paths: int = DEFAULT_MAX_PATHS) -> Occurrence:
    """Merge two occurrences sharing a ``match_key``.

    Severity takes the worse value, CVSS follows the more severe contributing
    match (then the higher score), URLs and paths are unioned. Other fields
    keep *first*'s values.
    """

    cvss, cvss_severity = _pick_cvss(first, second)
    return replace(
        first,
        severity=worst(first.severity, second.severity),
        cvss_max=cvss,
        cvss_severity=cvss_severity,
        urls=tuple(sorted(set(first.urls) | set(second.urls))),
        paths=_bounded(set(first.paths) | set(second.paths), max_paths),
    )


def _accumulate(acc: Dict[str, Occurrence], occurrence: Occurrence, max_paths: int) -> Dict[str, Occurrence]:
    previous = acc.get(occurrence.match_key)
    acc[occurrence.match_key] = occurrence if previous is None else merge(previous, occurrence, max_paths)
    return acc


def _pick_cvss(first: Occurrence, second: Occurrence) -> Tuple[Optional[CvssScore], Optional[Severity]]:
    candidates = [
        (occurrence.cvss_max, occurrence.cvss_severity or occurrence.severity)
        for occurrence in (first, second)
        if occurrence.cvss_max is not None
    ]
    if not candidates:
        return None, None
    return max(candidates, key=lambda item: (-item[1].rank, item[0].score, item[0].vector or ""))


def _bounded(paths: Iterable[LabelPath], limit: int) -> Tuple[LabelPath, ...]:
    unique: Sequence[LabelPath] = sorted(set(paths))
    return tuple(unique[: max(limit, 0)])
