"""Data model for components, raw scanner matches, occurrences and diff items."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional, Tuple

from vulndiff.core.severity import DiffState, Severity

LabelPath = Tuple[str, ...]


@dataclass(frozen=True)
class Component:
    """Normalized view of a software component declared in an SBOM."""

    ref: str
    purl: Optional[str]
    name: str
    version: Optional[str]
    group: Optional[str] = None


@dataclass(frozen=True)
class CvssScore:
    score: float
    vector: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {"score": self.score, "vector": self.vector}

    @classmethod
    def from_dict(cls, data: Optional[Mapping[str, Any]]) -> Optional["CvssScore"]:
        if not isinstance(data, Mapping) or data.get("score") is None:
            return None
        try:
            score = float(data["score"])
        except (TypeError, ValueError):
            return None
        return cls(score=score, vector=data.get("vector"))


@dataclass(frozen=True)
class FixInfo:
    state: Optional[str]
    versions: Tuple[str, ...] = ()

    @property
    def has_fix(self) -> bool:
        return bool(self.versions)

    def to_dict(self) -> Dict[str, Any]:
        return {"state": self.state, "versions": list(self.versions)}

    @classmethod
    def from_dict(cls, data: Optional[Mapping[str, Any]]) -> Optional["FixInfo"]:
        if not isinstance(data, Mapping):
            return None
        versions = data.get("versions") or []
        if not isinstance(versions, (list, tuple)):
            versions = [versions]
        return cls(state=data.get("state"), versions=tuple(str(v) for v in versions))


@dataclass(frozen=True)
class ArtifactRef:
    """Affected-artifact reference as reported by a scanner."""

    name: Optional[str] = None
    version: Optional[str] = None
    purl: Optional[str] = None
    ref: Optional[str] = None
    group: Optional[str] = None


@dataclass(frozen=True)
class RawMatch:
    """A single scanner detection before normalization."""

    vulnerability_id: Optional[str]
    aliases: Tuple[str, ...]
    severity: Optional[str]
    cvss: Tuple[CvssScore, ...]
    fix: Optional[FixInfo]
    urls: Tuple[str, ...]
    artifact: ArtifactRef
    description: Optional[str] = None


@dataclass(frozen=True)
class PackageCoordinates:
    group_id: str
    artifact_id: str
    version: str
    purl: Optional[str] = None
    component_ref: Optional[str] = None

    @property
    def gav(self) -> str:
        return f"{self.group_id}:{self.artifact_id}:{self.version}"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "groupId": self.group_id,
            "artifactId": self.artifact_id,
            "version": self.version,
            "purl": self.purl,
            "component_ref": self.component_ref,
        }

    @classmethod
    def from_dict(cls, data: Optional[Mapping[str, Any]]) -> "PackageCoordinates":
        data = data or {}
        return cls(
            group_id=str(data.get("groupId") or "unknown"),
            artifact_id=str(data.get("artifactId") or "unknown"),
            version=str(data.get("version") or "unknown"),
            purl=data.get("purl"),
            component_ref=data.get("component_ref"),
        )


@dataclass(frozen=True)
class Occurrence:
    """Canonical, deduplicated vulnerability-on-package record for one revision."""

    id: str
    ids: Mapping[str, Any]
    severity: Severity
    cvss_max: Optional[CvssScore]
    fix: Optional[FixInfo]
    urls: Tuple[str, ...]
    package: PackageCoordinates
    paths: Tuple[LabelPath, ...]
    match_key: str
    description: Optional[str] = None
    # severity of the match that supplied cvss_max; drives the CVSS merge
    cvss_severity: Optional[Severity] = field(default=None, compare=False, repr=False)

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "id": self.id,
            "ids": dict(self.ids),
            "severity": self.severity.value,
            "cvss_max": self.cvss_max.to_dict() if self.cvss_max else None,
            "fix": self.fix.to_dict() if self.fix else None,
            "urls": list(self.urls),
            "package": self.package.to_dict(),
            "paths": [list(path) for path in self.paths],
            "match_key": self.match_key,
        }
        if self.description:
            payload["description"] = self.description
        return payload

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Occurrence":
        package = PackageCoordinates.from_dict(data.get("package"))
        occurrence_id = str(data.get("id") or "UNKNOWN")
        severity = Severity.parse(data.get("severity"))
        return cls(
            id=occurrence_id,
            ids=dict(data.get("ids") or {}),
            severity=severity,
            cvss_max=CvssScore.from_dict(data.get("cvss_max")),
            fix=FixInfo.from_dict(data.get("fix")),
            urls=tuple(str(url) for url in data.get("urls") or []),
            package=package,
            paths=tuple(tuple(str(hop) for hop in path) for path in data.get("paths") or [] if isinstance(path, list)),
            match_key=str(data.get("match_key") or make_match_key(occurrence_id, package)),
            description=data.get("description"),
            cvss_severity=severity,
        )


@dataclass(frozen=True)
class DiffItem:
    occurrence: Occurrence
    state: DiffState
    branches: str

    @property
    def match_key(self) -> str:
        return self.occurrence.match_key

    @property
    def severity(self) -> Severity:
        return self.occurrence.severity

    def to_dict(self) -> Dict[str, Any]:
        return {"state": self.state.value, "branches": self.branches, **self.occurrence.to_dict()}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "DiffItem":
        state = DiffState(str(data.get("state") or "").upper())
        return cls(
            occurrence=Occurrence.from_dict(data),
            state=state,
            branches=str(data.get("branches") or BRANCHES[state]),
        )


BRANCHES = {
    DiffState.NEW: "HEAD",
    DiffState.REMOVED: "BASE",
    DiffState.UNCHANGED: "BOTH",
}


def make_match_key(vulnerability_id: str, package: PackageCoordinates) -> str:
    return f"{vulnerability_id}::{package.gav}"


def presentation_key(occurrence: Occurrence) -> Tuple[int, str, str]:
    """Severity first (CRITICAL leading), then package coordinates, then id."""

    return (occurrence.severity.rank, occurrence.package.gav, occurrence.id)
