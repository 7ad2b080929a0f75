"""Parser for Grype JSON reports."""

from __future__ import annotations

from typing import Any, Dict, Iterable, List, Optional, Tuple

from vulndiff.core.models import ArtifactRef, CvssScore, FixInfo, RawMatch


def parse(report: Dict[str, Any]) -> List[RawMatch]:
    matches: List[RawMatch] = []
    for match in report.get("matches") or []:
        if not isinstance(match, dict):
            continue
        vuln = match.get("vulnerability") or {}
        matches.append(
            RawMatch(
                vulnerability_id=_raw_id(vuln),
                aliases=_aliases(vuln, match.get("relatedVulnerabilities")),
                severity=vuln.get("severity"),
                cvss=tuple(_cvss_entries(vuln.get("cvss") or [])),
                fix=_fix_info(vuln.get("fix") or vuln.get("fixes")),
                urls=tuple(_extract_references(vuln)),
                artifact=_artifact_ref(match.get("artifact") or match.get("package") or {}),
                description=vuln.get("description") if isinstance(vuln.get("description"), str) else None,
            )
        )
    return matches


def _raw_id(vuln: Dict[str, Any]) -> Optional[str]:
    for key in ("id", "dataSource", "name"):
        if vuln.get(key):
            return str(vuln[key])
    return None


def _aliases(vuln: Dict[str, Any], related: Optional[Iterable[Any]]) -> Tuple[str, ...]:
    candidates: List[Any] = [vuln.get("id")]
    candidates.extend(vuln.get("ids") or [])
    candidates.extend(related or [])
    candidates.extend(vuln.get("relatedVulnerabilities") or [])
    aliases: List[str] = []
    for entry in candidates:
        value = entry.get("id") if isinstance(entry, dict) else entry
        if value:
            aliases.append(str(value))
    return tuple(dict.fromkeys(aliases))


def _cvss_entries(cvss_list: Iterable[Dict[str, Any]]) -> List[CvssScore]:
    entries: List[CvssScore] = []
    for entry in cvss_list:
        if not isinstance(entry, dict):
            continue
        metrics = entry.get("metrics") or {}
        score = metrics.get("baseScore", entry.get("baseScore", entry.get("score")))
        try:
            value = float(score)
        except (TypeError, ValueError):
            continue
        vector = entry.get("vector") or metrics.get("vectorString") or entry.get("vectorString")
        entries.append(CvssScore(score=value, vector=str(vector) if vector else None))
    return entries


def _fix_info(fix: Any) -> Optional[FixInfo]:
    if not isinstance(fix, dict):
        return None
    versions = fix.get("versions") or []
    if not isinstance(versions, list):
        versions = [versions]
    state = fix.get("state")
    return FixInfo(state=str(state).lower() if state else None, versions=tuple(str(v) for v in versions if v))


def _extract_references(vuln: Dict[str, Any]) -> List[str]:
    references: List[str] = []
    urls = vuln.get("urls") or []
    if isinstance(urls, str):
        urls = [urls]
    for ref in urls:
        if isinstance(ref, str):
            references.append(ref)
    for ref in vuln.get("references") or []:
        url = ref.get("url") if isinstance(ref, dict) else None
        if url:
            references.append(url)
    return list(dict.fromkeys(references))


def _artifact_ref(artifact: Dict[str, Any]) -> ArtifactRef:
    metadata = artifact.get("metadata") or {}
    if not isinstance(metadata, dict):
        metadata = {}
    ref = metadata.get("bomRef") or artifact.get("bomRef") or artifact.get("componentRef")
    return ArtifactRef(
        name=artifact.get("name"),
        version=artifact.get("version"),
        purl=artifact.get("purl") or metadata.get("purl"),
        ref=str(ref) if ref else None,
        group=artifact.get("group"),
    )
