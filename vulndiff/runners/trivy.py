"""Parser helpers for Trivy JSON reports."""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from vulndiff.core.models import ArtifactRef, CvssScore, FixInfo, RawMatch


def parse(report: Dict[str, Any]) -> List[RawMatch]:
    results: List[RawMatch] = []
    for result in report.get("Results", []) or []:
        if not isinstance(result, dict):
            continue
        for vuln in result.get("Vulnerabilities", []) or []:
            if isinstance(vuln, dict):
                results.append(_normalise_vulnerability(result, vuln))
    return results


def _normalise_vulnerability(result: Dict[str, Any], vuln: Dict[str, Any]) -> RawMatch:
    identifier = vuln.get("VulnerabilityID")
    aliases = [str(identifier)] if identifier else []
    aliases.extend(str(alias) for alias in vuln.get("VendorIDs") or [] if alias)
    references = vuln.get("References") or []
    if isinstance(references, dict):
        references = list(references.values())
    primary_url = vuln.get("PrimaryURL")
    urls = ([primary_url] if primary_url else []) + [str(ref) for ref in references if ref]
    fixed = vuln.get("FixedVersion")
    identifier_block = vuln.get("PkgIdentifier") or {}
    return RawMatch(
        vulnerability_id=str(identifier) if identifier else None,
        aliases=tuple(dict.fromkeys(aliases)),
        severity=vuln.get("Severity"),
        cvss=tuple(_pick_cvss(vuln)),
        fix=FixInfo(
            state="fixed" if fixed else str(vuln.get("Status") or "not-fixed"),
            versions=tuple(part.strip() for part in str(fixed).split(",") if part.strip()) if fixed else (),
        ),
        urls=tuple(dict.fromkeys(urls)),
        artifact=ArtifactRef(
            name=vuln.get("PkgName") or result.get("Target"),
            version=vuln.get("InstalledVersion") or result.get("InstalledVersion"),
            purl=identifier_block.get("PURL") or vuln.get("Purl") or result.get("PURL"),
            ref=identifier_block.get("BOMRef"),
        ),
        description=vuln.get("Description") if isinstance(vuln.get("Description"), str) else None,
    )


def _pick_cvss(vuln: Dict[str, Any]) -> List[CvssScore]:
    entries: List[CvssScore] = []
    cvss = vuln.get("CVSS")
    if isinstance(cvss, dict):
        for value in cvss.values():
            if not isinstance(value, dict):
                continue
            score = _as_float(value.get("V3Score")) or _as_float(value.get("Score")) or _as_float(value.get("V2Score"))
            if score is None:
                continue
            vector = value.get("V3Vector") or value.get("V2Vector")
            entries.append(CvssScore(score=score, vector=vector))
    if not entries:
        score = _as_float(vuln.get("CVSS3Score")) or _as_float(vuln.get("CVSS2Score"))
        if score is not None:
            entries.append(CvssScore(score=score))
    return entries


def _as_float(value: Any) -> Optional[float]:
    if value is None:
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None
