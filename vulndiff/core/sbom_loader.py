"""SBOM loading helpers for CycloneDX and SPDX documents."""

from __future__ import annotations

import logging
import pathlib
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from vulndiff.core.models import Component
from vulndiff.core.validation import DocumentError, read_json

_LOG = logging.getLogger(__name__)

_SPDX_PARENT_FIRST = {"DEPENDS_ON", "CONTAINS", "HAS_PREREQUISITE"}
_SPDX_CHILD_FIRST = {"DEPENDENCY_OF", "CONTAINED_BY", "PREREQUISITE_FOR"}


@dataclass
class ParsedSbom:
    """Components plus ``parent ref -> [child ref]`` dependency edges."""

    format: str
    components: List[Component] = field(default_factory=list)
    dependencies: Dict[str, List[str]] = field(default_factory=dict)


def load_sbom(path: pathlib.Path) -> ParsedSbom:
    return parse_sbom(read_json(path), label=path.name)


def parse_sbom(data: Any, label: str = "sbom") -> ParsedSbom:
    fmt = detect_format(data, label)
    if fmt == "cyclonedx-json":
        parsed = _from_cyclonedx(data)
    else:
        parsed = _from_spdx(data)
    _LOG.debug(
        "Parsed %s %s: %d components, %d dependency entries",
        fmt,
        label,
        len(parsed.components),
        len(parsed.dependencies),
    )
    return parsed


def detect_format(data: Any, label: str = "sbom") -> str:
    if not isinstance(data, dict):
        raise DocumentError(label, "", "is not a JSON object")
    if "spdxVersion" in data:
        return "spdx-json"
    if str(data.get("bomFormat", "")).lower() == "cyclonedx":
        return "cyclonedx-json"
    raise DocumentError(label, "", "is not a CycloneDX or SPDX JSON document")


def _from_cyclonedx(data: Dict[str, Any]) -> ParsedSbom:
    parsed = ParsedSbom(format="cyclonedx-json")
    metadata_component = (data.get("metadata") or {}).get("component")
    raw_components = list(data.get("components") or [])
    if isinstance(metadata_component, dict):
        raw_components.insert(0, metadata_component)
    seen: set[str] = set()
    for raw in _walk_cyclonedx(raw_components):
        ref = _cyclonedx_ref(raw)
        if not ref or ref in seen:
            continue
        seen.add(ref)
        parsed.components.append(
            Component(
                ref=ref,
                purl=_optional_str(raw.get("purl")),
                name=str(raw.get("name") or "unknown"),
                version=_optional_str(raw.get("version")),
                group=_optional_str(raw.get("group")),
            )
        )

    for entry in data.get("dependencies") or []:
        if not isinstance(entry, dict):
            continue
        parent = _cyclonedx_ref(entry)
        if not parent:
            continue
        children = [str(child) for child in entry.get("dependsOn") or [] if child]
        if children:
            parsed.dependencies.setdefault(parent, []).extend(children)
    return parsed


def _walk_cyclonedx(components: List[Any]):
    for raw in components:
        if not isinstance(raw, dict):
            continue
        yield raw
        nested = raw.get("components")
        if isinstance(nested, list):
            yield from _walk_cyclonedx(nested)


def _cyclonedx_ref(raw: Dict[str, Any]) -> Optional[str]:
    ref = raw.get("bom-ref") or raw.get("bomRef") or raw.get("ref") or raw.get("purl")
    return str(ref) if ref else None


def _from_spdx(data: Dict[str, Any]) -> ParsedSbom:
    parsed = ParsedSbom(format="spdx-json")
    for raw in data.get("packages") or []:
        if not isinstance(raw, dict) or not raw.get("SPDXID"):
            continue
        purl = _spdx_purl(raw.get("externalRefs"))
        parsed.components.append(
            Component(
                ref=str(raw["SPDXID"]),
                purl=purl,
                name=str(raw.get("name") or "unknown"),
                version=_optional_str(raw.get("versionInfo")),
            )
        )

    known = {component.ref for component in parsed.components}
    for rel in data.get("relationships") or []:
        if not isinstance(rel, dict):
            continue
        kind = str(rel.get("relationshipType") or "").upper()
        left = rel.get("spdxElementId")
        right = rel.get("relatedSpdxElement")
        if not left or not right:
            continue
        if kind in _SPDX_PARENT_FIRST:
            parent, child = str(left), str(right)
        elif kind in _SPDX_CHILD_FIRST:
            parent, child = str(right), str(left)
        else:
            continue
        # the document node DESCRIBES packages; only package-to-package edges count
        if parent not in known or child not in known:
            continue
        parsed.dependencies.setdefault(parent, []).append(child)
    return parsed


def _spdx_purl(external_refs: object) -> Optional[str]:
    if isinstance(external_refs, list):
        for ref in external_refs:
            if isinstance(ref, dict) and ref.get("referenceType") == "purl" and ref.get("referenceLocator"):
                return str(ref["referenceLocator"])
    return None


def _optional_str(value: object) -> Optional[str]:
    return str(value) if value else None
