"""Package coordinate helpers: purl parsing, GAV labels and path-hop parsing."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Optional

from packageurl import PackageURL

from vulndiff.core.models import Component

UNKNOWN = "unknown"

_GAV_HOP = re.compile(r"^([^:]+):([^:]+):([^:]+)$")


@dataclass(frozen=True)
class Gav:
    group_id: str
    artifact_id: str
    version: str

    def __str__(self) -> str:
        return f"{self.group_id}:{self.artifact_id}:{self.version}"


def parse_purl(purl: Optional[str]) -> Optional[PackageURL]:
    if not purl:
        return None
    try:
        return PackageURL.from_string(purl)
    except ValueError:
        return None


def maven_coordinates(purl: Optional[str]) -> Optional[Gav]:
    """Return group/artifact/version for a ``pkg:maven/`` purl, else ``None``.

    The version may be empty when the purl carries none.
    """

    parsed = parse_purl(purl)
    if parsed is None or parsed.type != "maven" or not parsed.namespace:
        return None
    return Gav(parsed.namespace, parsed.name, parsed.version or "")


def component_label(component: Component) -> str:
    """Display label used for dependency-path hops."""

    version = component.version or ""
    gav = maven_coordinates(component.purl)
    if gav is not None:
        return f"{gav.group_id}:{gav.artifact_id}:{version}"
    if component.group and component.name:
        return f"{component.group}:{component.name}:{version}"
    return component.name or component.ref


def component_coordinates(component: Component) -> Gav:
    gav = maven_coordinates(component.purl)
    version = component.version or (gav.version if gav else "") or UNKNOWN
    if gav is not None:
        return Gav(gav.group_id, gav.artifact_id, version)
    if component.group and component.name:
        return Gav(component.group, component.name, version)
    return Gav(UNKNOWN, component.name or UNKNOWN, version)


def synthesize_coordinates(
    purl: Optional[str],
    name: Optional[str],
    version: Optional[str],
    group: Optional[str] = None,
) -> Gav:
    """Build coordinates for an artifact that is absent from the SBOM."""

    parsed = parse_purl(purl)
    if parsed is not None:
        return Gav(
            parsed.namespace or group or UNKNOWN,
            parsed.name or name or UNKNOWN,
            parsed.version or version or UNKNOWN,
        )
    return Gav(group or UNKNOWN, name or UNKNOWN, version or UNKNOWN)


def parse_hop(hop: object) -> Optional[Gav]:
    """Parse a path hop in ``group:artifact:version`` or maven purl form."""

    if not isinstance(hop, str) or not hop:
        return None
    if hop.lower().startswith("pkg:maven/"):
        gav = maven_coordinates(hop)
        return gav if gav is not None and gav.version else None
    match = _GAV_HOP.match(hop)
    if match:
        return Gav(*match.groups())
    return None
