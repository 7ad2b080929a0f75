"""Read the per-revision SBOM and scan inputs from a dist directory."""

from __future__ import annotations

import logging
import pathlib
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from vulndiff.core import sbom_loader, vuln_loader
from vulndiff.core.models import RawMatch
from vulndiff.core.sbom_loader import ParsedSbom
from vulndiff.core.validation import DocumentError, read_json, require_paths

_LOG = logging.getLogger(__name__)

SIDES = ("base", "head")
META_REQUIRED_PATHS = ("inputs", "repo", "tools")


@dataclass
class InputLayout:
    meta: pathlib.Path
    git: Dict[str, pathlib.Path]
    sbom: Dict[str, pathlib.Path]
    scan: Dict[str, pathlib.Path]

    @classmethod
    def for_dist(cls, root: pathlib.Path) -> "InputLayout":
        return cls(
            meta=root / "meta.json",
            git={side: root / "git" / f"{side}.json" for side in SIDES},
            sbom={side: root / "sbom" / f"{side}.sbom.json" for side in SIDES},
            scan={side: root / "grype" / f"{side}.grype.json" for side in SIDES},
        )

    def with_overrides(
        self,
        sbom: Optional[Dict[str, Optional[pathlib.Path]]] = None,
        scan: Optional[Dict[str, Optional[pathlib.Path]]] = None,
    ) -> "InputLayout":
        merged_sbom = dict(self.sbom)
        merged_scan = dict(self.scan)
        merged_sbom.update({side: path for side, path in (sbom or {}).items() if path})
        merged_scan.update({side: path for side, path in (scan or {}).items() if path})
        return InputLayout(meta=self.meta, git=dict(self.git), sbom=merged_sbom, scan=merged_scan)


@dataclass
class RevisionInputs:
    side: str
    git: Dict[str, Any]
    sbom: ParsedSbom
    matches: List[RawMatch]


@dataclass
class PipelineInputs:
    meta: Dict[str, Any]
    base: RevisionInputs
    head: RevisionInputs


def load_inputs(layout: InputLayout) -> PipelineInputs:
    """Load meta.json and both revisions.

    A missing or malformed meta, SBOM or scan document raises
    ``DocumentError``; the per-revision git metadata is optional.
    """

    meta = read_json(layout.meta)
    require_paths(meta, META_REQUIRED_PATHS, layout.meta.name)
    revisions = {side: _load_revision(side, layout) for side in SIDES}
    return PipelineInputs(meta=meta, base=revisions["base"], head=revisions["head"])


def _load_revision(side: str, layout: InputLayout) -> RevisionInputs:
    _LOG.info("Reading %s inputs: sbom=%s scan=%s", side, layout.sbom[side], layout.scan[side])
    sbom = sbom_loader.load_sbom(layout.sbom[side])
    matches = vuln_loader.load_report(layout.scan[side])
    return RevisionInputs(side=side, git=_optional_object(layout.git[side]), sbom=sbom, matches=matches)


def _optional_object(path: pathlib.Path) -> Dict[str, Any]:
    if not path.exists():
        _LOG.info("%s not found; continuing without it", path)
        return {}
    data = read_json(path)
    if not isinstance(data, dict):
        raise DocumentError(path.name, str(path), "is not a JSON object")
    return data
