"""JSON document building and writing."""

from __future__ import annotations

import json
import logging
import pathlib
from dataclasses import dataclass
from typing import Any, Dict, Mapping

import datetime as dt

from vulndiff.core.differ import DiffResult
from vulndiff.core.normalizer import SideResult
from vulndiff.core.validation import DocumentError, read_json

_LOG = logging.getLogger(__name__)

SCHEMA_VERSION = "2.0.0"


@dataclass
class ReportPaths:
    base_path: pathlib.Path | None
    head_path: pathlib.Path | None
    diff_path: pathlib.Path | None
    aggregates_path: pathlib.Path | None


def _envelope(meta: Mapping[str, Any]) -> Dict[str, Any]:
    return {
        "schema_version": SCHEMA_VERSION,
        "generated_at": dt.datetime.now(dt.UTC).isoformat(),
        "inputs": meta.get("inputs") or {},
        "repo": meta.get("repo") or {},
        "tools": meta.get("tools") or {},
    }


def build_side_document(
    side: SideResult,
    git: Mapping[str, Any],
    meta: Mapping[str, Any],
    sbom_format: str,
) -> Dict[str, Any]:
    document = _envelope(meta)
    document.update(
        {
            "git": dict(git),
            "sbom": {"format": sbom_format},
            "summary": {"total": side.total, "by_severity": dict(side.by_severity)},
            "vulnerabilities": [occurrence.to_dict() for occurrence in side.occurrences],
        }
    )
    return document


def build_diff_document(
    diff: DiffResult,
    base_git: Mapping[str, Any],
    head_git: Mapping[str, Any],
    meta: Mapping[str, Any],
) -> Dict[str, Any]:
    document = _envelope(meta)
    document.update(
        {
            "base": dict(base_git),
            "head": dict(head_git),
            "summary": diff.summary,
            "items": [item.to_dict() for item in diff.items],
        }
    )
    return document


def build_aggregate_document(aggregates: Mapping[str, Any]) -> Dict[str, Any]:
    return {
        "schema_version": SCHEMA_VERSION,
        "generated_at": dt.datetime.now(dt.UTC).isoformat(),
        **aggregates,
    }


def write_document(document: Mapping[str, Any], path: pathlib.Path) -> pathlib.Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(document, indent=2, sort_keys=True))
    _LOG.info("Wrote %s", path)
    return path


def write_documents(
    output_dir: pathlib.Path,
    base: Mapping[str, Any] | None = None,
    head: Mapping[str, Any] | None = None,
    diff: Mapping[str, Any] | None = None,
    aggregates: Mapping[str, Any] | None = None,
) -> ReportPaths:
    """Write whichever documents are given under *output_dir*."""

    output_dir.mkdir(parents=True, exist_ok=True)
    return ReportPaths(
        base_path=write_document(base, output_dir / "base.json") if base is not None else None,
        head_path=write_document(head, output_dir / "head.json") if head is not None else None,
        diff_path=write_document(diff, output_dir / "diff.json") if diff is not None else None,
        aggregates_path=(
            write_document(aggregates, output_dir / "aggregates.json") if aggregates is not None else None
        ),
    )


def load_diff_document(path: pathlib.Path) -> Dict[str, Any]:
    document = read_json(path, label="diff.json")
    if not isinstance(document, dict):
        raise DocumentError("diff.json", str(path), "is not a JSON object")
    return document
