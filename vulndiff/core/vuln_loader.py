"""Load vulnerability scan reports into raw matches."""

from __future__ import annotations

import logging
import pathlib
from typing import Any, List

from vulndiff.core.models import RawMatch
from vulndiff.core.validation import DocumentError, read_json
from vulndiff.runners import grype as grype_parser
from vulndiff.runners import trivy as trivy_parser

_LOG = logging.getLogger(__name__)


def load_report(path: pathlib.Path) -> List[RawMatch]:
    return parse_report(read_json(path), label=path.name)


def parse_report(report: Any, label: str = "scan") -> List[RawMatch]:
    if not isinstance(report, dict):
        raise DocumentError(label, "", "is not a JSON object")
    if "matches" in report:
        matches = grype_parser.parse(report)
    elif "Results" in report:
        matches = trivy_parser.parse(report)
    else:
        raise DocumentError(label, "", "is not a Grype or Trivy JSON report")
    _LOG.debug("Parsed %d raw matches from %s", len(matches), label)
    return matches
