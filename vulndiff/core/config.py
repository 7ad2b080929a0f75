"""Settings file handling."""

from __future__ import annotations

import logging
import pathlib
from dataclasses import dataclass, field, replace
from typing import Any, Dict, Mapping, Optional

import yaml

from vulndiff.core.aggregator import DEFAULT_TOP_COMPONENTS
from vulndiff.core.normalizer import DEFAULT_MAX_PATHS
from vulndiff.core.sbom_index import DEFAULT_PATH_LIMIT
from vulndiff.core.severity import RISK_WEIGHTS, Severity
from vulndiff.core.validation import DocumentError

_LOG = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = pathlib.Path("config/.vuln-diff.yml")


@dataclass(frozen=True)
class Settings:
    limit_paths: int = DEFAULT_PATH_LIMIT
    max_paths: int = DEFAULT_MAX_PATHS
    min_severity: Optional[Severity] = None
    top_components: int = DEFAULT_TOP_COMPONENTS
    risk_weights: Mapping[Severity, int] = field(default_factory=lambda: dict(RISK_WEIGHTS))

    def override(self, **values: Any) -> "Settings":
        """Return a copy with every non-``None`` value applied."""

        return replace(self, **{key: value for key, value in values.items() if value is not None})


def load_settings(path: Optional[pathlib.Path]) -> Settings:
    if path is None or not path.exists():
        return Settings()
    data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    if not isinstance(data, dict):
        raise DocumentError(path.name, str(path), "is not a YAML mapping")
    _LOG.debug("Loaded settings from %s", path)

    paths = _section(data, "paths")
    filters = _section(data, "filter")
    report = _section(data, "report")
    risk = _section(data, "risk")
    defaults = Settings()
    return Settings(
        limit_paths=_positive_int(paths.get("limit"), defaults.limit_paths),
        max_paths=_positive_int(paths.get("max_per_occurrence"), defaults.max_paths),
        min_severity=_parse_severity(filters.get("min_severity")),
        top_components=_positive_int(report.get("top_components"), defaults.top_components),
        risk_weights=_parse_weights(risk.get("weights")),
    )


def _section(data: Dict[str, Any], name: str) -> Dict[str, Any]:
    value = data.get(name) or {}
    return value if isinstance(value, dict) else {}


def _positive_int(value: object, default: int) -> int:
    if value is None:
        return default
    try:
        number = int(value)
    except (TypeError, ValueError):
        _LOG.warning("Ignoring non-integer setting %r", value)
        return default
    return number if number > 0 else default


def _parse_severity(value: object) -> Optional[Severity]:
    if not value:
        return None
    severity = Severity.parse(value)
    if severity is Severity.UNKNOWN and str(value).upper() != "UNKNOWN":
        _LOG.warning("Unrecognised min_severity %r; keeping all findings", value)
        return None
    return severity


def _parse_weights(value: object) -> Dict[Severity, int]:
    weights = dict(RISK_WEIGHTS)
    if not isinstance(value, dict):
        return weights
    for key, weight in value.items():
        level = Severity.parse(key)
        if level is Severity.UNKNOWN and str(key).upper() != "UNKNOWN":
            continue
        try:
            weights[level] = int(weight)
        except (TypeError, ValueError):
            _LOG.warning("Ignoring non-integer risk weight for %s: %r", key, weight)
    return weights
