from pathlib import Path

import pytest

from vulndiff.core import config
from vulndiff.core.severity import RISK_WEIGHTS, Severity
from vulndiff.core.validation import DocumentError


def test_missing_file_yields_defaults(tmp_path: Path):
    settings = config.load_settings(tmp_path / "absent.yml")
    assert settings == config.Settings()
    assert settings.limit_paths == 5
    assert settings.max_paths == 5
    assert settings.min_severity is None
    assert dict(settings.risk_weights) == dict(RISK_WEIGHTS)


def test_yaml_sections_are_read(tmp_path: Path):
    path = tmp_path / ".vuln-diff.yml"
    path.write_text(
        """
paths:
  limit: 3
  max_per_occurrence: 2
filter:
  min_severity: medium
report:
  top_components: 4
risk:
  weights:
    CRITICAL: 10
    bogus: 99
"""
    )
    settings = config.load_settings(path)
    assert settings.limit_paths == 3
    assert settings.max_paths == 2
    assert settings.min_severity is Severity.MEDIUM
    assert settings.top_components == 4
    assert settings.risk_weights[Severity.CRITICAL] == 10
    assert settings.risk_weights[Severity.HIGH] == 3
    assert len(settings.risk_weights) == len(RISK_WEIGHTS)


def test_invalid_values_fall_back(tmp_path: Path):
    path = tmp_path / "settings.yml"
    path.write_text("paths:\n  limit: -1\n  max_per_occurrence: many\nfilter:\n  min_severity: severe\n")
    settings = config.load_settings(path)
    assert settings.limit_paths == 5
    assert settings.max_paths == 5
    assert settings.min_severity is None


def test_override_ignores_none():
    settings = config.Settings().override(limit_paths=2, max_paths=None)
    assert settings.limit_paths == 2
    assert settings.max_paths == 5


def test_non_mapping_file_is_rejected(tmp_path: Path):
    path = tmp_path / "settings.yml"
    path.write_text("- just\n- a list\n")
    with pytest.raises(DocumentError, match="is not a YAML mapping"):
        config.load_settings(path)
