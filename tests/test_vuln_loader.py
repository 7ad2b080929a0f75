import json
from pathlib import Path

import pytest

from vulndiff.core import vuln_loader
from vulndiff.core.validation import DocumentError
from vulndiff.runners import grype as grype_parser
from vulndiff.runners import trivy as trivy_parser


def _grype_report() -> dict:
    return {
        "matches": [
            {
                "vulnerability": {
                    "id": "GHSA-aaaa-bbbb-cccc",
                    "severity": "High",
                    "cvss": [
                        {"metrics": {"baseScore": 7.5}, "vector": "CVSS:3.1/AV:N"},
                        {"metrics": {"baseScore": "n/a"}},
                    ],
                    "fix": {"state": "Fixed", "versions": ["2.1"]},
                    "urls": ["https://example.com/a"],
                    "references": [{"url": "https://example.com/b"}, {"url": "https://example.com/a"}],
                    "description": "Remote code execution",
                },
                "relatedVulnerabilities": [{"id": "CVE-2024-0001"}],
                "artifact": {
                    "name": "lib",
                    "version": "2.0",
                    "purl": "pkg:maven/org.lib/lib@2.0",
                    "metadata": {"bomRef": "lib-ref"},
                },
            },
            "garbage",
        ]
    }


def test_grype_matches_are_parsed():
    matches = grype_parser.parse(_grype_report())

    assert len(matches) == 1
    match = matches[0]
    assert match.vulnerability_id == "GHSA-aaaa-bbbb-cccc"
    assert match.aliases == ("GHSA-aaaa-bbbb-cccc", "CVE-2024-0001")
    assert match.severity == "High"
    assert [entry.score for entry in match.cvss] == [7.5]
    assert match.cvss[0].vector == "CVSS:3.1/AV:N"
    assert match.fix.state == "fixed"
    assert match.fix.versions == ("2.1",)
    assert match.urls == ("https://example.com/a", "https://example.com/b")
    assert match.artifact.ref == "lib-ref"
    assert match.artifact.purl == "pkg:maven/org.lib/lib@2.0"
    assert match.description == "Remote code execution"


def test_trivy_results_are_parsed():
    report = {
        "Results": [
            {
                "Target": "app.jar",
                "Vulnerabilities": [
                    {
                        "VulnerabilityID": "CVE-2024-0002",
                        "VendorIDs": ["GHSA-dddd-eeee-ffff"],
                        "PkgName": "lib",
                        "InstalledVersion": "2.0",
                        "FixedVersion": "2.1, 3.0",
                        "Severity": "CRITICAL",
                        "PrimaryURL": "https://avd.example/CVE-2024-0002",
                        "References": ["https://example.com/ref"],
                        "CVSS": {"nvd": {"V3Score": 9.8, "V3Vector": "CVSS:3.1/AV:N/AC:L"}},
                        "PkgIdentifier": {"PURL": "pkg:maven/org.lib/lib@2.0", "BOMRef": "lib-ref"},
                    },
                    {"VulnerabilityID": "CVE-2024-0003", "PkgName": "other", "Severity": "LOW", "CVSS3Score": "3.1"},
                ],
            }
        ]
    }

    matches = trivy_parser.parse(report)

    first, second = matches
    assert first.aliases == ("CVE-2024-0002", "GHSA-dddd-eeee-ffff")
    assert first.fix.versions == ("2.1", "3.0")
    assert first.fix.has_fix
    assert first.cvss[0].score == 9.8
    assert first.urls == ("https://avd.example/CVE-2024-0002", "https://example.com/ref")
    assert first.artifact.ref == "lib-ref"
    assert second.fix.state == "not-fixed"
    assert not second.fix.has_fix
    assert second.cvss[0].score == 3.1


def test_load_report_detects_scanner(tmp_path: Path):
    path = tmp_path / "head.grype.json"
    path.write_text(json.dumps(_grype_report()))
    assert len(vuln_loader.load_report(path)) == 1

    with pytest.raises(DocumentError, match="is not a Grype or Trivy JSON report"):
        vuln_loader.parse_report({"runs": []}, label="head.grype.json")
