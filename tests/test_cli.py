import json
from pathlib import Path

import pytest

from vulndiff import cli


def _sbom(extra_components: list, extra_dependencies: list) -> dict:
    return {
        "bomFormat": "CycloneDX",
        "metadata": {"component": {"bom-ref": "root", "name": "root", "group": "comA", "version": "1.0"}},
        "components": [
            {"bom-ref": "moduleX", "name": "moduleX", "group": "comA", "version": "1.0"},
            *extra_components,
        ],
        "dependencies": [{"ref": "root", "dependsOn": ["moduleX"]}, *extra_dependencies],
    }


def _component(name: str, version: str) -> dict:
    return {
        "bom-ref": f"pkg:maven/libZ/{name}@{version}",
        "name": name,
        "group": "libZ",
        "version": version,
        "purl": f"pkg:maven/libZ/{name}@{version}",
    }


def _match(vuln_id: str, severity: str, name: str, version: str) -> dict:
    return {
        "vulnerability": {"id": vuln_id, "severity": severity, "fix": {"state": "not-fixed", "versions": []}},
        "artifact": {"name": name, "version": version, "purl": f"pkg:maven/libZ/{name}@{version}"},
    }


def _write(path: Path, payload: dict) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(payload))


def _dist(tmp_path: Path) -> Path:
    dist = tmp_path / "dist"
    _write(dist / "meta.json", {"inputs": {"base_ref": "main", "head_ref": "pr"}, "repo": {}, "tools": {}})
    _write(dist / "git" / "head.json", {"sha": "head-sha"})
    _write(
        dist / "sbom" / "base.sbom.json",
        _sbom(
            [_component("x", "1.0"), _component("y", "2.0")],
            [{"ref": "moduleX", "dependsOn": ["pkg:maven/libZ/x@1.0", "pkg:maven/libZ/y@2.0"]}],
        ),
    )
    _write(
        dist / "sbom" / "head.sbom.json",
        _sbom(
            [_component("x", "1.0"), _component("z", "3.0")],
            [{"ref": "moduleX", "dependsOn": ["pkg:maven/libZ/x@1.0", "pkg:maven/libZ/z@3.0"]}],
        ),
    )
    _write(
        dist / "grype" / "base.grype.json",
        {"matches": [_match("CVE-A", "High", "x", "1.0"), _match("CVE-B", "Low", "y", "2.0")]},
    )
    _write(
        dist / "grype" / "head.grype.json",
        {"matches": [_match("CVE-A", "High", "x", "1.0"), _match("CVE-C", "Critical", "z", "3.0")]},
    )
    return dist


def test_cli_generates_all_documents(tmp_path: Path, capsys: pytest.CaptureFixture[str]):
    dist = _dist(tmp_path)

    exit_code = cli.main(["--dist", str(dist), "--config", str(tmp_path / "none.yml")])

    assert exit_code == 0
    assert "NEW=1 REMOVED=1 UNCHANGED=1" in capsys.readouterr().out
    for name in ("base.json", "head.json", "diff.json", "aggregates.json"):
        assert (dist / name).exists()

    diff = json.loads((dist / "diff.json").read_text())
    assert diff["head"] == {"sha": "head-sha"}
    assert diff["base"] == {}
    matrix = diff["summary"]["by_severity_and_state"]
    assert matrix["CRITICAL"]["NEW"] == 1
    assert matrix["HIGH"]["UNCHANGED"] == 1
    assert matrix["LOW"]["REMOVED"] == 1
    new_item = diff["items"][0]
    assert new_item["match_key"] == "CVE-C::libZ:z:3.0"
    assert new_item["paths"] == [["comA:root:1.0", "comA:moduleX:1.0", "libZ:z:3.0"]]

    aggregates = json.loads((dist / "aggregates.json").read_text())
    risk = aggregates["aggregates"]["risk"]
    assert risk["components"] == {"new_weighted": 5, "removed_weighted": 1}
    assert set(aggregates["aggregates"]["by_module_severity_state"]) == {"moduleX"}

    head = json.loads((dist / "head.json").read_text())
    assert head["summary"]["total"] == 2
    assert head["sbom"]["format"] == "cyclonedx-json"


def test_cli_fail_on_new_findings(tmp_path: Path):
    dist = _dist(tmp_path)
    out_dir = tmp_path / "out"
    args = ["--dist", str(dist), "--out-dir", str(out_dir), "--config", str(tmp_path / "none.yml")]

    assert cli.main([*args, "--fail-on", "CRITICAL"]) == 1
    same_scan = ["--base-scan", str(dist / "grype" / "head.grype.json")]
    assert cli.main([*args, *same_scan, "--fail-on", "CRITICAL", "--min-severity", "HIGH"]) == 0
    assert (out_dir / "diff.json").exists()


def test_cli_missing_meta_is_fatal(tmp_path: Path, caplog: pytest.LogCaptureFixture):
    dist = _dist(tmp_path)
    (dist / "meta.json").unlink()

    assert cli.main(["--dist", str(dist), "--config", str(tmp_path / "none.yml")]) == 2
    assert "meta.json file not found" in caplog.text
    assert not (dist / "diff.json").exists()


def test_cli_aggregates_existing_diff(tmp_path: Path):
    dist = _dist(tmp_path)
    config_path = tmp_path / "none.yml"
    assert cli.main(["--dist", str(dist), "--config", str(config_path)]) == 0
    (dist / "aggregates.json").unlink()

    exit_code = cli.main(["--from-diff", str(dist / "diff.json"), "--config", str(config_path), "--top", "1"])

    assert exit_code == 0
    aggregates = json.loads((dist / "aggregates.json").read_text())
    assert len(aggregates["aggregates"]["top_components_head"]) == 1


def test_cli_rejects_incomplete_diff(tmp_path: Path):
    diff_path = tmp_path / "diff.json"
    diff_path.write_text(json.dumps({"schema_version": "2.0.0", "generated_at": "now", "items": []}))

    assert cli.main(["--from-diff", str(diff_path), "--config", str(tmp_path / "none.yml")]) == 2
    assert not (tmp_path / "aggregates.json").exists()


@pytest.mark.parametrize("flag", ["--limit-paths", "--max-paths", "--top"])
@pytest.mark.parametrize("value", ["0", "-2"])
def test_cli_rejects_non_positive_counts(flag: str, value: str):
    with pytest.raises(SystemExit) as excinfo:
        cli.build_parser().parse_args([flag, value])
    assert excinfo.value.code == 2


def test_cli_accepts_positive_counts():
    args = cli.build_parser().parse_args(["--limit-paths", "2", "--max-paths", "4", "--top", "3"])
    assert (args.limit_paths, args.max_paths, args.top) == (2, 4, 3)
