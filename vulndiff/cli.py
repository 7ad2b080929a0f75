"""Command-line interface for base/head vulnerability diffs."""

from __future__ import annotations

import argparse
import logging
import pathlib
from typing import Any, Iterable, List, Mapping

from vulndiff.core import aggregator, differ, dist_loader, normalizer, reporter
from vulndiff.core.config import DEFAULT_CONFIG_PATH, Settings, load_settings
from vulndiff.core.sbom_index import SbomIndex
from vulndiff.core.severity import SEVERITY_ORDER, DiffState, Severity, at_or_above
from vulndiff.core.validation import DocumentError

_LOG = logging.getLogger(__name__)

SEVERITY_LEVELS = [level.value for level in SEVERITY_ORDER]
EXIT_THRESHOLD = 1
EXIT_DOCUMENT_ERROR = 2


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Diff vulnerability scans of a base and a head revision")
    parser.add_argument("--dist", type=pathlib.Path, default=pathlib.Path("dist"), help="Directory holding meta.json, git/, sbom/ and grype/")
    parser.add_argument("--base-sbom", type=pathlib.Path, help="Override the base SBOM path")
    parser.add_argument("--head-sbom", type=pathlib.Path, help="Override the head SBOM path")
    parser.add_argument("--base-scan", type=pathlib.Path, help="Override the base scan report path")
    parser.add_argument("--head-scan", type=pathlib.Path, help="Override the head scan report path")
    parser.add_argument("--out-dir", type=pathlib.Path, help="Output directory (defaults to --dist)")
    parser.add_argument("--from-diff", type=pathlib.Path, help="Only aggregate an existing diff.json")
    parser.add_argument("--config", type=pathlib.Path, default=DEFAULT_CONFIG_PATH, help="Settings YAML file")
    parser.add_argument("--limit-paths", type=_positive_int, help="Maximum dependency paths collected per component")
    parser.add_argument("--max-paths", type=_positive_int, help="Maximum dependency paths kept per occurrence")
    parser.add_argument("--min-severity", choices=SEVERITY_LEVELS, help="Drop findings below this severity")
    parser.add_argument("--top", type=_positive_int, help="Number of head components to rank")
    parser.add_argument("--fail-on", choices=SEVERITY_LEVELS, help="Exit 1 when a NEW finding is at or above this severity")
    parser.add_argument("-v", "--verbose", action="count", default=0, help="Increase log verbosity (-v info, -vv debug)")
    return parser


def main(argv: List[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    _configure_logging(args.verbose)

    try:
        settings = load_settings(args.config).override(
            limit_paths=args.limit_paths,
            max_paths=args.max_paths,
            min_severity=Severity.parse(args.min_severity) if args.min_severity else None,
            top_components=args.top,
        )
        output_dir = args.out_dir or (args.from_diff.parent if args.from_diff else args.dist)
        if args.from_diff:
            items = _aggregate_only(args.from_diff, output_dir, settings)
        else:
            items = _run_pipeline(args, output_dir, settings)
    except DocumentError as exc:
        _LOG.error("%s", exc)
        return EXIT_DOCUMENT_ERROR

    if args.fail_on and _fails_threshold(items, args.fail_on):
        print(f"Failing due to NEW findings at or above {args.fail_on}")
        return EXIT_THRESHOLD
    return 0


def _run_pipeline(args: argparse.Namespace, output_dir: pathlib.Path, settings: Settings) -> List[Mapping[str, Any]]:
    layout = dist_loader.InputLayout.for_dist(args.dist).with_overrides(
        sbom={"base": args.base_sbom, "head": args.head_sbom},
        scan={"base": args.base_scan, "head": args.head_scan},
    )
    inputs = dist_loader.load_inputs(layout)

    documents = {}
    sides = {}
    for revision in (inputs.base, inputs.head):
        index = SbomIndex.from_sbom(revision.sbom)
        _LOG.info("Indexed %d %s components (%s)", len(index), revision.side, revision.sbom.format)
        side = normalizer.normalize_side(
            revision.matches,
            index,
            limit_paths=settings.limit_paths,
            max_paths=settings.max_paths,
            min_severity=settings.min_severity,
        )
        _LOG.info("%s: %d raw matches -> %d occurrences", revision.side, len(revision.matches), side.total)
        sides[revision.side] = side
        documents[revision.side] = reporter.build_side_document(side, revision.git, inputs.meta, revision.sbom.format)

    diff = differ.diff_occurrences(sides["base"].occurrences, sides["head"].occurrences)
    aggregates = aggregator.aggregate(diff, top_n=settings.top_components, weights=settings.risk_weights)
    diff_document = reporter.build_diff_document(diff, inputs.base.git, inputs.head.git, inputs.meta)

    report_paths = reporter.write_documents(
        output_dir,
        base=documents["base"],
        head=documents["head"],
        diff=diff_document,
        aggregates=reporter.build_aggregate_document(aggregates),
    )
    totals = diff.summary["totals"]
    print(
        "Generated diff at "
        f"JSON={report_paths.diff_path} "
        f"NEW={totals[DiffState.NEW.value]} "
        f"REMOVED={totals[DiffState.REMOVED.value]} "
        f"UNCHANGED={totals[DiffState.UNCHANGED.value]}"
    )
    print(f"AGGREGATES={report_paths.aggregates_path}")
    return diff_document["items"]


def _aggregate_only(diff_path: pathlib.Path, output_dir: pathlib.Path, settings: Settings) -> List[Mapping[str, Any]]:
    document = reporter.load_diff_document(diff_path)
    aggregates = aggregator.aggregate_from_document(
        document, top_n=settings.top_components, weights=settings.risk_weights
    )
    report_paths = reporter.write_documents(output_dir, aggregates=reporter.build_aggregate_document(aggregates))
    print(f"Generated aggregates at JSON={report_paths.aggregates_path}")
    return document["items"]


def _positive_int(value: str) -> int:
    number = int(value)
    if number <= 0:
        raise argparse.ArgumentTypeError(f"expected a positive integer, got {value}")
    return number


def _configure_logging(verbosity: int) -> None:
    level = logging.WARNING
    if verbosity == 1:
        level = logging.INFO
    elif verbosity > 1:
        level = logging.DEBUG
    logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s")


def _fails_threshold(items: Iterable[Mapping[str, Any]], threshold: str) -> bool:
    limit = Severity.parse(threshold)
    for item in items:
        if str(item.get("state", "")).upper() != DiffState.NEW.value:
            continue
        if at_or_above(Severity.parse(item.get("severity")), limit):
            return True
    return False


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
