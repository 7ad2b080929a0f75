"""Entry point for `python -m vulndiff`."""

from __future__ import annotations

from vulndiff import cli


def main(argv: list[str] | None = None) -> int:
    return cli.main(argv)


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
