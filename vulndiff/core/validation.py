"""Input document validation."""

from __future__ import annotations

import json
import pathlib
from typing import Any, Iterable, Mapping


class DocumentError(ValueError):
    """A required input document is missing, unreadable or lacks a required field."""

    def __init__(self, document: str, path: str, reason: str = "missing path") -> None:
        self.document = document
        self.path = path
        self.reason = reason
        location = f"{document} {reason}"
        if path:
            location = f"{location}: {path}"
        super().__init__(location)


def lookup(data: Any, dotted: str) -> Any:
    """Resolve ``a.b.c`` in nested mappings; raises ``KeyError`` when absent."""

    current = data
    for key in dotted.split("."):
        if not isinstance(current, Mapping) or key not in current:
            raise KeyError(dotted)
        current = current[key]
    return current


def require_paths(data: Any, paths: Iterable[str], document: str) -> None:
    for dotted in paths:
        try:
            lookup(data, dotted)
        except KeyError:
            raise DocumentError(document, dotted) from None


def read_json(path: pathlib.Path, label: str | None = None) -> Any:
    label = label or path.name
    if not path.exists():
        raise DocumentError(label, str(path), "file not found")
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise DocumentError(label, str(path), f"is not valid JSON ({exc.msg})") from exc
