"""JSON-document merging and comparison helpers."""

from __future__ import annotations

import copy
import json
from itertools import chain, repeat
from typing import Any


def _roundtrip(value: Any) -> Any:
    """Pass a value through JSON; raises TypeError for unserialisable data."""
    return json.loads(json.dumps(value))


def _merge(target: Any, source: Any) -> Any:
    if isinstance(source, dict):
        base = target if isinstance(target, dict) else {}
        merged = copy.deepcopy(base)
        for key, value in source.items():
            if value is None:
                continue
            merged[key] = _merge(base.get(key), value)
        return merged
    if isinstance(source, list):
        base = target if isinstance(target, list) else []
        return [
            _merge(old, new) for old, new in zip(chain(base, repeat(None)), source)
        ]
    return copy.deepcopy(source)


def json_copy(target: Any, source: Any) -> Any:
    """Return ``target`` with ``source`` decoded over it as JSON.

    Keys set to None in ``source`` are treated as absent. Objects are merged
    key by key, arrays element by element (the result takes the length of
    the source array), and any other value replaces the one in ``target``.
    ``target`` itself is left untouched. Raises TypeError if either value is
    not JSON-serialisable.
    """
    return _merge(_roundtrip(target), _roundtrip(source))


def _normalize(value: Any) -> Any:
    """Collapse None, empty strings, lists and objects to None."""
    if isinstance(value, dict):
        items = {k: n for k, v in value.items() if (n := _normalize(v)) is not None}
        return items or None
    if isinstance(value, list):
        return [_normalize(item) for item in value] or None
    if isinstance(value, str) and not value:
        return None
    return value


def _diff(left: Any, right: Any, path: str, out: list[str]) -> None:
    if isinstance(left, dict) and isinstance(right, dict):
        for key in sorted(left.keys() | right.keys()):
            _diff(left.get(key), right.get(key), f"{path}.{key}" if path else key, out)
    elif isinstance(left, list) and isinstance(right, list):
        if len(left) != len(right):
            out.append(f"{path or '<root>'}: length {len(left)} != {len(right)}")
            return
        for index, (a, b) in enumerate(zip(left, right)):
            _diff(a, b, f"{path}[{index}]", out)
    elif type(left) is not type(right) or left != right:
        out.append(f"{path or '<root>'}: {left!r} != {right!r}")


def diff_equate_empty(left: Any, right: Any) -> list[str]:
    """List the differences between two JSON documents.

    Missing keys, None and empty strings, arrays and objects all count as
    the same empty value. An empty list means the documents are equal.
    """
    out: list[str] = []
    _diff(_normalize(left), _normalize(right), "", out)
    return out