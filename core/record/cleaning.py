"""Manual-input marker cleaning applied to a record before substitution.

The form editor pre-fills fields it cannot derive with a marker such as
``[MANUELL: Lage der Einheit]``. Such values must never reach the output
document: marked (or empty) fields listed in the profile defaults receive
their first usable default, every other marked field becomes empty.
"""

from __future__ import annotations

from typing import Any

from core.record.models import GutachtenData
from core.templates.models import ManualInputConfig
from core.utils.errors import ProfileError

_REFERENCE_PREFIX = "$"
_MISSING = object()


def clean_manual_placeholders(record: GutachtenData, config: ManualInputConfig) -> GutachtenData:
    """Return a copy of record with manual-input markers resolved."""

    data = record.model_dump()
    markers = tuple(config.markers)
    if markers:
        _clear_markers(data, markers)

    for path, candidates in config.defaults.items():
        current = _get_path(data, path)
        if current is _MISSING:
            continue
        if not isinstance(current, str) or current.strip():
            continue
        _set_path(data, path, _first_default(data, candidates, markers))

    return GutachtenData.model_validate(data)


def is_manual_marker(value: str, markers: tuple[str, ...]) -> bool:
    return bool(markers) and value.lstrip().startswith(markers)


def _clear_markers(node: Any, markers: tuple[str, ...]) -> None:
    if isinstance(node, dict):
        for key, value in node.items():
            if isinstance(value, str):
                if is_manual_marker(value, markers):
                    node[key] = ""
            else:
                _clear_markers(value, markers)
    elif isinstance(node, list):
        for item in node:
            _clear_markers(item, markers)


def _first_default(data: dict[str, Any], candidates: list[str], markers: tuple[str, ...]) -> str:
    for candidate in candidates:
        if candidate.startswith(_REFERENCE_PREFIX):
            value = _get_path(data, candidate[len(_REFERENCE_PREFIX) :])
            if value is _MISSING or value is None:
                continue
            value = str(value)
        else:
            value = candidate
        if value.strip() and not is_manual_marker(value, markers):
            return value
    return ""


def _get_path(data: dict[str, Any], path: str) -> Any:
    node: Any = data
    parts = path.split(".")
    for depth, part in enumerate(parts):
        if node is None:
            return _MISSING
        if not isinstance(node, dict) or part not in node:
            prefix = ".".join(parts[: depth + 1])
            raise ProfileError(f"Manual input default refers to unknown record field: {prefix}")
        node = node[part]
    return node


def _set_path(data: dict[str, Any], path: str, value: str) -> None:
    *parents, leaf = path.split(".")
    node = data
    for part in parents:
        node = node[part]
    node[leaf] = value
