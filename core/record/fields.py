"""Value-format evaluation against a record and its derived values."""

from __future__ import annotations

import string
from dataclasses import dataclass
from typing import Any

from core.record.cleaning import clean_manual_placeholders
from core.record.derived import DerivedValues, compute_derived
from core.record.models import MODERNIZATION_CATEGORIES, GutachtenData, Modernization
from core.templates.models import TemplateProfile
from core.utils.errors import ProfileError


class _RecordFormatter(string.Formatter):
    def format_field(self, value: Any, format_spec: str) -> str:
        if value is None:
            return ""
        return super().format_field(value, format_spec)


_FORMATTER = _RecordFormatter()


def build_format_context(record: GutachtenData, derived: DerivedValues) -> dict[str, Any]:
    """Expose record groups and derived values to value formats."""

    context: dict[str, Any] = {name: getattr(record, name) for name in GutachtenData.model_fields}
    context["derived"] = derived
    return context


def render_value(value_format: str, context: dict[str, Any], *, key: str = "") -> str:
    """Render one profile value format, raising ProfileError on unknown fields."""

    try:
        return _FORMATTER.vformat(value_format, (), context)
    except (KeyError, AttributeError, IndexError, ValueError) as exc:
        label = key or value_format
        raise ProfileError(f"Value format for {label!r} cannot be rendered: {exc}") from exc


@dataclass(frozen=True)
class RenderContext:
    """Cleaned record, its derived values and the format context built from both."""

    record: GutachtenData
    derived: DerivedValues
    values: dict[str, Any]


def prepare_context(
    record: GutachtenData, profile: TemplateProfile, *, reference_year: int | None = None
) -> RenderContext:
    """Clean manual markers, compute derived values and build the format context."""

    categories: list[str] | tuple[str, ...] = MODERNIZATION_CATEGORIES
    if profile.matrix is not None:
        categories = profile.matrix.categories
        unknown = [name for name in categories if name not in Modernization.model_fields]
        if unknown:
            raise ProfileError(f"Unknown modernization categories in profile: {unknown}")

    cleaned = clean_manual_placeholders(record, profile.manual_input)
    derived = compute_derived(
        cleaned,
        page_config=profile.page_estimate,
        categories=categories,
        decimal_separator=profile.decimal_separator,
        reference_year=reference_year,
    )
    return RenderContext(
        record=cleaned, derived=derived, values=build_format_context(cleaned, derived)
    )
