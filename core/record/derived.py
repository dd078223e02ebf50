"""Values computed from the record once per rewrite operation."""

from __future__ import annotations

import datetime
import math
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal

from core.record.models import MODERNIZATION_CATEGORIES, GutachtenData
from core.templates.models import PageEstimateConfig


@dataclass(frozen=True)
class PageEstimate:
    text_pages: int
    annex_pages: int
    narrative_overflow: int
    photo_pages: int
    document_pages: int

    @property
    def total_pages(self) -> int:
        return self.text_pages + self.annex_pages


@dataclass(frozen=True)
class DerivedValues:
    """Formatted values that do not exist verbatim in the record."""

    reference_year: int
    modified_year: int
    total_points: str
    matrix_values: tuple[str, ...]
    living_area: str
    report_number: str
    text_pages: int
    annex_pages: int
    total_pages: int


def format_decimal(value: float | Decimal, places: int = 1, separator: str = ",") -> str:
    """Format value with a fixed number of places, rounding half away from zero."""

    quantum = Decimal(1).scaleb(-places)
    rounded = Decimal(str(value)).quantize(quantum, rounding=ROUND_HALF_UP)
    return f"{rounded:f}".replace(".", separator)


def format_plain_number(value: float, separator: str = ",") -> str:
    """Format value without padding zeros (56.09 -> "56,09", 56.0 -> "56")."""

    normalized = Decimal(str(value)).normalize()
    return f"{normalized:f}".replace(".", separator)


def estimate_pages(record: GutachtenData, config: PageEstimateConfig) -> PageEstimate:
    """Estimate cover-page counts from narrative length, photos and attachments.

    Explicit ``document.text_pages`` / ``document.annex_pages`` values win over
    the estimate.
    """

    narrative_text = " ".join(record.narratives.model_dump().values())
    overflow_chars = max(0, len(narrative_text) - config.expected_narrative_chars)
    narrative_overflow = math.ceil(overflow_chars / config.chars_per_page)

    assets = record.assets
    photo_count = len(assets.photos) if assets is not None else 0
    photo_pages = math.ceil(photo_count / config.photos_per_page)
    document_pages = config.document_pages_base
    if assets is not None and assets.energy_certificate is not None:
        document_pages += 1
    if assets is not None and assets.floorplan is not None:
        document_pages += 1

    text_pages = config.base_text_pages + narrative_overflow
    annex_pages = config.base_annex_pages + photo_pages + document_pages
    if record.document is not None and record.document.text_pages:
        text_pages = record.document.text_pages
    if record.document is not None and record.document.annex_pages:
        annex_pages = record.document.annex_pages

    return PageEstimate(
        text_pages=text_pages,
        annex_pages=annex_pages,
        narrative_overflow=narrative_overflow,
        photo_pages=photo_pages,
        document_pages=document_pages,
    )


def compute_derived(
    record: GutachtenData,
    *,
    page_config: PageEstimateConfig,
    categories: list[str] | tuple[str, ...] = MODERNIZATION_CATEGORIES,
    decimal_separator: str = ",",
    reference_year: int | None = None,
) -> DerivedValues:
    """Compute all derived values for one operation."""

    year = reference_year if reference_year is not None else datetime.date.today().year
    items = record.modernization.items_in_order(categories)
    weighted = [Decimal(str(item.points)) * Decimal(str(item.weight)) for item in items]
    total = sum(weighted, Decimal(0))
    pages = estimate_pages(record, page_config)
    report_number = ""
    if record.document is not None and record.document.report_number:
        report_number = record.document.report_number

    return DerivedValues(
        reference_year=year,
        modified_year=year - record.calculation.restnutzungsdauer_years,
        total_points=format_decimal(total, 1, decimal_separator),
        matrix_values=tuple(format_decimal(value, 1, decimal_separator) for value in weighted),
        living_area=format_plain_number(record.areas.living_area_m2, decimal_separator),
        report_number=report_number,
        text_pages=pages.text_pages,
        annex_pages=pages.annex_pages,
        total_pages=pages.total_pages,
    )
