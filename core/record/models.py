"""Typed appraisal record consumed by the template rewriting engine.

Field names are snake_case; camelCase aliases accept the JSON produced by the
form editor (``restnutzungsdauerYears``, ``zipCode``, ...) unchanged.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic.alias_generators import to_camel


class RecordModel(BaseModel):
    """Base config shared by every record group."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
        extra="ignore",
    )


class DocumentInfo(RecordModel):
    report_number: str | None = None
    report_id: str | None = None
    text_pages: int | None = None
    annex_pages: int | None = None


class PropertyInfo(RecordModel):
    unit_type: str
    unit_position: str
    street: str
    zip_code: str
    city: str


class Dates(RecordModel):
    valuation_date: str
    inspection_date: str
    report_date: str


class Client(RecordModel):
    name: str


class Building(RecordModel):
    type: str
    units_count: int | None = None
    year_built: int
    floors: str = ""
    attic_info: str = ""
    foundation: str = ""
    exterior_walls: str = ""
    roof: str = ""
    windows: str = ""
    heating: str = ""
    energy_class: str = ""
    aufzug: bool | None = None
    nutzungsart: Literal["wohnwirtschaftlich", "gewerblich", "gemischt"] | None = None


class Calculation(RecordModel):
    restnutzungsdauer_years: int
    gesamtnutzungsdauer_years: int
    standard_stufe: str = ""
    gross_floor_area: str = ""


class Areas(RecordModel):
    living_area_m2: float
    balcony_area_m2: float = 0


class Accessibility(RecordModel):
    barrierefrei: bool
    belichtung: Literal["einwandfrei", "eingeschraenkt", "mangelhaft"]


class Outdoor(RecordModel):
    hat_balkon: bool = False
    hat_terrasse: bool = False
    hat_garten: bool = False
    flaeche: float = 0


class Inspection(RecordModel):
    attendees: str
    areas_visited: str


class Narratives(RecordModel):
    use_description: str = ""
    vertical_access: str = ""
    overall_condition: str = ""
    insulation: str = ""
    barrier_free: str = ""
    modernization_list: str = ""
    floor_plan_quality: str = ""
    barrier_free_short: str = ""
    lighting: str = ""
    balcony: str = ""
    defects: str = ""
    other_notes: str = ""


class Components(RecordModel):
    sanitary_installation: str = ""
    electrical_installation: str = ""
    heating_type: str = ""
    special_features: str = ""


class ModernizationItem(RecordModel):
    points: float = 0
    weight: float = 0


MODERNIZATION_CATEGORIES: tuple[str, ...] = (
    "roof_renewal",
    "window_modernization",
    "plumbing_modernization",
    "heating_modernization",
    "wall_insulation",
    "bathroom_modernization",
    "interior_modernization",
    "floor_plan_improvement",
)


class Modernization(RecordModel):
    """Eight-row modernization matrix in fixed category order."""

    roof_renewal: ModernizationItem = Field(default_factory=ModernizationItem)
    window_modernization: ModernizationItem = Field(default_factory=ModernizationItem)
    plumbing_modernization: ModernizationItem = Field(default_factory=ModernizationItem)
    heating_modernization: ModernizationItem = Field(default_factory=ModernizationItem)
    wall_insulation: ModernizationItem = Field(default_factory=ModernizationItem)
    bathroom_modernization: ModernizationItem = Field(default_factory=ModernizationItem)
    interior_modernization: ModernizationItem = Field(default_factory=ModernizationItem)
    floor_plan_improvement: ModernizationItem = Field(default_factory=ModernizationItem)

    def items_in_order(
        self, categories: tuple[str, ...] | list[str] = MODERNIZATION_CATEGORIES
    ) -> list[ModernizationItem]:
        return [getattr(self, name) for name in categories]


class AerialAsset(RecordModel):
    source: str = "other"
    image_url: str | None = None
    caption: str | None = None


class PhotoAsset(RecordModel):
    nr: int
    caption: str = ""
    image_url: str | None = None


class FloorplanAsset(RecordModel):
    image_url: str | None = None
    source: str | None = None


class EnergyCertificateAsset(RecordModel):
    pdf_url: str | None = None
    image_url: str | None = None


class Assets(RecordModel):
    aerial: AerialAsset | None = None
    photos: list[PhotoAsset] = Field(default_factory=list)
    floorplan: FloorplanAsset | None = None
    energy_certificate: EnergyCertificateAsset | None = None


class GutachtenData(RecordModel):
    """Complete typed record for one Restnutzungsdauer appraisal."""

    document: DocumentInfo | None = None
    property: PropertyInfo
    dates: Dates
    client: Client
    building: Building
    calculation: Calculation
    areas: Areas
    accessibility: Accessibility | None = None
    outdoor: Outdoor | None = None
    inspection: Inspection
    narratives: Narratives = Field(default_factory=Narratives)
    components: Components = Field(default_factory=Components)
    modernization: Modernization = Field(default_factory=Modernization)
    assets: Assets | None = None


def load_record(path: Path) -> GutachtenData:
    """Load and validate a record from a JSON file."""

    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except FileNotFoundError as exc:
        raise ValueError(f"Record file not found: {path}") from exc
    except json.JSONDecodeError as exc:
        raise ValueError(f"Invalid JSON in record file: {path}") from exc

    if isinstance(raw, dict) and "data" in raw and isinstance(raw["data"], dict):
        raw = raw["data"]

    try:
        return GutachtenData.model_validate(raw)
    except ValidationError as exc:
        raise ValueError(f"Invalid record schema: {path}") from exc
