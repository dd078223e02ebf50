"""Data models for the template profile and placeholder inventory.

A profile is the versioned contract with the template author: delimiter
conventions, named keys, literal samples, bracket blocks, the matrix anchor,
media slot paths and the cleanup policy. Engine code never hard-codes these.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator


class PartsConfig(BaseModel):
    """Which archive parts receive the text passes."""

    model_config = ConfigDict(extra="forbid")

    main: str = "word/document.xml"
    optional_patterns: list[str] = Field(
        default_factory=lambda: [r"word/header\d*\.xml", r"word/footer\d*\.xml"]
    )

    @field_validator("optional_patterns")
    @classmethod
    def _check_patterns(cls, value: list[str]) -> list[str]:
        for pattern in value:
            re.compile(pattern)
        return value


class LiteralEntry(BaseModel):
    """Sample value shipped in the template and the format that replaces it."""

    model_config = ConfigDict(extra="forbid")

    sample: str
    value: str
    bare: bool = True


class BlockEntry(BaseModel):
    """Bracketed sample paragraph and the narrative format that replaces it."""

    model_config = ConfigDict(extra="forbid")

    sample: str
    value: str

    @field_validator("sample")
    @classmethod
    def _check_brackets(cls, value: str) -> str:
        if not (value.startswith("[") and value.endswith("]")):
            raise ValueError("block sample must be enclosed in brackets")
        return value


class MatrixConfig(BaseModel):
    """Anchor and fixed cell positions of the modernization table."""

    model_config = ConfigDict(extra="forbid")

    anchor: str
    cell_indices: list[int]
    categories: list[str]

    @field_validator("cell_indices")
    @classmethod
    def _check_indices(cls, value: list[int]) -> list[int]:
        if any(index < 0 for index in value):
            raise ValueError("cell indices must be zero or positive")
        return value


class MediaConfig(BaseModel):
    """Fixed media part paths replaced by slot index."""

    model_config = ConfigDict(extra="forbid")

    aerial: str | None = None
    photos: list[str] = Field(default_factory=list)
    fetch_timeout_seconds: float = 20.0
    max_concurrency: int = 4


class HighlightConfig(BaseModel):
    """Marker formatting stripped after substitution."""

    model_config = ConfigDict(extra="forbid")

    highlight_colors: list[str] = Field(default_factory=list)
    font_colors: list[str] = Field(default_factory=list)


CleanupAction = Literal["delete", "strip", "classify"]
TokenSyntax = Literal["manual", "named", "block", "literal"]


class CleanupRule(BaseModel):
    """One row of the residual placeholder policy table."""

    model_config = ConfigDict(extra="forbid")

    syntax: TokenSyntax
    pattern: str
    action: CleanupAction
    keep_patterns: list[str] = Field(default_factory=list)
    strip_min_length: int | None = None

    @field_validator("pattern")
    @classmethod
    def _check_pattern(cls, value: str) -> str:
        compiled = re.compile(value)
        if compiled.groups:
            raise ValueError("cleanup patterns must not contain capturing groups")
        return value


class ManualInputConfig(BaseModel):
    """Marker convention for fields that still need manual input."""

    model_config = ConfigDict(extra="forbid")

    markers: list[str] = Field(default_factory=list)
    defaults: dict[str, list[str]] = Field(default_factory=dict)


class NormalizeConfig(BaseModel):
    """Delimiter pairs merged by the split-placeholder normalization pass."""

    model_config = ConfigDict(extra="forbid")

    delimiters: list[tuple[str, str]] = Field(default_factory=lambda: [("{{", "}}")])
    identifier_pattern: str = r"\s*[A-Za-z_][A-Za-z0-9_]*\s*"


class PageEstimateConfig(BaseModel):
    """Constants of the cover-page page count estimation."""

    model_config = ConfigDict(extra="forbid")

    base_text_pages: int = 12
    chars_per_page: int = 2800
    expected_narrative_chars: int = 5000
    base_annex_pages: int = 6
    photos_per_page: int = 4
    document_pages_base: int = 3


class TemplateProfile(BaseModel):
    """Complete template profile loaded from YAML."""

    model_config = ConfigDict(extra="forbid")

    version: str
    decimal_separator: str = ","
    parts: PartsConfig = Field(default_factory=PartsConfig)
    named: dict[str, str]
    literal: list[LiteralEntry] = Field(default_factory=list)
    blocks: list[BlockEntry] = Field(default_factory=list)
    matrix: MatrixConfig | None = None
    media: MediaConfig = Field(default_factory=MediaConfig)
    highlight: HighlightConfig = Field(default_factory=HighlightConfig)
    cleanup: list[CleanupRule] = Field(default_factory=list)
    manual_input: ManualInputConfig = Field(default_factory=ManualInputConfig)
    normalize: NormalizeConfig = Field(default_factory=NormalizeConfig)
    page_estimate: PageEstimateConfig = Field(default_factory=PageEstimateConfig)


@dataclass
class PartInventory:
    """Distinct placeholder tokens found in one archive part."""

    part: str
    named: list[str] = field(default_factory=list)
    literal: list[str] = field(default_factory=list)
    blocks: list[str] = field(default_factory=list)


@dataclass
class PlaceholderInventory:
    """Placeholder scan output across all text parts."""

    parts: list[PartInventory] = field(default_factory=list)

    def total(self) -> int:
        return sum(len(item.named) + len(item.literal) + len(item.blocks) for item in self.parts)
