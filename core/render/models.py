"""Rewrite pipeline report models."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from core.text.run_index import Span

RuleKind = Literal["named", "literal", "block"]


@dataclass(frozen=True)
class PlaceholderRule:
    """One compiled search pattern and its replacement."""

    kind: RuleKind
    key: str
    pattern: re.Pattern[str]
    replacement: str


@dataclass(frozen=True)
class PlaceholderMatch:
    """A located rule occurrence, discarded once applied."""

    kind: RuleKind
    key: str
    span: Span
    matched_text: str
    replacement: str


class ReplaceLogEntry(BaseModel):
    """Single replacement log item."""

    model_config = ConfigDict(extra="forbid")

    status: Literal["replaced", "failed"]
    kind: str
    key: str
    part: str
    start: int | None = None
    end: int | None = None
    original_text: str | None = None
    new_text: str | None = None
    reason: str | None = None


class UnresolvedToken(BaseModel):
    """Placeholder syntax left over after substitution."""

    model_config = ConfigDict(extra="forbid")

    part: str
    syntax: Literal["manual", "named", "block", "literal"]
    text: str
    action: Literal["deleted", "stripped", "kept"]


class MediaSlotResult(BaseModel):
    """Outcome of one media slot."""

    model_config = ConfigDict(extra="forbid")

    role: Literal["aerial", "photo"]
    slot: int
    part: str
    status: Literal["replaced", "fallback", "missing_part", "no_source"]
    source: str | None = None
    reason: str | None = None


class PartReport(BaseModel):
    """Per-part pass counters."""

    model_config = ConfigDict(extra="forbid")

    part: str
    status: Literal["rewritten", "skipped_malformed"] = "rewritten"
    normalized: int = 0
    named: int = 0
    literal: int = 0
    blocks: int = 0
    highlights_removed: int = 0
    colors_removed: int = 0
    unresolved: int = 0
    reason: str | None = None


class RewriteSummary(BaseModel):
    """Aggregate counters for observability."""

    model_config = ConfigDict(extra="forbid")

    parts_processed: int = 0
    parts_skipped: int = 0
    replaced_count: int = 0
    failed_count: int = 0
    unresolved_count: int = 0
    matrix_found: bool = False
    media_replaced: int = 0
    media_fallback: int = 0
    malformed_mode: Literal["error", "warn"] = "error"


class RewriteReport(BaseModel):
    """Full rewrite report."""

    model_config = ConfigDict(extra="forbid")

    profile_version: str
    reference_year: int
    parts: list[PartReport] = Field(default_factory=list)
    entries: list[ReplaceLogEntry] = Field(default_factory=list)
    unresolved: list[UnresolvedToken] = Field(default_factory=list)
    media: list[MediaSlotResult] = Field(default_factory=list)
    matrix_part: str | None = None
    summary: RewriteSummary = Field(default_factory=RewriteSummary)

    def finalize(self) -> RewriteReport:
        """Recompute summary counters from the collected entries."""

        self.summary.parts_processed = sum(1 for item in self.parts if item.status == "rewritten")
        self.summary.parts_skipped = sum(1 for item in self.parts if item.status != "rewritten")
        self.summary.replaced_count = sum(1 for item in self.entries if item.status == "replaced")
        self.summary.failed_count = sum(1 for item in self.entries if item.status == "failed")
        self.summary.unresolved_count = len(self.unresolved)
        self.summary.matrix_found = self.matrix_part is not None
        self.summary.media_replaced = sum(1 for item in self.media if item.status == "replaced")
        self.summary.media_fallback = sum(1 for item in self.media if item.status == "fallback")
        return self


class RewriteOutput(BaseModel):
    """In-memory rewrite output (no file paths)."""

    model_config = ConfigDict(extra="forbid")

    archive: bytes
    report: RewriteReport


class AuditItem(BaseModel):
    """Audit verdict for one profile rule."""

    model_config = ConfigDict(extra="forbid")

    kind: RuleKind
    key: str
    expected: str
    found: bool
    sample_present: bool
    status: Literal["pass", "fail", "partial", "warn"]


class AuditReport(BaseModel):
    """Post-export check of a rewritten archive against its record."""

    model_config = ConfigDict(extra="forbid")

    part: str
    items: list[AuditItem] = Field(default_factory=list)
    residual: list[str] = Field(default_factory=list)

    @property
    def passed(self) -> int:
        return sum(1 for item in self.items if item.status == "pass")

    @property
    def failed(self) -> int:
        return sum(1 for item in self.items if item.status == "fail")

    @property
    def ok(self) -> bool:
        return self.failed == 0 and not self.residual
