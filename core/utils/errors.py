"""Custom exceptions for core logic."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from core.render.models import RewriteReport


class TemplateError(Exception):
    """Base error for template rewriting failures."""

    def __init__(self, message: str, *, report: RewriteReport | None = None) -> None:
        super().__init__(message)
        self.report = report


class ArchiveError(TemplateError):
    """Raised when template bytes are not a readable document archive."""


class MissingMandatoryPartError(TemplateError):
    """Raised when the main content part is absent from the archive."""

    def __init__(self, message: str, *, part: str, report: RewriteReport | None = None) -> None:
        super().__init__(message, report=report)
        self.part = part


class MalformedMarkupError(TemplateError):
    """Raised when an archive part cannot be parsed as well-formed markup."""

    def __init__(self, message: str, *, part: str, report: RewriteReport | None = None) -> None:
        super().__init__(message, report=report)
        self.part = part


class ReplacementEncodingError(TemplateError):
    """Raised when a replacement value cannot be represented in XML text."""

    def __init__(self, message: str, *, key: str | None = None) -> None:
        super().__init__(message)
        self.key = key


class MediaFetchError(TemplateError):
    """Raised when bytes for one media slot cannot be obtained."""

    def __init__(self, message: str, *, source: str) -> None:
        super().__init__(message)
        self.source = source


class ProfileError(TemplateError):
    """Raised when a template profile refers to data the record does not provide."""
