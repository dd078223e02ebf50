"""Profile loading utilities for template rewriting."""

from __future__ import annotations

from pathlib import Path

import yaml  # type: ignore[import-untyped]
from pydantic import ValidationError

from core.templates.models import TemplateProfile

_SUPPORTED_PREFIXES = ("v",)


def load_profile(path: Path | None = None) -> TemplateProfile:
    """Load and validate a template profile from YAML."""

    profile_path = path or default_profile_path()

    try:
        raw = yaml.safe_load(profile_path.read_text(encoding="utf-8"))
    except FileNotFoundError as exc:
        raise ValueError(f"Profile file not found: {profile_path}") from exc
    except yaml.YAMLError as exc:
        raise ValueError(f"Invalid YAML in profile file: {profile_path}") from exc

    if not isinstance(raw, dict):
        raise ValueError(f"Profile file must contain a mapping: {profile_path}")

    normalized = _normalize_profile(raw, profile_path)

    try:
        return TemplateProfile.model_validate(normalized)
    except ValidationError as exc:
        raise ValueError(f"Invalid profile schema: {profile_path}") from exc


def default_profile_path() -> Path:
    """Return the path of the profile shipped with the package."""

    return Path(__file__).with_name("profile.yaml")


def _normalize_profile(raw: dict[object, object], profile_path: Path) -> dict[object, object]:
    normalized = dict(raw)
    version = normalized.get("version")
    if isinstance(version, (int, float)):
        version = f"v{version}"
        normalized["version"] = version
    if not isinstance(version, str) or not version.startswith(_SUPPORTED_PREFIXES):
        raise ValueError(
            f"Invalid profile version '{version}' in {profile_path}. "
            "Use a version string such as 'v3'."
        )
    return normalized
