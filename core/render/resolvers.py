"""Placeholder resolvers: profile entries turned into ordered replacement rules.

Three syntaxes are recognized:
- named:   ``{{ key }}`` with optional interior whitespace
- literal: ``{ sample }`` and, unless disabled, the bare sample text
- block:   an exact bracketed sample paragraph ``[...]``
"""

from __future__ import annotations

import re
from typing import Any

from core.record.fields import render_value
from core.render.models import PlaceholderRule
from core.templates.models import TemplateProfile


def build_named_rules(profile: TemplateProfile, context: dict[str, Any]) -> list[PlaceholderRule]:
    """Return rules for ``{{ key }}`` placeholders; empty values are skipped."""

    rules: list[PlaceholderRule] = []
    for key, value_format in profile.named.items():
        value = render_value(value_format, context, key=key)
        if not value:
            continue
        pattern = re.compile(r"\{\{\s*" + re.escape(key) + r"\s*\}\}")
        rules.append(PlaceholderRule(kind="named", key=key, pattern=pattern, replacement=value))
    return rules


def build_literal_rules(profile: TemplateProfile, context: dict[str, Any]) -> list[PlaceholderRule]:
    """Return braced and bare rules for sample values.

    An entry is skipped when its value is empty or equals the sample, so a
    second run over already-filled output cannot rewrite the same text again.
    """

    rules: list[PlaceholderRule] = []
    for entry in profile.literal:
        value = render_value(entry.value, context, key=entry.sample)
        if not value or value == entry.sample:
            continue
        escaped = re.escape(entry.sample)
        rules.append(
            PlaceholderRule(
                kind="literal",
                key=entry.sample,
                pattern=re.compile(r"\{\s*" + escaped + r"\s*\}"),
                replacement=value,
            )
        )
        if entry.bare:
            rules.append(
                PlaceholderRule(
                    kind="literal",
                    key=entry.sample,
                    pattern=re.compile(bare_pattern(entry.sample)),
                    replacement=value,
                )
            )
    return rules


def build_block_rules(profile: TemplateProfile, context: dict[str, Any]) -> list[PlaceholderRule]:
    """Return exact-match rules for bracketed sample paragraphs."""

    rules: list[PlaceholderRule] = []
    for entry in profile.blocks:
        value = render_value(entry.value, context, key=entry.sample).strip()
        rules.append(
            PlaceholderRule(
                kind="block",
                key=entry.sample,
                pattern=re.compile(re.escape(entry.sample)),
                replacement=value,
            )
        )
    return rules


def bare_pattern(sample: str) -> str:
    """Regex source for sample text not glued to neighbouring word characters."""

    source = re.escape(sample)
    if sample[:1].isalnum() or sample[:1] == "_":
        source = r"(?<!\w)" + source
    if sample[-1:].isalnum() or sample[-1:] == "_":
        source = source + r"(?!\w)"
    return source
