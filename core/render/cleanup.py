"""Formatting cleanup (pass 5) and residual placeholder sweep (pass 6)."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass

from core.render.models import UnresolvedToken
from core.templates.models import CleanupRule, HighlightConfig
from core.text.run_index import RunTextIndex, Span
from core.utils.docx_xml import strip_font_colors, strip_highlights
from core.utils.events import log_event

logger = logging.getLogger("gutachten.render")


@dataclass(frozen=True)
class _CompiledRule:
    rule: CleanupRule
    keep: tuple[re.Pattern[str], ...]


def strip_marker_formatting(
    index: RunTextIndex, config: HighlightConfig
) -> tuple[RunTextIndex, int, int]:
    """Remove placeholder highlight and marker colours; returns (index, highlights, colors)."""

    xml, highlights = strip_highlights(index.xml, config.highlight_colors)
    xml, colors = strip_font_colors(xml, config.font_colors)
    if not highlights and not colors:
        return index, 0, 0
    return index.with_xml(xml), highlights, colors


def sweep_residual_placeholders(
    index: RunTextIndex, rules: list[CleanupRule]
) -> tuple[RunTextIndex, list[UnresolvedToken]]:
    """Delete, unwrap or keep leftover placeholder syntax according to the policy table.

    Tokens are matched within one paragraph and never inside protected
    values. Every token seen is reported and logged as a warning, including
    tokens that are kept verbatim. Sweeping the output a second time changes
    nothing.
    """

    if not rules:
        return index, []

    compiled = [
        _CompiledRule(rule=rule, keep=tuple(re.compile(p) for p in rule.keep_patterns))
        for rule in rules
    ]
    combined = re.compile("|".join(f"({rule.pattern})" for rule in rules))
    tokens: list[UnresolvedToken] = []
    position = 0

    while True:
        found = index.search(combined, position)
        if found is None:
            break

        assert found.group is not None
        current = compiled[found.group - 1]
        text = found.text
        start, end = found.span.start, found.span.end
        action = _decide(current, text)

        if action == "kept":
            position = end
        elif action == "deleted":
            index = index.replace_span(found.span, "")
            position = start
        else:
            index, position = _unwrap(index, start, end, current.rule)

        tokens.append(
            UnresolvedToken(part=index.part, syntax=current.rule.syntax, text=text, action=action)
        )
        log_event(
            logger,
            logging.WARNING,
            "unresolved_placeholder",
            part=index.part,
            syntax=current.rule.syntax,
            action=action,
            text=text,
        )

    return index, tokens


def _decide(current: _CompiledRule, text: str) -> str:
    rule = current.rule
    if rule.action == "delete":
        return "deleted"
    if rule.action == "strip":
        return "stripped"
    if any(pattern.search(text) for pattern in current.keep):
        return "kept"
    inner = text[1:-1].strip()
    if rule.strip_min_length is not None and len(inner) >= rule.strip_min_length:
        return "stripped"
    return "deleted"


def _unwrap(
    index: RunTextIndex, start: int, end: int, rule: CleanupRule
) -> tuple[RunTextIndex, int]:
    """Remove the enclosing delimiters only, leaving the inner runs untouched."""

    token = index.combined_text[start:end]
    open_end = start + 1
    close_start = end - 1
    if rule.action == "classify":
        inner = token[1:-1]
        open_end += len(inner) - len(inner.lstrip())
        close_start -= len(inner) - len(inner.rstrip())

    index = index.replace_span(Span(close_start, end), "")
    index = index.replace_span(Span(start, open_end), "")
    return index, close_start - (open_end - start)
