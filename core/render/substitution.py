"""Apply placeholder rules to one part in a single left-to-right sweep."""

from __future__ import annotations

import logging
import re

from core.render.models import PlaceholderMatch, PlaceholderRule, ReplaceLogEntry
from core.text.run_index import RunTextIndex, Span
from core.utils.errors import ReplacementEncodingError
from core.utils.events import log_event

logger = logging.getLogger("gutachten.render")


def apply_rules(
    index: RunTextIndex,
    rules: list[PlaceholderRule],
    *,
    reserved: list[PlaceholderRule] | None = None,
) -> tuple[RunTextIndex, list[ReplaceLogEntry]]:
    """Replace every rule match, leftmost first, earlier rules winning ties.

    Rules are combined into one alternation so each position is examined
    once, and a match never crosses a paragraph boundary. Inserted values
    are protected on the index: neither this sweep nor any later one on the
    part matches text that overlaps them. Matches overlapping an occurrence
    of a ``reserved`` rule are left for that rule's own pass. A replacement
    that cannot be written as XML text is logged as failed and the sweep
    continues.
    """

    if not rules:
        return index, []

    combined = re.compile("|".join(f"({rule.pattern.pattern})" for rule in rules))
    entries: list[ReplaceLogEntry] = []
    position = 0

    while True:
        found = index.search(combined, position)
        if found is None:
            break
        if reserved and _overlaps_reserved(index, found.span, reserved):
            position = found.span.start + 1
            continue

        assert found.group is not None
        rule = rules[found.group - 1]
        match = PlaceholderMatch(
            kind=rule.kind,
            key=rule.key,
            span=found.span,
            matched_text=found.text,
            replacement=rule.replacement,
        )

        try:
            index = index.replace_span(
                match.span, match.replacement, key=match.key, protect=True
            )
        except ReplacementEncodingError as exc:
            entries.append(_entry(index.part, match, status="failed", reason=str(exc)))
            log_event(
                logger,
                logging.ERROR,
                "replacement_failed",
                part=index.part,
                kind=match.kind,
                key=match.key,
                reason=str(exc),
            )
            position = match.span.end
            continue

        entries.append(_entry(index.part, match, status="replaced"))
        log_event(
            logger,
            logging.DEBUG,
            "replaced",
            part=index.part,
            kind=match.kind,
            key=match.key,
            start=match.span.start,
        )
        position = match.span.start + len(match.replacement)

    return index, entries


def _overlaps_reserved(index: RunTextIndex, span: Span, reserved: list[PlaceholderRule]) -> bool:
    return any(
        other.start < span.end and span.start < other.end
        for rule in reserved
        for other in index.find_pattern(rule.pattern)
    )


def _entry(
    part: str, match: PlaceholderMatch, *, status: str, reason: str | None = None
) -> ReplaceLogEntry:
    return ReplaceLogEntry(
        status=status,  # type: ignore[arg-type]
        kind=match.kind,
        key=match.key,
        part=part,
        start=match.span.start,
        end=match.span.end,
        original_text=match.matched_text,
        new_text=match.replacement if status == "replaced" else None,
        reason=reason,
    )
