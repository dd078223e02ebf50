"""Split-placeholder normalization (pass 0).

Word often stores ``{{client_name}}`` as three runs: ``{{``, ``client_name``
and ``}}``. Merging them into the first run gives later passes a single run
to rewrite, so the replacement inherits the opening run's formatting.
"""

from __future__ import annotations

import logging
import re

from core.templates.models import NormalizeConfig
from core.text.run_index import RunTextIndex
from core.utils.events import log_event

logger = logging.getLogger("gutachten.render")

_MAX_IDENTIFIER_SEGMENTS = 4


def normalize_split_placeholders(
    index: RunTextIndex, config: NormalizeConfig
) -> tuple[RunTextIndex, int]:
    """Merge delimiter/identifier/delimiter run sequences; combined text is unchanged."""

    identifier = re.compile(config.identifier_pattern)
    merged = 0
    for opening, closing in config.delimiters:
        position = 0
        while True:
            group = _next_split_group(index, position, opening, closing, identifier)
            if group is None:
                break
            first, last = group
            index = index.merge_segments(first, last)
            merged += 1
            position = first + 1

    if merged:
        log_event(logger, logging.DEBUG, "normalized", part=index.part, merged=merged)
    return index, merged


def _next_split_group(
    index: RunTextIndex,
    start: int,
    opening: str,
    closing: str,
    identifier: re.Pattern[str],
) -> tuple[int, int] | None:
    segments = index.segments
    for position in range(start, len(segments)):
        if segments[position].text != opening:
            continue
        limit = min(len(segments), position + _MAX_IDENTIFIER_SEGMENTS + 2)
        middle: list[str] = []
        for candidate in range(position + 1, limit):
            text = segments[candidate].text
            if text == closing and middle:
                if not identifier.fullmatch("".join(middle)):
                    break
                if segments[candidate].paragraph != segments[position].paragraph:
                    break
                return position, candidate
            middle.append(text)
    return None
