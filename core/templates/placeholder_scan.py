"""Placeholder scanner for template inventories.

Lists the distinct placeholder tokens a template still carries, per text part,
so a new template revision can be compared against its profile.
"""

from __future__ import annotations

import re

from core.archive.store import ArchiveStore
from core.templates.models import PartInventory, PlaceholderInventory, TemplateProfile
from core.text.run_index import RunTextIndex

_NAMED_RE = re.compile(r"\{\{[^}]+\}\}")
_LITERAL_RE = re.compile(r"(?<!\{)\{[^{}]+\}(?!\})")
_BLOCK_RE = re.compile(r"\[[^\]]{20,}\]")


def scan_placeholders(archive_bytes: bytes, profile: TemplateProfile) -> PlaceholderInventory:
    """Scan the main part and every header/footer part for placeholder tokens.

    Rules:
    - named tokens use double braces: {{ key }}
    - literal tokens use single braces and are never part of a double-brace token
    - bracket blocks are at least 20 characters between the brackets
    - no token spans two paragraphs

    Parts absent from the archive are skipped; a missing main part raises
    MissingMandatoryPartError.
    """

    store = ArchiveStore.load(archive_bytes)
    store.require_part(profile.parts.main)

    inventory = PlaceholderInventory()
    for part in store.text_parts(profile.parts):
        data = store.read_part(part)
        if data is None:
            continue
        index = RunTextIndex.from_part(data, part)
        inventory.parts.append(
            PartInventory(
                part=part,
                named=_distinct(_NAMED_RE, index),
                literal=_distinct(_LITERAL_RE, index),
                blocks=_distinct(_BLOCK_RE, index),
            )
        )
    return inventory


def _distinct(pattern: re.Pattern[str], index: RunTextIndex) -> list[str]:
    text = index.combined_text
    return list(dict.fromkeys(text[span.start : span.end] for span in index.find_pattern(pattern)))
