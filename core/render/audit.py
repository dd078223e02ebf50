"""Export audit: verify that a rewritten archive carries the record's values."""

from __future__ import annotations

import re

from core.archive.store import ArchiveStore
from core.record.fields import prepare_context
from core.record.models import GutachtenData
from core.render.models import AuditItem, AuditReport, PlaceholderRule
from core.render.resolvers import build_block_rules, build_literal_rules, build_named_rules
from core.templates.models import TemplateProfile
from core.text.run_index import RunTextIndex


def audit_archive(
    archive_bytes: bytes,
    record: GutachtenData,
    profile: TemplateProfile,
    *,
    reference_year: int | None = None,
) -> AuditReport:
    """Check the main part for leftover samples, missing values and residual syntax."""

    store = ArchiveStore.load(archive_bytes)
    part = profile.parts.main
    index = RunTextIndex.from_part(store.require_part(part), part)
    text = index.combined_text
    context = prepare_context(record, profile, reference_year=reference_year)

    rules = [
        *build_named_rules(profile, context.values),
        *build_literal_rules(profile, context.values),
        *build_block_rules(profile, context.values),
    ]
    report = AuditReport(part=part)
    for (kind, key), grouped in _group_rules(rules).items():
        expected = grouped[0].replacement
        sample_present = any(index.find_pattern(rule.pattern) for rule in grouped)
        found = not expected or expected in text
        report.items.append(
            AuditItem(
                kind=kind,  # type: ignore[arg-type]
                key=key,
                expected=expected,
                found=found,
                sample_present=sample_present,
                status=_status(found, sample_present),
            )
        )

    seen: set[str] = set()
    for rule in profile.cleanup:
        for span in index.find_pattern(re.compile(rule.pattern)):
            token = text[span.start : span.end]
            if token not in seen and not any(re.search(p, token) for p in rule.keep_patterns):
                seen.add(token)
                report.residual.append(token)
    return report


def _group_rules(rules: list[PlaceholderRule]) -> dict[tuple[str, str], list[PlaceholderRule]]:
    grouped: dict[tuple[str, str], list[PlaceholderRule]] = {}
    for rule in rules:
        grouped.setdefault((rule.kind, rule.key), []).append(rule)
    return grouped


def _status(found: bool, sample_present: bool) -> str:
    if found and not sample_present:
        return "pass"
    if sample_present and not found:
        return "fail"
    if sample_present:
        return "partial"
    return "warn"
