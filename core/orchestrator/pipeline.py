"""Orchestration pipeline for template rewriting.

Every text part (main document, headers, footers) runs the same fixed pass
sequence:

0. normalize split ``{{ key }}`` placeholders
1. named placeholders
2. literal samples
3. bracket blocks
4. modernization matrix (once, first part holding the anchor)
5. marker highlight and colour removal
6. residual placeholder sweep

Media slots are swapped afterwards and the archive is serialized once.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Literal

import httpx

from core.archive.store import ArchiveStore
from core.record.fields import RenderContext, prepare_context
from core.record.models import GutachtenData
from core.render.cleanup import strip_marker_formatting, sweep_residual_placeholders
from core.render.matrix_table import inject_matrix
from core.render.media import inject_media
from core.render.models import (
    PartReport,
    PlaceholderRule,
    RewriteOutput,
    RewriteReport,
    RewriteSummary,
)
from core.render.normalize import normalize_split_placeholders
from core.render.resolvers import build_block_rules, build_literal_rules, build_named_rules
from core.render.substitution import apply_rules
from core.templates.models import TemplateProfile
from core.templates.profile_loader import load_profile
from core.text.run_index import RunTextIndex
from core.utils.docx_xml import parse_part
from core.utils.errors import MalformedMarkupError
from core.utils.events import log_event

logger = logging.getLogger("gutachten.render")

MalformedMode = Literal["error", "warn"]


def rewrite_template(
    template_bytes: bytes,
    record: GutachtenData,
    profile: TemplateProfile | None = None,
    *,
    reference_year: int | None = None,
    malformed_mode: MalformedMode = "error",
    fetch_media: bool = True,
    http_client: httpx.AsyncClient | None = None,
) -> RewriteOutput:
    """Fill a template archive with record data; bytes in, bytes out.

    Blocking wrapper around rewrite_template_async; call the async variant
    from code that already runs an event loop.
    """

    return asyncio.run(
        rewrite_template_async(
            template_bytes,
            record,
            profile,
            reference_year=reference_year,
            malformed_mode=malformed_mode,
            fetch_media=fetch_media,
            http_client=http_client,
        )
    )


async def rewrite_template_async(
    template_bytes: bytes,
    record: GutachtenData,
    profile: TemplateProfile | None = None,
    *,
    reference_year: int | None = None,
    malformed_mode: MalformedMode = "error",
    fetch_media: bool = True,
    http_client: httpx.AsyncClient | None = None,
) -> RewriteOutput:
    """Execute load -> text passes -> media -> serialize.

    Raises:
        ArchiveError: template bytes are not a ZIP archive.
        MissingMandatoryPartError: the main content part is absent.
        MalformedMarkupError: the main part (or, with malformed_mode="error",
            any header/footer part) is not well-formed.
        ProfileError: a profile value format refers to an unknown field.
    """

    if malformed_mode not in {"error", "warn"}:
        raise ValueError(f"Unsupported malformed mode: {malformed_mode}")

    profile = profile or load_profile()
    store = ArchiveStore.load(template_bytes)
    store.require_part(profile.parts.main)
    context = prepare_context(record, profile, reference_year=reference_year)

    report = RewriteReport(
        profile_version=profile.version,
        reference_year=context.derived.reference_year,
        summary=RewriteSummary(malformed_mode=malformed_mode),
    )
    rule_sets = (
        build_named_rules(profile, context.values),
        build_literal_rules(profile, context.values),
        build_block_rules(profile, context.values),
    )

    for part in store.text_parts(profile.parts):
        data = store.read_part(part)
        if data is None:
            continue
        try:
            index = RunTextIndex.from_part(data, part)
        except MalformedMarkupError as exc:
            if part == profile.parts.main or malformed_mode == "error":
                exc.report = report.finalize()
                raise
            report.parts.append(PartReport(part=part, status="skipped_malformed", reason=str(exc)))
            log_event(logger, logging.WARNING, "part_skipped", part=part, reason=str(exc))
            continue

        index = _rewrite_part(index, profile, context, rule_sets, report)
        rewritten = index.to_bytes()
        if rewritten != data:
            parse_part(rewritten, part)
            store.write_part(part, rewritten)

    if profile.matrix is not None and report.matrix_part is None:
        log_event(logger, logging.WARNING, "matrix_anchor_missing", anchor=profile.matrix.anchor)

    report.media = await inject_media(
        store,
        context.record,
        profile.media,
        http_client=http_client,
        fetch_remote=fetch_media,
    )

    archive = store.serialize()
    report.finalize()
    log_event(
        logger,
        logging.INFO,
        "rewrite_done",
        profile_version=profile.version,
        **report.summary.model_dump(),
    )
    return RewriteOutput(archive=archive, report=report)


def _rewrite_part(
    index: RunTextIndex,
    profile: TemplateProfile,
    context: RenderContext,
    rule_sets: tuple[list[PlaceholderRule], list[PlaceholderRule], list[PlaceholderRule]],
    report: RewriteReport,
) -> RunTextIndex:
    part_report = PartReport(part=index.part)
    named_rules, literal_rules, block_rules = rule_sets

    index, part_report.normalized = normalize_split_placeholders(index, profile.normalize)

    # Inserted values stay protected for the rest of the part. Literal samples
    # that sit inside a bracket block sample are left to the block pass.
    for rules, counter, reserved in (
        (named_rules, "named", None),
        (literal_rules, "literal", block_rules),
        (block_rules, "blocks", None),
    ):
        index, entries = apply_rules(index, rules, reserved=reserved)
        report.entries.extend(entries)
        setattr(part_report, counter, sum(1 for entry in entries if entry.status == "replaced"))

    if profile.matrix is not None and report.matrix_part is None:
        index, found = inject_matrix(index, profile.matrix, context.derived.matrix_values)
        if found:
            report.matrix_part = index.part

    index, part_report.highlights_removed, part_report.colors_removed = strip_marker_formatting(
        index, profile.highlight
    )

    index, tokens = sweep_residual_placeholders(index, profile.cleanup)
    report.unresolved.extend(tokens)
    part_report.unresolved = len(tokens)

    report.parts.append(part_report)
    log_event(
        logger,
        logging.DEBUG,
        "part_rewritten",
        **part_report.model_dump(exclude_none=True),
    )
    return index
