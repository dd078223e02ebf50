"""Human-readable summary rendering for CLI output."""

from __future__ import annotations

from collections import Counter

from core.render.models import AuditReport, RewriteReport
from core.templates.models import PlaceholderInventory

_MAX_TOKEN_WIDTH = 70


def render_rewrite_summary(report: RewriteReport) -> str:
    """Render one-screen rewrite summary."""

    summary = report.summary
    lines: list[str] = []
    lines.append("rewrite_summary:")
    lines.append(
        f"profile={report.profile_version} reference_year={report.reference_year} "
        f"malformed_mode={summary.malformed_mode}"
    )
    lines.append(
        f"parts: processed={summary.parts_processed} skipped={summary.parts_skipped}"
    )
    lines.append(
        f"replacements: replaced={summary.replaced_count} failed={summary.failed_count}"
    )

    kind_counter: Counter[str] = Counter(
        entry.kind for entry in report.entries if entry.status == "replaced"
    )
    if kind_counter:
        lines.append(
            "by_kind: " + ", ".join(f"{kind}={kind_counter[kind]}" for kind in sorted(kind_counter))
        )

    lines.append(f"matrix: {report.matrix_part or 'anchor not found'}")
    lines.append(f"media: replaced={summary.media_replaced} fallback={summary.media_fallback}")

    if report.unresolved:
        action_counter: Counter[str] = Counter(token.action for token in report.unresolved)
        actions = ", ".join(f"{name}={action_counter[name]}" for name in sorted(action_counter))
        lines.append(f"unresolved: {summary.unresolved_count} ({actions})")
        for token in report.unresolved[:5]:
            lines.append(f"  {token.action}: {_shorten(token.text)}")
    else:
        lines.append("unresolved: none")

    failed = [entry for entry in report.entries if entry.status == "failed"]
    for entry in failed[:3]:
        lines.append(f"failed: {entry.kind}:{_shorten(entry.key)} ({entry.reason})")
    return "\n".join(lines)


def render_inventory(inventory: PlaceholderInventory) -> str:
    """Render placeholder inventory grouped by part and syntax."""

    lines: list[str] = []
    for item in inventory.parts:
        lines.append(f"{item.part}:")
        for label, tokens in (
            ("named", item.named),
            ("literal", item.literal),
            ("blocks", item.blocks),
        ):
            lines.append(f"  {label} ({len(tokens)})")
            lines.extend(f"    {_shorten(token)}" for token in tokens)
    lines.append(f"total: {inventory.total()}")
    return "\n".join(lines)


def render_audit(report: AuditReport) -> str:
    """Render audit verdicts, failures first."""

    lines: list[str] = [f"audit: {report.part}"]
    ordered = sorted(report.items, key=lambda item: item.status != "fail")
    for item in ordered:
        lines.append(f"  {item.status.upper():8} {item.kind}:{_shorten(item.key)}")
    if report.residual:
        lines.append(f"residual ({len(report.residual)}):")
        lines.extend(f"  {_shorten(token)}" for token in report.residual)
    lines.append(
        f"result={'PASSED' if report.ok else 'FAILED'} "
        f"pass={report.passed} fail={report.failed} total={len(report.items)}"
    )
    return "\n".join(lines)


def _shorten(text: str) -> str:
    if len(text) <= _MAX_TOKEN_WIDTH:
        return text
    return text[: _MAX_TOKEN_WIDTH - 3] + "..."
