"""Typer CLI entrypoint for the Gutachten template rewriter."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Annotated, Literal, cast

import typer

from apps.cli.format_human import render_audit, render_inventory, render_rewrite_summary
from apps.cli.io import (
    OutputPaths,
    build_output_paths,
    existing_output_files,
    write_fallback_json_atomic,
    write_json_atomic,
    write_rewrite_output_atomic,
)
from core.orchestrator.pipeline import rewrite_template
from core.record.models import load_record
from core.render.audit import audit_archive
from core.render.models import RewriteOutput, RewriteReport
from core.templates.placeholder_scan import scan_placeholders
from core.templates.profile_loader import load_profile
from core.utils.errors import TemplateError
from core.utils.events import log_event

app = typer.Typer(help="Gutachten template rewriter CLI", rich_markup_mode=None)
logger = logging.getLogger("gutachten.cli")
MalformedMode = Literal["error", "warn"]

_LOG_FORMAT = "%(levelname)s %(name)s %(message)s"


@app.callback()
def cli_callback(
    log_level: Annotated[
        str, typer.Option("--log-level", help="Python logging level for engine events.")
    ] = "WARNING",
) -> None:
    """Configure logging for every command."""

    level = logging.getLevelName(log_level.upper().strip())
    if not isinstance(level, int):
        typer.echo(f"ERROR: unknown log level: {log_level}")
        raise typer.Exit(code=1)
    logging.basicConfig(level=level, format=_LOG_FORMAT)


@app.command("rewrite")
def rewrite_command(
    template: Annotated[Path, typer.Option(..., exists=True, dir_okay=False, file_okay=True)],
    record: Annotated[Path, typer.Option(..., exists=True, dir_okay=False, file_okay=True)],
    out_dir: Annotated[Path, typer.Option()] = Path("."),
    profile: Annotated[Path | None, typer.Option()] = None,
    reference_year: Annotated[
        int | None,
        typer.Option(help="Year used for derived values; defaults to the current year."),
    ] = None,
    malformed_mode: Annotated[str, typer.Option()] = "error",
    fetch_media: Annotated[
        bool,
        typer.Option("--fetch-media/--no-fetch-media", help="Fetch http(s) media sources."),
    ] = True,
    force: Annotated[
        bool, typer.Option("--force", help="Overwrite outputs when they already exist.")
    ] = False,
    no_overwrite: Annotated[
        bool,
        typer.Option(
            "--no-overwrite",
            help="Fail when outputs already exist.",
        ),
    ] = False,
) -> None:
    """Fill one template with one record and write fixed output artifacts."""

    paths = build_output_paths(out_dir)
    normalized_mode = malformed_mode.lower().strip()
    if normalized_mode not in {"error", "warn"}:
        typer.echo("ERROR: --malformed-mode must be one of: error, warn.")
        _safe_write_exit1_fallback(
            paths,
            "ArgumentValidationError",
            "invalid malformed_mode",
            "args",
        )
        raise typer.Exit(code=1)
    malformed_mode_typed = cast(MalformedMode, normalized_mode)

    if force and no_overwrite:
        typer.echo("ERROR: --force and --no-overwrite cannot be used together.")
        _safe_write_exit1_fallback(paths, "ArgumentConflict", "conflicting overwrite flags", "args")
        raise typer.Exit(code=1)

    existing = existing_output_files(paths)
    if existing and no_overwrite:
        typer.echo("ERROR: outputs already exist and --no-overwrite is enabled.")
        raise typer.Exit(code=1)
    if existing:
        names = ", ".join(path.name for path in existing)
        typer.echo(f"INFO: overwriting existing outputs: {names}")

    output: RewriteOutput | None = None
    partial_report: RewriteReport | None = None
    error: Exception | None = None
    exit_code = 1
    failure_stage = "unknown"

    try:
        failure_stage = "load_record"
        record_model = load_record(record)
        failure_stage = "load_profile"
        profile_model = load_profile(profile)
        failure_stage = "load_template"
        template_bytes = template.read_bytes()
        failure_stage = "pipeline"
        output = rewrite_template(
            template_bytes,
            record_model,
            profile_model,
            reference_year=reference_year,
            malformed_mode=malformed_mode_typed,
            fetch_media=fetch_media,
        )
        exit_code = 0
    except TemplateError as exc:
        error = exc
        partial_report = exc.report
        typer.echo(f"ERROR: {type(exc).__name__}: {exc}")
    except Exception as exc:  # noqa: BLE001
        error = exc
        typer.echo(f"ERROR: {type(exc).__name__}: {exc}")

    if output is None:
        log_event(
            logger,
            logging.ERROR,
            "rewrite_failed",
            stage=failure_stage,
            error_type=type(error).__name__ if error is not None else "UnknownError",
        )
        _safe_write_exit1_fallback(
            paths,
            error_type=type(error).__name__ if error is not None else "UnknownError",
            error_message=str(error) if error is not None else "unexpected error",
            stage=failure_stage,
            base_report=partial_report,
        )
        raise typer.Exit(code=1)

    typer.echo(render_rewrite_summary(output.report))

    try:
        write_rewrite_output_atomic(paths, output)
    except Exception as write_exc:  # noqa: BLE001
        typer.echo(f"ERROR: write output failed: {write_exc}")
        _safe_write_exit1_fallback(
            paths,
            error_type=type(write_exc).__name__,
            error_message=str(write_exc),
            stage="write_docx",
            docx_write_error=str(write_exc),
            base_report=output.report,
        )
        raise typer.Exit(code=1) from write_exc

    if output.report.summary.failed_count:
        typer.echo(
            "ERROR: some replacements could not be written "
            f"(count={output.report.summary.failed_count})."
        )
        exit_code = 1
    if output.report.summary.unresolved_count:
        typer.echo(
            "WARNING(unresolved): leftover placeholders were swept "
            f"(count={output.report.summary.unresolved_count})."
        )

    if exit_code == 0:
        typer.echo("INFO: success")
    raise typer.Exit(code=exit_code)


@app.command("scan")
def scan_command(
    template: Annotated[Path, typer.Option(..., exists=True, dir_okay=False, file_okay=True)],
    profile: Annotated[Path | None, typer.Option()] = None,
    json_out: Annotated[
        Path | None, typer.Option("--json-out", help="Also write the inventory as JSON.")
    ] = None,
) -> None:
    """List placeholder tokens still present in a template."""

    try:
        inventory = scan_placeholders(template.read_bytes(), load_profile(profile))
    except (TemplateError, ValueError) as exc:
        typer.echo(f"ERROR: {type(exc).__name__}: {exc}")
        raise typer.Exit(code=1) from exc

    typer.echo(render_inventory(inventory))
    if json_out is not None:
        write_json_atomic(
            json_out,
            {
                "parts": [
                    {
                        "part": item.part,
                        "named": item.named,
                        "literal": item.literal,
                        "blocks": item.blocks,
                    }
                    for item in inventory.parts
                ],
                "total": inventory.total(),
            },
        )


@app.command("audit")
def audit_command(
    docx: Annotated[Path, typer.Option(..., exists=True, dir_okay=False, file_okay=True)],
    record: Annotated[Path, typer.Option(..., exists=True, dir_okay=False, file_okay=True)],
    profile: Annotated[Path | None, typer.Option()] = None,
    reference_year: Annotated[int | None, typer.Option()] = None,
    json_out: Annotated[
        Path | None, typer.Option("--json-out", help="Also write the audit report as JSON.")
    ] = None,
) -> None:
    """Check a rewritten archive for leftover samples and missing values."""

    try:
        report = audit_archive(
            docx.read_bytes(),
            load_record(record),
            load_profile(profile),
            reference_year=reference_year,
        )
    except (TemplateError, ValueError) as exc:
        typer.echo(f"ERROR: {type(exc).__name__}: {exc}")
        raise typer.Exit(code=1) from exc

    typer.echo(render_audit(report))
    if json_out is not None:
        write_json_atomic(json_out, report.model_dump(mode="json"))
    if not report.ok:
        raise typer.Exit(code=4)


def _safe_write_exit1_fallback(
    paths: OutputPaths,
    error_type: str,
    error_message: str,
    stage: str,
    docx_write_error: str | None = None,
    base_report: RewriteReport | None = None,
) -> None:
    try:
        write_fallback_json_atomic(
            paths,
            error_type=error_type,
            error_message=error_message,
            stage=stage,
            docx_write_error=docx_write_error,
            base_report=base_report,
        )
    except Exception as exc:  # noqa: BLE001
        log_event(logger, logging.WARNING, "fallback_write_failed", stage=stage, reason=str(exc))


def main() -> None:
    """Console script entrypoint."""

    app()


if __name__ == "__main__":
    main()
