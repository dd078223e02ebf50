"""Output artifacts of the CLI, written through temp file + rename."""

from __future__ import annotations

import os
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from core.render.models import RewriteOutput, RewriteReport
from core.utils.events import dump_json

_EMPTY_REPORT: dict[str, Any] = {
    "parts": [],
    "entries": [],
    "unresolved": [],
    "media": [],
    "summary": {},
}


@dataclass(frozen=True)
class OutputPaths:
    """Fixed artifact paths of one rewrite."""

    docx: Path
    report: Path


def build_output_paths(out_dir: Path) -> OutputPaths:
    return OutputPaths(docx=out_dir / "out.docx", report=out_dir / "out.rewrite_report.json")


def existing_output_files(paths: OutputPaths) -> list[Path]:
    return [path for path in (paths.docx, paths.report) if path.exists()]


def write_rewrite_output_atomic(paths: OutputPaths, output: RewriteOutput) -> None:
    """Write the archive first, then its report; a failed archive write leaves no report."""

    _replace_atomically(paths.docx, output.archive)
    write_json_atomic(paths.report, output.report.model_dump(mode="json"))


def write_fallback_json_atomic(
    paths: OutputPaths,
    *,
    error_type: str,
    error_message: str,
    stage: str,
    docx_write_error: str | None = None,
    base_report: RewriteReport | None = None,
) -> None:
    """Write the report artifact for a failed rewrite.

    The partial report (when the pipeline got far enough to build one) is
    kept and an ``error`` block naming the failing stage is added.
    """

    payload = base_report.model_dump(mode="json") if base_report else dict(_EMPTY_REPORT)
    payload["error"] = {
        "error_type": error_type,
        "error_message": error_message,
        "stage": stage,
        "docx_write_error": docx_write_error,
    }
    write_json_atomic(paths.report, payload)


def write_json_atomic(path: Path, payload: dict[str, Any]) -> None:
    _replace_atomically(path, dump_json(payload).encode("utf-8"))


def _replace_atomically(path: Path, data: bytes) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, name = tempfile.mkstemp(dir=path.parent, prefix=f"{path.name}.", suffix=".tmp")
    os.close(fd)
    staged = Path(name)
    try:
        staged.write_bytes(data)
        staged.replace(path)
    except BaseException:
        staged.unlink(missing_ok=True)
        raise
