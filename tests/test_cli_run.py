from __future__ import annotations

import json
from pathlib import Path

from typer.testing import CliRunner

from apps.cli.main import app
from tests.helpers import (
    YELLOW,
    build_archive,
    document_xml,
    header_xml,
    matrix_table,
    paragraph,
    record_payload,
    run,
)

runner = CliRunner()


def _write_template(path: Path, *, broken_main: bool = False) -> None:
    document: str | bytes = document_xml(
        paragraph(run("Auftraggeber: "), run("{{", YELLOW), run("client_name"), run("}}")),
        paragraph(run("Objekt in 21337 Lüneburg, Baujahr 1964")),
        paragraph(run("Besichtigt: [MANUELL: Teilnehmer]")),
        matrix_table(),
    )
    if broken_main:
        document = b"<w:document><w:body>"
    path.write_bytes(
        build_archive(
            {
                "word/document.xml": document,
                "word/header1.xml": header_xml(paragraph(run("{{ client_name }}"))),
            }
        )
    )


def _write_record(path: Path, **overrides: dict[str, object]) -> None:
    path.write_text(json.dumps(record_payload(**overrides)), encoding="utf-8")


def _rewrite_args(root: Path, *extra: str) -> list[str]:
    return [
        "rewrite",
        "--template",
        str(root / "template.docx"),
        "--record",
        str(root / "record.json"),
        "--out-dir",
        str(root / "out"),
        "--reference-year",
        "2025",
        "--no-fetch-media",
        *extra,
    ]


def test_cli_rewrite_success_writes_two_outputs(tmp_path: Path) -> None:
    _write_template(tmp_path / "template.docx")
    _write_record(tmp_path / "record.json")

    result = runner.invoke(app, _rewrite_args(tmp_path))

    assert result.exit_code == 0
    assert "rewrite_summary:" in result.output
    assert "WARNING(unresolved)" in result.output
    assert "INFO: success" in result.output
    out_dir = tmp_path / "out"
    assert (out_dir / "out.docx").exists()
    report = json.loads((out_dir / "out.rewrite_report.json").read_text(encoding="utf-8"))
    assert report["summary"]["failed_count"] == 0
    assert report["summary"]["matrix_found"] is True
    assert report["reference_year"] == 2025
    assert "error" not in report


def test_cli_rewrite_failed_replacement_exits_1_but_writes_document(tmp_path: Path) -> None:
    _write_template(tmp_path / "template.docx")
    _write_record(tmp_path / "record.json", client={"name": "Bad\x0bName"})

    result = runner.invoke(app, _rewrite_args(tmp_path))

    assert result.exit_code == 1
    assert "some replacements could not be written" in result.output
    assert (tmp_path / "out" / "out.docx").exists()


def test_cli_malformed_main_part_writes_fallback_report(tmp_path: Path) -> None:
    _write_template(tmp_path / "template.docx", broken_main=True)
    _write_record(tmp_path / "record.json")

    result = runner.invoke(app, _rewrite_args(tmp_path))

    assert result.exit_code == 1
    assert "MalformedMarkupError" in result.output
    out_dir = tmp_path / "out"
    assert not (out_dir / "out.docx").exists()
    payload = json.loads((out_dir / "out.rewrite_report.json").read_text(encoding="utf-8"))
    assert payload["error"]["stage"] == "pipeline"
    assert payload["error"]["error_type"] == "MalformedMarkupError"
    assert payload["profile_version"] == "v3"


def test_cli_invalid_record_reports_load_stage(tmp_path: Path) -> None:
    _write_template(tmp_path / "template.docx")
    (tmp_path / "record.json").write_text("{not json", encoding="utf-8")

    result = runner.invoke(app, _rewrite_args(tmp_path))

    assert result.exit_code == 1
    payload = json.loads(
        (tmp_path / "out" / "out.rewrite_report.json").read_text(encoding="utf-8")
    )
    assert payload["error"]["stage"] == "load_record"
    assert payload["error"]["error_type"] == "ValueError"


def test_cli_rejects_invalid_malformed_mode(tmp_path: Path) -> None:
    _write_template(tmp_path / "template.docx")
    _write_record(tmp_path / "record.json")

    result = runner.invoke(app, _rewrite_args(tmp_path, "--malformed-mode", "ignore"))

    assert result.exit_code == 1
    assert "--malformed-mode must be one of" in result.output


def test_cli_overwrite_flags(tmp_path: Path) -> None:
    _write_template(tmp_path / "template.docx")
    _write_record(tmp_path / "record.json")

    conflict = runner.invoke(app, _rewrite_args(tmp_path, "--force", "--no-overwrite"))
    assert conflict.exit_code == 1
    assert "cannot be used together" in conflict.output

    first = runner.invoke(app, _rewrite_args(tmp_path))
    assert first.exit_code == 0

    blocked = runner.invoke(app, _rewrite_args(tmp_path, "--no-overwrite"))
    assert blocked.exit_code == 1
    assert "outputs already exist" in blocked.output

    again = runner.invoke(app, _rewrite_args(tmp_path))
    assert again.exit_code == 0
    assert "overwriting existing outputs" in again.output


def test_cli_scan_prints_inventory_and_writes_json(tmp_path: Path) -> None:
    _write_template(tmp_path / "template.docx")
    json_out = tmp_path / "inventory.json"

    result = runner.invoke(
        app,
        ["scan", "--template", str(tmp_path / "template.docx"), "--json-out", str(json_out)],
    )

    assert result.exit_code == 0
    assert "word/header1.xml:" in result.output
    payload = json.loads(json_out.read_text(encoding="utf-8"))
    assert payload["parts"][1]["named"] == ["{{ client_name }}"]
    assert payload["total"] >= 2


def test_cli_audit_exit_codes(tmp_path: Path) -> None:
    _write_template(tmp_path / "template.docx")
    _write_record(tmp_path / "record.json")
    assert runner.invoke(app, _rewrite_args(tmp_path)).exit_code == 0

    passed = runner.invoke(
        app,
        [
            "audit",
            "--docx",
            str(tmp_path / "out" / "out.docx"),
            "--record",
            str(tmp_path / "record.json"),
            "--reference-year",
            "2025",
        ],
    )
    failed = runner.invoke(
        app,
        [
            "audit",
            "--docx",
            str(tmp_path / "template.docx"),
            "--record",
            str(tmp_path / "record.json"),
            "--reference-year",
            "2025",
            "--json-out",
            str(tmp_path / "audit.json"),
        ],
    )

    assert passed.exit_code == 0
    assert "result=PASSED" in passed.output
    assert failed.exit_code == 4
    assert "result=FAILED" in failed.output
    assert json.loads((tmp_path / "audit.json").read_text(encoding="utf-8"))["residual"]


def test_cli_rejects_unknown_log_level(tmp_path: Path) -> None:
    _write_template(tmp_path / "template.docx")

    result = runner.invoke(
        app, ["--log-level", "LOUD", "scan", "--template", str(tmp_path / "template.docx")]
    )

    assert result.exit_code == 1
    assert "unknown log level" in result.output
