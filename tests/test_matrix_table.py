from __future__ import annotations

import pytest
from pydantic.alias_generators import to_camel

from core.record.derived import compute_derived, format_decimal
from core.render.matrix_table import inject_matrix
from core.templates.models import MatrixConfig, PageEstimateConfig
from core.templates.profile_loader import load_profile
from core.text.run_index import RunTextIndex
from tests.helpers import document_xml, make_record, matrix_table, paragraph, run

PART = "word/document.xml"


def _config() -> MatrixConfig:
    profile = load_profile()
    assert profile.matrix is not None
    return profile.matrix


def _record_with_points(items: list[tuple[float, float]]):
    categories = _config().categories
    modernization = {
        to_camel(name): {"points": points, "weight": weight}
        for name, (points, weight) in zip(categories, items)
    }
    return make_record(modernization=modernization)


def test_matrix_values_are_written_into_points_cells() -> None:
    record = _record_with_points(
        [(0, 0), (1, 0.5), (0, 0), (1, 0.5), (0, 0), (0, 0), (2, 0.5), (0, 0)]
    )
    derived = compute_derived(
        record,
        page_config=PageEstimateConfig(),
        categories=_config().categories,
        reference_year=2025,
    )
    index = RunTextIndex(
        document_xml(paragraph(run("Modernisierungsgrad")), matrix_table(["9,9"] * 8)), part=PART
    )

    updated, found = inject_matrix(index, _config(), derived.matrix_values)

    assert found is True
    assert derived.matrix_values == ("0,0", "0,5", "0,0", "0,5", "0,0", "0,0", "1,0", "0,0")
    assert derived.total_points == "2,0"
    points = [segment.text for segment in updated.segments if "," in segment.text]
    assert points == ["0,0", "0,5", "0,0", "0,5", "0,0", "0,0", "1,0", "0,0"]
    assert "9,9" not in updated.combined_text


def test_matrix_is_skipped_without_anchor() -> None:
    index = RunTextIndex(document_xml(paragraph(run("Keine Tabelle"))), part=PART)

    updated, found = inject_matrix(index, _config(), ["1,0"] * 8)

    assert found is False
    assert updated.xml == index.xml


def test_out_of_range_indices_are_skipped() -> None:
    config = MatrixConfig(anchor="Dacherneuerung", cell_indices=[7, 99], categories=["a", "b"])
    index = RunTextIndex(document_xml(matrix_table()), part=PART)

    updated, found = inject_matrix(index, config, ["3,0", "4,0"])

    assert found is True
    assert "3,0" in updated.combined_text
    assert "4,0" not in updated.combined_text


def test_innermost_table_holding_anchor_is_used() -> None:
    outer = (
        "<w:tbl><w:tr><w:tc>"
        + paragraph(run("Rahmen"))
        + matrix_table()
        + "</w:tc></w:tr></w:tbl>"
    )
    index = RunTextIndex(document_xml(outer), part=PART)

    updated, found = inject_matrix(index, _config(), ["7,5"] + ["0,0"] * 7)

    assert found is True
    assert updated.combined_text.count("7,5") == 1
    assert "Rahmen" in updated.combined_text


@pytest.mark.parametrize(
    ("value", "expected"),
    [(0.25, "0,3"), (0.35, "0,4"), (2.0, "2,0"), (1.05, "1,1")],
)
def test_format_decimal_rounds_half_up(value: float, expected: str) -> None:
    assert format_decimal(value) == expected
