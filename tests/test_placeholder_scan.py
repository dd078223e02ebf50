from __future__ import annotations

import pytest

from core.templates.placeholder_scan import scan_placeholders
from core.templates.profile_loader import load_profile
from core.utils.errors import MissingMandatoryPartError
from tests.helpers import build_archive, document_xml, header_xml, paragraph, run


def test_scan_lists_distinct_tokens_per_part() -> None:
    archive = build_archive(
        {
            "word/document.xml": document_xml(
                paragraph(run("{{ client_name }} und "), run("{{"), run("client_name}}")),
                paragraph(run("Baujahr { 1964 }, Stichtag {07.10.2025}, [kurz]")),
                paragraph(run("[Wohnwirtschaftliche Nutzung des gesamten Gebäudes]")),
            ),
            "word/header1.xml": header_xml(paragraph(run("{{object_town}}"))),
            "word/footer1.xml": header_xml(paragraph(run("Seite")), tag="ftr"),
        }
    )

    inventory = scan_placeholders(archive, load_profile())

    document, header, footer = inventory.parts
    assert document.part == "word/document.xml"
    assert document.named == ["{{ client_name }}", "{{client_name}}"]
    assert document.literal == ["{ 1964 }", "{07.10.2025}"]
    assert document.blocks == ["[Wohnwirtschaftliche Nutzung des gesamten Gebäudes]"]
    assert header.named == ["{{object_town}}"]
    assert (footer.named, footer.literal, footer.blocks) == ([], [], [])
    assert inventory.total() == 6


def test_scan_requires_main_part() -> None:
    archive = build_archive({"word/header1.xml": header_xml(paragraph(run("x")))})

    with pytest.raises(MissingMandatoryPartError):
        scan_placeholders(archive, load_profile())


def test_scan_does_not_join_tokens_across_paragraphs() -> None:
    archive = build_archive(
        {
            "word/document.xml": document_xml(
                paragraph(run("Stichtag {{ object_")),
                paragraph(run("appraise_date }} und [Hinweis ohne Ende")),
                paragraph(run("in der Anlage zum Gutachten]")),
            )
        }
    )

    inventory = scan_placeholders(archive, load_profile())

    assert inventory.total() == 0
