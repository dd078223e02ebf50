from __future__ import annotations

import io
import zipfile

import pytest

from core.archive.store import ArchiveStore
from core.templates.models import PartsConfig
from core.utils.errors import ArchiveError, MissingMandatoryPartError
from tests.helpers import build_archive, document_xml, header_xml, paragraph, run


def _archive() -> bytes:
    return build_archive(
        {
            "word/document.xml": document_xml(paragraph(run("Text"))),
            "word/footer2.xml": header_xml(paragraph(run("Fuß")), tag="ftr"),
            "word/header1.xml": header_xml(paragraph(run("Kopf"))),
            "word/headerStyles.xml": "<x/>",
            "word/media/image9.jpg": b"\xff\xd8",
        },
        comment=b"kommentar",
    )


def test_text_parts_start_with_main_then_archive_order() -> None:
    store = ArchiveStore.load(_archive())

    assert store.text_parts(PartsConfig()) == [
        "word/document.xml",
        "word/footer2.xml",
        "word/header1.xml",
    ]


def test_serialize_keeps_order_compression_and_comment() -> None:
    original = _archive()
    store = ArchiveStore.load(original)

    store.write_part("word/media/image9.jpg", b"\xff\xd8 neu")
    rewritten = store.serialize()

    with zipfile.ZipFile(io.BytesIO(original)) as before, zipfile.ZipFile(
        io.BytesIO(rewritten)
    ) as after:
        assert after.namelist() == before.namelist()
        assert after.comment == b"kommentar"
        assert [info.compress_type for info in after.infolist()] == [
            info.compress_type for info in before.infolist()
        ]
        assert [info.date_time for info in after.infolist()] == [
            info.date_time for info in before.infolist()
        ]
        assert after.read("word/media/image9.jpg") == b"\xff\xd8 neu"
        assert after.read("word/header1.xml") == before.read("word/header1.xml")


def test_unchanged_store_serializes_identical_content() -> None:
    original = _archive()

    first = ArchiveStore.load(original).serialize()
    second = ArchiveStore.load(first).serialize()

    assert first == second


def test_write_part_rejects_new_members() -> None:
    store = ArchiveStore.load(_archive())

    with pytest.raises(KeyError):
        store.write_part("word/media/image99.png", b"x")
    assert store.read_part("word/media/image99.png") is None


def test_require_part_raises_for_missing_main() -> None:
    store = ArchiveStore.load(build_archive({"word/header1.xml": "<x/>"}))

    with pytest.raises(MissingMandatoryPartError) as exc_info:
        store.require_part("word/document.xml")

    assert exc_info.value.part == "word/document.xml"


def test_load_rejects_non_archive_bytes() -> None:
    with pytest.raises(ArchiveError, match="not a readable document archive"):
        ArchiveStore.load(b"PK\x03\x04 truncated")


def test_list_parts_skips_directories() -> None:
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w") as archive:
        archive.writestr("word/", b"")
        archive.writestr("word/document.xml", b"<x/>")

    store = ArchiveStore.load(buffer.getvalue())

    assert store.list_parts() == ["word/document.xml"]
    assert store.list_parts(lambda name: name.startswith("docProps/")) == []
