from __future__ import annotations

import copy
import io
import zipfile
from typing import Any

from core.record.models import GutachtenData
from core.text.run_index import RunTextIndex

W_NS = "http://schemas.openxmlformats.org/wordprocessingml/2006/main"
R_NS = "http://schemas.openxmlformats.org/officeDocument/2006/relationships"

CONTENT_TYPES = (
    '<?xml version="1.0" encoding="UTF-8" standalone="yes"?>'
    '<Types xmlns="http://schemas.openxmlformats.org/package/2006/content-types">'
    '<Default Extension="xml" ContentType="application/xml"/>'
    '<Default Extension="png" ContentType="image/png"/>'
    '<Default Extension="jpg" ContentType="image/jpeg"/>'
    "</Types>"
)

YELLOW = '<w:rPr><w:highlight w:val="yellow"/></w:rPr>'
RED_TEXT = '<w:rPr><w:color w:val="EE0000"/></w:rPr>'
BOLD = "<w:rPr><w:b/></w:rPr>"

MATRIX_HEADER = ["Maßnahme", "Hinweise", "", "max.", "Punkte"]
MATRIX_LABELS = [
    "Dacherneuerung inkl. Wärmedämmung",
    "Modernisierung der Fenster und Außentüren",
    "Modernisierung der Leitungssysteme",
    "Modernisierung der Heizungsanlage",
    "Wärmedämmung der Außenwände",
    "Modernisierung von Bädern",
    "Modernisierung des Innenausbaus",
    "Wesentliche Verbesserung der Grundrissgestaltung",
]

RECORD_PAYLOAD: dict[str, Any] = {
    "document": {"reportNumber": "301455"},
    "property": {
        "unitType": "2-Zimmer-Wohnung",
        "unitPosition": "EG links",
        "street": "Rosenweg 12",
        "zipCode": "22391",
        "city": "Hamburg",
    },
    "dates": {
        "valuationDate": "15.09.2025",
        "inspectionDate": "12.09.2025",
        "reportDate": "20.09.2025",
    },
    "client": {"name": "Tobias Sobkowiak"},
    "building": {
        "type": "Zweifamilienhaus",
        "yearBuilt": 1972,
        "energyClass": "C",
        "nutzungsart": "wohnwirtschaftlich",
    },
    "calculation": {"restnutzungsdauerYears": 35, "gesamtnutzungsdauerYears": 80},
    "areas": {"livingAreaM2": 72.5},
    "inspection": {
        "attendees": "Der Eigentümer",
        "areasVisited": "Flur, Wohnzimmer, Küche und Bad",
    },
    "narratives": {
        "useDescription": "Wohnwirtschaftliche Nutzung beider Einheiten.",
        "verticalAccess": "Die Erschließung erfolgt über ein innenliegendes Treppenhaus.",
        "insulation": "Die Dämmung wurde 2015 erneuert.",
        "barrierFree": "Das Haus ist nicht barrierefrei.",
        "modernizationList": "Fenster 2010, Heizung 2018.",
    },
    "modernization": {
        "roofRenewal": {"points": 0, "weight": 0},
        "windowModernization": {"points": 1, "weight": 0.5},
        "plumbingModernization": {"points": 0, "weight": 0},
        "heatingModernization": {"points": 1, "weight": 0.5},
        "wallInsulation": {"points": 0, "weight": 0},
        "bathroomModernization": {"points": 0, "weight": 0},
        "interiorModernization": {"points": 2, "weight": 0.5},
        "floorPlanImprovement": {"points": 0, "weight": 0},
    },
}


def record_payload(**overrides: dict[str, Any]) -> dict[str, Any]:
    payload = copy.deepcopy(RECORD_PAYLOAD)
    for group, values in overrides.items():
        current = payload.get(group)
        if isinstance(current, dict) and isinstance(values, dict):
            current.update(values)
        else:
            payload[group] = values
    return payload


def make_record(**overrides: dict[str, Any]) -> GutachtenData:
    return GutachtenData.model_validate(record_payload(**overrides))


def escape(text: str) -> str:
    return text.replace("&", "&amp;").replace("<", "&lt;").replace(">", "&gt;")


def run(text: str, rpr: str = "") -> str:
    return f'<w:r>{rpr}<w:t xml:space="preserve">{escape(text)}</w:t></w:r>'


def paragraph(*runs: str) -> str:
    return "<w:p>" + "".join(runs) + "</w:p>"


def cell(text: str) -> str:
    body = paragraph(run(text)) if text else "<w:p/>"
    return f"<w:tc>{body}</w:tc>"


def matrix_table(points: list[str] | None = None) -> str:
    points = points or ["0,0"] * len(MATRIX_LABELS)
    rows = ["<w:tr>" + "".join(cell(text) for text in MATRIX_HEADER) + "</w:tr>"]
    for label, value in zip(MATRIX_LABELS, points):
        rows.append("<w:tr>" + cell(label) + cell("4") + cell(value) + "</w:tr>")
    return "<w:tbl>" + "".join(rows) + "</w:tbl>"


def document_xml(*blocks: str) -> str:
    return (
        '<?xml version="1.0" encoding="UTF-8" standalone="yes"?>'
        f'<w:document xmlns:w="{W_NS}" xmlns:r="{R_NS}"><w:body>'
        + "".join(blocks)
        + "</w:body></w:document>"
    )


def header_xml(*blocks: str, tag: str = "hdr") -> str:
    return (
        '<?xml version="1.0" encoding="UTF-8" standalone="yes"?>'
        f'<w:{tag} xmlns:w="{W_NS}" xmlns:r="{R_NS}">' + "".join(blocks) + f"</w:{tag}>"
    )


def build_archive(parts: dict[str, str | bytes], *, comment: bytes = b"") -> bytes:
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w", zipfile.ZIP_DEFLATED) as archive:
        archive.writestr("[Content_Types].xml", CONTENT_TYPES)
        for name, data in parts.items():
            if isinstance(data, str):
                data = data.encode("utf-8")
            archive.writestr(name, data)
        archive.comment = comment
    return buffer.getvalue()


def read_part(archive_bytes: bytes, name: str) -> bytes:
    with zipfile.ZipFile(io.BytesIO(archive_bytes)) as archive:
        return archive.read(name)


def part_text(archive_bytes: bytes, name: str) -> str:
    return RunTextIndex.from_part(read_part(archive_bytes, name), name).combined_text
