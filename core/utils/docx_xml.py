"""Utilities for docx XML operations.

All XML-level operations on docx content must be implemented here.
Do not spread XML manipulation logic across other modules.
"""

from __future__ import annotations

import re
from bisect import bisect_right
from collections.abc import Iterable, Iterator

from docx.oxml import parse_xml
from docx.oxml.ns import qn
from lxml import etree

from core.utils.errors import MalformedMarkupError, ReplacementEncodingError

# <w:t>text</w:t>, <w:t xml:space="preserve">text</w:t> and <w:t/>; never <w:tab/>, <w:tbl>, <w:tc>.
TEXT_ELEMENT_RE = re.compile(r"<w:t(?P<attrs>(?:\s[^>]*?)?)(?:/>|>(?P<text>[^<]*)</w:t>)")
RUN_OPEN_RE = re.compile(r"<w:r(?:\s[^>]*?)?(?<!/)>")
RUN_CLOSE = "</w:r>"
RUN_PROPERTIES_RE = re.compile(r"<w:rPr>.*?</w:rPr>|<w:rPr/>", re.DOTALL)
# <w:p>, <w:p w:rsidR="...">, <w:p/> and </w:p>; never <w:pPr> or <w:proofErr>.
PARAGRAPH_BOUNDARY_RE = re.compile(r"<w:p(?=[\s/>])|</w:p>")

_ENTITY_RE = re.compile(r"&(#x[0-9A-Fa-f]+|#[0-9]+|amp|lt|gt|quot|apos);")
_NAMED_ENTITIES = {"amp": "&", "lt": "<", "gt": ">", "quot": '"', "apos": "'"}
_INVALID_XML_CHARS_RE = re.compile("[\x00-\x08\x0b\x0c\x0e-\x1f\ud800-\udfff\ufffe\uffff]")
_PRESERVE_ATTR = ' xml:space="preserve"'


def parse_part(data: bytes, part: str) -> etree._Element:
    """Parse part bytes into an oxml element tree, raising on malformed markup."""

    try:
        return parse_xml(data)
    except etree.XMLSyntaxError as exc:
        raise MalformedMarkupError(f"Malformed markup in part {part}: {exc}", part=part) from exc


def decode_part(data: bytes, part: str) -> str:
    """Decode part bytes as UTF-8 text."""

    try:
        return data.decode("utf-8")
    except UnicodeDecodeError as exc:
        raise MalformedMarkupError(f"Part {part} is not UTF-8 encoded", part=part) from exc


def escape_text(text: str, *, key: str | None = None) -> str:
    """Escape the five reserved markup characters for element text content."""

    ensure_xml_text(text, key=key)
    return (
        text.replace("&", "&amp;")
        .replace("<", "&lt;")
        .replace(">", "&gt;")
        .replace('"', "&quot;")
        .replace("'", "&apos;")
    )


def unescape_text(text: str) -> str:
    """Resolve predefined and numeric character references in element text."""

    if "&" not in text:
        return text
    return _ENTITY_RE.sub(_resolve_entity, text)


def ensure_xml_text(text: str, *, key: str | None = None) -> None:
    """Raise ReplacementEncodingError when text holds characters XML 1.0 cannot carry."""

    match = _INVALID_XML_CHARS_RE.search(text)
    if match is not None:
        label = key if key is not None else "<unknown>"
        raise ReplacementEncodingError(
            f"Replacement for {label} contains non-representable character "
            f"U+{ord(match.group(0)):04X}",
            key=key,
        )


def render_text_element(attrs: str, escaped_text: str) -> str:
    """Render a <w:t> element around already-escaped text, keeping its attributes."""

    if escaped_text != escaped_text.strip() and "xml:space" not in attrs:
        attrs = attrs + _PRESERVE_ATTR
    return f"<w:t{attrs}>{escaped_text}</w:t>"


def run_open_positions(xml: str) -> list[int]:
    """Return start offsets of every <w:r> open tag, ascending."""

    return [match.start() for match in RUN_OPEN_RE.finditer(xml)]


def paragraph_boundaries(xml: str) -> list[int]:
    """Return offsets of every paragraph open or close tag, ascending."""

    return [match.start() for match in PARAGRAPH_BOUNDARY_RE.finditer(xml)]


def find_enclosing_run(
    xml: str, run_starts: list[int], start: int, end: int
) -> tuple[int, int] | None:
    """Return the (start, end) range of the <w:r> element around xml[start:end]."""

    position = bisect_right(run_starts, start) - 1
    if position < 0:
        return None
    open_start = run_starts[position]
    if xml.find(RUN_CLOSE, open_start, start) != -1:
        return None
    close = xml.find(RUN_CLOSE, end)
    if close == -1:
        return None
    return open_start, close + len(RUN_CLOSE)


def run_holds_only_text(run_xml: str) -> bool:
    """Return True when a run holds nothing but run properties and one text element."""

    body = RUN_PROPERTIES_RE.sub("", run_xml)
    body = TEXT_ELEMENT_RE.sub("", body, count=1)
    body = RUN_OPEN_RE.sub("", body, count=1).replace(RUN_CLOSE, "")
    return not body.strip()


def strip_highlights(xml: str, colors: Iterable[str]) -> tuple[str, int]:
    """Remove <w:highlight> elements with the given colours ("*" matches any)."""

    values = list(colors)
    if not values:
        return xml, 0
    if "*" in values:
        pattern = re.compile(r"<w:highlight\b[^>]*/>")
    else:
        alternatives = "|".join(re.escape(value) for value in values)
        pattern = re.compile(rf'<w:highlight\b[^>]*\bw:val="(?:{alternatives})"[^>]*/>')
    return pattern.subn("", xml)


def strip_font_colors(xml: str, hex_values: Iterable[str]) -> tuple[str, int]:
    """Remove <w:color> elements whose w:val is one of the given hex values."""

    values = list(hex_values)
    if not values:
        return xml, 0
    alternatives = "|".join(re.escape(value) for value in values)
    pattern = re.compile(
        rf'<w:color\b[^>]*\bw:val="(?:{alternatives})"[^>]*/>', re.IGNORECASE
    )
    return pattern.subn("", xml)


def iter_text_elements(element: etree._Element) -> Iterator[etree._Element]:
    """Yield <w:t> descendants in document order."""

    yield from element.iter(qn("w:t"))


def element_text(element: etree._Element) -> str:
    """Return concatenated <w:t> text under an element."""

    return "".join(node.text or "" for node in iter_text_elements(element))


def iter_tables(root: etree._Element) -> Iterator[etree._Element]:
    """Yield <w:tbl> elements in document order, nested tables included."""

    yield from root.iter(qn("w:tbl"))


def flatten_table_cells(table: etree._Element) -> list[etree._Element]:
    """Return the table's own cells row by row, excluding cells of nested tables."""

    cells: list[etree._Element] = []
    for row in table.iterchildren(qn("w:tr")):
        cells.extend(row.iterchildren(qn("w:tc")))
    return cells


def _resolve_entity(match: re.Match[str]) -> str:
    name = match.group(1)
    if name.startswith("#x"):
        return chr(int(name[2:], 16))
    if name.startswith("#"):
        return chr(int(name[1:]))
    return _NAMED_ENTITIES[name]
