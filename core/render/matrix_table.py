"""Positional injection into the fixed-shape modernization table.

The table is located by an anchor label rather than by its position in the
document. Its cells are flattened row by row; the configured cell indices
receive the formatted per-row values in category order.
"""

from __future__ import annotations

import logging

from lxml import etree

from core.templates.models import MatrixConfig
from core.text.run_index import RunTextIndex
from core.utils.docx_xml import (
    element_text,
    flatten_table_cells,
    iter_tables,
    iter_text_elements,
    parse_part,
)
from core.utils.errors import MalformedMarkupError
from core.utils.events import log_event

logger = logging.getLogger("gutachten.render")


def inject_matrix(
    index: RunTextIndex, config: MatrixConfig, values: list[str] | tuple[str, ...]
) -> tuple[RunTextIndex, bool]:
    """Write values into the anchor table; returns (index, anchor_found).

    Indices beyond the table's cell count and cells without a text element
    are skipped.
    """

    if config.anchor not in index.combined_text:
        return index, False

    root = parse_part(index.to_bytes(), index.part)
    table = _find_anchor_table(root, config.anchor)
    if table is None:
        return index, False

    text_elements = list(iter_text_elements(root))
    if len(text_elements) != len(index.segments):
        raise MalformedMarkupError(
            f"Text element count mismatch in part {index.part}: "
            f"{len(text_elements)} parsed, {len(index.segments)} indexed",
            part=index.part,
        )
    ordinals = {element: ordinal for ordinal, element in enumerate(text_elements)}

    cells = flatten_table_cells(table)
    written = 0
    for row, (cell_index, value) in enumerate(zip(config.cell_indices, values)):
        if cell_index >= len(cells):
            log_event(
                logger,
                logging.WARNING,
                "matrix_cell_out_of_range",
                part=index.part,
                row=row,
                cell=cell_index,
                cells=len(cells),
            )
            continue
        first_text = next(iter_text_elements(cells[cell_index]), None)
        if first_text is None:
            continue
        index = index.set_segment_text(ordinals[first_text], value, key=f"matrix[{row}]")
        written += 1

    log_event(logger, logging.DEBUG, "matrix_injected", part=index.part, cells_written=written)
    return index, True


def _find_anchor_table(root: etree._Element, anchor: str) -> etree._Element | None:
    candidates = [table for table in iter_tables(root) if anchor in element_text(table)]
    for table in candidates:
        if not any(other is not table and _is_descendant(other, table) for other in candidates):
            return table
    return None


def _is_descendant(element: etree._Element, ancestor: etree._Element) -> bool:
    return any(parent is ancestor for parent in element.iterancestors())
