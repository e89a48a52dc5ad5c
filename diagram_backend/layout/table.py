from __future__ import annotations

from typing import Callable, List, Optional

from diagram_backend.changes import CreateTableChange
from diagram_backend.layout.geometry import EMPTY_EXTENT, LINE_HEIGHT, CanvasExtent, Size
from diagram_backend.layout.placements import PlacementOp, PlaceShape, ResizeShape, shape_id

DEFAULT_COL_WIDTH = 120
DEFAULT_ROW_HEIGHT = 80
DEFAULT_SPACING = 6

HEADER_COLOR = "light-blue"
EVEN_ROW_COLOR = "light-green"
ODD_ROW_COLOR = "light-red"

Measure = Callable[[PlaceShape], Size]


def column_width(content: str, base_width: float) -> float:
    return max(base_width, 40 + 10 * len((content or "").strip()))


def static_row_height(contents: List[str], base_height: float) -> float:
    lines = max((len((c or "").split("\n")) for c in contents), default=1)
    return max(base_height, lines * LINE_HEIGHT)


def _band_color(row_index: int) -> str:
    if row_index == 0:
        return HEADER_COLOR
    return EVEN_ROW_COLOR if row_index % 2 == 0 else ODD_ROW_COLOR


def layout_table(
    change: CreateTableChange,
    extent: CanvasExtent = EMPTY_EXTENT,
    measure: Optional[Measure] = None,
) -> List[PlacementOp]:
    """Grid of cells, top to bottom, with per-column widths.

    Without ``measure`` (or with ``sizing == "static"``) row heights are a
    line-count estimate. With ``measure`` each row is placed at the estimate,
    every cell is measured, and the row is resized to the tallest measured
    cell before the next row is laid out. Rows whose cell count differs from
    the header row are skipped.
    """
    if not change.rows:
        return []

    meta = change.metadata
    base_w = meta.col_width or DEFAULT_COL_WIDTH
    base_h = meta.row_height or DEFAULT_ROW_HEIGHT
    spacing = DEFAULT_SPACING if meta.spacing is None else meta.spacing
    two_pass = measure is not None and meta.sizing == "measured"
    scope = change.diagram_id

    n_cols = len(change.rows[0].cells)
    rows = [(r, row) for r, row in enumerate(change.rows) if len(row.cells) == n_cols]

    widths = [float(base_w)] * n_cols
    for _, row in rows:
        for c, cell in enumerate(row.cells):
            widths[c] = max(widths[c], column_width(cell.content, base_w))

    ops: List[PlacementOp] = []
    y = change.start_position.y
    for r, row in rows:
        height = static_row_height([cell.content for cell in row.cells], base_h)
        placed: List[PlaceShape] = []
        x = change.start_position.x
        for c, cell in enumerate(row.cells):
            placed.append(PlaceShape(
                id=shape_id("table", "cell", r, c, scope=scope),
                x=x,
                y=y,
                w=widths[c],
                h=height,
                label=cell.content or "",
                color=cell.color or _band_color(r),
                size="l" if r == 0 else "m",
            ))
            x += widths[c] + spacing
        ops.extend(placed)

        if two_pass:
            measured = [measure(p).h for p in placed]
            height = max([height] + measured)
            ops.extend(ResizeShape(p.id, h=height) for p in placed)

        y += height + spacing

    return ops
