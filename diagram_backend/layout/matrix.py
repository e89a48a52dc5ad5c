from __future__ import annotations

from typing import Dict, List, Optional

from diagram_backend.changes import CreateDecisionMatrixChange, MatrixOption
from diagram_backend.layout.geometry import EMPTY_EXTENT, LINE_HEIGHT, CanvasExtent, text_size
from diagram_backend.layout.placements import PlacementOp, PlaceShape, shape_id, unique_keys
from diagram_backend.reconcile import (
    DEFAULT_INDEX_CONVENTION,
    DEFAULT_MAX_SCORE,
    reconcile,
    score_bucket,
    weighted_totals,
)

DEFAULT_CELL_WIDTH = 100
DEFAULT_CELL_HEIGHT = 60
DEFAULT_GAP = 20
DEFAULT_HEADER_HEIGHT = 40
DEFAULT_HEADER_WIDTH = 120
NOTES_MARGIN = 30
NOTES_WIDTH = 360

BUCKET_COLORS = {
    "strong": "green",
    "good": "yellow",
    "weak": "orange",
    "poor": "red",
    "neutral": "grey",
}
TOTAL_COLOR = "violet"


def _pick(*values, default):
    for v in values:
        if v is not None:
            return v
    return default


def _format_score(value: float) -> str:
    return str(int(value)) if float(value).is_integer() else f"{value:g}"


def _option_key_matches(key: str, option: MatrixOption) -> bool:
    if key == option.id:
        return True
    return key.strip().lower() == option.title.strip().lower()


def _pros_cons_text(option: MatrixOption, pros: Dict[str, List[str]], cons: Dict[str, List[str]]) -> Optional[str]:
    lines: List[str] = []
    for key, items in pros.items():
        if _option_key_matches(key, option):
            lines.extend(f"+ {item}" for item in items)
    for key, items in cons.items():
        if _option_key_matches(key, option):
            lines.extend(f"- {item}" for item in items)
    if not lines:
        return None
    return "\n".join([option.title] + lines)


def layout_decision_matrix(change: CreateDecisionMatrixChange, extent: CanvasExtent = EMPTY_EXTENT) -> List[PlacementOp]:
    """Criteria header row, option header column, reconciled score grid and a
    weighted Total column; pros/cons and notes go below the grid as text."""
    meta = change.metadata
    cell_w = _pick(meta.cell_width, default=DEFAULT_CELL_WIDTH)
    cell_h = _pick(meta.cell_height, default=DEFAULT_CELL_HEIGHT)
    gap_x = _pick(meta.spacing_x, meta.spacing, default=DEFAULT_GAP)
    gap_y = _pick(meta.spacing_y, meta.spacing_x, meta.spacing, default=DEFAULT_GAP)
    header_h = _pick(meta.header_height, default=DEFAULT_HEADER_HEIGHT)
    header_w = _pick(meta.header_width, default=DEFAULT_HEADER_WIDTH)
    max_score = _pick(meta.max_score, default=DEFAULT_MAX_SCORE)
    if max_score <= 0:
        max_score = DEFAULT_MAX_SCORE
    convention = _pick(meta.index_convention, default=DEFAULT_INDEX_CONVENTION)
    x0, y0 = change.start_position.x, change.start_position.y
    scope = change.diagram_id

    options, criteria = change.options, change.criteria
    matrix = reconcile(options, criteria, change.scores, change.score_cells, max_score, convention)
    totals = weighted_totals(matrix, criteria)
    option_keys = unique_keys(o.id for o in options)
    criterion_keys = unique_keys(c.id for c in criteria)

    ops: List[PlacementOp] = []

    if meta.title:
        ops.append(PlaceShape(
            id=shape_id("decision-matrix", "title", scope=scope),
            x=x0,
            y=y0 - header_h,
            w=header_w + (len(criteria) + 1) * (cell_w + gap_x),
            h=header_h,
            label=meta.title,
            kind="text",
            size="l",
        ))

    def col_x(j: int) -> float:
        return x0 + header_w + j * (cell_w + gap_x)

    def row_y(i: int) -> float:
        return y0 + header_h + i * (cell_h + gap_y)

    for j, criterion in enumerate(criteria):
        label = criterion.title
        if criterion.weight:
            label += f"\n(W: {_format_score(criterion.weight)})"
        ops.append(PlaceShape(
            id=shape_id("decision-matrix", "criterion", criterion_keys[j], scope=scope),
            x=col_x(j),
            y=y0,
            w=cell_w,
            h=header_h,
            label=label,
            color=criterion.color or "blue",
        ))

    for i, option in enumerate(options):
        label = option.title
        if option.description:
            label += f"\n{option.description}"
        ops.append(PlaceShape(
            id=shape_id("decision-matrix", "option", option_keys[i], scope=scope),
            x=x0,
            y=row_y(i),
            w=header_w,
            h=cell_h,
            label=label,
            color=option.color or "green",
        ))

    for i, option in enumerate(options):
        for j, criterion in enumerate(criteria):
            score = matrix[i][j]
            ops.append(PlaceShape(
                id=shape_id("decision-matrix", "score", option_keys[i], criterion_keys[j], scope=scope),
                x=col_x(j),
                y=row_y(i),
                w=cell_w,
                h=cell_h,
                label=_format_score(score),
                color=BUCKET_COLORS[score_bucket(score, max_score)],
            ))

    if options and criteria:
        total_x = col_x(len(criteria))
        ops.append(PlaceShape(
            id=shape_id("decision-matrix", "total", "header", scope=scope),
            x=total_x,
            y=y0,
            w=cell_w,
            h=header_h,
            label="Total",
            color=TOTAL_COLOR,
        ))
        for i, option in enumerate(options):
            ops.append(PlaceShape(
                id=shape_id("decision-matrix", "total", option_keys[i], scope=scope),
                x=total_x,
                y=row_y(i),
                w=cell_w,
                h=cell_h,
                label=f"{totals[i]:.1f}",
                color=TOTAL_COLOR,
            ))

    # pros / cons / notes stack below the grid
    cursor_y = row_y(len(options)) + NOTES_MARGIN
    pros = change.advantages or {}
    cons = change.disadvantages or {}
    for i, option in enumerate(options):
        text = _pros_cons_text(option, pros, cons)
        if text is None:
            continue
        size = text_size(text, max_width=NOTES_WIDTH)
        ops.append(PlaceShape(
            id=shape_id("decision-matrix", "proscons", option_keys[i], scope=scope),
            x=x0,
            y=cursor_y,
            w=NOTES_WIDTH,
            h=size.h,
            label=text,
            kind="text",
        ))
        cursor_y += size.h + LINE_HEIGHT / 2

    notes = [n for n in (change.notes or []) if n and n.strip()]
    if notes:
        text = "\n".join(f"* {n.strip()}" for n in notes)
        size = text_size(text, max_width=NOTES_WIDTH)
        ops.append(PlaceShape(
            id=shape_id("decision-matrix", "notes", scope=scope),
            x=x0,
            y=cursor_y,
            w=NOTES_WIDTH,
            h=size.h,
            label=text,
            kind="text",
        ))

    return ops
