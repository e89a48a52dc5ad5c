"""Decision matrix reconciliation.

Merges a dense score grid, sparse score observations and an index convention
into one canonical matrix where ``matrix[i][j]`` is the score of option ``i``
on criterion ``j``.
"""

from __future__ import annotations

import math
from typing import Dict, List, Optional, Sequence

from diagram_backend.changes import Criterion, MatrixOption, ScoreCell

DEFAULT_MAX_SCORE = 5.0
DEFAULT_INDEX_CONVENTION = "rowsAreOptions"


def _sanitize(value) -> float:
    """Non-numeric, non-finite and negative inputs all count as 0."""
    try:
        v = float(value)
    except (TypeError, ValueError):
        return 0.0
    if not math.isfinite(v) or v < 0:
        return 0.0
    return v


def _clamp(value: float, upper: float) -> float:
    return max(0.0, min(upper, value))


def _effective_max(cell_max: Optional[float], max_score: float) -> float:
    if cell_max is None:
        return max_score
    try:
        m = float(cell_max)
    except (TypeError, ValueError):
        return max_score
    if not math.isfinite(m) or m <= 0:
        return max_score
    return m


def _title_key(title: Optional[str]) -> str:
    return (title or "").strip().lower()


def _index_maps(entities) -> tuple:
    by_id: Dict[str, int] = {}
    by_title: Dict[str, int] = {}
    for i, e in enumerate(entities):
        by_id.setdefault(e.id, i)
        by_title.setdefault(_title_key(e.title), i)
    return by_id, by_title


def _resolve(ref_id: Optional[str], ref_title: Optional[str], by_id, by_title) -> Optional[int]:
    # exact id first, then trimmed case-insensitive title; an id the model
    # filled with a title still resolves through the title map
    if ref_id is not None and ref_id in by_id:
        return by_id[ref_id]
    for ref in (ref_title, ref_id):
        if ref is None:
            continue
        key = _title_key(ref)
        if key and key in by_title:
            return by_title[key]
    return None


def _transpose(grid: Sequence[Sequence]) -> List[List]:
    if not grid:
        return []
    width = max((len(r) for r in grid if isinstance(r, (list, tuple))), default=0)
    out: List[List] = []
    for j in range(width):
        col = []
        for row in grid:
            if isinstance(row, (list, tuple)) and j < len(row):
                col.append(row[j])
            else:
                col.append(None)
        out.append(col)
    return out


def reconcile(
    options: Sequence[MatrixOption],
    criteria: Sequence[Criterion],
    scores: Optional[Sequence[Sequence]] = None,
    score_cells: Optional[Sequence[ScoreCell]] = None,
    max_score: Optional[float] = DEFAULT_MAX_SCORE,
    index_convention: Optional[str] = DEFAULT_INDEX_CONVENTION,
) -> List[List[float]]:
    """Build the dense ``len(options) x len(criteria)`` score matrix.

    Dense ``scores`` are copied positionally (transposed first when
    ``index_convention == "rowsAreCriteria"``) and clamped to
    ``[0, max_score]``. Sparse ``score_cells`` are then applied in input
    order, each clamped to ``[0, cell.max or max_score]``; the last write for a
    given cell wins. Cells that do not resolve on both axes are skipped.
    Empty options or criteria give an empty matrix.
    """
    if not options or not criteria:
        return []

    upper = _effective_max(max_score, DEFAULT_MAX_SCORE)
    rows, cols = len(options), len(criteria)
    matrix = [[0.0] * cols for _ in range(rows)]

    if isinstance(scores, (list, tuple)):
        grid = _transpose(scores) if index_convention == "rowsAreCriteria" else scores
        for i in range(min(rows, len(grid))):
            row = grid[i]
            if not isinstance(row, (list, tuple)):
                continue
            for j in range(min(cols, len(row))):
                matrix[i][j] = _clamp(_sanitize(row[j]), upper)

    if score_cells:
        opt_by_id, opt_by_title = _index_maps(options)
        cri_by_id, cri_by_title = _index_maps(criteria)
        for cell in score_cells:
            i = _resolve(cell.option_id, cell.option_title, opt_by_id, opt_by_title)
            j = _resolve(cell.criterion_id, cell.criterion_title, cri_by_id, cri_by_title)
            if i is None or j is None:
                continue
            matrix[i][j] = _clamp(_sanitize(cell.value), _effective_max(cell.max, upper))

    return matrix


def criterion_weight(criterion: Criterion) -> float:
    if criterion.weight is None:
        return 1.0
    return _sanitize(criterion.weight)


def weighted_totals(matrix: Sequence[Sequence[float]], criteria: Sequence[Criterion]) -> List[float]:
    """Per-option weighted average sum(score * weight) / sum(weight), 1 decimal."""
    weights = [criterion_weight(c) for c in criteria]
    total_weight = sum(weights)
    totals: List[float] = []
    for row in matrix:
        if total_weight <= 0:
            totals.append(0.0)
            continue
        weighted = sum(score * w for score, w in zip(row, weights))
        totals.append(round(weighted / total_weight, 1))
    return totals


def score_bucket(score: float, max_score: float = DEFAULT_MAX_SCORE) -> str:
    """Threshold bucket used to color a score cell."""
    if score >= 0.8 * max_score:
        return "strong"
    if score >= 0.6 * max_score:
        return "good"
    if score >= 0.4 * max_score:
        return "weak"
    if score >= 1:
        return "poor"
    return "neutral"
