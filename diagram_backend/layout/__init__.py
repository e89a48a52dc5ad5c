"""Deterministic layout engines, one per structural diagram kind."""

from typing import List, Optional

from diagram_backend.changes import (
    CreateDecisionMatrixChange,
    CreateLinearDiagramChange,
    CreateTableChange,
    CreateTimelineChange,
    StructuralChange,
)
from diagram_backend.layout.geometry import EMPTY_EXTENT, CanvasExtent, Rect, Size
from diagram_backend.layout.linear import layout_linear
from diagram_backend.layout.matrix import layout_decision_matrix
from diagram_backend.layout.placements import (
    PlacementOp,
    PlaceConnector,
    PlaceShape,
    RemoveShape,
    ResizeShape,
)
from diagram_backend.layout.table import Measure, layout_table
from diagram_backend.layout.timeline import layout_timeline


def layout_change(
    change: StructuralChange,
    extent: CanvasExtent = EMPTY_EXTENT,
    measure: Optional[Measure] = None,
) -> List[PlacementOp]:
    """Dispatch a structural change to its layout engine."""
    if isinstance(change, CreateLinearDiagramChange):
        return layout_linear(change, extent)
    if isinstance(change, CreateDecisionMatrixChange):
        return layout_decision_matrix(change, extent)
    if isinstance(change, CreateTableChange):
        return layout_table(change, extent, measure=measure)
    if isinstance(change, CreateTimelineChange):
        return layout_timeline(change, extent)
    raise TypeError(f"No layout engine for change type: {type(change).__name__}")


__all__ = [
    "CanvasExtent",
    "EMPTY_EXTENT",
    "Measure",
    "PlaceConnector",
    "PlaceShape",
    "PlacementOp",
    "Rect",
    "RemoveShape",
    "ResizeShape",
    "Size",
    "layout_change",
    "layout_decision_matrix",
    "layout_linear",
    "layout_table",
    "layout_timeline",
]
