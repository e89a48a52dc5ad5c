from __future__ import annotations

from typing import List

from diagram_backend.changes import CreateLinearDiagramChange
from diagram_backend.layout.geometry import EMPTY_EXTENT, CanvasExtent
from diagram_backend.layout.placements import PlacementOp, PlaceConnector, PlaceShape, shape_id, unique_keys

DEFAULT_BOX_WIDTH = 120
DEFAULT_BOX_HEIGHT = 80
DEFAULT_SPACING = 180
DEFAULT_STEP_COLOR = "blue"


def layout_linear(change: CreateLinearDiagramChange, extent: CanvasExtent = EMPTY_EXTENT) -> List[PlacementOp]:
    """Boxes along one axis plus a connector for every adjacent pair.

    Step ``i`` sits at ``start + i * spacing``; connectors run from the trailing
    edge of step ``i`` to the leading edge of step ``i + 1`` in input order.
    Overlap with existing content is left to the caller's start position.
    """
    meta = change.metadata
    box_w = meta.box_width or DEFAULT_BOX_WIDTH
    box_h = meta.box_height or DEFAULT_BOX_HEIGHT
    spacing = meta.spacing or DEFAULT_SPACING
    x0, y0 = change.start_position.x, change.start_position.y
    horizontal = change.direction == "horizontal"
    scope = change.diagram_id

    ops: List[PlacementOp] = []
    ids: List[str] = []
    keys = unique_keys(step.id for step in change.steps)
    for i, step in enumerate(change.steps):
        x = x0 + i * spacing if horizontal else x0
        y = y0 if horizontal else y0 + i * spacing
        sid = shape_id("linear", "step", keys[i], scope=scope)
        ids.append(sid)
        ops.append(PlaceShape(
            id=sid,
            x=x,
            y=y,
            w=box_w,
            h=box_h,
            label=step.title,
            color=step.color or DEFAULT_STEP_COLOR,
            description=step.description or "",
        ))

    for i in range(len(change.steps) - 1):
        if horizontal:
            start = (x0 + i * spacing + box_w, y0 + box_h / 2)
            end = (x0 + (i + 1) * spacing, y0 + box_h / 2)
        else:
            start = (x0 + box_w / 2, y0 + i * spacing + box_h)
            end = (x0 + box_w / 2, y0 + (i + 1) * spacing)
        ops.append(PlaceConnector(
            id=shape_id("linear", "arrow", keys[i], keys[i + 1], scope=scope),
            from_id=ids[i],
            to_id=ids[i + 1],
            start=start,
            end=end,
        ))

    return ops
