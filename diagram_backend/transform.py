"""Pure rewrite pass run on an artifact's changes before they touch the canvas.

Shifts new content vertically and namespaces every shape/binding id so that
applied content never aliases unrelated shapes already on the page.
"""

from __future__ import annotations

import copy
from typing import Any, Collection, Dict, Iterable, List, Optional

from diagram_backend.changes import (
    BINDING_PREFIX,
    SHAPE_PREFIX,
    STRUCTURAL_TYPES,
    Change,
    CreateBindingChange,
    CreateShapeChange,
    DeleteBindingChange,
    DeleteShapeChange,
    Point,
    UpdateBindingChange,
    UpdateShapeChange,
)
from diagram_backend.layout import layout_change
from diagram_backend.layout.geometry import CanvasExtent
from diagram_backend.layout.placements import PlaceConnector, PlaceShape

DEFAULT_GAP = 200
DEFAULT_START_Y = 100


def with_prefix(value: Optional[str], prefix: str) -> Optional[str]:
    if not value or value.startswith(prefix):
        return value
    return prefix + value


def _shift_shape(shape: Dict[str, Any], offset: float, shape_prefix: str) -> Dict[str, Any]:
    out = copy.deepcopy(shape)
    if "id" in out:
        out["id"] = with_prefix(out["id"], shape_prefix)
    if offset and isinstance(out.get("y"), (int, float)):
        out["y"] = out["y"] + offset
    if out.get("parentId"):
        out["parentId"] = with_prefix(out["parentId"], shape_prefix)
    return out


def _prefix_binding(binding: Dict[str, Any], shape_prefix: str, binding_prefix: str) -> Dict[str, Any]:
    out = copy.deepcopy(binding)
    if "id" in out:
        out["id"] = with_prefix(out["id"], binding_prefix)
    for end in ("fromId", "toId"):
        if out.get(end):
            out[end] = with_prefix(out[end], shape_prefix)
    return out


def rewrite(
    change: Change,
    offset: float,
    shape_prefix: str = SHAPE_PREFIX,
    binding_prefix: str = BINDING_PREFIX,
    scope: Optional[str] = None,
    local_ids: Optional[Collection[str]] = None,
) -> Change:
    """Return a copy of ``change`` moved down by ``offset`` with namespaced ids.

    ``scope`` becomes the ``diagram_id`` of structural changes that have none.
    ``local_ids`` limits the vertical shift of updateShape changes to shapes
    created by the same batch; when omitted every update is shifted.
    """
    if isinstance(change, CreateShapeChange):
        return change.model_copy(update={"shape": _shift_shape(change.shape, offset, shape_prefix)})

    if isinstance(change, UpdateShapeChange):
        raw_id = change.shape.get("id")
        local = local_ids is None or raw_id in local_ids or with_prefix(raw_id, shape_prefix) in local_ids
        shape = _shift_shape(change.shape, offset if local else 0, shape_prefix)
        return change.model_copy(update={"shape": shape})

    if isinstance(change, DeleteShapeChange):
        return change.model_copy(update={"shape_id": with_prefix(change.shape_id, shape_prefix)})

    if isinstance(change, (CreateBindingChange, UpdateBindingChange)):
        binding = _prefix_binding(change.binding, shape_prefix, binding_prefix)
        return change.model_copy(update={"binding": binding})

    if isinstance(change, DeleteBindingChange):
        return change.model_copy(update={"binding_id": with_prefix(change.binding_id, binding_prefix)})

    if isinstance(change, STRUCTURAL_TYPES):
        start = change.start_position
        update: Dict[str, Any] = {"start_position": Point(x=start.x, y=start.y + offset)}
        if scope and not change.diagram_id:
            update["diagram_id"] = scope
        return change.model_copy(update=update)

    raise TypeError(f"Unknown change type: {type(change).__name__}")


def rewrite_all(
    changes: Iterable[Change],
    offset: float,
    shape_prefix: str = SHAPE_PREFIX,
    binding_prefix: str = BINDING_PREFIX,
    scope: Optional[str] = None,
) -> List[Change]:
    changes = list(changes)
    local_ids = set()
    for change in changes:
        if isinstance(change, CreateShapeChange) and change.shape.get("id"):
            local_ids.add(with_prefix(change.shape["id"], shape_prefix))
    return [
        rewrite(c, offset, shape_prefix, binding_prefix, scope=scope, local_ids=local_ids)
        for c in changes
    ]


def change_top(change: Change) -> Optional[float]:
    """Topmost y of the new content a change would create, if any."""
    if isinstance(change, CreateShapeChange):
        y = change.shape.get("y")
        return float(y) if isinstance(y, (int, float)) else None
    if isinstance(change, STRUCTURAL_TYPES):
        tops = []
        for op in layout_change(change):
            if isinstance(op, PlaceShape):
                tops.append(op.y)
            elif isinstance(op, PlaceConnector):
                tops.append(min(op.start[1], op.end[1]))
        return min(tops) if tops else change.start_position.y
    return None


def content_top(changes: Iterable[Change]) -> Optional[float]:
    tops = [t for t in (change_top(c) for c in changes) if t is not None]
    return min(tops) if tops else None


def compute_offset(
    extent: CanvasExtent,
    changes: Iterable[Change],
    gap: float = DEFAULT_GAP,
    start_y: float = DEFAULT_START_Y,
) -> float:
    """Vertical shift that puts the new content ``gap`` below the lowest
    existing shape, or at ``start_y`` on an empty canvas."""
    top = content_top(changes)
    if top is None:
        return 0.0
    if extent.is_empty:
        return start_y - top
    return extent.max_y + gap - top
