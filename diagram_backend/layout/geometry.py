from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, Optional, Tuple

# Rough text metrics shared by the static table estimate and the local canvas
CHAR_WIDTH = 10
LINE_HEIGHT = 24
TEXT_PADDING = 16


@dataclass(frozen=True)
class Size:
    w: float
    h: float


@dataclass(frozen=True)
class Rect:
    x: float
    y: float
    w: float
    h: float

    @property
    def bottom(self) -> float:
        return self.y + self.h

    @property
    def right(self) -> float:
        return self.x + self.w

    def to_dict(self) -> Dict[str, float]:
        return {"x": self.x, "y": self.y, "w": self.w, "h": self.h}


def text_size(text: str, max_width: Optional[float] = None) -> Size:
    """Estimate the rendered size of a text label.

    With ``max_width`` the text wraps inside it (the width is then fixed).
    """
    lines = (text or "").split("\n")
    if max_width is not None:
        per_line = max(1, int((max_width - 2 * TEXT_PADDING) // CHAR_WIDTH))
        count = sum(max(1, math.ceil(len(line) / per_line)) for line in lines)
        return Size(max_width, count * LINE_HEIGHT + 2 * TEXT_PADDING)
    longest = max(len(line) for line in lines)
    return Size(longest * CHAR_WIDTH + 2 * TEXT_PADDING, len(lines) * LINE_HEIGHT + 2 * TEXT_PADDING)


def shape_bounds(shape: Dict[str, Any]) -> Optional[Rect]:
    """Page bounds of a stored shape record, or None if it has no geometry."""
    if not isinstance(shape, dict):
        return None
    props = shape.get("props") or {}
    try:
        x = float(shape.get("x", 0) or 0)
        y = float(shape.get("y", 0) or 0)
    except (TypeError, ValueError):
        return None

    if shape.get("type") == "arrow":
        start = props.get("start") or {}
        end = props.get("end") or {}
        xs = [x + float(start.get("x", 0)), x + float(end.get("x", 0))]
        ys = [y + float(start.get("y", 0)), y + float(end.get("y", 0))]
        return Rect(min(xs), min(ys), max(xs) - min(xs), max(ys) - min(ys))

    if "w" in props or "h" in props:
        w = float(props.get("w", 0) or 0)
        h = float(props.get("h", 0) or 0)
        label = props.get("text") or ""
        if label and w > 0:
            h = max(h, text_size(label, max_width=w).h)
        return Rect(x, y, w, h)

    size = text_size(props.get("text") or "")
    return Rect(x, y, size.w, size.h)


@dataclass(frozen=True)
class ShapeBounds:
    id: str
    rect: Rect


@dataclass(frozen=True)
class CanvasExtent:
    """Snapshot of what is already placed on the canvas."""

    shapes: Tuple[ShapeBounds, ...] = field(default_factory=tuple)

    @classmethod
    def from_shapes(cls, shapes: Iterable[Dict[str, Any]]) -> "CanvasExtent":
        out = []
        for shape in shapes:
            rect = shape_bounds(shape)
            if rect is not None and shape.get("id"):
                out.append(ShapeBounds(str(shape["id"]), rect))
        return cls(tuple(out))

    @property
    def is_empty(self) -> bool:
        return not self.shapes

    @property
    def max_y(self) -> Optional[float]:
        if not self.shapes:
            return None
        return max(s.rect.bottom for s in self.shapes)

    @property
    def ids(self) -> Tuple[str, ...]:
        return tuple(s.id for s in self.shapes)

    def bounding_box(self) -> Optional[Rect]:
        if not self.shapes:
            return None
        x0 = min(s.rect.x for s in self.shapes)
        y0 = min(s.rect.y for s in self.shapes)
        x1 = max(s.rect.right for s in self.shapes)
        y1 = max(s.rect.bottom for s in self.shapes)
        return Rect(x0, y0, x1 - x0, y1 - y0)


EMPTY_EXTENT = CanvasExtent()
