"""Placement operations produced by the layout engines.

Engines never touch the canvas; they return an ordered plan of these ops and
the applier realizes them on a canvas surface.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional, Set, Tuple, Union

from diagram_backend.changes import BINDING_PREFIX, SHAPE_PREFIX


@dataclass(frozen=True)
class PlaceShape:
    id: str
    x: float
    y: float
    w: float
    h: float
    label: str = ""
    color: str = "black"
    kind: str = "geo"  # "geo" | "text"
    geo: str = "rectangle"
    fill: str = "solid"
    size: Optional[str] = None
    description: str = ""

    def to_shape(self) -> Dict[str, Any]:
        if self.kind == "text":
            props: Dict[str, Any] = {"text": self.label, "color": self.color, "w": self.w}
        else:
            props = {
                "geo": self.geo,
                "w": self.w,
                "h": self.h,
                "color": self.color,
                "fill": self.fill,
                "text": self.label,
            }
        if self.size:
            props["size"] = self.size
        shape = {"id": self.id, "type": self.kind, "x": self.x, "y": self.y, "props": props}
        if self.description:
            shape["meta"] = {"description": self.description}
        return shape


@dataclass(frozen=True)
class PlaceConnector:
    """Arrow from ``from_id`` to ``to_id`` between two absolute points."""

    id: str
    from_id: str
    to_id: str
    start: Tuple[float, float]
    end: Tuple[float, float]
    color: str = "black"

    def to_shape(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "type": "arrow",
            "x": 0,
            "y": 0,
            "props": {
                "start": {"x": self.start[0], "y": self.start[1]},
                "end": {"x": self.end[0], "y": self.end[1]},
                "color": self.color,
            },
        }

    def to_bindings(self) -> List[Dict[str, Any]]:
        stem = self.id[len(SHAPE_PREFIX):] if self.id.startswith(SHAPE_PREFIX) else self.id
        return [
            {
                "id": f"{BINDING_PREFIX}{stem}-{terminal}",
                "type": "arrow",
                "fromId": self.id,
                "toId": target,
                "props": {"terminal": terminal},
            }
            for terminal, target in (("start", self.from_id), ("end", self.to_id))
        ]


@dataclass(frozen=True)
class ResizeShape:
    id: str
    w: Optional[float] = None
    h: Optional[float] = None

    def to_partial(self) -> Dict[str, Any]:
        props: Dict[str, Any] = {}
        if self.w is not None:
            props["w"] = self.w
        if self.h is not None:
            props["h"] = self.h
        return {"id": self.id, "props": props}


@dataclass(frozen=True)
class RemoveShape:
    id: str


PlacementOp = Union[PlaceShape, PlaceConnector, ResizeShape, RemoveShape]


def shape_id(*parts: Any, scope: Optional[str] = None) -> str:
    """Namespaced id for an engine-generated shape.

    ``shape_id("linear", "step", "a")`` -> ``"shape:linear-step-a"``; with a
    scope the diagram id is inserted after the first part.
    """
    head, rest = str(parts[0]), [str(p) for p in parts[1:]]
    if scope:
        rest.insert(0, scope)
    return SHAPE_PREFIX + "-".join([head] + rest)


def unique_keys(keys: Iterable[Any]) -> List[str]:
    """Id parts for a list of entities, suffixing repeats so every shape id is distinct.

    ``unique_keys(["a", "b", "a"])`` -> ``["a", "b", "a-2"]``.
    """
    seen: Set[str] = set()
    out: List[str] = []
    for key in keys:
        base = str(key)
        candidate, n = base, 1
        while candidate in seen:
            n += 1
            candidate = f"{base}-{n}"
        seen.add(candidate)
        out.append(candidate)
    return out
