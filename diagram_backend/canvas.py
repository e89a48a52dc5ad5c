"""Canvas surface abstraction.

The real editor lives elsewhere; everything here talks to it through
CanvasSurface. InMemoryCanvas is the local mirror used by the API and tests.
"""

from abc import ABC, abstractmethod
import copy
import threading
from typing import Any, Dict, List, Optional

from diagram_backend.layout.geometry import Rect, Size, shape_bounds
from diagram_backend.layout.placements import PlaceShape


class CanvasError(Exception):
    """The canvas surface rejected an operation."""


class CanvasSurface(ABC):
    """Narrow interface onto the external canvas editor."""

    @abstractmethod
    def get_current_shapes(self) -> List[Dict[str, Any]]:
        """Return all shapes on the current page."""
        pass

    @abstractmethod
    def get_current_bindings(self) -> List[Dict[str, Any]]:
        pass

    @abstractmethod
    def get_shape_bounds(self, shape_id: str) -> Optional[Rect]:
        """Rendered page bounds of a shape, or None if it does not exist."""
        pass

    @abstractmethod
    def create_shape(self, shape: Dict[str, Any]) -> None:
        pass

    @abstractmethod
    def update_shape(self, shape_id: str, partial: Dict[str, Any]) -> None:
        pass

    @abstractmethod
    def delete_shape(self, shape_id: str) -> None:
        pass

    @abstractmethod
    def create_binding(self, binding: Dict[str, Any]) -> None:
        pass

    @abstractmethod
    def update_binding(self, binding_id: str, partial: Dict[str, Any]) -> None:
        pass

    @abstractmethod
    def delete_binding(self, binding_id: str) -> None:
        pass

    @abstractmethod
    def measure(self, placement: PlaceShape) -> Size:
        """Size the shape would render at if placed as specified."""
        pass


def _merge(target: Dict[str, Any], partial: Dict[str, Any]) -> None:
    for key, value in partial.items():
        if key == "id":
            continue
        if isinstance(value, dict) and isinstance(target.get(key), dict):
            target[key].update(value)
        else:
            target[key] = copy.deepcopy(value)


class InMemoryCanvas(CanvasSurface):
    """Dict-backed canvas page with tldraw-like records."""

    def __init__(self):
        self._shapes: Dict[str, Dict[str, Any]] = {}
        self._bindings: Dict[str, Dict[str, Any]] = {}
        self._lock = threading.Lock()

    def get_current_shapes(self) -> List[Dict[str, Any]]:
        with self._lock:
            return [copy.deepcopy(s) for s in self._shapes.values()]

    def get_current_bindings(self) -> List[Dict[str, Any]]:
        with self._lock:
            return [copy.deepcopy(b) for b in self._bindings.values()]

    def get_shape(self, shape_id: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            shape = self._shapes.get(shape_id)
            return copy.deepcopy(shape) if shape else None

    def get_shape_bounds(self, shape_id: str) -> Optional[Rect]:
        with self._lock:
            shape = self._shapes.get(shape_id)
            return shape_bounds(shape) if shape else None

    def create_shape(self, shape: Dict[str, Any]) -> None:
        shape_id = shape.get("id")
        if not shape_id:
            raise CanvasError("Shape has no id")
        with self._lock:
            if shape_id in self._shapes:
                raise CanvasError(f"Shape already exists: {shape_id}")
            record = copy.deepcopy(shape)
            record.setdefault("x", 0)
            record.setdefault("y", 0)
            record.setdefault("props", {})
            self._shapes[shape_id] = record

    def update_shape(self, shape_id: str, partial: Dict[str, Any]) -> None:
        with self._lock:
            shape = self._shapes.get(shape_id)
            if shape is None:
                raise CanvasError(f"No such shape: {shape_id}")
            _merge(shape, partial)

    def delete_shape(self, shape_id: str) -> None:
        with self._lock:
            if self._shapes.pop(shape_id, None) is None:
                raise CanvasError(f"No such shape: {shape_id}")
            # bindings do not outlive either endpoint
            for bid in [b for b, rec in self._bindings.items()
                        if shape_id in (rec.get("fromId"), rec.get("toId"))]:
                del self._bindings[bid]

    def create_binding(self, binding: Dict[str, Any]) -> None:
        binding_id = binding.get("id")
        if not binding_id:
            raise CanvasError("Binding has no id")
        with self._lock:
            if binding_id in self._bindings:
                raise CanvasError(f"Binding already exists: {binding_id}")
            for end in ("fromId", "toId"):
                if binding.get(end) not in self._shapes:
                    raise CanvasError(f"Binding {binding_id} points at missing shape: {binding.get(end)}")
            self._bindings[binding_id] = copy.deepcopy(binding)

    def update_binding(self, binding_id: str, partial: Dict[str, Any]) -> None:
        with self._lock:
            binding = self._bindings.get(binding_id)
            if binding is None:
                raise CanvasError(f"No such binding: {binding_id}")
            _merge(binding, partial)

    def delete_binding(self, binding_id: str) -> None:
        with self._lock:
            if self._bindings.pop(binding_id, None) is None:
                raise CanvasError(f"No such binding: {binding_id}")

    def measure(self, placement: PlaceShape) -> Size:
        rect = shape_bounds(placement.to_shape())
        return Size(rect.w, rect.h)

    def clear(self) -> None:
        with self._lock:
            self._shapes.clear()
            self._bindings.clear()
