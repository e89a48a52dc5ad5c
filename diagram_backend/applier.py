"""Applies a generated artifact onto a canvas surface."""

from dataclasses import dataclass, field
import logging
import re
from typing import Dict, List

from diagram_backend.buffer import ArtifactBuffer, ArtifactNotReady
from diagram_backend.canvas import CanvasError, CanvasSurface
from diagram_backend.changes import (
    BINDING_PREFIX,
    SHAPE_PREFIX,
    STRUCTURAL_TYPES,
    Change,
    CreateBindingChange,
    CreateShapeChange,
    DeleteBindingChange,
    DeleteShapeChange,
    UpdateBindingChange,
    UpdateShapeChange,
)
from diagram_backend.layout import layout_change
from diagram_backend.layout.geometry import CanvasExtent
from diagram_backend.layout.placements import PlacementOp, PlaceConnector, PlaceShape, RemoveShape, ResizeShape
from diagram_backend.models import ArtifactStatus
from diagram_backend.transform import DEFAULT_GAP, DEFAULT_START_Y, compute_offset, rewrite_all

logger = logging.getLogger(__name__)


@dataclass
class ApplyReport:
    artifact_id: str
    offset: float = 0.0
    created: List[str] = field(default_factory=list)
    updated: List[str] = field(default_factory=list)
    deleted: List[str] = field(default_factory=list)
    failed: List[Dict[str, str]] = field(default_factory=list)

    def to_dict(self):
        return {
            "artifact_id": self.artifact_id,
            "offset": self.offset,
            "created": self.created,
            "updated": self.updated,
            "deleted": self.deleted,
            "failed": self.failed,
        }


def _scope_for(artifact_id: str) -> str:
    return re.sub(r"[^A-Za-z0-9_]+", "_", artifact_id)


class ChangeApplier:
    def __init__(
        self,
        canvas: CanvasSurface,
        buffer: ArtifactBuffer,
        gap: float = DEFAULT_GAP,
        start_y: float = DEFAULT_START_Y,
        shape_prefix: str = SHAPE_PREFIX,
        binding_prefix: str = BINDING_PREFIX,
        scope_diagrams: bool = True,
    ):
        self.canvas = canvas
        self.buffer = buffer
        self.gap = gap
        self.start_y = start_y
        self.shape_prefix = shape_prefix
        self.binding_prefix = binding_prefix
        self.scope_diagrams = scope_diagrams

    def apply(self, artifact_id: str) -> ApplyReport:
        """Place a generated artifact below existing content, then drop it.

        Raises ArtifactNotFound / ArtifactNotReady. Individual canvas
        rejections are logged and skipped.
        """
        artifact = self.buffer.get(artifact_id)
        if artifact.status != ArtifactStatus.GENERATED:
            raise ArtifactNotReady(f"Artifact {artifact_id} is {artifact.status.value}, not generated")

        extent = CanvasExtent.from_shapes(self.canvas.get_current_shapes())
        offset = compute_offset(extent, artifact.changes, gap=self.gap, start_y=self.start_y)
        changes = rewrite_all(
            artifact.changes,
            offset,
            shape_prefix=self.shape_prefix,
            binding_prefix=self.binding_prefix,
            scope=_scope_for(artifact_id) if self.scope_diagrams else None,
        )

        report = ApplyReport(artifact_id=artifact_id, offset=offset)
        logger.info("[APPLY] %s: %d change(s), offset %.1f", artifact_id, len(changes), offset)
        for change in changes:
            self._apply_change(change, extent, report)

        self.buffer.transition(artifact_id, ArtifactStatus.APPLIED)
        self.buffer.remove_diagram(artifact_id)
        if report.failed:
            logger.warning("[APPLY] %s: %d operation(s) rejected by canvas", artifact_id, len(report.failed))
        return report

    def _attempt(self, report: ApplyReport, target: str, fn, *args) -> bool:
        try:
            fn(*args)
            return True
        except CanvasError as e:
            logger.warning("[APPLY] Skipping %s: %s", target, e)
            report.failed.append({"id": target, "error": str(e)})
            return False

    def _apply_change(self, change: Change, extent: CanvasExtent, report: ApplyReport) -> None:
        canvas = self.canvas
        if isinstance(change, CreateShapeChange):
            sid = change.shape.get("id", "")
            if self._attempt(report, sid, canvas.create_shape, change.shape):
                report.created.append(sid)
        elif isinstance(change, UpdateShapeChange):
            sid = change.shape.get("id", "")
            if self._attempt(report, sid, canvas.update_shape, sid, change.shape):
                report.updated.append(sid)
        elif isinstance(change, DeleteShapeChange):
            if self._attempt(report, change.shape_id, canvas.delete_shape, change.shape_id):
                report.deleted.append(change.shape_id)
        elif isinstance(change, CreateBindingChange):
            bid = change.binding.get("id", "")
            if self._attempt(report, bid, canvas.create_binding, change.binding):
                report.created.append(bid)
        elif isinstance(change, UpdateBindingChange):
            bid = change.binding.get("id", "")
            if self._attempt(report, bid, canvas.update_binding, bid, change.binding):
                report.updated.append(bid)
        elif isinstance(change, DeleteBindingChange):
            if self._attempt(report, change.binding_id, canvas.delete_binding, change.binding_id):
                report.deleted.append(change.binding_id)
        elif isinstance(change, STRUCTURAL_TYPES):
            for op in layout_change(change, extent, measure=canvas.measure):
                self._realize(op, change.description, report)
        else:
            raise TypeError(f"Unknown change type: {type(change).__name__}")

    def _realize(self, op: PlacementOp, description: str, report: ApplyReport) -> None:
        canvas = self.canvas
        if isinstance(op, PlaceShape):
            shape = op.to_shape()
            if description and "meta" not in shape:
                shape["meta"] = {"description": description}
            if self._attempt(report, op.id, canvas.create_shape, shape):
                report.created.append(op.id)
        elif isinstance(op, PlaceConnector):
            if not self._attempt(report, op.id, canvas.create_shape, op.to_shape()):
                return
            report.created.append(op.id)
            for binding in op.to_bindings():
                if self._attempt(report, binding["id"], canvas.create_binding, binding):
                    report.created.append(binding["id"])
        elif isinstance(op, ResizeShape):
            if self._attempt(report, op.id, canvas.update_shape, op.id, op.to_partial()):
                report.updated.append(op.id)
        elif isinstance(op, RemoveShape):
            if self._attempt(report, op.id, canvas.delete_shape, op.id):
                report.deleted.append(op.id)
        else:
            raise TypeError(f"Unknown placement op: {type(op).__name__}")
