import pytest

from diagram_backend.applier import ChangeApplier
from diagram_backend.buffer import ArtifactNotFound, ArtifactNotReady
from diagram_backend.canvas import CanvasError, InMemoryCanvas
from diagram_backend.changes import (
    CreateBindingChange,
    CreateLinearDiagramChange,
    CreateShapeChange,
    CreateTableChange,
    Point,
    Step,
    TableCell,
    TableRow,
)
from diagram_backend.models import ArtifactStatus

from conftest import make_utterance


def _generated(buffer, changes, emitted_at=1000):
    aid = buffer.add_diagram(make_utterance(emitted_at=emitted_at))
    buffer.transition(aid, ArtifactStatus.GENERATED, changes=changes)
    return aid


def _linear(n=3, y=0):
    return CreateLinearDiagramChange(
        steps=[Step(id=f"s{i}", title=f"S{i}") for i in range(n)],
        start_position=Point(x=0, y=y),
    )


def test_apply_on_empty_canvas(buffer, canvas):
    aid = _generated(buffer, [_linear()])
    report = ChangeApplier(canvas, buffer).apply(aid)

    shapes = canvas.get_current_shapes()
    boxes = [s for s in shapes if s["type"] == "geo"]
    arrows = [s for s in shapes if s["type"] == "arrow"]
    assert len(boxes) == 3 and len(arrows) == 2
    assert min(s["y"] for s in boxes) == 100
    assert len(canvas.get_current_bindings()) == 4
    assert report.failed == []
    assert aid not in buffer


def test_new_content_lands_below_existing(buffer, canvas):
    canvas.create_shape({"id": "shape:existing", "type": "geo", "x": 0, "y": 0, "props": {"w": 100, "h": 400}})
    aid = _generated(buffer, [_linear(y=-50), CreateShapeChange(shape={"id": "note", "type": "geo", "x": 0, "y": 900, "props": {"w": 10, "h": 10}})])
    ChangeApplier(canvas, buffer, gap=200).apply(aid)

    new = [s for s in canvas.get_current_shapes() if s["id"] != "shape:existing"]
    assert min(s["y"] for s in new if s["type"] != "arrow") >= 400 + 200
    assert canvas.get_shape("shape:note") is not None


def test_two_applies_do_not_collide(buffer, canvas):
    first = _generated(buffer, [_linear()], emitted_at=1)
    second = _generated(buffer, [_linear()], emitted_at=2)
    applier = ChangeApplier(canvas, buffer)
    applier.apply(first)
    report = applier.apply(second)
    assert report.failed == []
    assert len([s for s in canvas.get_current_shapes() if s["type"] == "geo"]) == 6


def test_requires_generated_status(buffer, canvas):
    aid = buffer.add_diagram(make_utterance())
    with pytest.raises(ArtifactNotReady):
        ChangeApplier(canvas, buffer).apply(aid)
    assert buffer.get(aid).status == ArtifactStatus.PENDING
    with pytest.raises(ArtifactNotFound):
        ChangeApplier(canvas, buffer).apply("missing")


def test_rejected_operations_are_skipped(buffer, canvas):
    canvas.create_shape({"id": "shape:taken", "type": "geo", "x": 0, "y": 0, "props": {"w": 10, "h": 10}})
    aid = _generated(buffer, [
        CreateShapeChange(shape={"id": "taken", "type": "geo", "y": 0, "props": {}}),
        CreateBindingChange(binding={"id": "dangling", "fromId": "nowhere", "toId": "taken"}),
        CreateShapeChange(shape={"id": "fresh", "type": "geo", "y": 0, "props": {}}),
    ])
    report = ChangeApplier(canvas, buffer).apply(aid)
    assert {f["id"] for f in report.failed} == {"shape:taken", "binding:dangling"}
    assert "shape:fresh" in report.created
    assert aid not in buffer


class RecordingCanvas(InMemoryCanvas):
    def __init__(self, measured_height):
        super().__init__()
        self.measured_height = measured_height
        self.measured = []

    def measure(self, placement):
        self.measured.append(placement.id)
        size = super().measure(placement)
        return type(size)(size.w, max(size.h, self.measured_height))


def test_table_rows_resized_to_measured_height(buffer):
    canvas = RecordingCanvas(measured_height=150)
    table = CreateTableChange(
        rows=[TableRow(cells=[TableCell(content="a"), TableCell(content="b")]) for _ in range(2)],
        start_position=Point(x=0, y=0),
    )
    aid = _generated(buffer, [table])
    ChangeApplier(canvas, buffer).apply(aid)

    cells = [s for s in canvas.get_current_shapes() if s["id"].startswith("shape:table-") and "-cell-" in s["id"]]
    assert len(cells) == 4
    assert len(canvas.measured) == 4
    assert all(s["props"]["h"] == 150 for s in cells)


def test_canvas_error_is_exception():
    assert issubclass(CanvasError, Exception)
