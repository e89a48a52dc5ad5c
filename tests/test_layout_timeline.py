import pytest

from diagram_backend.changes import CreateTimelineChange, Point, TimelineItem, TimelineMetadata
from diagram_backend.layout import CanvasExtent, PlaceShape, RemoveShape, layout_timeline
from diagram_backend.layout.timeline import parse_date, pick_scale


@pytest.mark.parametrize("days,scale", [(10, "days"), (120, "days"), (400, "weeks"), (800, "months"), (3650, "years")])
def test_pick_scale(days, scale):
    assert pick_scale(days) == scale


def test_parse_date_handles_zulu_and_naive():
    assert parse_date("2024-01-01T00:00:00Z") == parse_date("2024-01-01")


def _timeline(items, layout="horizontal", **meta):
    return CreateTimelineChange(
        items=items,
        layout=layout,
        start_position=Point(x=0, y=0),
        metadata=TimelineMetadata(**meta),
    )


def _shapes(ops):
    return {op.id: op for op in ops if isinstance(op, PlaceShape)}


def test_milestone_and_bar_on_day_scale():
    change = _timeline([
        TimelineItem(id="kickoff", title="Kickoff", start="2024-01-01"),
        TimelineItem(id="build", title="Build", start="2024-01-01", end="2024-01-11"),
    ])
    shapes = _shapes(layout_timeline(change))

    marker = shapes["shape:timeline-milestone-kickoff"]
    assert marker.geo == "ellipse"
    assert (marker.x, marker.y, marker.w, marker.h) == (-8, -8, 16, 16)
    label = shapes["shape:timeline-label-kickoff"]
    assert (label.x, label.y) == (10, -10)
    assert label.label == "Kickoff"

    bar = shapes["shape:timeline-bar-build"]
    # 10 days at 6 px/day
    assert (bar.x, bar.y, bar.w, bar.h) == (0, 0, 60, 40)
    assert bar.label == "Build"


def test_end_equal_to_start_is_a_milestone():
    change = _timeline([TimelineItem(id="m", title="M", start="2024-03-01", end="2024-03-01")])
    ids = [op.id for op in layout_timeline(change)]
    assert ids == ["shape:timeline-milestone-m", "shape:timeline-label-m"]


def test_lanes_stack_perpendicular_to_axis():
    change = _timeline([
        TimelineItem(id="a", title="A", start="2024-01-01", end="2024-01-05", lane="dev"),
        TimelineItem(id="b", title="B", start="2024-01-01", end="2024-01-05", lane="ops"),
    ])
    shapes = _shapes(layout_timeline(change))
    assert shapes["shape:timeline-bar-a"].y == 0
    assert shapes["shape:timeline-bar-b"].y == 40 + 120 + 60


def test_vertical_layout_swaps_axes():
    change = _timeline([
        TimelineItem(id="a", title="A", start="2024-01-01", end="2024-01-03"),
        TimelineItem(id="b", title="B", start="2024-01-03", end="2024-01-06", lane="x"),
    ], layout="vertical")
    shapes = _shapes(layout_timeline(change))
    bar_b = shapes["shape:timeline-bar-b"]
    assert bar_b.x == 220
    assert bar_b.y == 2 * 6
    assert bar_b.h == 3 * 6


def test_short_bar_has_minimum_length():
    change = _timeline([TimelineItem(id="a", title="A", start="2024-01-01T00:00:00", end="2024-01-01T01:00:00")])
    bar = _shapes(layout_timeline(change))["shape:timeline-bar-a"]
    assert bar.w == 10


def test_unparseable_item_skipped():
    change = _timeline([
        TimelineItem(id="bad", title="Bad", start="someday"),
        TimelineItem(id="ok", title="OK", start="2024-01-01"),
    ])
    ids = [op.id for op in layout_timeline(change)]
    assert all("bad" not in i for i in ids)
    assert "shape:timeline-milestone-ok" in ids


def test_explicit_scale_and_domain():
    change = _timeline(
        [TimelineItem(id="a", title="A", start="2024-03-01")],
        scale="months",
        timeline_start="2024-01-01",
    )
    marker = _shapes(layout_timeline(change))["shape:timeline-milestone-a"]
    # 60 days = 2 months at 120 px
    assert marker.x == 240 - 8


def test_replace_existing_removes_old_timeline_shapes():
    extent = CanvasExtent.from_shapes([
        {"id": "shape:timeline-bar-old", "type": "geo", "x": 0, "y": 0, "props": {"w": 10, "h": 10}},
        {"id": "shape:note", "type": "geo", "x": 0, "y": 0, "props": {"w": 10, "h": 10}},
    ])
    change = _timeline([TimelineItem(id="a", title="A", start="2024-01-01")], replace_existing=True)
    ops = layout_timeline(change, extent)
    removals = [op.id for op in ops if isinstance(op, RemoveShape)]
    assert removals == ["shape:timeline-bar-old"]

    kept = layout_timeline(change.model_copy(update={"metadata": TimelineMetadata()}), extent)
    assert not any(isinstance(op, RemoveShape) for op in kept)


def test_repeated_item_ids_get_distinct_shapes():
    change = _timeline([
        TimelineItem(id="m", title="Alpha", start="2024-01-01"),
        TimelineItem(id="m", title="Beta", start="2024-01-05", end="2024-01-09"),
    ])
    ids = [op.id for op in layout_timeline(change) if isinstance(op, PlaceShape)]
    assert ids == ["shape:timeline-milestone-m", "shape:timeline-label-m", "shape:timeline-bar-m-2"]
