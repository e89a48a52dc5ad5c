from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Dict, List, Optional, Tuple

from diagram_backend.changes import CreateTimelineChange, TimelineItem
from diagram_backend.layout.geometry import EMPTY_EXTENT, CanvasExtent
from diagram_backend.layout.placements import PlacementOp, PlaceShape, RemoveShape, shape_id, unique_keys

logger = logging.getLogger(__name__)

DAY_SECONDS = 24 * 60 * 60

UNIT_DAYS = {"days": 1, "weeks": 7, "months": 30, "years": 365}
PIXELS_PER_UNIT = {"days": 6, "weeks": 42, "months": 120, "years": 360}

DEFAULT_ITEM_HEIGHT = 40
DEFAULT_V_SPACING = 120
DEFAULT_LANE_SPACING = 60
DEFAULT_BAR_THICKNESS = 16
MARKER_SIZE = 16
MIN_BAR_LENGTH = 10
DEFAULT_LANE = "_default"


def parse_date(value: str) -> datetime:
    """Parse an ISO-8601 date/time; naive values are taken as UTC."""
    text = (value or "").strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def pick_scale(span_days: float) -> str:
    if span_days <= 120:
        return "days"
    if span_days <= 540:
        return "weeks"
    if span_days <= 5 * 365:
        return "months"
    return "years"


def pixels_per_unit(scale: str) -> int:
    return PIXELS_PER_UNIT[scale]


def _parse_items(items: List[TimelineItem]) -> List[Tuple[TimelineItem, datetime, datetime]]:
    parsed = []
    for item in items:
        try:
            start = parse_date(item.start)
            end = parse_date(item.end) if item.end else start
        except ValueError:
            logger.warning("[TIMELINE] Skipping item %r with unparseable date", item.id)
            continue
        parsed.append((item, start, end))
    return parsed


def _domain(change: CreateTimelineChange, parsed) -> Tuple[datetime, datetime]:
    meta = change.metadata
    start: Optional[datetime] = None
    end: Optional[datetime] = None
    try:
        if meta.timeline_start:
            start = parse_date(meta.timeline_start)
        if meta.timeline_end:
            end = parse_date(meta.timeline_end)
    except ValueError:
        logger.warning("[TIMELINE] Ignoring unparseable domain override")
    if start is None:
        start = min(s for _, s, _ in parsed)
    if end is None:
        end = max(e for _, _, e in parsed)
    return start, end


def layout_timeline(change: CreateTimelineChange, extent: CanvasExtent = EMPTY_EXTENT) -> List[PlacementOp]:
    """Milestones and bars along a time axis, one lane per distinct ``lane``.

    The scale is chosen from the domain span unless fixed in metadata; each
    item's offset is ``elapsed_units * pixels_per_unit(scale)``.
    """
    parsed = _parse_items(change.items)
    if not parsed:
        return []

    meta = change.metadata
    item_h = meta.item_height or DEFAULT_ITEM_HEIGHT
    v_gap = DEFAULT_V_SPACING if meta.v_spacing is None else meta.v_spacing
    lane_gap = DEFAULT_LANE_SPACING if meta.lane_spacing is None else meta.lane_spacing
    horizontal = change.layout == "horizontal"
    x0, y0 = change.start_position.x, change.start_position.y
    scope = change.diagram_id

    domain_start, domain_end = _domain(change, parsed)
    span_seconds = max(1.0, (domain_end - domain_start).total_seconds())
    scale = meta.scale if meta.scale != "auto" else pick_scale(span_seconds / DAY_SECONDS)
    unit_seconds = UNIT_DAYS[scale] * DAY_SECONDS
    unit_px = pixels_per_unit(scale)

    lanes: Dict[str, int] = {}
    for item, _, _ in parsed:
        lanes.setdefault(item.lane or DEFAULT_LANE, len(lanes))

    ops: List[PlacementOp] = []
    if meta.replace_existing:
        ops.extend(RemoveShape(s) for s in extent.ids if "timeline-" in s)

    keys = unique_keys(item.id for item, _, _ in parsed)
    for key, (item, start, end) in zip(keys, parsed):
        lane = lanes[item.lane or DEFAULT_LANE]
        lane_offset = lane * (item_h + v_gap) + lane_gap * lane
        from_units = (start - domain_start).total_seconds() / unit_seconds
        to_units = (end - domain_start).total_seconds() / unit_seconds
        primary_start = round(from_units * unit_px)
        primary_end = round(to_units * unit_px)

        x = x0 + primary_start if horizontal else x0 + lane_offset
        y = y0 + lane_offset if horizontal else y0 + primary_start

        if not item.end or start == end:
            half = MARKER_SIZE / 2
            ops.append(PlaceShape(
                id=shape_id("timeline", "milestone", key, scope=scope),
                x=x - half if horizontal else x,
                y=y - half,
                w=MARKER_SIZE,
                h=MARKER_SIZE,
                color=item.color or "blue",
                geo="ellipse",
            ))
            ops.append(PlaceShape(
                id=shape_id("timeline", "label", key, scope=scope),
                x=x + 10 if horizontal else x + 20,
                y=y - 10 if horizontal else y + 10,
                w=max(MARKER_SIZE, 10 * len(item.title) + 20),
                h=item_h,
                label=item.title,
                kind="text",
                size="s",
            ))
            continue

        bar_len = max(MIN_BAR_LENGTH, abs(primary_end - primary_start))
        thickness = meta.item_width or (item_h if horizontal else DEFAULT_BAR_THICKNESS)
        ops.append(PlaceShape(
            id=shape_id("timeline", "bar", key, scope=scope),
            x=x,
            y=y,
            w=bar_len if horizontal else thickness,
            h=thickness if horizontal else bar_len,
            label=item.title,
            color=item.color or "green",
        ))

    return ops
