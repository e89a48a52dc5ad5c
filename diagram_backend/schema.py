from __future__ import annotations
from typing import Any, Dict, List, Optional
import json
import logging

from pydantic import ValidationError

from diagram_backend.changes import (
    Change,
    CreateBindingChange,
    CreateShapeChange,
    DeleteShapeChange,
    UpdateShapeChange,
    parse_change,
)

logger = logging.getLogger(__name__)

WIRE_TYPES = {
    "createShape", "updateShape", "deleteShape",
    "createBinding", "updateBinding", "deleteBinding",
    "createLinearDiagram", "createDecisionMatrix", "createTable", "createTimeline",
}

GEO_TYPES = {"rectangle", "ellipse", "cloud"}

# Flat layout knobs the model puts beside the payload; they belong in metadata.
MATRIX_META_KEYS = [
    "title", "cellWidth", "cellHeight", "spacing", "spacingX", "spacingY",
    "headerHeight", "headerWidth", "maxScore", "indexConvention",
]
LINEAR_META_KEYS = ["boxWidth", "boxHeight", "spacing", "stepCount"]
TABLE_META_KEYS = ["colWidth", "rowHeight", "spacing", "borderColor", "borderWidth", "sizing"]
TIMELINE_META_KEYS = [
    "scale", "timelineStart", "timelineEnd", "itemHeight", "itemWidth",
    "vSpacing", "laneSpacing", "replaceExisting",
]


def try_parse_json(text: str) -> Any:
    """
    Best-effort JSON extraction (handles occasional extra text around JSON).
    """
    if text is None:
        raise ValueError("Empty response")
    s = text.strip()
    if s.startswith("```"):
        s = s.strip("`")
        if s.lower().startswith("json"):
            s = s[4:]
        s = s.strip()

    # direct JSON
    if (s.startswith("{") and s.endswith("}")) or (s.startswith("[") and s.endswith("]")):
        return json.loads(s)

    # try to extract first {...last}
    start = s.find("{")
    end = s.rfind("}")
    if start != -1 and end != -1 and end > start:
        return json.loads(s[start:end+1])

    raise ValueError(f"No JSON object in response: {s[:80]!r}")


def parse_sse_line(line: str) -> Optional[Any]:
    """
    Decode one ``data: <json>`` line. Comments, blank lines, other fields and
    the ``[DONE]`` sentinel yield None.
    """
    if line is None:
        return None
    s = line.strip()
    if not s or s.startswith(":") or not s.startswith("data:"):
        return None
    payload = s[5:].strip()
    if not payload or payload == "[DONE]":
        return None
    return json.loads(payload)


def _split_meta(event: Dict[str, Any], keys: List[str]) -> Dict[str, Any]:
    meta = dict(event.get("metadata") or {})
    for key in keys:
        if key in event and key not in meta:
            meta[key] = event[key]
    return meta


def _shape_ref(shape: Dict[str, Any]) -> str:
    sid = shape.get("shapeId") or shape.get("id")
    if not isinstance(sid, str) or not sid:
        raise ValueError("shape has no shapeId")
    return sid


def _coord(shape: Dict[str, Any], key: str) -> float:
    value = shape.get(key, 0)
    try:
        return float(value)
    except (TypeError, ValueError):
        raise ValueError(f"{key} is not a number: {value!r}")


def _simple_shape_to_record(shape: Dict[str, Any], intent: str) -> Dict[str, Any]:
    """Flat model shape -> canvas shape record."""
    kind = shape.get("type", "rectangle")
    sid = _shape_ref(shape)
    record: Dict[str, Any] = {"id": sid}
    props: Dict[str, Any] = {}

    if kind in ("line", "arrow"):
        x1, y1 = _coord(shape, "x1"), _coord(shape, "y1")
        x2, y2 = _coord(shape, "x2"), _coord(shape, "y2")
        record.update({"type": kind, "x": x1, "y": y1})
        props["start"] = {"x": 0, "y": 0}
        props["end"] = {"x": x2 - x1, "y": y2 - y1}
    elif kind in GEO_TYPES:
        record.update({"type": "geo", "x": shape.get("x", 0), "y": shape.get("y", 0)})
        props["geo"] = kind
        props["w"] = shape.get("width", 100)
        props["h"] = shape.get("height", 100)
        if shape.get("fill"):
            props["fill"] = shape["fill"]
    else:
        record.update({"type": kind if kind in ("text", "note") else "geo",
                       "x": shape.get("x", 0), "y": shape.get("y", 0)})
        if shape.get("textAlign"):
            props["textAlign"] = shape["textAlign"]

    if shape.get("color"):
        props["color"] = shape["color"]
    if shape.get("text") is not None:
        props["text"] = shape["text"]
    record["props"] = props
    note = shape.get("note") or intent
    if note:
        record["meta"] = {"description": note}
    return record


def _arrow_bindings(shape: Dict[str, Any], intent: str) -> List[Change]:
    sid = _shape_ref(shape)
    out: List[Change] = []
    for terminal, key in (("start", "fromId"), ("end", "toId")):
        target = shape.get(key)
        if not target:
            continue
        stem = sid.split(":", 1)[-1]
        out.append(CreateBindingChange(
            description=intent,
            binding={
                "id": f"{stem}-{terminal}",
                "type": "arrow",
                "fromId": sid,
                "toId": target,
                "props": {"terminal": terminal},
            },
        ))
    return out


def _table_rows(rows: Any) -> List[Dict[str, Any]]:
    out = []
    for row in rows or []:
        if isinstance(row, dict):
            cells = row.get("cells") or []
        else:
            cells = row
        out.append({"cells": [c if isinstance(c, dict) else {"content": str(c)} for c in cells]})
    return out


def normalize_event(event: Dict[str, Any]) -> List[Change]:
    """
    Map one model event onto zero or more Changes.

    Accepts both the wire Change format (``createShape``...) and the model's
    simple event vocabulary (``create``, ``move``, ``create_table``...).
    Raises ValueError / pydantic.ValidationError on a malformed event.
    """
    if not isinstance(event, dict):
        raise ValueError(f"Event is not an object: {event!r}")
    kind = event.get("type")
    intent = str(event.get("intent") or event.get("description") or "")

    if kind in WIRE_TYPES:
        return [parse_change(event)]

    if kind == "think":
        return []

    if kind in ("create", "update"):
        shape = event.get("shape") or {}
        record = _simple_shape_to_record(shape, intent)
        if kind == "update":
            return [UpdateShapeChange(description=intent, shape=record)]
        changes: List[Change] = [CreateShapeChange(description=intent, shape=record)]
        if shape.get("type") == "arrow":
            changes.extend(_arrow_bindings(shape, intent))
        return changes

    if kind == "move":
        return [UpdateShapeChange(description=intent, shape={
            "id": event["shapeId"], "x": event.get("x", 0), "y": event.get("y", 0),
        })]

    if kind == "label":
        return [UpdateShapeChange(description=intent, shape={
            "id": event["shapeId"], "props": {"text": event.get("text", "")},
        })]

    if kind == "delete":
        return [DeleteShapeChange(description=intent, shape_id=event["shapeId"])]

    if kind == "create_linear_diagram":
        data = {
            "type": "createLinearDiagram",
            "description": event.get("description") or intent,
            "diagramId": event.get("diagramId"),
            "steps": event.get("steps") or [],
            "direction": event.get("direction") or "horizontal",
            "startPosition": event.get("startPosition") or {},
            "metadata": _split_meta(event, LINEAR_META_KEYS),
        }
        return [parse_change(data)]

    if kind == "create_decision_matrix":
        data = {
            "type": "createDecisionMatrix",
            "description": event.get("description") or intent,
            "diagramId": event.get("diagramId"),
            "options": event.get("options") or [],
            "criteria": event.get("criteria") or [],
            "scoreCells": event.get("scoreCells"),
            "scores": event.get("scores"),
            "advantages": event.get("advantages"),
            "disadvantages": event.get("disadvantages"),
            "notes": event.get("notes"),
            "startPosition": event.get("startPosition") or {},
            "metadata": _split_meta(event, MATRIX_META_KEYS),
        }
        return [parse_change(data)]

    if kind == "create_table":
        data = {
            "type": "createTable",
            "description": event.get("description") or intent,
            "diagramId": event.get("diagramId"),
            "rows": _table_rows(event.get("rows")),
            "layout": event.get("layout"),
            "startPosition": event.get("startPosition") or {},
            "metadata": _split_meta(event, TABLE_META_KEYS),
        }
        return [parse_change(data)]

    if kind == "create_timeline":
        data = {
            "type": "createTimeline",
            "description": event.get("description") or intent,
            "diagramId": event.get("diagramId"),
            "items": event.get("items") or [],
            "layout": event.get("layout") or "horizontal",
            "startPosition": event.get("startPosition") or {},
            "metadata": _split_meta(event, TIMELINE_META_KEYS),
        }
        return [parse_change(data)]

    raise ValueError(f"Unknown event type: {kind!r}")


def normalize_events(obj: Any) -> List[Change]:
    """
    Normalize a whole model response: a single event, a list of events, or
    ``{"events": [...]}``. Malformed events are logged and dropped.
    """
    if isinstance(obj, dict) and isinstance(obj.get("events"), list):
        events = obj["events"]
    elif isinstance(obj, list):
        events = obj
    else:
        events = [obj]

    out: List[Change] = []
    for event in events:
        try:
            out.extend(normalize_event(event))
        except (ValueError, KeyError, TypeError, AttributeError, ValidationError) as e:
            logger.warning("[SCHEMA] Dropping malformed event: %s", e)
    return out
