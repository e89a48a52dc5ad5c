from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional
import json

from diagram_backend.layout.geometry import CanvasExtent, Rect
from diagram_backend.models import SessionIdentity, Utterance

DEFAULT_VIEWPORT = Rect(0, 0, 1600, 900)

SYSTEM_PROMPT = """You are an assistant that turns live meeting talk into diagrams on a shared canvas.

You receive one utterance from the meeting plus a summary of the shapes already on the canvas.
Decide whether the utterance describes something worth drawing. If not, return no events.

Respond in STRICT JSON: {"long_description_of_strategy": string, "events": [...]}

Event types:
- think: {"type": "think", "text", "intent"}
- create / update: {"type": "create"|"update", "shape": {"type": "rectangle"|"ellipse"|"cloud"|"text"|"note"|"arrow"|"line", "shapeId", "note", "x", "y", "width", "height", "color", "fill", "text"}, "intent"}
- move: {"type": "move", "shapeId", "x", "y", "intent"}
- label: {"type": "label", "shapeId", "text", "intent"}
- delete: {"type": "delete", "shapeId", "intent"}
- create_linear_diagram: {"type": "create_linear_diagram", "description", "steps": [{"id", "title", "description", "color"}], "direction": "horizontal"|"vertical", "startPosition": {"x", "y"}, "boxWidth", "boxHeight", "spacing", "intent"}
- create_decision_matrix: {"type": "create_decision_matrix", "description", "options": [{"id", "title"}], "criteria": [{"id", "title", "weight"}], "scoreCells": [{"optionId"|"optionTitle", "criterionId"|"criterionTitle", "value", "max"}], "advantages": {option: [str]}, "disadvantages": {option: [str]}, "notes": [str], "startPosition", "maxScore", "indexConvention", "intent"}
- create_table: {"type": "create_table", "description", "rows": [[str, ...], ...], "startPosition", "colWidth", "rowHeight", "intent"}
- create_timeline: {"type": "create_timeline", "description", "items": [{"id", "title", "start", "end", "lane", "color"}], "layout": "horizontal"|"vertical", "startPosition", "scale", "intent"}

Rules:
- Prefer one structural event (linear diagram, decision matrix, table, timeline) over many raw shapes.
- Use sparse scoreCells for scores mentioned in passing ("B gets 4 out of 5 on cost").
- The first table row is the header.
- Timeline dates are ISO-8601.
- Output JSON only. No markdown.
"""


@dataclass
class GenerationPrompt:
    """Everything the generation service needs for one utterance."""
    message: str
    canvas_content: Dict[str, Any] = field(default_factory=dict)
    context_bounds: Rect = DEFAULT_VIEWPORT
    prompt_bounds: Rect = DEFAULT_VIEWPORT
    meta: Dict[str, Any] = field(default_factory=dict)

    def to_wire(self) -> Dict[str, Any]:
        return {
            "message": self.message,
            "canvasContent": self.canvas_content,
            "contextBounds": self.context_bounds.to_dict(),
            "promptBounds": self.prompt_bounds.to_dict(),
            "meta": self.meta,
        }

    def to_text(self) -> str:
        """Single prompt string for chat-style model providers."""
        return f"""{SYSTEM_PROMPT}
Visible area: {json.dumps(self.context_bounds.to_dict())}

Canvas content:
{json.dumps(self.canvas_content, ensure_ascii=False)}

Utterance:
{self.message}
"""


def _plain_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    if isinstance(value, list):
        return "".join(_plain_text(v) for v in value)
    if isinstance(value, dict):
        if isinstance(value.get("text"), str):
            return value["text"]
        return _plain_text(value.get("children") or value.get("content") or value.get("spans"))
    return ""


def simplify_canvas_content(shapes: List[Dict[str, Any]], bindings: Optional[List[Dict[str, Any]]] = None) -> Dict[str, Any]:
    """
    Reduce stored canvas records to the flat shape vocabulary the model speaks.
    Shapes without a simple form are reported as ``unknown`` with a position.
    """
    bindings = bindings or []
    out: List[Dict[str, Any]] = []
    for shape in shapes:
        props = shape.get("props") or {}
        note = (shape.get("meta") or {}).get("description", "")
        sid = shape.get("id")
        kind = shape.get("type")
        text = _plain_text(props.get("text") or props.get("richText"))

        if kind == "geo" and props.get("geo", "rectangle") in ("rectangle", "ellipse", "cloud"):
            out.append({
                "shapeId": sid, "type": props.get("geo", "rectangle"), "note": note,
                "x": shape.get("x", 0), "y": shape.get("y", 0),
                "width": props.get("w"), "height": props.get("h"),
                "color": props.get("color"), "fill": props.get("fill"), "text": text,
            })
        elif kind in ("text", "note"):
            out.append({
                "shapeId": sid, "type": kind, "note": note,
                "x": shape.get("x", 0), "y": shape.get("y", 0),
                "color": props.get("color"), "text": text,
            })
        elif kind in ("arrow", "line"):
            start = props.get("start") or {}
            end = props.get("end") or {}
            x, y = shape.get("x", 0), shape.get("y", 0)
            item = {
                "shapeId": sid, "type": kind, "note": note,
                "x1": x + start.get("x", 0), "y1": y + start.get("y", 0),
                "x2": x + end.get("x", 0), "y2": y + end.get("y", 0),
                "color": props.get("color"),
            }
            if kind == "arrow":
                ends = {b.get("props", {}).get("terminal"): b.get("toId")
                        for b in bindings if b.get("fromId") == sid}
                item["fromId"] = ends.get("start")
                item["toId"] = ends.get("end")
                item["text"] = text
            out.append(item)
        else:
            out.append({"shapeId": sid, "type": "unknown", "note": note,
                        "x": shape.get("x", 0), "y": shape.get("y", 0)})
    return {"shapes": out}


def build_prompt(
    utterance: Utterance,
    shapes: Optional[List[Dict[str, Any]]] = None,
    bindings: Optional[List[Dict[str, Any]]] = None,
    identity: Optional[SessionIdentity] = None,
    viewport: Optional[Rect] = None,
) -> GenerationPrompt:
    """
    Single prompt builder shared by all providers.
    """
    shapes = shapes or []
    viewport = viewport or DEFAULT_VIEWPORT
    # Point the model at free space below the existing content
    extent = CanvasExtent.from_shapes(shapes)
    box = extent.bounding_box()
    prompt_bounds = viewport if box is None else Rect(box.x, box.bottom, viewport.w, viewport.h)

    meta: Dict[str, Any] = {
        "callId": utterance.call_id,
        "emittedAt": utterance.emitted_at,
    }
    if utterance.user:
        meta["speaker"] = utterance.user
    if identity is not None:
        meta["session"] = identity.to_dict()

    return GenerationPrompt(
        message=utterance.content.strip(),
        canvas_content=simplify_canvas_content(shapes, bindings),
        context_bounds=viewport,
        prompt_bounds=prompt_bounds,
        meta=meta,
    )
