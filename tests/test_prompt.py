from diagram_backend.models import SessionIdentity
from diagram_backend.prompt import SYSTEM_PROMPT, build_prompt, simplify_canvas_content

from conftest import make_utterance


def test_simplify_canvas_content():
    shapes = [
        {"id": "shape:a", "type": "geo", "x": 1, "y": 2, "props": {"geo": "rectangle", "w": 10, "h": 20, "text": "A"},
         "meta": {"description": "box"}},
        {"id": "shape:t", "type": "text", "x": 0, "y": 0, "props": {"text": "title"}},
        {"id": "shape:arr", "type": "arrow", "x": 0, "y": 0,
         "props": {"start": {"x": 0, "y": 0}, "end": {"x": 5, "y": 5}}},
        {"id": "shape:img", "type": "image", "x": 3, "y": 4, "props": {}},
    ]
    bindings = [
        {"id": "binding:1", "fromId": "shape:arr", "toId": "shape:a", "props": {"terminal": "start"}},
        {"id": "binding:2", "fromId": "shape:arr", "toId": "shape:t", "props": {"terminal": "end"}},
    ]
    simple = simplify_canvas_content(shapes, bindings)["shapes"]
    assert simple[0]["type"] == "rectangle" and simple[0]["note"] == "box" and simple[0]["text"] == "A"
    assert simple[1]["type"] == "text"
    assert (simple[2]["fromId"], simple[2]["toId"]) == ("shape:a", "shape:t")
    assert simple[3] == {"shapeId": "shape:img", "type": "unknown", "note": "", "x": 3, "y": 4}


def test_build_prompt_carries_identity_and_free_space():
    identity = SessionIdentity(id="u1", name="Ana", color="blue")
    shapes = [{"id": "shape:a", "type": "geo", "x": 0, "y": 0, "props": {"w": 100, "h": 300}}]
    prompt = build_prompt(make_utterance(user="bo"), shapes, identity=identity)
    wire = prompt.to_wire()
    assert wire["meta"]["session"] == {"id": "u1", "name": "Ana", "color": "blue"}
    assert wire["meta"]["speaker"] == "bo"
    assert wire["promptBounds"]["y"] == 300
    assert prompt.to_text().startswith(SYSTEM_PROMPT)
    assert "we should compare the three vendors" in prompt.to_text()
