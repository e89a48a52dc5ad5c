import pytest
from pydantic import ValidationError

from diagram_backend.changes import (
    CreateDecisionMatrixChange,
    CreateShapeChange,
    CreateTimelineChange,
    DeleteShapeChange,
    parse_change,
    parse_changes,
)


def test_discriminates_on_type():
    change = parse_change({"type": "deleteShape", "description": "drop it", "shapeId": "shape:a"})
    assert isinstance(change, DeleteShapeChange)
    assert change.shape_id == "shape:a"


def test_camel_case_wire_format():
    change = parse_change({
        "type": "createDecisionMatrix",
        "description": "vendors",
        "options": [{"id": "a", "title": "A"}],
        "criteria": [{"id": "cost", "title": "Cost", "weight": 2}],
        "scoreCells": [{"optionTitle": "A", "criterionId": "cost", "value": 4}],
        "startPosition": {"x": 10, "y": 20},
        "metadata": {"maxScore": 10, "indexConvention": "rowsAreCriteria"},
    })
    assert isinstance(change, CreateDecisionMatrixChange)
    assert change.score_cells[0].option_title == "A"
    assert change.start_position.y == 20
    assert change.metadata.index_convention == "rowsAreCriteria"

    wire = change.to_wire()
    assert wire["startPosition"] == {"x": 10, "y": 20}
    assert wire["scoreCells"][0]["criterionId"] == "cost"


def test_snake_case_accepted_too():
    change = parse_change({"type": "createTimeline", "items": [], "start_position": {"x": 1, "y": 2}})
    assert isinstance(change, CreateTimelineChange)
    assert change.start_position.x == 1
    assert change.metadata.replace_existing is False


def test_unknown_type_rejected():
    with pytest.raises(ValidationError):
        parse_change({"type": "createSpaceship"})


def test_parse_list():
    changes = parse_changes([
        {"type": "createShape", "shape": {"id": "a"}},
        {"type": "deleteShape", "shapeId": "b"},
    ])
    assert [type(c) for c in changes] == [CreateShapeChange, DeleteShapeChange]
