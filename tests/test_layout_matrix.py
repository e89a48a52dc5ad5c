from diagram_backend.changes import (
    CreateDecisionMatrixChange,
    Criterion,
    DecisionMatrixMetadata,
    MatrixOption,
    Point,
    ScoreCell,
)
from diagram_backend.layout import PlaceShape, layout_decision_matrix

from conftest import criteria, options


def _by_id(ops):
    return {op.id: op for op in ops if isinstance(op, PlaceShape)}


def _matrix(**kwargs):
    base = dict(
        options=options("A", "B", "C"),
        criteria=criteria(("Cost", 2), "Risk", "Velocity"),
        score_cells=[ScoreCell(option_title="B", criterion_title="Cost", value=4, max=5)],
        start_position=Point(x=0, y=0),
    )
    base.update(kwargs)
    return CreateDecisionMatrixChange(**base)


def test_headers_and_cells_positions():
    shapes = _by_id(layout_decision_matrix(_matrix()))

    cost = shapes["shape:decision-matrix-criterion-cost"]
    assert (cost.x, cost.y) == (120, 0)
    assert cost.label == "Cost\n(W: 2)"
    risk = shapes["shape:decision-matrix-criterion-risk"]
    assert (risk.x, risk.y) == (240, 0)

    b = shapes["shape:decision-matrix-option-b"]
    assert (b.x, b.y) == (0, 120)

    cell = shapes["shape:decision-matrix-score-b-cost"]
    assert (cell.x, cell.y, cell.w, cell.h) == (120, 120, 100, 60)
    assert cell.label == "4"
    assert cell.color == "green"
    assert shapes["shape:decision-matrix-score-a-cost"].label == "0"
    assert shapes["shape:decision-matrix-score-a-cost"].color == "grey"


def test_weighted_total_column():
    shapes = _by_id(layout_decision_matrix(_matrix()))
    assert shapes["shape:decision-matrix-total-header"].label == "Total"
    # (4 * 2) / (2 + 1 + 1)
    assert shapes["shape:decision-matrix-total-b"].label == "2.0"
    assert shapes["shape:decision-matrix-total-a"].label == "0.0"
    assert shapes["shape:decision-matrix-total-b"].x == 120 + 3 * 120


def test_one_score_cell_per_pair():
    ops = layout_decision_matrix(_matrix())
    scores = [op for op in ops if op.id.startswith("shape:decision-matrix-score-")]
    assert len(scores) == 9


def test_pros_cons_and_notes_below_grid():
    change = _matrix(
        advantages={"b": ["cheap"]},
        disadvantages={"B": ["slow"]},
        notes=["cost matters most"],
    )
    shapes = _by_id(layout_decision_matrix(change))
    pros = shapes["shape:decision-matrix-proscons-b"]
    assert pros.label == "B\n+ cheap\n- slow"
    assert pros.kind == "text"
    grid_bottom = 40 + 3 * (60 + 20)
    assert pros.y > grid_bottom
    notes = shapes["shape:decision-matrix-notes"]
    assert notes.label == "* cost matters most"
    assert notes.y > pros.y


def test_title_sits_above_header_row():
    change = _matrix(metadata=DecisionMatrixMetadata(title="Vendors"))
    shapes = _by_id(layout_decision_matrix(change))
    title = shapes["shape:decision-matrix-title"]
    assert title.label == "Vendors"
    assert title.y < 0


def test_custom_max_score_drives_colors():
    change = _matrix(
        score_cells=[ScoreCell(option_id="a", criterion_id="risk", value=6)],
        metadata=DecisionMatrixMetadata(max_score=10),
    )
    shapes = _by_id(layout_decision_matrix(change))
    assert shapes["shape:decision-matrix-score-a-risk"].color == "yellow"


def test_repeated_option_and_criterion_ids_get_distinct_shapes():
    change = _matrix(
        options=[MatrixOption(id="x", title="First"), MatrixOption(id="x", title="Second")],
        criteria=[Criterion(id="c", title="Cost"), Criterion(id="c", title="Risk")],
        score_cells=None,
    )
    ops = [op for op in layout_decision_matrix(change) if isinstance(op, PlaceShape)]
    ids = [op.id for op in ops]
    assert len(ids) == len(set(ids))
    assert "shape:decision-matrix-score-x-2-c-2" in ids
