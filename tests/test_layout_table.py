from diagram_backend.changes import CreateTableChange, Point, TableCell, TableMetadata, TableRow
from diagram_backend.layout import PlaceShape, ResizeShape, Size, layout_table


def _table(rows, **meta):
    return CreateTableChange(
        rows=[TableRow(cells=[TableCell(content=c) for c in row]) for row in rows],
        start_position=Point(x=0, y=0),
        metadata=TableMetadata(**meta),
    )


def test_static_sizing_and_colors():
    change = _table([["Name", "Owner"], ["API", "Ana"], ["UI", "Bo"]], sizing="static")
    ops = layout_table(change)
    assert all(isinstance(op, PlaceShape) for op in ops)
    assert len(ops) == 6
    header = ops[0]
    assert header.id == "shape:table-cell-0-0"
    assert (header.x, header.y, header.w, header.h) == (0, 0, 120, 80)
    assert header.color == "light-blue"
    assert ops[2].color == "light-red"
    assert ops[4].color == "light-green"
    assert ops[2].y == 80 + 6
    assert ops[1].x == 120 + 6


def test_column_width_grows_with_text():
    change = _table([["a much longer heading", "b"]], sizing="static")
    ops = layout_table(change)
    assert ops[0].w == 40 + 10 * len("a much longer heading")
    assert ops[1].w == 120


def test_inconsistent_rows_are_skipped():
    change = _table([["a", "b"], ["only one"], ["c", "d"]], sizing="static")
    ids = [op.id for op in layout_table(change)]
    assert "shape:table-cell-1-0" not in ids
    assert "shape:table-cell-2-1" in ids


def test_multiline_static_height():
    change = _table([["one\ntwo\nthree\nfour", "x"]], sizing="static")
    ops = layout_table(change)
    assert ops[0].h == 96
    assert ops[1].h == ops[0].h


def test_two_pass_never_below_tallest_measured_cell():
    tall = {"shape:table-cell-1-1": 210}

    def measure(shape):
        return Size(shape.w, tall.get(shape.id, 30))

    change = _table([["h1", "h2"], ["a", "b"], ["c", "d"]])
    ops = layout_table(change, measure=measure)

    resizes = [op for op in ops if isinstance(op, ResizeShape)]
    assert len(resizes) == 6
    row1 = [r for r in resizes if r.id.startswith("shape:table-cell-1-")]
    assert {r.h for r in row1} == {210}
    row2_first = next(op for op in ops if isinstance(op, PlaceShape) and op.id == "shape:table-cell-2-0")
    assert row2_first.y == 80 + 6 + 210 + 6


def test_measure_ignored_for_static_sizing():
    change = _table([["a"]], sizing="static")
    ops = layout_table(change, measure=lambda s: Size(1, 999))
    assert not any(isinstance(op, ResizeShape) for op in ops)


def test_cell_color_overrides_band():
    change = CreateTableChange(
        rows=[
            TableRow(cells=[TableCell(content="Name"), TableCell(content="Owner")]),
            TableRow(cells=[TableCell(content="API", color="orange"), TableCell(content="Ana")]),
        ],
        metadata=TableMetadata(sizing="static"),
    )
    ops = layout_table(change)
    assert ops[2].color == "orange"
    assert ops[3].color == "light-red"
