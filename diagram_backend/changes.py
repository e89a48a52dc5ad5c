"""Diagram change schema.

A change is one structural instruction for the canvas. The wire format is the
camelCase JSON emitted by the generation service; attributes are snake_case.
"""

from __future__ import annotations

from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter
from pydantic.alias_generators import to_camel

SHAPE_PREFIX = "shape:"
BINDING_PREFIX = "binding:"

IndexConvention = Literal["rowsAreCriteria", "rowsAreOptions"]


class WireModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )

    def to_wire(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class Point(WireModel):
    x: float = 0
    y: float = 0


# --- raw shape / binding edits -------------------------------------------------


class CreateShapeChange(WireModel):
    type: Literal["createShape"] = "createShape"
    description: str = ""
    shape: Dict[str, Any]


class UpdateShapeChange(WireModel):
    type: Literal["updateShape"] = "updateShape"
    description: str = ""
    shape: Dict[str, Any]


class DeleteShapeChange(WireModel):
    type: Literal["deleteShape"] = "deleteShape"
    description: str = ""
    shape_id: str


class CreateBindingChange(WireModel):
    type: Literal["createBinding"] = "createBinding"
    description: str = ""
    binding: Dict[str, Any]


class UpdateBindingChange(WireModel):
    type: Literal["updateBinding"] = "updateBinding"
    description: str = ""
    binding: Dict[str, Any]


class DeleteBindingChange(WireModel):
    type: Literal["deleteBinding"] = "deleteBinding"
    description: str = ""
    binding_id: str


# --- linear diagram ------------------------------------------------------------


class Step(WireModel):
    id: str
    title: str
    description: Optional[str] = None
    color: Optional[str] = None


class LinearDiagramMetadata(WireModel):
    step_count: Optional[int] = None
    spacing: Optional[float] = None
    box_width: Optional[float] = None
    box_height: Optional[float] = None


class CreateLinearDiagramChange(WireModel):
    type: Literal["createLinearDiagram"] = "createLinearDiagram"
    description: str = ""
    diagram_id: Optional[str] = None
    steps: List[Step] = Field(default_factory=list)
    direction: Literal["horizontal", "vertical"] = "horizontal"
    start_position: Point = Field(default_factory=Point)
    metadata: LinearDiagramMetadata = Field(default_factory=LinearDiagramMetadata)


# --- decision matrix -----------------------------------------------------------


class MatrixOption(WireModel):
    id: str
    title: str
    description: Optional[str] = None
    color: Optional[str] = None


class Criterion(WireModel):
    id: str
    title: str
    weight: Optional[float] = None
    color: Optional[str] = None


class ScoreCell(WireModel):
    """Sparse score observation, e.g. "I rate B a 4/5 for cost"."""

    option_id: Optional[str] = None
    option_title: Optional[str] = None
    criterion_id: Optional[str] = None
    criterion_title: Optional[str] = None
    value: Optional[float] = 0
    max: Optional[float] = None


class DecisionMatrixMetadata(WireModel):
    title: Optional[str] = None
    option_count: Optional[int] = None
    criteria_count: Optional[int] = None
    cell_width: Optional[float] = None
    cell_height: Optional[float] = None
    spacing: Optional[float] = None
    spacing_x: Optional[float] = None
    spacing_y: Optional[float] = None
    header_height: Optional[float] = None
    header_width: Optional[float] = None
    max_score: Optional[float] = None
    index_convention: Optional[IndexConvention] = None


class CreateDecisionMatrixChange(WireModel):
    type: Literal["createDecisionMatrix"] = "createDecisionMatrix"
    description: str = ""
    diagram_id: Optional[str] = None
    options: List[MatrixOption] = Field(default_factory=list)
    criteria: List[Criterion] = Field(default_factory=list)
    score_cells: Optional[List[ScoreCell]] = None
    scores: Optional[List[List[Optional[float]]]] = None
    advantages: Optional[Dict[str, List[str]]] = None
    disadvantages: Optional[Dict[str, List[str]]] = None
    notes: Optional[List[str]] = None
    start_position: Point = Field(default_factory=Point)
    metadata: DecisionMatrixMetadata = Field(default_factory=DecisionMatrixMetadata)


# --- table ---------------------------------------------------------------------


class TableCell(WireModel):
    id: Optional[str] = None
    content: str = ""
    color: Optional[str] = None


class TableRow(WireModel):
    id: Optional[str] = None
    cells: List[TableCell] = Field(default_factory=list)


class TableMetadata(WireModel):
    col_width: Optional[float] = None
    row_height: Optional[float] = None
    spacing: Optional[float] = None
    border_color: Optional[str] = None
    border_width: Optional[float] = None
    sizing: Literal["static", "measured"] = "measured"


class CreateTableChange(WireModel):
    type: Literal["createTable"] = "createTable"
    description: str = ""
    diagram_id: Optional[str] = None
    rows: List[TableRow] = Field(default_factory=list)
    layout: Optional[str] = None
    start_position: Point = Field(default_factory=Point)
    metadata: TableMetadata = Field(default_factory=TableMetadata)


# --- timeline ------------------------------------------------------------------


class TimelineItem(WireModel):
    id: str
    title: str
    start: str
    end: Optional[str] = None
    lane: Optional[str] = None
    color: Optional[str] = None


class TimelineMetadata(WireModel):
    scale: Literal["auto", "days", "weeks", "months", "years"] = "auto"
    timeline_start: Optional[str] = None
    timeline_end: Optional[str] = None
    item_height: Optional[float] = None
    item_width: Optional[float] = None
    v_spacing: Optional[float] = None
    lane_spacing: Optional[float] = None
    replace_existing: bool = False


class CreateTimelineChange(WireModel):
    type: Literal["createTimeline"] = "createTimeline"
    description: str = ""
    diagram_id: Optional[str] = None
    items: List[TimelineItem] = Field(default_factory=list)
    layout: Literal["horizontal", "vertical"] = "horizontal"
    start_position: Point = Field(default_factory=Point)
    metadata: TimelineMetadata = Field(default_factory=TimelineMetadata)


Change = Annotated[
    Union[
        CreateShapeChange,
        UpdateShapeChange,
        DeleteShapeChange,
        CreateBindingChange,
        UpdateBindingChange,
        DeleteBindingChange,
        CreateLinearDiagramChange,
        CreateDecisionMatrixChange,
        CreateTableChange,
        CreateTimelineChange,
    ],
    Field(discriminator="type"),
]

StructuralChange = Union[
    CreateLinearDiagramChange,
    CreateDecisionMatrixChange,
    CreateTableChange,
    CreateTimelineChange,
]

STRUCTURAL_TYPES = (
    CreateLinearDiagramChange,
    CreateDecisionMatrixChange,
    CreateTableChange,
    CreateTimelineChange,
)

_CHANGE_ADAPTER: TypeAdapter = TypeAdapter(Change)
_CHANGE_LIST_ADAPTER: TypeAdapter = TypeAdapter(List[Change])


def parse_change(data: Any) -> Change:
    """Validate one wire object into its Change variant.

    Raises pydantic.ValidationError for unknown kinds or malformed payloads.
    """
    return _CHANGE_ADAPTER.validate_python(data)


def parse_changes(data: Any) -> List[Change]:
    return _CHANGE_LIST_ADAPTER.validate_python(data)


def change_to_wire(change: Change) -> Dict[str, Any]:
    return change.to_wire()
