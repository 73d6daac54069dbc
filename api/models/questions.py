"""UI question models."""
from pydantic import BaseModel, Field

from api.models.attempts import FlowChartNode


class UiChoice(BaseModel):
    value: str
    label: str
    idx: int | None = None


class UiQuestion(BaseModel):
    """Question projected into the shape the widgets consume."""

    id: str
    idx: int = 0
    stem: str = ""
    backendType: str = ""
    uiKind: str
    explanationMd: str | None = None
    choices: list[UiChoice] | None = None
    flowChartNodes: list[FlowChartNode] = Field(default_factory=list)
    groupInstructionMd: str | None = None
