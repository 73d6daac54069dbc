"""Pydantic models."""
from api.models.attempts import (
    AnswersUpdateRequest,
    AttemptRecord,
    AttemptStartResponse,
    AutosaveAnswer,
    AutosavePayload,
    FlowChartNode,
    OptionRecord,
    PaperRecord,
    QuestionGroupRecord,
    QuestionRecord,
    SectionRecord,
)
from api.models.questions import UiChoice, UiQuestion

__all__ = [
    "AnswersUpdateRequest",
    "AttemptRecord",
    "AttemptStartResponse",
    "AutosaveAnswer",
    "AutosavePayload",
    "FlowChartNode",
    "OptionRecord",
    "PaperRecord",
    "QuestionGroupRecord",
    "QuestionRecord",
    "SectionRecord",
    "UiChoice",
    "UiQuestion",
]
