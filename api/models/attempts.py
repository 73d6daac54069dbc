"""Attempt-related Pydantic models."""
from pydantic import BaseModel, ConfigDict, Field


class OptionRecord(BaseModel):
    """Answer option as sent by the backend."""

    model_config = ConfigDict(extra="allow")

    id: str
    idx: int = 0
    contentMd: str = ""


class FlowChartNode(BaseModel):
    key: str
    label: str


class QuestionRecord(BaseModel):
    """Backend question record."""

    model_config = ConfigDict(extra="allow")

    id: str
    idx: int = 0
    type: str = ""
    skill: str | None = None
    difficulty: int | None = None
    promptMd: str = ""
    explanationMd: str | None = None
    options: list[OptionRecord] = Field(default_factory=list)
    flowChartNodes: list[FlowChartNode] = Field(default_factory=list)


class QuestionGroupRecord(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: str
    idx: int = 0
    startIdx: int = 0
    endIdx: int = 0
    instructionMd: str = ""
    questions: list[QuestionRecord] = Field(default_factory=list)


class SectionRecord(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: str
    idx: int = 0
    title: str = ""
    instructionsMd: str = ""
    passageMd: str | None = None
    audioUrl: str | None = None
    transcriptMd: str | None = None
    questionGroups: list[QuestionGroupRecord] = Field(default_factory=list)
    questions: list[QuestionRecord] = Field(default_factory=list)


class PaperRecord(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: str = ""
    slug: str = ""
    title: str = ""
    descriptionMd: str = ""
    category: str = ""
    level: str = ""
    durationMin: int = 0
    imageUrl: str | None = None
    sections: list[SectionRecord] = Field(default_factory=list)


class AttemptRecord(BaseModel):
    """In-progress attempt as registered in the session store."""

    model_config = ConfigDict(extra="allow")

    attemptId: str = Field(..., min_length=1)
    paper: PaperRecord = Field(default_factory=PaperRecord)
    startedAt: str = ""
    durationSec: int = 0
    timeLeft: int = 0


class AutosaveAnswer(BaseModel):
    questionId: str
    sectionId: str = ""
    selectedValues: list[str] = Field(default_factory=list)


class AutosavePayload(BaseModel):
    """Outbound autosave body."""

    answers: list[AutosaveAnswer] = Field(default_factory=list)
    clientRevision: int


class AnswersUpdateRequest(BaseModel):
    answers: dict[str, str]


class AttemptStartResponse(BaseModel):
    status: str
    attemptId: str
