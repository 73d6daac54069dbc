from __future__ import annotations
from dataclasses import dataclass, field
from typing import List, Union


@dataclass(frozen=True)
class TextToken:
    content: str
    kind: str = "text"


@dataclass(frozen=True)
class BlankToken:
    index: int
    marker: str = ""
    kind: str = "blank"


Token = Union[TextToken, BlankToken]


@dataclass(frozen=True)
class LetteredOption:
    letter: str
    label: str


@dataclass
class InstructionSplit:
    instruction: str
    notes: str
    matched: bool = False


@dataclass
class StepList:
    steps: List[str]
    matched: bool = False


@dataclass
class WordListBlock:
    stem: str
    options: List[LetteredOption] = field(default_factory=list)
    matched: bool = False


@dataclass
class BodyExtraction:
    body: str
    matched: bool = False


@dataclass
class BlankSlots:
    tokens: List[Token]
    blank_count: int = 0


@dataclass(frozen=True)
class Choice:
    value: str
    label: str
