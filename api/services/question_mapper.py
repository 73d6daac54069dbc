"""Classification of backend question records into UI question models."""
import re
from typing import Callable

from api.models.attempts import AttemptRecord, QuestionRecord, SectionRecord
from api.models.questions import UiChoice, UiQuestion
from prompt_tokenizer import has_word_list_blanks

OPTION_LETTER_PREFIX_RE = re.compile(r"^[A-Z]\.\s+(.*)$")

MATCHING_INFORMATION = "MATCHING_INFORMATION"
DEFAULT_UI_KIND = "completion"

BACKEND_TYPE_TO_UI_KIND = {
    # radio
    "TRUE_FALSE_NOT_GIVEN": "choice_single",
    "YES_NO_NOT_GIVEN": "choice_single",
    "MULTIPLE_CHOICE_SINGLE": "choice_single",
    "MULTIPLE_CHOICE_SINGLE_IMAGE": "choice_single",
    "CLASSIFICATION": "choice_single",
    # checkbox
    "MULTIPLE_CHOICE_MULTIPLE": "choice_multiple",
    # text input
    "FORM_COMPLETION": "completion",
    "NOTE_COMPLETION": "completion",
    "SENTENCE_COMPLETION": "completion",
    "SUMMARY_COMPLETION": "completion",
    "TABLE_COMPLETION": "completion",
    "SHORT_ANSWER": "completion",
    "DIAGRAM_LABEL": "completion",
    "MAP_LABEL": "completion",
    # matching
    "MATCHING_FEATURES": "matching_letter",
    "MATCHING_ENDINGS": "matching_letter",
    "MATCHING_HEADING": "matching_heading",
    "FLOW_CHART": "flow_chart",
}


def map_backend_type(backend_type: str) -> str:
    """Map a backend question type to its UI kind; unknown types render as completion."""
    return BACKEND_TYPE_TO_UI_KIND.get(backend_type, DEFAULT_UI_KIND)


def classify_question(question: QuestionRecord) -> str:
    if question.type == MATCHING_INFORMATION:
        if has_word_list_blanks(question.promptMd):
            return "matching_information"
        return "matching_paragraph"
    return map_backend_type(question.type)


def normalize_option_label(content_md: str) -> str:
    """Drop a leading ``"B. "`` label prefix from option content."""
    trimmed = (content_md or "").strip()
    m = OPTION_LETTER_PREFIX_RE.match(trimmed)
    return m.group(1) if m else trimmed


def heading_value(content_md: str) -> str:
    """``"iv. The history of..."`` -> ``"iv"``."""
    return (content_md or "").split(".")[0].strip()


def map_question(question: QuestionRecord) -> UiQuestion:
    ui_kind = classify_question(question)
    base = UiQuestion(
        id=question.id,
        idx=question.idx,
        stem=question.promptMd,
        backendType=question.type,
        uiKind=ui_kind,
        explanationMd=question.explanationMd,
    )

    if ui_kind in ("choice_single", "choice_multiple"):
        base.choices = [
            UiChoice(value=opt.id, label=normalize_option_label(opt.contentMd), idx=opt.idx)
            for opt in question.options
        ]
    elif ui_kind == "flow_chart":
        base.flowChartNodes = list(question.flowChartNodes)
    elif ui_kind == "matching_heading" and question.options:
        base.choices = [
            UiChoice(value=heading_value(opt.contentMd), label=opt.contentMd, idx=opt.idx)
            for opt in question.options
        ]
    return base


def section_question_records(section: SectionRecord) -> list[QuestionRecord]:
    """Flatten a section's groups, drop repeated question ids, order by idx."""
    records = [q for group in section.questionGroups for q in group.questions]
    records.extend(section.questions)
    seen: set[str] = set()
    unique = []
    for record in records:
        if record.id in seen:
            continue
        seen.add(record.id)
        unique.append(record)
    return sorted(unique, key=lambda q: q.idx)


def assemble_section_questions(section: SectionRecord) -> list[UiQuestion]:
    instruction_by_idx = {
        group.startIdx: group.instructionMd
        for group in section.questionGroups
        if group.instructionMd
    }
    questions = []
    for record in section_question_records(section):
        question = map_question(record)
        question.groupInstructionMd = instruction_by_idx.get(record.idx)
        questions.append(question)
    return questions


def build_section_resolver(record: AttemptRecord) -> Callable[[str], str | None]:
    """Return a lookup from question id to the id of the section that owns it."""
    owner: dict[str, str] = {}
    for section in record.paper.sections:
        for question in section_question_records(section):
            owner.setdefault(question.id, section.id)
    return owner.get
