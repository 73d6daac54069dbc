"""
Best-effort extraction of structure from human-authored prompt markdown.

Every extractor is total: when a pattern is not found the input comes back
as a single unit and the result's ``matched`` flag is False.
"""
from __future__ import annotations

import logging
import re
from typing import List, Optional

from models import (
    BlankSlots,
    BlankToken,
    BodyExtraction,
    InstructionSplit,
    LetteredOption,
    StepList,
    TextToken,
    Token,
    WordListBlock,
)

log = logging.getLogger(__name__)

ESCAPED_NEWLINE = "\\n"

BLANK_RUN_RE = re.compile(r"_{3,}")
# word-list blanks: exactly three underscores, optionally numbered "___[3]"
BLANK_SLOT_RE = re.compile(r"___(?:\[\d+\])?")
BLANK_PLACEHOLDER_RE = re.compile(r"\[blank[-_]\w+\]", re.IGNORECASE)
ANSWER_SHEET_RE = re.compile(r"answer sheet\.?", re.IGNORECASE)
WORD_LIST_SPLIT_RE = re.compile(
    r"^(.*?)\n\s*(?:\*\*)?Word List:(?:\*\*)?[ \t]*\r?\n(.*)$", re.DOTALL
)
WORD_LIST_HEADING_RE = re.compile(r"(?:\*\*)?Word List:(?:\*\*)?")
LETTERED_OPTION_RE = re.compile(r"^([A-Z])\s*[.)\-:]\s*(.+)$")
FILL_IN_BLANK_BODY_RE = re.compile(r"Fill in blank.*?:\s*\n+(.*)", re.IGNORECASE | re.DOTALL)

STEP_KEYWORD = "read:"
STEP_SEPARATOR = "->"
BLANK_DISPLAY = "____"


def normalize(raw: Optional[str]) -> str:
    """Turn literal two-character ``\\n`` escapes into real line breaks."""
    if not raw:
        return ""
    return raw.replace(ESCAPED_NEWLINE, "\n")


def normalize_blank_placeholders(raw: Optional[str]) -> str:
    """Render ``[blank-1]`` style placeholders as a visible blank marker."""
    return BLANK_PLACEHOLDER_RE.sub(BLANK_DISPLAY, normalize(raw))


def clean_instruction(instruction: str) -> str:
    return BLANK_RUN_RE.sub(BLANK_DISPLAY, instruction).replace("(.{3})", "(...)")


def split_instruction_from_notes(raw: Optional[str]) -> InstructionSplit:
    text = normalize(raw)
    m = ANSWER_SHEET_RE.search(text)
    if not m:
        log.debug("No 'answer sheet' phrase in prompt; treating all of it as notes")
        return InstructionSplit(instruction="", notes=text, matched=False)

    cut = m.end()
    return InstructionSplit(
        instruction=text[:cut].strip(),
        notes=text[cut:].strip(),
        matched=True,
    )


def _tokenize(text: str, pattern: re.Pattern) -> BlankSlots:
    tokens: List[Token] = []
    last = 0
    blank_index = 0
    for m in pattern.finditer(text):
        if m.start() > last:
            tokens.append(TextToken(text[last:m.start()]))
        tokens.append(BlankToken(index=blank_index, marker=m.group(0)))
        blank_index += 1
        last = m.end()
    if last < len(text):
        tokens.append(TextToken(text[last:]))
    return BlankSlots(tokens=tokens, blank_count=blank_index)


def tokenize_blanks(text: Optional[str]) -> List[Token]:
    """Split text on runs of 3+ underscores into Text and Blank tokens."""
    return _tokenize(normalize(text), BLANK_RUN_RE).tokens


def count_blanks(text: Optional[str]) -> int:
    return sum(1 for token in tokenize_blanks(text) if isinstance(token, BlankToken))


def extract_ordered_steps(raw: Optional[str]) -> StepList:
    """
    Pull the arrow-separated step list out of a flow-chart prompt.

    Text after the last ``read:`` keyword is used, otherwise text after the
    last colon, otherwise the whole prompt.
    """
    text = normalize(raw)
    matched = True
    idx = text.lower().rfind(STEP_KEYWORD)
    if idx != -1:
        part = text[idx + len(STEP_KEYWORD):]
    else:
        colon_idx = text.rfind(":")
        if colon_idx != -1:
            part = text[colon_idx + 1:]
        else:
            part = text
            matched = False

    part = part.strip()
    if part.endswith("."):
        part = part[:-1]

    steps = [s.strip() for s in part.split(STEP_SEPARATOR)]
    steps = [s for s in steps if s]
    if not matched:
        log.debug("Flow-chart prompt has no keyword or colon; using whole text")
    return StepList(steps=steps, matched=matched)


def parse_lettered_option(line: str) -> LetteredOption | None:
    m = LETTERED_OPTION_RE.match(line.strip())
    if not m:
        return None
    return LetteredOption(letter=m.group(1), label=m.group(2).strip())


def split_word_list_block(raw: Optional[str]) -> WordListBlock:
    text = normalize(raw)
    m = WORD_LIST_SPLIT_RE.match(text)
    if not m:
        return WordListBlock(stem=text.strip(), options=[], matched=False)

    options = []
    for line in m.group(2).strip().splitlines():
        line = line.strip()
        if not line:
            continue
        option = parse_lettered_option(line)
        if option is None:
            log.debug("Skipping word list line without a letter: %r", line)
            continue
        options.append(option)

    options.sort(key=lambda option: option.letter)
    return WordListBlock(stem=m.group(1).strip(), options=options, matched=True)


def has_word_list_blanks(raw: Optional[str]) -> bool:
    """True when a prompt carries both a Word List heading and a blank."""
    text = raw or ""
    return bool(WORD_LIST_HEADING_RE.search(text)) and "___" in text


def extract_body_after_marker(stem: Optional[str]) -> BodyExtraction:
    text = stem or ""
    m = FILL_IN_BLANK_BODY_RE.search(text)
    if not m:
        return BodyExtraction(body=text.strip(), matched=False)
    return BodyExtraction(body=m.group(1).strip(), matched=True)


def tokenize_blank_slots(body: Optional[str]) -> BlankSlots:
    """Split a word-list body on ``___`` / ``___[n]`` markers."""
    return _tokenize(body or "", BLANK_SLOT_RE)
