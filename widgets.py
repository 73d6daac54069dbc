"""
Self-synchronizing answer widgets.

Every widget owns one answer string (``value``) and an ``on_change``
callback. Construction is the mount pass: the initial value is decoded into
editable state without notifying. ``receive_value`` applies an external
update only when it decodes differently from the current state, so unsaved
input survives echoes of its own value. User edits notify only when the
edited state decodes differently from the stored value.
"""
from __future__ import annotations

import abc
import enum
import logging
from typing import Any, Callable, Iterable, List, Optional, Sequence

import answer_codec
import prompt_tokenizer
from models import BlankSlots, BlankToken, Choice, TextToken, Token

log = logging.getLogger(__name__)

ChangeCallback = Callable[[str], None]


class SyncState(str, enum.Enum):
    UNINITIALIZED = "uninitialized"
    SYNCED = "synced"
    EDITING = "editing"


def _token_payload(token: Token, values: Sequence[str] = ()) -> dict[str, Any]:
    if isinstance(token, TextToken):
        return {"type": "text", "text": token.content}
    value = values[token.index] if token.index < len(values) else ""
    return {"type": "blank", "index": token.index, "marker": token.marker, "value": value}


class QuestionWidget(abc.ABC):
    kind = "base"

    def __init__(
        self,
        question_id: str,
        prompt: str,
        value: Optional[str] = "",
        on_change: Optional[ChangeCallback] = None,
    ):
        self.id = str(question_id)
        self.prompt = prompt or ""
        self.value = value or ""
        self.on_change = on_change
        self.state = SyncState.UNINITIALIZED
        self._parse_prompt()
        self._hydrate(self._decode(self.value))
        self.state = SyncState.SYNCED

    # hooks
    def _parse_prompt(self) -> None:
        pass

    @abc.abstractmethod
    def _decode(self, value: str) -> Any: ...

    @abc.abstractmethod
    def _encode(self, structured: Any) -> str: ...

    @abc.abstractmethod
    def _current(self) -> Any: ...

    @abc.abstractmethod
    def _hydrate(self, structured: Any) -> None: ...

    def _same(self, left: Any, right: Any) -> bool:
        return left == right

    def receive_value(self, value: Optional[str]) -> bool:
        """
        Apply an externally supplied answer string.

        Returns True when the editable state was re-derived from it.
        """
        value = value or ""
        if value == self.value:
            return False
        decoded = self._decode(value)
        self.value = value
        if self._same(decoded, self._current()):
            return False
        log.debug("Question %s: re-hydrating from external value", self.id)
        self._hydrate(decoded)
        self.state = SyncState.SYNCED
        return True

    def _commit(self) -> bool:
        current = self._current()
        # the stored value may be an equivalent, non-canonical string
        if self._same(self._decode(self.value), current):
            return False
        encoded = self._encode(current)
        self.value = encoded
        self.state = SyncState.EDITING
        if self.on_change is not None:
            self.on_change(encoded)
        return True

    def render(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "kind": self.kind,
            "value": self.value,
            "state": self.state.value,
        }


class _ScalarWidget(QuestionWidget):
    def _decode(self, value: str) -> str:
        return value

    def _encode(self, structured: str) -> str:
        return structured

    def _current(self) -> str:
        return self._text

    def _hydrate(self, structured: str) -> None:
        self._text = structured


class FillInBlankWidget(_ScalarWidget):
    kind = "fill_in_blank"

    def _parse_prompt(self) -> None:
        self.text = prompt_tokenizer.normalize_blank_placeholders(self.prompt)

    def set_text(self, text: str) -> bool:
        self._text = text or ""
        return self._commit()

    def render(self) -> dict[str, Any]:
        payload = super().render()
        payload["text"] = self.text
        return payload


class _ChoiceWidget(_ScalarWidget):
    def __init__(
        self,
        question_id: str,
        prompt: str,
        choices: Iterable[Choice] = (),
        value: Optional[str] = "",
        on_change: Optional[ChangeCallback] = None,
    ):
        self.choices: List[Choice] = list(choices)
        super().__init__(question_id, prompt, value, on_change)

    def _parse_prompt(self) -> None:
        self.text = prompt_tokenizer.normalize(self.prompt)

    def select(self, choice_value: str) -> bool:
        choice_value = choice_value or ""
        if choice_value and choice_value not in {c.value for c in self.choices}:
            log.debug("Question %s: ignoring unknown choice %r", self.id, choice_value)
            return False
        self._text = choice_value
        return self._commit()

    def render(self) -> dict[str, Any]:
        payload = super().render()
        payload["text"] = self.text
        payload["choices"] = [
            {"value": c.value, "label": c.label, "selected": c.value == self._text}
            for c in self.choices
        ]
        return payload


class SingleChoiceWidget(_ChoiceWidget):
    kind = "single_choice"


class HeadingSelectWidget(_ChoiceWidget):
    """Dropdown of headings; the answer is the heading numeral (``"iv"``)."""

    kind = "heading_select"


class LetterInputWidget(_ScalarWidget):
    kind = "letter_input"

    def __init__(
        self,
        question_id: str,
        prompt: str,
        value: Optional[str] = "",
        on_change: Optional[ChangeCallback] = None,
        allowed_letters: str = "ABCDEF",
    ):
        self.allowed_letters = allowed_letters
        super().__init__(question_id, prompt, value, on_change)

    def _parse_prompt(self) -> None:
        self.text = prompt_tokenizer.normalize(self.prompt)

    def set_letter(self, raw: str) -> bool:
        letters = [ch for ch in (raw or "").upper() if ch in self.allowed_letters]
        self._text = letters[0] if letters else ""
        return self._commit()

    def render(self) -> dict[str, Any]:
        payload = super().render()
        payload["text"] = self.text
        payload["placeholder"] = self.allowed_letters[:1]
        return payload


class MultiSelectWidget(QuestionWidget):
    """Checkbox list. Order of selection is kept but ignored for equality."""

    kind = "multi_select"

    def __init__(
        self,
        question_id: str,
        prompt: str,
        choices: Iterable[Choice] = (),
        value: Optional[str] = "",
        on_change: Optional[ChangeCallback] = None,
    ):
        self.choices: List[Choice] = list(choices)
        super().__init__(question_id, prompt, value, on_change)

    def _parse_prompt(self) -> None:
        self.text = prompt_tokenizer.normalize(self.prompt)

    def _decode(self, value: str) -> List[str]:
        return list(dict.fromkeys(answer_codec.decode_string_list(value)))

    def _encode(self, structured: List[str]) -> str:
        return answer_codec.encode_list(structured)

    def _current(self) -> List[str]:
        return list(self.selected)

    def _hydrate(self, structured: List[str]) -> None:
        self.selected = list(structured)

    def _same(self, left: List[str], right: List[str]) -> bool:
        return frozenset(left) == frozenset(right)

    def toggle(self, choice_value: str) -> bool:
        if self.choices and choice_value not in {c.value for c in self.choices}:
            log.debug("Question %s: ignoring unknown option %r", self.id, choice_value)
            return False
        if choice_value in self.selected:
            self.selected = [v for v in self.selected if v != choice_value]
        else:
            self.selected = self.selected + [choice_value]
        return self._commit()

    def render(self) -> dict[str, Any]:
        payload = super().render()
        payload["text"] = self.text
        payload["choices"] = [
            {"value": c.value, "label": c.label, "selected": c.value in self.selected}
            for c in self.choices
        ]
        payload["selectedCount"] = len(self.selected)
        return payload


class FlowChartWidget(QuestionWidget):
    """
    Ordered steps. Row ``i`` holds the 1-based position of the step the user
    placed there; the answer lists the chosen steps in row order.
    """

    kind = "flow_chart"

    def _parse_prompt(self) -> None:
        extraction = prompt_tokenizer.extract_ordered_steps(self.prompt)
        self.steps = extraction.steps
        self.steps_matched = extraction.matched

    def _decode(self, value: str) -> List[str]:
        return answer_codec.decode_string_list(value)

    def _encode(self, structured: List[str]) -> str:
        return answer_codec.encode_list(structured)

    def _current(self) -> List[str]:
        return answer_codec.project_slots_to_labels(self.slots, self.steps)

    def _hydrate(self, structured: List[str]) -> None:
        slots = answer_codec.reconcile_ordered_slots(structured, self.steps)
        if len(slots) < len(self.steps):
            slots += [None] * (len(self.steps) - len(slots))
        self.slots = slots

    def assign(self, row: int, raw_position: str) -> bool:
        """Set the position typed into a row; blank clears it, invalid input is ignored."""
        if not 0 <= row < len(self.steps):
            return False
        raw_position = (raw_position or "").strip()
        if not raw_position:
            self.slots[row] = None
            return self._commit()
        try:
            position = int(raw_position)
        except ValueError:
            return False
        if not 1 <= position <= len(self.steps):
            return False
        self.slots[row] = position
        return self._commit()

    def render(self) -> dict[str, Any]:
        payload = super().render()
        payload["text"] = prompt_tokenizer.normalize(self.prompt)
        payload["rows"] = [
            {"label": label, "position": self.slots[i] if i < len(self.slots) else None}
            for i, label in enumerate(self.steps)
        ]
        payload["maxPosition"] = len(self.steps)
        return payload


class _MultiBlankWidget(QuestionWidget):
    slots: BlankSlots

    def _decode(self, value: str) -> List[str]:
        return answer_codec.decode_blanks(value, self.slots.blank_count)

    def _encode(self, structured: List[str]) -> str:
        return answer_codec.encode_blanks(structured, self.slots.blank_count)

    def _current(self) -> List[str]:
        return list(self.values)

    def _hydrate(self, structured: List[str]) -> None:
        self.values = list(structured)

    def _accepts(self, value: str) -> bool:
        return True

    def set_blank(self, blank_index: int, value: str) -> bool:
        if not 0 <= blank_index < self.slots.blank_count:
            return False
        value = value or ""
        if not self._accepts(value):
            log.debug("Question %s: rejecting %r for blank %d", self.id, value, blank_index)
            return False
        self.values[blank_index] = value
        return self._commit()

    def render(self) -> dict[str, Any]:
        payload = super().render()
        payload["values"] = list(self.values)
        payload["tokens"] = [_token_payload(t, self.values) for t in self.slots.tokens]
        payload["blankCount"] = self.slots.blank_count
        return payload


class SummaryCompletionWidget(_MultiBlankWidget):
    kind = "summary_completion"

    def _parse_prompt(self) -> None:
        split = prompt_tokenizer.split_instruction_from_notes(self.prompt)
        self.instruction = prompt_tokenizer.clean_instruction(split.instruction)
        tokens = prompt_tokenizer.tokenize_blanks(split.notes)
        blank_count = sum(1 for t in tokens if isinstance(t, BlankToken))
        if blank_count == 0:
            # keep the question answerable when the prompt has no blank marker
            tokens = tokens + [BlankToken(index=0)]
            blank_count = 1
        self.slots = BlankSlots(tokens=tokens, blank_count=blank_count)

    def render(self) -> dict[str, Any]:
        payload = super().render()
        payload["instruction"] = self.instruction
        return payload


class WordListCompletionWidget(_MultiBlankWidget):
    kind = "word_list_completion"

    def _parse_prompt(self) -> None:
        block = prompt_tokenizer.split_word_list_block(self.prompt)
        self.options = block.options
        body = prompt_tokenizer.extract_body_after_marker(block.stem)
        self.slots = prompt_tokenizer.tokenize_blank_slots(body.body)

    def _accepts(self, value: str) -> bool:
        return not value or value in {o.letter for o in self.options}

    def render(self) -> dict[str, Any]:
        payload = super().render()
        payload["options"] = [{"letter": o.letter, "label": o.label} for o in self.options]
        return payload


def build_widget(
    ui_kind: str,
    question_id: str,
    stem: str,
    value: Optional[str] = "",
    on_change: Optional[ChangeCallback] = None,
    choices: Iterable[Choice] = (),
) -> QuestionWidget:
    """Pick the widget that edits answers of the given UI kind."""
    if ui_kind in ("completion", "summary_completion"):
        return SummaryCompletionWidget(question_id, stem, value, on_change)
    if ui_kind == "matching_information":
        return WordListCompletionWidget(question_id, stem, value, on_change)
    if ui_kind == "flow_chart":
        return FlowChartWidget(question_id, stem, value, on_change)
    if ui_kind == "choice_multiple":
        return MultiSelectWidget(question_id, stem, choices, value, on_change)
    if ui_kind in ("matching_heading", "matching_heading_select"):
        return HeadingSelectWidget(question_id, stem, choices, value, on_change)
    if ui_kind == "choice_single":
        return SingleChoiceWidget(question_id, stem, choices, value, on_change)
    if ui_kind in ("matching_letter", "matching_paragraph"):
        return LetterInputWidget(question_id, stem, value, on_change)
    return FillInBlankWidget(question_id, stem, value, on_change)
