"""Service layer for in-progress attempts of one browser-tab session."""
import logging
import threading
from typing import Any, Callable, Mapping

from fastapi import HTTPException
from pydantic import ValidationError

from api.models.attempts import AttemptRecord, SectionRecord
from api.services.attempt_client import AttemptApiClient
from api.services.attempt_store import AttemptSessionStore
from api.services.autosave_service import AutoSaveScheduler
from api.services.question_mapper import assemble_section_questions, build_section_resolver
from models import Choice
from widgets import build_widget

logger = logging.getLogger(__name__)


class AttemptStartError(ValueError):
    """The attempt-start payload cannot be registered."""


def parse_attempt_start(payload: Mapping[str, Any]) -> AttemptRecord:
    """
    Validate an attempt-start payload.

    The attempt id comes from ``attemptId`` and falls back to ``id``.
    """
    if not isinstance(payload, Mapping):
        raise AttemptStartError("Invalid attempt payload")
    attempt_id = payload.get("attemptId") or payload.get("id")
    if not attempt_id:
        raise AttemptStartError("Missing attemptId")
    try:
        return AttemptRecord.model_validate({**payload, "attemptId": str(attempt_id)})
    except ValidationError as exc:
        raise AttemptStartError(f"Invalid attempt payload: {exc.error_count()} error(s)") from exc


class AttemptService:
    def __init__(
        self,
        store: AttemptSessionStore,
        client: AttemptApiClient,
        scheduler_factory: Callable[[str], AutoSaveScheduler] | None = None,
    ):
        self.store = store
        self.client = client
        self.scheduler_factory = scheduler_factory or (
            lambda attempt_id: AutoSaveScheduler(attempt_id, client.autosave)
        )
        self._answers: dict[str, dict[str, str]] = {}
        self._answers_lock = threading.Lock()
        self._schedulers: dict[str, AutoSaveScheduler] = {}

    def start(self, payload: Mapping[str, Any]) -> AttemptRecord:
        """Register a freshly started attempt, dropping any stale pending save for it."""
        record = parse_attempt_start(payload)
        self._discard(record.attemptId)
        self.store.set(record)
        logger.info("Registered attempt %s", record.attemptId)
        return record

    def get(self, attempt_id: str) -> AttemptRecord | None:
        return self.store.get(attempt_id)

    def require(self, attempt_id: str) -> AttemptRecord:
        record = self.store.get(attempt_id)
        if record is None:
            raise HTTPException(status_code=404, detail="Attempt not found")
        return record

    def scheduler(self, attempt_id: str) -> AutoSaveScheduler:
        scheduler = self._schedulers.get(attempt_id)
        if scheduler is None:
            scheduler = self.scheduler_factory(attempt_id)
            self._schedulers[attempt_id] = scheduler
        return scheduler

    def answers(self, attempt_id: str) -> dict[str, str]:
        with self._answers_lock:
            return dict(self._answers.get(attempt_id, {}))

    def section_questions(self, attempt_id: str, section_id: str) -> list[dict[str, Any]]:
        """UI questions of a section with the widget state for the current answers."""
        record = self.require(attempt_id)
        section = _find_section(record, section_id)
        answers = self.answers(attempt_id)

        items = []
        for question in assemble_section_questions(section):
            widget = build_widget(
                question.uiKind,
                question.id,
                question.stem,
                answers.get(question.id, ""),
                choices=[Choice(c.value, c.label) for c in question.choices or []],
            )
            items.append({"question": question.model_dump(), "widget": widget.render()})
        return items

    def update_answers(self, attempt_id: str, changes: Mapping[str, str]) -> dict[str, str]:
        """Merge answer changes and schedule an autosave of the merged map."""
        record = self.require(attempt_id)
        resolver = build_section_resolver(record)
        with self._answers_lock:
            merged = self._answers.setdefault(attempt_id, {})
            merged.update({str(k): v or "" for k, v in changes.items()})
            snapshot = dict(merged)
            # schedule in merge order so the newest snapshot is the pending one
            self.scheduler(attempt_id).schedule(snapshot, resolver)
        return snapshot

    def submit(self, attempt_id: str) -> dict:
        record = self.require(attempt_id)
        scheduler = self.scheduler(attempt_id)
        scheduler.cancel()

        answers = self.answers(attempt_id)
        if answers:
            try:
                scheduler.save_now(answers, build_section_resolver(record))
            except Exception as e:
                logger.warning(
                    f"Autosave before submit failed, continuing with submit: {e}"
                )

        result = self.client.submit(attempt_id)
        self.close(attempt_id)
        return result

    def cancel_pending(self) -> None:
        for scheduler in self._schedulers.values():
            scheduler.cancel()

    def _discard(self, attempt_id: str) -> None:
        scheduler = self._schedulers.pop(attempt_id, None)
        if scheduler is not None:
            scheduler.cancel()
        with self._answers_lock:
            self._answers.pop(attempt_id, None)

    def close(self, attempt_id: str | None = None) -> None:
        """Cancel pending saves and forget one attempt, or all of them."""
        if attempt_id is None:
            for pending_id in list(self._schedulers):
                self._discard(pending_id)
            with self._answers_lock:
                self._answers.clear()
        else:
            self._discard(attempt_id)
        self.store.clear(attempt_id)


def _find_section(record: AttemptRecord, section_id: str) -> SectionRecord:
    for section in record.paper.sections:
        if section.id == section_id:
            return section
    raise HTTPException(status_code=404, detail="Section not found")
