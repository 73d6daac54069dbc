"""Debounced, best-effort autosave of an attempt's answer map."""
import logging
import threading
import time
from typing import Any, Callable, Mapping, Optional, Protocol

from api.config import AUTOSAVE_QUIET_PERIOD_MS
from api.models.attempts import AutosaveAnswer, AutosavePayload

logger = logging.getLogger(__name__)

SectionResolver = Callable[[str], Optional[str]]
SaveFunc = Callable[[str, AutosavePayload], Any]


class TimerHandle(Protocol):
    def cancel(self) -> None: ...


TimerFactory = Callable[[float, Callable[[], None]], TimerHandle]


def start_thread_timer(delay_seconds: float, callback: Callable[[], None]) -> TimerHandle:
    timer = threading.Timer(delay_seconds, callback)
    timer.daemon = True
    timer.start()
    return timer


def build_autosave_payload(
    answers: Mapping[str, str],
    section_resolver: SectionResolver,
    client_revision: int,
) -> AutosavePayload:
    """Every answer is sent as an opaque string; empty answers send no values."""
    return AutosavePayload(
        answers=[
            AutosaveAnswer(
                questionId=question_id,
                sectionId=section_resolver(question_id) or "",
                selectedValues=[value] if value else [],
            )
            for question_id, value in answers.items()
        ],
        clientRevision=client_revision,
    )


class AutoSaveScheduler:
    """
    One pending save per attempt. Each ``schedule`` call replaces the pending
    snapshot and restarts the quiet period; only the latest snapshot is sent.
    """

    def __init__(
        self,
        attempt_id: str,
        save: SaveFunc,
        quiet_period_ms: int = AUTOSAVE_QUIET_PERIOD_MS,
        timer_factory: TimerFactory = start_thread_timer,
        clock: Callable[[], float] = time.time,
    ):
        self.attempt_id = attempt_id
        self.save = save
        self.quiet_period_ms = quiet_period_ms
        self.timer_factory = timer_factory
        self.clock = clock
        self._lock = threading.Lock()
        self._timer: TimerHandle | None = None
        self._last_revision = 0

    @property
    def pending(self) -> bool:
        return self._timer is not None

    def _next_revision(self) -> int:
        revision = max(int(self.clock() * 1000), self._last_revision + 1)
        self._last_revision = revision
        return revision

    def schedule(self, answers: Mapping[str, str], section_resolver: SectionResolver) -> None:
        snapshot = dict(answers)
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
            holder: list[TimerHandle] = []

            def fire() -> None:
                self._fire(holder, snapshot, section_resolver)

            timer = self.timer_factory(self.quiet_period_ms / 1000, fire)
            holder.append(timer)
            self._timer = timer

    def _fire(
        self,
        holder: list[TimerHandle],
        answers: Mapping[str, str],
        section_resolver: SectionResolver,
    ) -> None:
        with self._lock:
            timer = holder[0] if holder else None
            if timer is None or timer is not self._timer:
                # superseded or cancelled
                return
            self._timer = None
            payload = build_autosave_payload(answers, section_resolver, self._next_revision())
        try:
            self.save(self.attempt_id, payload)
            logger.debug(
                "Autosaved %d answer(s) for attempt %s", len(payload.answers), self.attempt_id
            )
        except Exception as e:
            logger.warning(f"Autosave failed for attempt {self.attempt_id}: {e}")

    def save_now(self, answers: Mapping[str, str], section_resolver: SectionResolver) -> Any:
        """Cancel the pending timer and save immediately. Errors propagate."""
        with self._lock:
            self._cancel_locked()
            payload = build_autosave_payload(dict(answers), section_resolver, self._next_revision())
        return self.save(self.attempt_id, payload)

    def cancel(self) -> None:
        with self._lock:
            self._cancel_locked()

    def _cancel_locked(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
