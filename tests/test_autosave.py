import logging
import threading

import pytest
import requests

from api.models import AutosavePayload
from api.services.attempt_client import AttemptApiClient
from api.services.autosave_service import AutoSaveScheduler, build_autosave_payload


SECTIONS = {"q1": "sec-1", "q2": "sec-1", "q4": "sec-2"}.get


class Clock:
    def __init__(self, now: float = 1_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


def _scheduler(fake_timers, fake_client, clock=None) -> AutoSaveScheduler:
    return AutoSaveScheduler(
        "att-1",
        fake_client.autosave,
        quiet_period_ms=2000,
        timer_factory=fake_timers,
        clock=clock or Clock(),
    )


def test_build_autosave_payload() -> None:
    payload = build_autosave_payload(
        {"q1": '["flour","water"]', "q2": "", "q9": "B"}, SECTIONS, 7
    )

    assert payload.model_dump() == {
        "answers": [
            {"questionId": "q1", "sectionId": "sec-1", "selectedValues": ['["flour","water"]']},
            {"questionId": "q2", "sectionId": "sec-1", "selectedValues": []},
            {"questionId": "q9", "sectionId": "", "selectedValues": ["B"]},
        ],
        "clientRevision": 7,
    }


def test_rapid_changes_send_one_save_with_latest_answers(fake_timers, fake_client) -> None:
    scheduler = _scheduler(fake_timers, fake_client)
    for i in range(5):
        scheduler.schedule({"q1": f"draft {i}"}, SECTIONS)

    assert len(fake_timers.active) == 1
    assert fake_timers.active[0].delay == 2.0
    assert scheduler.pending

    fake_timers.fire_all()

    assert len(fake_client.saved) == 1
    attempt_id, payload = fake_client.saved[0]
    assert attempt_id == "att-1"
    assert payload.answers[0].selectedValues == ["draft 4"]
    assert not scheduler.pending


def test_schedule_snapshots_the_answer_map(fake_timers, fake_client) -> None:
    scheduler = _scheduler(fake_timers, fake_client)
    answers = {"q1": "river"}
    scheduler.schedule(answers, SECTIONS)
    answers["q1"] = "changed after scheduling"

    fake_timers.fire_all()

    assert fake_client.saved[0][1].answers[0].selectedValues == ["river"]


def test_failed_save_is_logged_and_swallowed(fake_timers, failing_client, caplog) -> None:
    scheduler = _scheduler(fake_timers, failing_client)
    scheduler.schedule({"q1": "river"}, SECTIONS)

    with caplog.at_level(logging.WARNING):
        fake_timers.fire_all()

    assert "Autosave failed for attempt att-1" in caplog.text
    assert not scheduler.pending

    # the next change is still scheduled normally
    scheduler.schedule({"q1": "sea"}, SECTIONS)
    assert scheduler.pending


def test_cancel_prevents_save(fake_timers, fake_client) -> None:
    scheduler = _scheduler(fake_timers, fake_client)
    scheduler.schedule({"q1": "river"}, SECTIONS)
    scheduler.cancel()

    fake_timers.fire_all()

    assert fake_client.saved == []
    assert fake_timers.active == []


def test_client_revision_is_strictly_increasing(fake_timers, fake_client) -> None:
    clock = Clock(1_000.0)
    scheduler = _scheduler(fake_timers, fake_client, clock)

    scheduler.save_now({"q1": "a"}, SECTIONS)
    scheduler.save_now({"q1": "b"}, SECTIONS)
    clock.now = 999.0
    scheduler.save_now({"q1": "c"}, SECTIONS)
    clock.now = 2_000.0
    scheduler.save_now({"q1": "d"}, SECTIONS)

    revisions = [payload.clientRevision for _, payload in fake_client.saved]
    assert revisions == [1_000_000, 1_000_001, 1_000_002, 2_000_000]


def test_save_now_cancels_pending_and_propagates_errors(fake_timers, failing_client) -> None:
    scheduler = _scheduler(fake_timers, failing_client)
    scheduler.schedule({"q1": "river"}, SECTIONS)

    with pytest.raises(ConnectionError):
        scheduler.save_now({"q1": "river"}, SECTIONS)
    assert not scheduler.pending
    assert fake_timers.active == []


def test_real_timer_fires_after_quiet_period(fake_client) -> None:
    done = threading.Event()

    def save(attempt_id: str, payload: AutosavePayload) -> None:
        fake_client.autosave(attempt_id, payload)
        done.set()

    scheduler = AutoSaveScheduler("att-1", save, quiet_period_ms=50)
    scheduler.schedule({"q1": "first"}, SECTIONS)
    scheduler.schedule({"q1": "second"}, SECTIONS)

    assert done.wait(timeout=5)
    assert [p.answers[0].selectedValues for _, p in fake_client.saved] == [["second"]]


class FakeResponse:
    def __init__(self, status_code: int = 200, body: bytes = b'{"ok": true}'):
        self.status_code = status_code
        self.content = body

    def raise_for_status(self) -> None:
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} error")

    def json(self) -> dict:
        return {"ok": True}


class FakeSession:
    def __init__(self, response: FakeResponse | None = None):
        self.headers: dict[str, str] = {}
        self.calls: list[tuple[str, dict]] = []
        self.response = response or FakeResponse()

    def post(self, url: str, **kwargs) -> FakeResponse:
        self.calls.append((url, kwargs))
        return self.response


def test_client_posts_autosave_body() -> None:
    session = FakeSession()
    client = AttemptApiClient(
        base_url="https://exam.example/", timeout=3, access_token="tok", session=session
    )
    payload = build_autosave_payload({"q1": "B"}, SECTIONS, 5)

    assert client.autosave("att-1", payload) == {"ok": True}

    url, kwargs = session.calls[0]
    assert url == "https://exam.example/api/attempts/att-1/autosave"
    assert kwargs["json"] == {
        "answers": [{"questionId": "q1", "sectionId": "sec-1", "selectedValues": ["B"]}],
        "clientRevision": 5,
    }
    assert kwargs["timeout"] == 3
    assert session.headers["Authorization"] == "Bearer tok"


def test_client_submit_raises_on_http_error() -> None:
    session = FakeSession(FakeResponse(status_code=503, body=b""))
    client = AttemptApiClient(base_url="https://exam.example", session=session)

    with pytest.raises(requests.HTTPError):
        client.submit("att-1")
    assert session.calls[0][0] == "https://exam.example/api/attempts/att-1/submit"


def test_client_submit_with_empty_body() -> None:
    session = FakeSession(FakeResponse(body=b""))
    client = AttemptApiClient(base_url="https://exam.example", session=session)

    assert client.submit("att-1") == {}
