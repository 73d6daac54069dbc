import os

os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool


class FakeTimer:
    def __init__(self, delay, callback):
        self.delay = delay
        self.callback = callback
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True

    def fire(self) -> None:
        self.callback()


class FakeTimers:
    """Timer factory whose timers only fire when the test says so."""

    def __init__(self):
        self.created: list[FakeTimer] = []

    def __call__(self, delay, callback):
        timer = FakeTimer(delay, callback)
        self.created.append(timer)
        return timer

    @property
    def active(self) -> list[FakeTimer]:
        return [t for t in self.created if not t.cancelled]

    def fire_all(self) -> None:
        for timer in list(self.created):
            timer.fire()


class FakeAttemptClient:
    def __init__(self, fail_autosave: bool = False):
        self.fail_autosave = fail_autosave
        self.saved = []
        self.submitted = []

    def autosave(self, attempt_id, payload):
        if self.fail_autosave:
            raise ConnectionError("backend unreachable")
        self.saved.append((attempt_id, payload))
        return {}

    def submit(self, attempt_id):
        self.submitted.append(attempt_id)
        return {"status": "submitted"}


@pytest.fixture
def fake_timers() -> FakeTimers:
    return FakeTimers()


@pytest.fixture
def fake_client() -> FakeAttemptClient:
    return FakeAttemptClient()


@pytest.fixture
def failing_client() -> FakeAttemptClient:
    return FakeAttemptClient(fail_autosave=True)


@pytest.fixture
def session_factory():
    from api.database import Base
    from api.models.db import SessionStorageEntry  # noqa: F401

    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield sessionmaker(autocommit=False, autoflush=False, bind=engine)
    engine.dispose()


@pytest.fixture
def attempt_payload() -> dict:
    return {
        "attemptId": "att-1",
        "paper": {
            "id": "paper-1",
            "slug": "reading-1",
            "title": "Reading Test 1",
            "category": "reading",
            "level": "b2",
            "durationMin": 60,
            "sections": [
                {
                    "id": "sec-1",
                    "idx": 1,
                    "title": "Passage 1",
                    "passageMd": "Bread has been baked for thousands of years.",
                    "questionGroups": [
                        {
                            "id": "grp-1",
                            "idx": 1,
                            "startIdx": 1,
                            "endIdx": 2,
                            "instructionMd": "Questions 1-2\\nAnswer the questions below.",
                            "questions": [
                                {
                                    "id": "q1",
                                    "idx": 1,
                                    "type": "SUMMARY_COMPLETION",
                                    "promptMd": "Write ONE WORD ONLY on your answer sheet. Notes: flour ___ and water ___",
                                },
                                {
                                    "id": "q2",
                                    "idx": 2,
                                    "type": "MULTIPLE_CHOICE_MULTIPLE",
                                    "promptMd": "Choose TWO letters.",
                                    "options": [
                                        {"id": "opt-a", "idx": 1, "contentMd": "A. Yeast"},
                                        {"id": "opt-b", "idx": 2, "contentMd": "B. Salt"},
                                        {"id": "opt-c", "idx": 3, "contentMd": "C. Sugar"},
                                    ],
                                },
                            ],
                        },
                        {
                            "id": "grp-2",
                            "idx": 2,
                            "startIdx": 3,
                            "endIdx": 3,
                            "instructionMd": "Question 3",
                            "questions": [
                                {
                                    "id": "q3",
                                    "idx": 3,
                                    "type": "FLOW_CHART",
                                    "promptMd": "Put the stages in order. Read: Mix -> Knead -> Bake.",
                                },
                                {
                                    "id": "q2",
                                    "idx": 2,
                                    "type": "MULTIPLE_CHOICE_MULTIPLE",
                                    "promptMd": "Choose TWO letters.",
                                },
                            ],
                        },
                    ],
                },
                {
                    "id": "sec-2",
                    "idx": 2,
                    "title": "Passage 2",
                    "questionGroups": [
                        {
                            "id": "grp-3",
                            "idx": 1,
                            "startIdx": 4,
                            "endIdx": 4,
                            "instructionMd": "",
                            "questions": [
                                {
                                    "id": "q4",
                                    "idx": 4,
                                    "type": "MATCHING_HEADING",
                                    "promptMd": "Paragraph A",
                                    "options": [
                                        {"id": "h-1", "idx": 1, "contentMd": "i. Early ovens"},
                                        {"id": "h-2", "idx": 2, "contentMd": "ii. Modern bakeries"},
                                    ],
                                }
                            ],
                        }
                    ],
                },
            ],
        },
        "startedAt": "2026-10-17T09:00:00Z",
        "durationSec": 3600,
        "timeLeft": 3599,
    }
