"""Attempt session endpoints."""
from typing import Annotated, Any

import requests
from fastapi import APIRouter, Body, Depends, HTTPException

from api.dependencies import get_attempt_service
from api.models import AnswersUpdateRequest, AttemptStartResponse
from api.services.attempt_service import AttemptService, AttemptStartError
from api.utils import validate_id

router = APIRouter(prefix="/api/attempts", tags=["attempts"])

ServiceDep = Annotated[AttemptService, Depends(get_attempt_service)]


@router.post("", response_model=AttemptStartResponse)
def start_attempt(
    service: ServiceDep,
    payload: dict[str, Any] = Body(...),
) -> dict[str, object]:
    """Register an attempt returned by the backend start call."""
    try:
        record = service.start(payload)
    except AttemptStartError as exc:
        raise HTTPException(
            status_code=400,
            detail=f"Could not start the test, please try again ({exc})",
        ) from exc
    return {"status": "started", "attemptId": record.attemptId}


@router.get("/{attempt_id}")
def get_attempt(attempt_id: str, service: ServiceDep) -> dict[str, object]:
    """Get a registered attempt, restoring it from session storage if needed."""
    attempt_id = validate_id("attemptId", attempt_id)
    return service.require(attempt_id).model_dump()


@router.delete("")
def clear_attempts(service: ServiceDep) -> dict[str, object]:
    """Forget every attempt of this tab session."""
    service.close()
    return {"status": "cleared"}


@router.delete("/{attempt_id}")
def clear_attempt(attempt_id: str, service: ServiceDep) -> dict[str, object]:
    attempt_id = validate_id("attemptId", attempt_id)
    service.close(attempt_id)
    return {"status": "cleared", "attemptId": attempt_id}


@router.get("/{attempt_id}/sections/{section_id}/questions")
def list_section_questions(
    attempt_id: str,
    section_id: str,
    service: ServiceDep,
) -> dict[str, object]:
    """UI questions of a section with their widget state."""
    attempt_id = validate_id("attemptId", attempt_id)
    section_id = validate_id("sectionId", section_id)
    return {
        "attemptId": attempt_id,
        "sectionId": section_id,
        "questions": service.section_questions(attempt_id, section_id),
    }


@router.put("/{attempt_id}/answers")
def update_answers(
    attempt_id: str,
    payload: AnswersUpdateRequest,
    service: ServiceDep,
) -> dict[str, object]:
    """Record answer changes; an autosave follows after the quiet period."""
    attempt_id = validate_id("attemptId", attempt_id)
    answers = service.update_answers(attempt_id, payload.answers)
    return {"status": "scheduled", "attemptId": attempt_id, "answers": answers}


@router.post("/{attempt_id}/submit")
def submit_attempt(attempt_id: str, service: ServiceDep) -> dict[str, object]:
    attempt_id = validate_id("attemptId", attempt_id)
    try:
        result = service.submit(attempt_id)
    except requests.RequestException as exc:
        raise HTTPException(
            status_code=502, detail="Submitting failed, please try again"
        ) from exc
    return {"status": "submitted", "attemptId": attempt_id, "result": result}
