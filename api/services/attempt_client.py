from __future__ import annotations

import logging

import requests

from api.config import ATTEMPT_API_BASE_URL, ATTEMPT_API_TIMEOUT_SECONDS
from api.models.attempts import AutosavePayload

log = logging.getLogger(__name__)


class AttemptApiClient:
    """Outbound calls to the exam backend."""

    def __init__(
        self,
        base_url: str = ATTEMPT_API_BASE_URL,
        timeout: float = ATTEMPT_API_TIMEOUT_SECONDS,
        access_token: str | None = None,
        session: requests.Session | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update({"Content-Type": "application/json"})
        if access_token:
            self.session.headers.update({"Authorization": f"Bearer {access_token}"})

    def _url(self, attempt_id: str, action: str) -> str:
        return f"{self.base_url}/api/attempts/{attempt_id}/{action}"

    def autosave(self, attempt_id: str, payload: AutosavePayload) -> dict:
        response = self.session.post(
            self._url(attempt_id, "autosave"),
            json=payload.model_dump(),
            timeout=self.timeout,
        )
        response.raise_for_status()
        log.debug("Autosave accepted for %s (revision %s)", attempt_id, payload.clientRevision)
        return response.json() if response.content else {}

    def submit(self, attempt_id: str) -> dict:
        response = self.session.post(self._url(attempt_id, "submit"), timeout=self.timeout)
        response.raise_for_status()
        log.info("Submitted attempt %s", attempt_id)
        return response.json() if response.content else {}
