"""
qualifier/flow/sinks.py — Completion sinks for finished questionnaires.

A sink is any callable taking the finalization payload. It must raise on
failure; the flow controller turns that into a retryable rejection.

  ProfileCompletionSink  → merges the answers into the lead's profile
  WebhookCompletionSink  → POSTs the payload to an external endpoint
  fan_out(*sinks)        → calls several sinks in order
"""

import logging
from typing import Any, Callable

import requests
from tenacity import retry, retry_if_exception, stop_after_attempt, wait_exponential

from qualifier.catalog.models import SessionType
from qualifier.config import settings
from qualifier.errors import SubmissionError
from qualifier.services.profile_service import ProfileService

logger = logging.getLogger(__name__)


def _is_transient(error: BaseException) -> bool:
    """Connection problems, timeouts and 5xx answers are worth another try; 4xx are not."""
    if isinstance(error, requests.HTTPError):
        return error.response is not None and error.response.status_code >= 500
    return isinstance(error, (requests.ConnectionError, requests.Timeout))


class ProfileCompletionSink:
    """Hands a completed session to the profile service."""

    def __init__(
        self,
        profile_service: ProfileService,
        lead_id: str,
        session_type: SessionType,
        email: str | None = None,
    ):
        self.profile_service = profile_service
        self.lead_id = lead_id
        self.session_type = session_type
        self.email = email

    def __call__(self, payload: dict[str, Any]) -> None:
        try:
            self.profile_service.record_questionnaire(
                self.lead_id, payload, self.session_type, email=self.email
            )
        except Exception as e:
            raise SubmissionError(f"Could not store questionnaire for lead {self.lead_id}: {e}") from e


class WebhookCompletionSink:
    """
    Forwards the payload as JSON to an HTTP endpoint.

    Tries up to 3 times on connection errors, timeouts and 5xx responses.
    A 4xx response fails at once. Either way the final failure raises
    SubmissionError so the user can retry the last step.
    """

    def __init__(self, url: str | None = None, timeout: float | None = None):
        self.url = url or settings.completion_webhook_url
        if not self.url:
            raise ValueError("WebhookCompletionSink needs a URL (COMPLETION_WEBHOOK_URL).")
        self.timeout = timeout or settings.webhook_timeout_seconds

    @retry(
        retry=retry_if_exception(_is_transient),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=1, max=8),
        reraise=True,
    )
    def _post(self, payload: dict[str, Any]) -> None:
        response = requests.post(self.url, json=payload, timeout=self.timeout)
        response.raise_for_status()

    def __call__(self, payload: dict[str, Any]) -> None:
        try:
            self._post(payload)
        except requests.RequestException as e:
            logger.error("Completion webhook %s failed after retries: %s", self.url, e)
            raise SubmissionError(f"Webhook delivery failed: {e}") from e
        logger.info("Questionnaire payload delivered to %s.", self.url)


def fan_out(*sinks: Callable[[dict[str, Any]], None]) -> Callable[[dict[str, Any]], None]:
    """Combine sinks; the first failure stops the chain and propagates."""

    def _sink(payload: dict[str, Any]) -> None:
        for sink in sinks:
            sink(payload)

    return _sink
