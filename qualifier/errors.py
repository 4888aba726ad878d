"""
qualifier/errors.py — Exceptions raised by the profile and completion layers.

The flow controller never raises these for user-level problems (unanswered
required question, busy session); it reports them through TransitionResult.
"""


class QualifierError(Exception):
    """Base class for all errors raised by this package."""


class LeadNotFoundError(QualifierError):
    def __init__(self, lead_id: str):
        super().__init__(f"Lead {lead_id} not found.")
        self.lead_id = lead_id


class InvalidResponseError(QualifierError):
    """A value does not fit the question it is meant to answer."""

    def __init__(self, question_id: str, message: str):
        super().__init__(f"{question_id}: {message}")
        self.question_id = question_id


class SubmissionError(QualifierError):
    """A completion sink failed to persist or forward a finished questionnaire."""
