"""Application-level exception types for hearforyou."""

from __future__ import annotations


class HearForYouError(Exception):
    """Base exception for hearforyou."""


class ConfigurationError(HearForYouError):
    """Base exception for configuration and startup validation errors."""


class DialogError(HearForYouError):
    """Base exception for dialog engine integration errors."""


class ExcessiveDialogRecursion(DialogError):
    """Raised when one turn evaluates more steps than the unwind limit allows."""

    def __init__(self, limit: int) -> None:
        super().__init__(f"dialog turn exceeded {limit} step evaluations")
        self.limit = limit


class StaleJobHandle(DialogError):
    """Raised when a job completion does not match the session's pending job."""


class JobAlreadyPending(DialogError):
    """Raised when a job is submitted while another one is still pending."""


class UnknownFlowError(DialogError):
    """Raised when a session references a flow the engine does not know."""


class ServiceError(HearForYouError):
    """Base exception for external service failures."""


class ClassifierUnavailable(ServiceError):
    """Raised when the intent classifier cannot be queried."""


class SubmissionRejected(ServiceError):
    """Raised when an external service refuses a job submission."""


class JobPollError(ServiceError):
    """Raised when the status of an external job cannot be read."""
