"""
Errors raised by the payment workflow.

None of them is fatal: handlers answer with an alert and the user stays on
the current step with the form values intact.
"""
from __future__ import annotations

from typing import Iterable


class WorkflowError(Exception):
    """Base class for every recoverable workflow failure."""


class ValidationFailed(WorkflowError):
    def __init__(self, messages: Iterable[str]) -> None:
        self.messages = list(messages)
        super().__init__("; ".join(self.messages) or "Invalid input")


class NotAuthenticated(WorkflowError):
    def __init__(self) -> None:
        super().__init__("Not authenticated")


class PersistenceFailed(WorkflowError):
    """The document store rejected or failed a write."""


class UploadFailed(WorkflowError):
    """The proof of payment could not be stored."""


class InvalidTransition(WorkflowError):
    """The action is not available on the current step."""
