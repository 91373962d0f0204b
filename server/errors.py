"""
errors.py
=========

Exception types raised by the draft and trade services.  Every error carries
a stable ``code`` string plus a ``details`` mapping so the API layer can
translate failures into responses without parsing messages.
"""

from __future__ import annotations

from typing import Any, Dict, Optional


class DraftEngineError(Exception):
    """Base class for all draft/trade failures."""

    code = "DRAFT_ENGINE_ERROR"

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message)
        self.message = message
        self.details: Dict[str, Any] = dict(details or {})

    def to_dict(self) -> Dict[str, Any]:
        return {"code": self.code, "message": self.message, "details": self.details}


class ValidationError(DraftEngineError):
    """Input is structurally wrong (bad draft order, malformed trade...)."""

    code = "VALIDATION_FAILED"


class DistributionError(ValidationError):
    """The asset distribution of a trade does not balance."""

    code = "TRADE_DISTRIBUTION_INVALID"


class OwnershipError(DraftEngineError):
    """A pick is missing, already used, or not owned by the claimed manager."""

    code = "PICK_OWNERSHIP"


class StateConflictError(DraftEngineError):
    """A precondition on draft state does not hold."""

    code = "STATE_CONFLICT"


class NotFoundError(StateConflictError):
    """A draft, pick or trade does not exist."""

    code = "NOT_FOUND"


class ConcurrencyConflictError(StateConflictError):
    """The stored document changed since it was read."""

    code = "VERSION_CONFLICT"


class StorageAcknowledgementError(DraftEngineError):
    """The store did not acknowledge a write.

    The write may or may not have been applied; callers must re-read state
    before trying again.  Never retried automatically.
    """

    code = "STORAGE_UNACKNOWLEDGED"
