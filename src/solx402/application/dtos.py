"""DTOs returned by the payment engine components."""

from __future__ import annotations

from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field


class VerificationResult(BaseModel):
    """Pass/fail outcome of a validation step with a human-readable reason."""

    valid: bool
    error: Optional[str] = None

    @classmethod
    def ok(cls) -> "VerificationResult":
        return cls(valid=True)

    @classmethod
    def failed(cls, error: str) -> "VerificationResult":
        return cls(valid=False, error=error)


class SubmissionResult(BaseModel):
    """Outcome of broadcasting a transaction and polling for confirmation.

    ``signature`` is set whenever the broadcast was acknowledged, including
    when confirmation polling later timed out.
    """

    success: bool
    signature: Optional[str] = None
    error: Optional[str] = None
    timed_out: bool = False


class GateOutcome(str, Enum):
    PAYMENT_REQUIRED = "payment_required"
    CACHE_HIT = "cache_hit"
    SETTLED = "settled"
    REJECTED = "rejected"


class GateDecision(BaseModel):
    """What the framework adapter should do with an inbound request.

    When ``proceed`` is true the protected handler runs and ``headers`` are
    added to its response; otherwise ``status_code``/``body``/``headers``
    form the whole response.
    """

    proceed: bool
    outcome: GateOutcome
    status_code: int = 200
    body: Optional[dict[str, Any]] = None
    headers: dict[str, str] = Field(default_factory=dict)
    reference: Optional[str] = None
