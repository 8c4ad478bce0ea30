"""Domain-specific exceptions.

Every payment failure class is caught by the component that detects it and
turned into a result value; none of them reaches the HTTP caller.
"""

from __future__ import annotations

from typing import Optional


class PaymentError(Exception):
    """Base class for payment verification and settlement failures."""

    def __init__(self, reason: str) -> None:
        super().__init__(reason)
        self.reason = reason


class MalformedPayload(PaymentError):
    """Raised when a proof-of-payment header cannot be decoded."""


class NetworkMismatch(PaymentError):
    """Raised when a payload targets a different network than configured."""


class ReferenceMismatch(PaymentError):
    """Raised when a payload reference does not match an outstanding requirement."""


class SimulationRejected(PaymentError):
    """Raised when the ledger dry-run rejects a signed transaction."""


class InsufficientAmount(PaymentError):
    """Raised when the recipient did not receive the required raw amount."""


class SubmissionFailed(PaymentError):
    """Raised when broadcasting a signed transaction fails."""


class ConfirmationTimeout(PaymentError):
    """Raised when a broadcast transaction never reached a terminal status."""

    def __init__(self, reason: str, signature: str) -> None:
        super().__init__(reason)
        self.signature = signature


class ConfirmationFailedOnChain(PaymentError):
    """Raised when the ledger reports an execution error for a transaction."""


class ReferenceNotFound(PaymentError):
    """Raised when the reference is not bound to a settling transaction."""


class LedgerRpcError(Exception):
    """Raised by ledger clients for transport failures and JSON-RPC errors."""

    def __init__(self, method: str, message: str, code: Optional[int] = None) -> None:
        super().__init__(f"{method}: {message}")
        self.method = method
        self.code = code


class ConfigurationError(ValueError):
    """Raised at construction time for unusable startup configuration."""
