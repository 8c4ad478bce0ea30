"""Pre-submission screening of a client-signed transaction."""

from __future__ import annotations

import base64
import binascii
import logging
from typing import Any, Mapping

from ...domain.entities import PaymentRequirement
from ...domain.errors import (
    InsufficientAmount,
    LedgerRpcError,
    MalformedPayload,
    PaymentError,
    SimulationRejected,
)
from ...domain.shared import LedgerClientProtocol
from ..dtos import VerificationResult
from .balance_delta import check_recipient_amount

logger = logging.getLogger(__name__)

SIGNATURE_LENGTH = 64
# One compact-u16 signature count, one signature, a message header and a blockhash
MIN_TRANSACTION_SIZE = 1 + SIGNATURE_LENGTH + 3 + 32

RECENCY_ERRORS = {"BlockhashNotFound", "TransactionExpiredBlockheightExceeded"}
SIGNATURE_FAILURE_MARKERS = ("signature verification failed", "invalid signature")


def decode_transaction(transaction_b64: str) -> bytes:
    """Decode the transport-encoded transaction blob.

    Raises:
        MalformedPayload: If the blob is empty, not base64, or implausibly small.
    """
    if not transaction_b64:
        raise MalformedPayload("Transaction blob is empty")
    try:
        raw = base64.b64decode(transaction_b64, validate=True)
    except (binascii.Error, ValueError) as e:
        raise MalformedPayload(f"Transaction is not valid base64: {e}") from e
    if len(raw) < MIN_TRANSACTION_SIZE:
        raise MalformedPayload(
            f"Transaction is {len(raw)} bytes, expected at least {MIN_TRANSACTION_SIZE}"
        )
    return raw


def read_signature_count(raw: bytes) -> int:
    """Decode the compact-u16 signature count that prefixes a wire transaction."""
    count = 0
    for i in range(3):
        if i >= len(raw):
            raise MalformedPayload("Truncated signature count")
        byte = raw[i]
        count |= (byte & 0x7F) << (7 * i)
        if not byte & 0x80:
            return count
    raise MalformedPayload("Signature count overflows compact-u16")


def is_recency_error(err: Any) -> bool:
    """True for simulation errors that only mean the blockhash went stale."""
    if isinstance(err, str):
        return err in RECENCY_ERRORS
    if isinstance(err, Mapping):
        return any(key in RECENCY_ERRORS for key in err)
    return False


def has_signature_failure(logs: Any) -> bool:
    for line in logs or []:
        lowered = str(line).lower()
        if any(marker in lowered for marker in SIGNATURE_FAILURE_MARKERS):
            return True
    return False


class PreSubmissionValidator:
    """Dry-runs a signed transaction and screens its amount and recipient.

    The reference binding is not checked here: a simulation does not expose
    the fully resolved account list. ``SettlementConfirmer`` checks it after
    the transaction lands.
    """

    def __init__(self, ledger: LedgerClientProtocol, default_decimals: int = 6):
        self.ledger = ledger
        self.default_decimals = default_decimals

    async def _simulate(self, transaction_b64: str) -> Mapping[str, Any]:
        try:
            result = await self.ledger.simulate_transaction(
                transaction_b64,
                {"sigVerify": True, "replaceRecentBlockhash": False},
            )
        except LedgerRpcError as e:
            raise SimulationRejected(f"Simulation request failed: {e}") from e
        value = (result or {}).get("value") or {}

        if has_signature_failure(value.get("logs")):
            raise SimulationRejected("Signature verification failed in simulation")
        err = value.get("err")
        if err:
            if is_recency_error(err):
                logger.info(
                    "Simulation reported stale blockhash (%s); deferring to submission",
                    err,
                )
            else:
                raise SimulationRejected(f"Simulation failed: {err}")
        return value

    async def _validate(
        self, transaction_b64: str, requirement: PaymentRequirement
    ) -> None:
        raw = decode_transaction(transaction_b64)
        if read_signature_count(raw) == 0:
            raise MalformedPayload("Transaction declares no signatures")

        value = await self._simulate(transaction_b64)
        if value.get("err"):
            # Stale blockhash: balances are not meaningful, let the submitter decide
            return
        if "preTokenBalances" not in value or "postTokenBalances" not in value:
            raise InsufficientAmount("Simulation did not report token balances")
        await check_recipient_amount(
            self.ledger,
            requirement,
            value.get("preTokenBalances"),
            value.get("postTokenBalances"),
            self.default_decimals,
        )

    async def validate(
        self, transaction_b64: str, requirement: PaymentRequirement
    ) -> VerificationResult:
        """Screen a signed transaction before broadcasting it. No ledger side effects."""
        try:
            await self._validate(transaction_b64, requirement)
        except PaymentError as e:
            logger.info(
                "Pre-submission check failed for reference %s: %s",
                requirement.reference,
                e.reason,
            )
            return VerificationResult.failed(e.reason)
        except (KeyError, TypeError, ValueError) as e:
            logger.warning("Unparseable simulation result: %s", e, exc_info=True)
            return VerificationResult.failed(f"Unparseable simulation result: {e}")
        return VerificationResult.ok()
