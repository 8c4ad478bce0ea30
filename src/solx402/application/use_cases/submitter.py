"""Broadcast a signed transaction and poll until it reaches a terminal status."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Optional

from ...domain.errors import (
    ConfirmationFailedOnChain,
    ConfirmationTimeout,
    LedgerRpcError,
    PaymentError,
    SubmissionFailed,
)
from ...domain.shared import LedgerClientProtocol
from ..dtos import SubmissionResult

logger = logging.getLogger(__name__)

TERMINAL_COMMITMENTS = {"confirmed", "finalized"}

Sleep = Callable[[float], Awaitable[None]]


def extract_signature(ack: Any) -> str:
    """Pull the settlement signature out of a broadcast acknowledgement.

    Accepts a bare string or a mapping with a string ``value`` field.

    Raises:
        SubmissionFailed: If neither shape is present.
    """
    if isinstance(ack, str) and ack:
        return ack
    if isinstance(ack, dict):
        value = ack.get("value")
        if isinstance(value, str) and value:
            return value
    raise SubmissionFailed(f"Unrecognized broadcast acknowledgement: {ack!r}")


class TransactionSubmitter:
    """Sends a transaction and waits for ``confirmed`` or better.

    Polling is a fixed interval with a bounded number of attempts; there is
    no backoff and no cancellation hook.
    """

    def __init__(
        self,
        ledger: LedgerClientProtocol,
        *,
        poll_interval_ms: int = 1000,
        poll_attempts: int = 30,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self.ledger = ledger
        self.poll_interval_ms = poll_interval_ms
        self.poll_attempts = poll_attempts
        self._sleep = sleep

    async def _broadcast(self, transaction_b64: str) -> str:
        try:
            ack = await self.ledger.send_transaction(
                transaction_b64, {"skipPreflight": True}
            )
        except LedgerRpcError as e:
            raise SubmissionFailed(f"Broadcast failed: {e}") from e
        return extract_signature(ack)

    async def _status(self, signature: str) -> Optional[dict[str, Any]]:
        try:
            result = await self.ledger.get_signature_statuses([signature])
        except LedgerRpcError as e:
            logger.warning("Status poll for %s failed: %s", signature, e)
            return None
        statuses = (result or {}).get("value") or []
        return statuses[0] if statuses else None

    async def wait_for_confirmation(self, signature: str) -> None:
        """Poll until ``signature`` is confirmed.

        Raises:
            ConfirmationFailedOnChain: If the status carries an execution error.
            ConfirmationTimeout: If the attempt budget runs out.
        """
        for attempt in range(self.poll_attempts):
            status = await self._status(signature)
            if status:
                if status.get("err"):
                    raise ConfirmationFailedOnChain(
                        f"Transaction {signature} failed: {status['err']}"
                    )
                if status.get("confirmationStatus") in TERMINAL_COMMITMENTS:
                    logger.debug(
                        "Transaction %s %s after %d polls",
                        signature,
                        status["confirmationStatus"],
                        attempt + 1,
                    )
                    return
            if attempt + 1 < self.poll_attempts:
                await self._sleep(self.poll_interval_ms / 1000.0)
        raise ConfirmationTimeout(
            f"Transaction {signature} not confirmed after {self.poll_attempts} polls",
            signature,
        )

    async def submit(self, transaction_b64: str) -> SubmissionResult:
        """Broadcast and confirm. Failures are returned, never raised."""
        signature: Optional[str] = None
        try:
            signature = await self._broadcast(transaction_b64)
            logger.info("Broadcast transaction %s", signature)
            await self.wait_for_confirmation(signature)
        except ConfirmationTimeout as e:
            logger.warning("%s; it may still land on-chain", e.reason)
            return SubmissionResult(
                success=False, signature=e.signature, error=e.reason, timed_out=True
            )
        except PaymentError as e:
            logger.info("Submission failed: %s", e.reason)
            return SubmissionResult(success=False, signature=signature, error=e.reason)
        return SubmissionResult(success=True, signature=signature)
