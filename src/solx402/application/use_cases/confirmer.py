"""Authoritative post-settlement verification against the ledger record."""

from __future__ import annotations

import logging
from typing import Any, Mapping, Optional

from ...domain.entities import PaymentRequirement
from ...domain.errors import (
    ConfirmationFailedOnChain,
    LedgerRpcError,
    PaymentError,
    ReferenceNotFound,
)
from ...domain.shared import LedgerClientProtocol
from .balance_delta import check_recipient_amount
from .reference_binding import is_reference_bound

logger = logging.getLogger(__name__)


class SettlementConfirmer:
    """Proves that a landed transaction pays ``requirement`` and is bound to it.

    This is the only place where the reference binding is checked, so it is
    the point at which a payment is attributed to one specific request.
    """

    def __init__(
        self,
        ledger: LedgerClientProtocol,
        *,
        default_decimals: int = 6,
        history_limit: int = 5,
    ) -> None:
        self.ledger = ledger
        self.default_decimals = default_decimals
        self.history_limit = history_limit

    async def _fetch(self, signature: str) -> Mapping[str, Any]:
        try:
            tx = await self.ledger.get_transaction(signature)
        except LedgerRpcError as e:
            raise ReferenceNotFound(f"Could not fetch transaction {signature}: {e}") from e
        if not tx or not tx.get("meta"):
            raise ReferenceNotFound(f"Transaction {signature} not found")
        if tx["meta"].get("err"):
            raise ConfirmationFailedOnChain(
                f"Transaction {signature} failed: {tx['meta']['err']}"
            )
        return tx

    async def _confirm(self, signature: str, requirement: PaymentRequirement) -> None:
        tx = await self._fetch(signature)
        meta = tx["meta"]
        await check_recipient_amount(
            self.ledger,
            requirement,
            meta.get("preTokenBalances"),
            meta.get("postTokenBalances"),
            self.default_decimals,
        )
        if not is_reference_bound(tx, requirement.reference):
            raise ReferenceNotFound(
                f"Reference {requirement.reference} is not part of {signature}"
            )

    async def confirm(self, signature: str, requirement: PaymentRequirement) -> bool:
        """Return True if ``signature`` settles ``requirement``. Fails closed."""
        try:
            await self._confirm(signature, requirement)
        except PaymentError as e:
            logger.info("Confirmation of %s failed: %s", signature, e.reason)
            return False
        except (KeyError, TypeError, ValueError) as e:
            logger.warning(
                "Unparseable transaction record %s: %s", signature, e, exc_info=True
            )
            return False
        return True

    async def find_settlement(self, requirement: PaymentRequirement) -> Optional[str]:
        """Search the reference's recent history for a settling transaction.

        Signatures are checked most recent first, up to ``history_limit``.
        Returns the settlement signature, or None if none qualifies.
        """
        try:
            infos = await self.ledger.get_signatures_for_address(
                requirement.reference, self.history_limit
            )
        except LedgerRpcError as e:
            logger.warning(
                "History lookup for reference %s failed: %s", requirement.reference, e
            )
            return None

        if not infos:
            logger.info("No ledger activity for reference %s", requirement.reference)
            return None

        for info in infos[: self.history_limit]:
            signature = info.get("signature")
            if not signature or info.get("err"):
                continue
            if await self.confirm(signature, requirement):
                return signature
        return None
