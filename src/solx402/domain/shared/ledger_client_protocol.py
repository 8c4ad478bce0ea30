"""Protocol interface for ledger RPC client implementations.

The payment engine talks to the ledger only through these six operations,
so tests can substitute a scripted in-memory ledger.
"""

from __future__ import annotations

from types import TracebackType
from typing import Any, Callable, Optional, Protocol, Type


class LedgerClientProtocol(Protocol):
    """Narrow view of a Solana JSON-RPC endpoint.

    Every method returns the decoded ``result`` member of the JSON-RPC
    response and raises ``LedgerRpcError`` on transport or RPC errors.
    """

    async def get_signatures_for_address(
        self, address: str, limit: int
    ) -> list[dict[str, Any]]:
        """Return signature infos touching ``address``, most recent first."""
        ...

    async def get_transaction(
        self, signature: str, opts: Optional[dict[str, Any]] = None
    ) -> Optional[dict[str, Any]]:
        """Return the parsed transaction record, or None when unknown."""
        ...

    async def simulate_transaction(
        self, transaction_b64: str, opts: Optional[dict[str, Any]] = None
    ) -> dict[str, Any]:
        """Dry-run a signed transaction and return the simulation result."""
        ...

    async def send_transaction(
        self, transaction_b64: str, opts: Optional[dict[str, Any]] = None
    ) -> Any:
        """Broadcast a signed transaction.

        Returns the acknowledgement, either a bare signature string or a
        mapping with a ``value`` field.
        """
        ...

    async def get_signature_statuses(
        self, signatures: list[str]
    ) -> dict[str, Any]:
        """Return ``{"value": [status | None, ...]}`` for the signatures."""
        ...

    async def get_token_supply(self, mint: str) -> dict[str, Any]:
        """Return ``{"value": {"amount", "decimals", ...}}`` for the mint."""
        ...

    async def aclose(self) -> None:
        ...

    async def __aenter__(self: "LedgerClientProtocol") -> "LedgerClientProtocol":
        ...

    async def __aexit__(
        self,
        exc_type: Optional[Type[BaseException]],
        exc_val: Optional[BaseException],
        exc_tb: Optional[TracebackType],
    ) -> None:
        ...


LedgerClientFactory = Callable[[], LedgerClientProtocol]
