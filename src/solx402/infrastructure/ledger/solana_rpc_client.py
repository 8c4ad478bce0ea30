"""Solana JSON-RPC client implementing ``LedgerClientProtocol``."""

from __future__ import annotations

import itertools
import logging
from types import TracebackType
from typing import Any, Optional, Type

import httpx

from ...domain.errors import ConfigurationError, LedgerRpcError
from ...env import CLUSTER_URLS

logger = logging.getLogger(__name__)

CONFIRMED_COMMITMENT = "confirmed"


class SolanaRpcClient:
    """Asynchronous JSON-RPC 2.0 client for a Solana cluster.

    Every call is bounded by ``timeout``.
    """

    def __init__(
        self,
        rpc_url: str,
        timeout: float = 10.0,
        *,
        http_client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self.rpc_url = rpc_url
        self._client = http_client or httpx.AsyncClient(timeout=timeout)
        self._ids = itertools.count(1)

    async def _call(self, method: str, params: list[Any]) -> Any:
        payload = {
            "jsonrpc": "2.0",
            "id": next(self._ids),
            "method": method,
            "params": params,
        }
        try:
            response = await self._client.post(self.rpc_url, json=payload)
            response.raise_for_status()
            data = response.json()
        except (httpx.RequestError, httpx.HTTPStatusError) as e:
            raise LedgerRpcError(method, f"RPC request failed: {e}") from e
        except ValueError as e:
            raise LedgerRpcError(method, f"Invalid JSON-RPC response: {e}") from e

        error = data.get("error")
        if error:
            raise LedgerRpcError(
                method, str(error.get("message", error)), error.get("code")
            )
        return data.get("result")

    async def get_signatures_for_address(
        self, address: str, limit: int
    ) -> list[dict[str, Any]]:
        result = await self._call(
            "getSignaturesForAddress",
            [address, {"limit": limit, "commitment": CONFIRMED_COMMITMENT}],
        )
        return result or []

    async def get_transaction(
        self, signature: str, opts: Optional[dict[str, Any]] = None
    ) -> Optional[dict[str, Any]]:
        config = {
            "encoding": "jsonParsed",
            "commitment": CONFIRMED_COMMITMENT,
            "maxSupportedTransactionVersion": 0,
        }
        config.update(opts or {})
        return await self._call("getTransaction", [signature, config])

    async def simulate_transaction(
        self, transaction_b64: str, opts: Optional[dict[str, Any]] = None
    ) -> dict[str, Any]:
        config = {
            "encoding": "base64",
            "sigVerify": True,
            "commitment": CONFIRMED_COMMITMENT,
        }
        config.update(opts or {})
        return await self._call("simulateTransaction", [transaction_b64, config])

    async def send_transaction(
        self, transaction_b64: str, opts: Optional[dict[str, Any]] = None
    ) -> Any:
        config = {
            "encoding": "base64",
            "preflightCommitment": CONFIRMED_COMMITMENT,
        }
        config.update(opts or {})
        return await self._call("sendTransaction", [transaction_b64, config])

    async def get_signature_statuses(self, signatures: list[str]) -> dict[str, Any]:
        return await self._call(
            "getSignatureStatuses",
            [signatures, {"searchTransactionHistory": True}],
        )

    async def get_token_supply(self, mint: str) -> dict[str, Any]:
        return await self._call(
            "getTokenSupply", [mint, {"commitment": CONFIRMED_COMMITMENT}]
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> "SolanaRpcClient":
        return self

    async def __aexit__(
        self,
        exc_type: Optional[Type[BaseException]],
        exc_val: Optional[BaseException],
        exc_tb: Optional[TracebackType],
    ) -> None:
        await self.aclose()


def create_ledger_client(
    network: str, rpc_url: Optional[str] = None, timeout: float = 10.0
) -> SolanaRpcClient:
    """Create a ledger client for ``network``.

    Raises:
        ConfigurationError: If the network identifier is not supported.
    """
    if network not in CLUSTER_URLS:
        raise ConfigurationError(f"Unknown network: {network}")
    url = rpc_url or CLUSTER_URLS[network]
    logger.info("Using %s RPC endpoint %s", network, url)
    return SolanaRpcClient(url, timeout=timeout)
