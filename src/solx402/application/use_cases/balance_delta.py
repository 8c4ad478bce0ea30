"""Token balance deltas in raw integer units.

Amounts are never converted to floats: the required amount is scaled from its
decimal string with integer arithmetic, and balance changes are summed from the
raw ``uiTokenAmount.amount`` strings reported by the ledger.
"""

from __future__ import annotations

import logging
from typing import Any, Iterable, Mapping, Optional

from ...domain.entities import DECIMAL_AMOUNT_RE, BalanceSnapshotEntry, PaymentRequirement
from ...domain.errors import InsufficientAmount, LedgerRpcError
from ...domain.shared import LedgerClientProtocol

logger = logging.getLogger(__name__)

BalanceDeltas = dict[tuple[str, str], int]


def to_raw_units(amount: str, decimals: int) -> int:
    """Scale a decimal string to raw units, rounding down. Pure function.

    Args:
        amount: Non-negative decimal string such as ``"0.05"``
        decimals: Number of decimals of the token mint

    Returns:
        ``floor(amount * 10**decimals)`` as an int

    Raises:
        ValueError: If amount is not a decimal string or decimals is negative.
    """
    if decimals < 0:
        raise ValueError(f"Decimals must be non-negative, got {decimals}")
    if not DECIMAL_AMOUNT_RE.fullmatch(amount):
        raise ValueError(f"Amount must be a non-negative decimal string: {amount!r}")
    whole, _, fraction = amount.partition(".")
    fraction = fraction[:decimals].ljust(decimals, "0")
    return int(whole) * 10**decimals + int(fraction or "0")


def parse_token_balances(
    items: Optional[Iterable[Mapping[str, Any]]],
) -> list[BalanceSnapshotEntry]:
    """Parse a ``preTokenBalances``/``postTokenBalances`` list, skipping ownerless lines."""
    entries = []
    for item in items or []:
        entry = BalanceSnapshotEntry.from_rpc(item)
        if entry is not None:
            entries.append(entry)
    return entries


def compute_balance_deltas(
    pre: Iterable[BalanceSnapshotEntry],
    post: Iterable[BalanceSnapshotEntry],
    mint: str,
) -> BalanceDeltas:
    """Net raw-unit change per (owner, mint), restricted to ``mint``. Pure function.

    Every pre entry is subtracted and every post entry added under the same
    key, so an owner holding several token accounts of the mint is summed.
    """
    deltas: BalanceDeltas = {}
    for entry in pre:
        if entry.mint == mint:
            key = (entry.owner, entry.mint)
            deltas[key] = deltas.get(key, 0) - entry.amount
    for entry in post:
        if entry.mint == mint:
            key = (entry.owner, entry.mint)
            deltas[key] = deltas.get(key, 0) + entry.amount
    return deltas


def recipient_received(deltas: BalanceDeltas, recipient: str, mint: str) -> int:
    return deltas.get((recipient, mint), 0)


def decimals_from_snapshot(
    entries: Iterable[BalanceSnapshotEntry], mint: str
) -> Optional[int]:
    """Return the decimals embedded in any entry for ``mint``, if present."""
    for entry in entries:
        if entry.mint == mint and entry.decimals is not None:
            return entry.decimals
    return None


async def resolve_decimals(
    ledger: LedgerClientProtocol,
    mint: str,
    entries: Iterable[BalanceSnapshotEntry],
    default_decimals: int,
) -> int:
    """Resolve mint decimals: snapshot, then on-chain supply, then the default.

    Falling back to ``default_decimals`` is logged as degraded-confidence
    verification.
    """
    decimals = decimals_from_snapshot(entries, mint)
    if decimals is not None:
        return decimals

    try:
        supply = await ledger.get_token_supply(mint)
        value = supply.get("value") or {}
        if value.get("decimals") is not None:
            return int(value["decimals"])
    except (LedgerRpcError, KeyError, ValueError, TypeError) as e:
        logger.warning("Could not read decimals for mint %s: %s", mint, e)

    logger.warning(
        "Degraded-confidence verification: using default decimals %d for mint %s",
        default_decimals,
        mint,
    )
    return default_decimals


async def check_recipient_amount(
    ledger: LedgerClientProtocol,
    requirement: PaymentRequirement,
    pre_token_balances: Optional[Iterable[Mapping[str, Any]]],
    post_token_balances: Optional[Iterable[Mapping[str, Any]]],
    default_decimals: int,
) -> int:
    """Check that the recipient gained at least the required raw amount.

    Returns:
        The raw amount received by the recipient

    Raises:
        InsufficientAmount: If the recipient received less than required, or
            the required amount rounds to zero raw units.
    """
    pre = parse_token_balances(pre_token_balances)
    post = parse_token_balances(post_token_balances)
    decimals = await resolve_decimals(
        ledger, requirement.mint, [*post, *pre], default_decimals
    )
    required_raw = to_raw_units(requirement.amount, decimals)
    if required_raw == 0:
        logger.error(
            "Pricing misconfiguration: amount %s of mint %s is 0 raw units at %d decimals",
            requirement.amount,
            requirement.mint,
            decimals,
        )
        raise InsufficientAmount(
            f"Required amount {requirement.amount} rounds to 0 raw units"
        )
    deltas = compute_balance_deltas(pre, post, requirement.mint)
    received = recipient_received(deltas, requirement.recipient, requirement.mint)
    if received < required_raw:
        raise InsufficientAmount(
            f"Recipient received {received} raw units, expected at least {required_raw}"
        )
    return received
