"""Pure checks binding a transaction to a single-use reference account.

The reference is added as a read-only, non-signing key on the transfer
instruction, so it shows up in the transaction's account list without any
deeper decoding.
"""

from __future__ import annotations

from typing import Any, Iterator, Mapping

TOKEN_TRANSFER_TYPES = {"transfer", "transferChecked"}
TOKEN_PROGRAMS = {"spl-token", "spl-token-2022"}


def _pubkey(key: Any) -> str:
    return key if isinstance(key, str) else key.get("pubkey", "")


def account_keys(transaction: Mapping[str, Any]) -> list[str]:
    """Top-level account keys of a parsed transaction record.

    Includes addresses loaded from lookup tables for versioned transactions.
    """
    message = (transaction.get("transaction") or {}).get("message") or {}
    keys = [_pubkey(key) for key in message.get("accountKeys") or []]
    loaded = (transaction.get("meta") or {}).get("loadedAddresses") or {}
    keys.extend(loaded.get("writable") or [])
    keys.extend(loaded.get("readonly") or [])
    return keys


def iter_instructions(transaction: Mapping[str, Any]) -> Iterator[Mapping[str, Any]]:
    """Yield outer instructions followed by every inner instruction."""
    message = (transaction.get("transaction") or {}).get("message") or {}
    yield from message.get("instructions") or []
    for inner in (transaction.get("meta") or {}).get("innerInstructions") or []:
        yield from inner.get("instructions") or []


def is_token_transfer(instruction: Mapping[str, Any]) -> bool:
    parsed = instruction.get("parsed")
    if not isinstance(parsed, Mapping):
        return False
    if instruction.get("program") not in TOKEN_PROGRAMS:
        return False
    return parsed.get("type") in TOKEN_TRANSFER_TYPES


def instruction_accounts(instruction: Mapping[str, Any]) -> list[str]:
    """Accounts referenced by an instruction, parsed or partially decoded."""
    accounts = [_pubkey(key) for key in instruction.get("accounts") or []]
    parsed = instruction.get("parsed")
    if isinstance(parsed, Mapping):
        info = parsed.get("info") or {}
        accounts.extend(v for v in info.values() if isinstance(v, str))
    return accounts


def is_reference_bound(transaction: Mapping[str, Any], reference: str) -> bool:
    """Return True if ``reference`` participates in the transaction. Pure function.

    Checks the top-level account keys first, then the accounts of every
    token transfer instruction. Either match is enough; the reference's role
    in the transaction does not matter.
    """
    if not reference:
        return False
    if reference in account_keys(transaction):
        return True
    for instruction in iter_instructions(transaction):
        if is_token_transfer(instruction) and reference in instruction_accounts(
            instruction
        ):
            return True
    return False
