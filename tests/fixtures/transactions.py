"""Builders for parsed transaction records and wire-format blobs."""

from __future__ import annotations

import base64
from typing import Any, Optional

from solders.keypair import Keypair  # type: ignore

TOKEN_PROGRAM_ID = "TokenkegQfeZyiNJbNbNbNbNbNbNbNbNbNbNbNbNbN"


def new_address() -> str:
    return str(Keypair().pubkey())


def token_balance(
    index: int, owner: Optional[str], mint: str, amount: int, decimals: int = 6
) -> dict[str, Any]:
    entry: dict[str, Any] = {
        "accountIndex": index,
        "mint": mint,
        "uiTokenAmount": {
            "amount": str(amount),
            "decimals": decimals,
            "uiAmountString": str(amount / 10**decimals),
        },
    }
    if owner is not None:
        entry["owner"] = owner
    return entry


def transfer_balances(
    payer: str,
    recipient: str,
    mint: str,
    amount: int,
    *,
    decimals: int = 6,
    payer_start: int = 10_000_000,
    recipient_start: int = 0,
) -> tuple[list[dict[str, Any]], list[dict[str, Any]]]:
    pre = [
        token_balance(1, payer, mint, payer_start, decimals),
        token_balance(2, recipient, mint, recipient_start, decimals),
    ]
    post = [
        token_balance(1, payer, mint, payer_start - amount, decimals),
        token_balance(2, recipient, mint, recipient_start + amount, decimals),
    ]
    return pre, post


def transfer_instruction(
    source: str, destination: str, authority: str, mint: str, amount: int
) -> dict[str, Any]:
    return {
        "program": "spl-token",
        "programId": TOKEN_PROGRAM_ID,
        "parsed": {
            "type": "transferChecked",
            "info": {
                "source": source,
                "destination": destination,
                "authority": authority,
                "mint": mint,
                "tokenAmount": {"amount": str(amount), "decimals": 6},
            },
        },
    }


def make_transaction(
    payer: str,
    recipient: str,
    mint: str,
    amount: int,
    *,
    reference: Optional[str] = None,
    reference_in_inner: bool = False,
    decimals: int = 6,
    err: Any = None,
) -> dict[str, Any]:
    """A ``getTransaction`` (jsonParsed) record of a token transfer.

    The reference is added as an extra account key unless
    ``reference_in_inner`` puts it only on an inner transfer instruction.
    """
    pre, post = transfer_balances(payer, recipient, mint, amount, decimals=decimals)
    account_keys = [
        {"pubkey": payer, "signer": True, "writable": True},
        {"pubkey": new_address(), "signer": False, "writable": True},
        {"pubkey": new_address(), "signer": False, "writable": True},
        {"pubkey": TOKEN_PROGRAM_ID, "signer": False, "writable": False},
    ]
    inner_instructions: list[dict[str, Any]] = []
    if reference and not reference_in_inner:
        account_keys.append({"pubkey": reference, "signer": False, "writable": False})
    if reference and reference_in_inner:
        instruction = transfer_instruction(
            account_keys[1]["pubkey"], account_keys[2]["pubkey"], payer, mint, amount
        )
        instruction["accounts"] = [reference]
        inner_instructions.append({"index": 0, "instructions": [instruction]})

    return {
        "slot": 123,
        "blockTime": 1_700_000_000,
        "meta": {
            "err": err,
            "fee": 5000,
            "preTokenBalances": pre,
            "postTokenBalances": post,
            "innerInstructions": inner_instructions,
            "logMessages": [],
        },
        "transaction": {
            "signatures": ["sig"],
            "message": {
                "accountKeys": account_keys,
                "instructions": [
                    transfer_instruction(
                        account_keys[1]["pubkey"],
                        account_keys[2]["pubkey"],
                        payer,
                        mint,
                        amount,
                    )
                ],
            },
        },
    }


def make_simulation(
    payer: str,
    recipient: str,
    mint: str,
    amount: int,
    *,
    err: Any = None,
    logs: Optional[list[str]] = None,
    decimals: Optional[int] = 6,
) -> dict[str, Any]:
    """A ``simulateTransaction`` result carrying token balance snapshots."""
    pre, post = transfer_balances(payer, recipient, mint, amount)
    if decimals is None:
        for entry in [*pre, *post]:
            del entry["uiTokenAmount"]["decimals"]
    return {
        "context": {"slot": 123},
        "value": {
            "err": err,
            "logs": logs or ["Program log: Instruction: TransferChecked"],
            "accounts": None,
            "unitsConsumed": 6200,
            "preTokenBalances": pre,
            "postTokenBalances": post,
        },
    }


def make_blob(signature_count: int = 1, seed: int = 7, message_size: int = 120) -> str:
    """Base64 of a plausible wire transaction: compact-u16 count, signatures, message."""
    raw = bytes([signature_count])
    raw += bytes([seed]) * (64 * signature_count)
    raw += bytes([seed + 1]) * message_size
    return base64.b64encode(raw).decode("ascii")
