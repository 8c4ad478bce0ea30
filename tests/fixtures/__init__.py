"""Test fixtures for in-memory implementations."""

from .clock import FakeClock, no_sleep
from .fake_ledger import FakeLedgerClient
from .transactions import (
    make_blob,
    make_simulation,
    make_transaction,
    new_address,
    token_balance,
    transfer_balances,
)

__all__ = [
    "FakeClock",
    "FakeLedgerClient",
    "make_blob",
    "make_simulation",
    "make_transaction",
    "new_address",
    "no_sleep",
    "token_balance",
    "transfer_balances",
]
