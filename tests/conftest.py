"""Shared pytest fixtures for payment gate tests."""

from __future__ import annotations

import pytest

from solx402.domain.entities import PaymentRequirement
from solx402.env import DEFAULT_MINT, Settings
from solx402.gate import PaymentGate
from tests.fixtures import FakeClock, FakeLedgerClient, new_address, no_sleep


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def ledger() -> FakeLedgerClient:
    return FakeLedgerClient()


@pytest.fixture
def mint() -> str:
    return DEFAULT_MINT


@pytest.fixture
def recipient() -> str:
    return new_address()


@pytest.fixture
def payer() -> str:
    return new_address()


@pytest.fixture
def reference() -> str:
    return new_address()


@pytest.fixture
def requirement(mint: str, recipient: str, reference: str) -> PaymentRequirement:
    """0.05 tokens of a 6-decimal mint, i.e. 50000 raw units."""
    return PaymentRequirement(
        network="devnet",
        mint=mint,
        amount="0.05",
        recipient=recipient,
        reference=reference,
        expires_in=300,
    )


@pytest.fixture
def settings(recipient: str, mint: str) -> Settings:
    return Settings(
        network="devnet",
        mint=mint,
        amount="0.05",
        recipient=recipient,
        ttl_seconds=300,
        poll_interval_ms=0,
        poll_attempts=3,
    )


@pytest.fixture
def gate(settings: Settings, ledger: FakeLedgerClient, clock: FakeClock) -> PaymentGate:
    return PaymentGate(settings, ledger, time_source=clock, sleep=no_sleep)
