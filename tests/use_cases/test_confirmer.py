"""Use case tests for SettlementConfirmer."""

from __future__ import annotations

import pytest

from solx402.application.use_cases.confirmer import SettlementConfirmer
from solx402.domain.errors import LedgerRpcError
from tests.fixtures import FakeLedgerClient, make_transaction, new_address


@pytest.fixture
def confirmer(ledger: FakeLedgerClient) -> SettlementConfirmer:
    return SettlementConfirmer(ledger, default_decimals=6, history_limit=3)


@pytest.mark.asyncio
async def test_bound_and_sufficient_transaction_confirms(
    confirmer, ledger, requirement, payer
) -> None:
    ledger.add_transaction(
        "sig",
        make_transaction(
            payer, requirement.recipient, requirement.mint, 50_000,
            reference=requirement.reference,
        ),
    )

    assert await confirmer.confirm("sig", requirement) is True


@pytest.mark.asyncio
async def test_reference_is_necessary(confirmer, ledger, requirement, payer) -> None:
    ledger.add_transaction(
        "sig",
        make_transaction(payer, requirement.recipient, requirement.mint, 50_000),
    )

    assert await confirmer.confirm("sig", requirement) is False


@pytest.mark.asyncio
async def test_reference_on_inner_transfer_confirms(
    confirmer, ledger, requirement, payer
) -> None:
    ledger.add_transaction(
        "sig",
        make_transaction(
            payer, requirement.recipient, requirement.mint, 50_000,
            reference=requirement.reference, reference_in_inner=True,
        ),
    )

    assert await confirmer.confirm("sig", requirement) is True


@pytest.mark.asyncio
async def test_other_reference_does_not_confirm(
    confirmer, ledger, requirement, payer
) -> None:
    ledger.add_transaction(
        "sig",
        make_transaction(
            payer, requirement.recipient, requirement.mint, 50_000,
            reference=new_address(),
        ),
    )

    assert await confirmer.confirm("sig", requirement) is False


@pytest.mark.asyncio
async def test_insufficient_amount_does_not_confirm(
    confirmer, ledger, requirement, payer
) -> None:
    ledger.add_transaction(
        "sig",
        make_transaction(
            payer, requirement.recipient, requirement.mint, 49_999,
            reference=requirement.reference,
        ),
    )

    assert await confirmer.confirm("sig", requirement) is False


@pytest.mark.asyncio
async def test_overpayment_confirms(confirmer, ledger, requirement, payer) -> None:
    ledger.add_transaction(
        "sig",
        make_transaction(
            payer, requirement.recipient, requirement.mint, 1_000_000,
            reference=requirement.reference,
        ),
    )

    assert await confirmer.confirm("sig", requirement) is True


@pytest.mark.asyncio
async def test_failed_transaction_does_not_confirm(
    confirmer, ledger, requirement, payer
) -> None:
    ledger.add_transaction(
        "sig",
        make_transaction(
            payer, requirement.recipient, requirement.mint, 50_000,
            reference=requirement.reference, err={"InstructionError": [0, "Custom"]},
        ),
    )

    assert await confirmer.confirm("sig", requirement) is False


@pytest.mark.asyncio
async def test_missing_or_unreadable_transaction_fails_closed(
    confirmer, ledger, requirement
) -> None:
    assert await confirmer.confirm("unknown", requirement) is False

    ledger.transactions["broken"] = LedgerRpcError("getTransaction", "unavailable")
    assert await confirmer.confirm("broken", requirement) is False


@pytest.mark.asyncio
async def test_find_settlement_returns_first_match(
    confirmer, ledger, requirement, payer
) -> None:
    ref = requirement.reference
    good = make_transaction(
        payer, requirement.recipient, requirement.mint, 50_000, reference=ref
    )
    ledger.add_transaction("older", good, ref)
    ledger.add_transaction("newer", good, ref)

    assert await confirmer.find_settlement(requirement) == "newer"
    assert ledger.calls[0] == ("getSignaturesForAddress", (ref, 3))


@pytest.mark.asyncio
async def test_find_settlement_skips_failed_entries(
    confirmer, ledger, requirement, payer
) -> None:
    ref = requirement.reference
    ledger.add_transaction(
        "good",
        make_transaction(payer, requirement.recipient, requirement.mint, 50_000, reference=ref),
        ref,
    )
    ledger.add_transaction(
        "failed",
        make_transaction(
            payer, requirement.recipient, requirement.mint, 50_000,
            reference=ref, err="InsufficientFundsForFee",
        ),
        ref,
    )

    assert await confirmer.find_settlement(requirement) == "good"
    assert ledger.count("getTransaction") == 1


@pytest.mark.asyncio
async def test_find_settlement_respects_history_limit(
    confirmer, ledger, requirement, payer
) -> None:
    ref = requirement.reference
    ledger.add_transaction(
        "oldest",
        make_transaction(payer, requirement.recipient, requirement.mint, 50_000, reference=ref),
        ref,
    )
    short = make_transaction(payer, requirement.recipient, requirement.mint, 1, reference=ref)
    for i in range(3):
        ledger.add_transaction(f"short-{i}", short, ref)

    assert await confirmer.find_settlement(requirement) is None
    assert ledger.count("getTransaction") == 3


@pytest.mark.asyncio
async def test_find_settlement_without_history(confirmer, ledger, requirement) -> None:
    assert await confirmer.find_settlement(requirement) is None
    assert ledger.count("getTransaction") == 0
