"""Use case tests for TransactionSubmitter."""

from __future__ import annotations

import pytest

from solx402.application.use_cases.submitter import TransactionSubmitter, extract_signature
from solx402.domain.errors import LedgerRpcError, SubmissionFailed
from tests.fixtures import FakeLedgerClient, make_blob


class RecordingSleep:
    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


@pytest.fixture
def sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def submitter(ledger: FakeLedgerClient, sleep: RecordingSleep) -> TransactionSubmitter:
    return TransactionSubmitter(ledger, poll_interval_ms=250, poll_attempts=4, sleep=sleep)


def test_extract_signature_shapes() -> None:
    assert extract_signature("5sig") == "5sig"
    assert extract_signature({"value": "5sig"}) == "5sig"
    with pytest.raises(SubmissionFailed):
        extract_signature({"result": 1})
    with pytest.raises(SubmissionFailed):
        extract_signature("")
    with pytest.raises(SubmissionFailed):
        extract_signature(None)


@pytest.mark.asyncio
async def test_confirmed_on_first_poll(submitter, ledger, sleep) -> None:
    blob = make_blob()
    ledger.broadcasts[blob] = "sig-1"
    ledger.statuses["sig-1"] = [{"err": None, "confirmationStatus": "confirmed"}]

    result = await submitter.submit(blob)

    assert result.success is True
    assert result.signature == "sig-1"
    assert sleep.delays == []
    _, (_, opts) = ledger.calls[0]
    assert opts == {"skipPreflight": True}


@pytest.mark.asyncio
async def test_wrapped_acknowledgement_accepted(submitter, ledger) -> None:
    blob = make_blob()
    ledger.broadcasts[blob] = {"value": "sig-2"}
    ledger.statuses["sig-2"] = [{"err": None, "confirmationStatus": "finalized"}]

    result = await submitter.submit(blob)

    assert result.success is True
    assert result.signature == "sig-2"


@pytest.mark.asyncio
async def test_unrecognized_acknowledgement_fails(submitter, ledger) -> None:
    blob = make_blob()
    ledger.broadcasts[blob] = {"unexpected": True}

    result = await submitter.submit(blob)

    assert result.success is False
    assert result.timed_out is False
    assert "Unrecognized" in result.error
    assert ledger.count("getSignatureStatuses") == 0


@pytest.mark.asyncio
async def test_broadcast_rpc_error_fails(submitter, ledger) -> None:
    blob = make_blob()
    ledger.broadcasts[blob] = LedgerRpcError("sendTransaction", "node is behind", -32005)

    result = await submitter.submit(blob)

    assert result.success is False
    assert result.signature is None
    assert "Broadcast failed" in result.error


@pytest.mark.asyncio
async def test_processed_then_confirmed_polls_at_fixed_interval(
    submitter, ledger, sleep
) -> None:
    blob = make_blob()
    ledger.broadcasts[blob] = "sig-3"
    ledger.statuses["sig-3"] = [
        None,
        {"err": None, "confirmationStatus": "processed"},
        {"err": None, "confirmationStatus": "confirmed"},
    ]

    result = await submitter.submit(blob)

    assert result.success is True
    assert sleep.delays == [0.25, 0.25]
    assert ledger.count("getSignatureStatuses") == 3


@pytest.mark.asyncio
async def test_on_chain_error_fails(submitter, ledger) -> None:
    blob = make_blob()
    ledger.broadcasts[blob] = "sig-4"
    ledger.statuses["sig-4"] = [
        {"err": {"InstructionError": [0, "InsufficientFunds"]}, "confirmationStatus": "confirmed"}
    ]

    result = await submitter.submit(blob)

    assert result.success is False
    assert result.signature == "sig-4"
    assert result.timed_out is False
    assert "InsufficientFunds" in result.error


@pytest.mark.asyncio
async def test_timeout_reports_signature(submitter, ledger, sleep) -> None:
    blob = make_blob()
    ledger.broadcasts[blob] = "sig-5"
    ledger.statuses["sig-5"] = [{"err": None, "confirmationStatus": "processed"}]

    result = await submitter.submit(blob)

    assert result.success is False
    assert result.timed_out is True
    assert result.signature == "sig-5"
    assert ledger.count("getSignatureStatuses") == 4
    assert len(sleep.delays) == 3


@pytest.mark.asyncio
async def test_status_poll_errors_count_as_pending(submitter, ledger) -> None:
    blob = make_blob()
    ledger.broadcasts[blob] = "sig-6"
    ledger.statuses["sig-6"] = [
        LedgerRpcError("getSignatureStatuses", "timeout"),
        {"err": None, "confirmationStatus": "confirmed"},
    ]

    result = await submitter.submit(blob)

    assert result.success is True
