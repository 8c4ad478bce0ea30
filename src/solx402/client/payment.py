"""Client helpers for building the payment header from a signed transaction."""

from __future__ import annotations

import base64
from typing import Union

from ..application.shared.codec import decode_header, encode_header
from ..domain.entities import PaymentPayload, PaymentRequirement, SettlementResponse


def create_payment_payload(
    signed_transaction: Union[bytes, str], requirement: PaymentRequirement
) -> PaymentPayload:
    """Bind a signed transaction to a payment requirement.

    ``signed_transaction`` is either the serialized wire bytes or an already
    base64-encoded string.
    """
    if isinstance(signed_transaction, (bytes, bytearray)):
        transaction_b64 = base64.b64encode(bytes(signed_transaction)).decode("ascii")
    else:
        transaction_b64 = signed_transaction
    return PaymentPayload(
        network=requirement.network,
        transaction=transaction_b64,
        reference=requirement.reference,
    )


def create_payment_header(payload: PaymentPayload) -> str:
    return encode_header(payload)


def create_payment_header_from_transaction(
    signed_transaction: Union[bytes, str], requirement: PaymentRequirement
) -> str:
    return create_payment_header(create_payment_payload(signed_transaction, requirement))


def parse_settlement_response(header_value: str) -> SettlementResponse:
    """Decode the payment-response header returned with a paid resource."""
    return decode_header(header_value, SettlementResponse)
