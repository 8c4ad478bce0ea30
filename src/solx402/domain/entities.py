"""Payment protocol entities: requirements, proofs, balance snapshots."""

from __future__ import annotations

import re
from enum import Enum
from typing import Any, Literal, Mapping, Optional

from pydantic import BaseModel, Field, field_validator

DECIMAL_AMOUNT_RE = re.compile(r"\d+(\.\d+)?")


class ProtocolVersion(str, Enum):
    """Shape of the 402 response body.

    V1 is the flattened single object tagged with ``scheme``; V2 wraps one or
    more requirements in a ``paymentRequirements`` array.
    """

    V1 = "v1"
    V2 = "v2"


class SettlementMode(str, Enum):
    """How a proof of payment is turned into a settlement."""

    VERIFY_ONLY = "verify-only"
    SUBMIT_AND_SETTLE = "submit-and-settle"


class PaymentRequirement(BaseModel):
    """What a caller must pay to reach the protected resource."""

    network: str
    mint: str
    amount: str = Field(..., description="Decimal string, never a float")
    recipient: str
    reference: str
    expires_in: int = Field(..., gt=0, description="Seconds until expiry")

    @field_validator("amount")
    @classmethod
    def validate_amount(cls, v: str) -> str:
        if not DECIMAL_AMOUNT_RE.fullmatch(v):
            raise ValueError(f"Amount must be a non-negative decimal string: {v!r}")
        return v


class PaymentRequiredResponse(BaseModel):
    """HTTP 402 body, array form."""

    paymentRequirements: list[PaymentRequirement]


class LegacyPaymentRequiredResponse(PaymentRequirement):
    """HTTP 402 body, flattened single-object form."""

    scheme: Literal["x402"] = "x402"


class PaymentPayload(BaseModel):
    """Proof of payment carried in the payment header."""

    network: str = Field(..., min_length=1)
    transaction: str = Field(..., description="Signed transaction, base64")
    reference: str = Field(..., min_length=1)


class SettlementResponse(BaseModel):
    """Payload carried in the payment-response header after settlement."""

    success: bool = True
    transaction: str


class BalanceSnapshotEntry(BaseModel):
    """One token balance line from a transaction's pre or post snapshot."""

    owner: str
    mint: str
    amount: int = Field(..., description="Raw integer units")
    decimals: Optional[int] = None

    @classmethod
    def from_rpc(cls, data: Mapping[str, Any]) -> Optional["BalanceSnapshotEntry"]:
        """Build an entry from a ``pre/postTokenBalances`` item.

        Returns None for entries without an owner, which cannot be attributed
        to a recipient.
        """
        owner = data.get("owner")
        if not owner:
            return None
        ui_amount = data.get("uiTokenAmount") or {}
        return cls(
            owner=owner,
            mint=data["mint"],
            amount=int(ui_amount.get("amount", "0")),
            decimals=ui_amount.get("decimals"),
        )


class CacheEntry(BaseModel):
    """A reference proven paid, valid until ``expiry`` (inclusive)."""

    reference: str
    expiry: float
    signature: str

    def is_expired(self, now: float) -> bool:
        return now > self.expiry
