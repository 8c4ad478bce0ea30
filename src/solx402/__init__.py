"""Solana x402 payment gate: verify and settle per-request on-chain payments."""

from .application.dtos import GateDecision, GateOutcome
from .domain.entities import (
    PaymentPayload,
    PaymentRequirement,
    ProtocolVersion,
    SettlementMode,
)
from .gate import PaymentGate

__all__ = [
    "GateDecision",
    "GateOutcome",
    "PaymentGate",
    "PaymentPayload",
    "PaymentRequirement",
    "ProtocolVersion",
    "SettlementMode",
]
