"""Request-level payment state machine.

Each inbound request makes exactly one pass: cache lookup, then either a
read-only history check (verify-only mode) or validate, broadcast and
confirm (submit-and-settle mode). Every failure re-emits a payment required
response; the reason is logged but never returned to the caller.
"""

from __future__ import annotations

import logging
from typing import Any, Mapping, Optional

from ...domain.entities import (
    LegacyPaymentRequiredResponse,
    PaymentPayload,
    PaymentRequiredResponse,
    PaymentRequirement,
    ProtocolVersion,
    SettlementMode,
)
from ...domain.errors import (
    MalformedPayload,
    NetworkMismatch,
    PaymentError,
    ReferenceMismatch,
    ReferenceNotFound,
    SubmissionFailed,
)
from ...infrastructure.references import ReferenceRegistry
from ...infrastructure.settlement_cache import PendingSettlements, SettlementCache
from ..dtos import GateDecision, GateOutcome
from ..shared.codec import decode_header, encode_settlement_response
from .confirmer import SettlementConfirmer
from .pre_submission import PreSubmissionValidator
from .submitter import TransactionSubmitter

logger = logging.getLogger(__name__)

PAYMENT_REQUIRED_STATUS = 402


class PaymentOrchestrator:
    """Decides whether a request proceeds to the protected handler."""

    def __init__(
        self,
        *,
        cache: SettlementCache,
        pending: PendingSettlements,
        references: ReferenceRegistry,
        validator: PreSubmissionValidator,
        submitter: TransactionSubmitter,
        confirmer: SettlementConfirmer,
        network: str,
        mint: str,
        amount: str,
        recipient: str,
        ttl_seconds: int,
        protocol_version: ProtocolVersion = ProtocolVersion.V2,
        settlement_mode: SettlementMode = SettlementMode.SUBMIT_AND_SETTLE,
        reference_header: str = "X-Payment-Reference",
        payment_header: str = "X-PAYMENT",
        payment_response_header: str = "X-PAYMENT-RESPONSE",
        enforce_issued_references: bool = True,
    ) -> None:
        self.cache = cache
        self.pending = pending
        self.references = references
        self.validator = validator
        self.submitter = submitter
        self.confirmer = confirmer
        self.network = network
        self.mint = mint
        self.amount = amount
        self.recipient = recipient
        self.ttl_seconds = ttl_seconds
        self.protocol_version = ProtocolVersion(protocol_version)
        self.settlement_mode = SettlementMode(settlement_mode)
        self.reference_header = reference_header
        self.payment_header = payment_header
        self.payment_response_header = payment_response_header
        self.enforce_issued_references = enforce_issued_references

    # Requirements & responses

    def requirement_for(self, reference: str) -> PaymentRequirement:
        return PaymentRequirement(
            network=self.network,
            mint=self.mint,
            amount=self.amount,
            recipient=self.recipient,
            reference=reference,
            expires_in=self.ttl_seconds,
        )

    def payment_required_body(self, requirement: PaymentRequirement) -> dict[str, Any]:
        """Render the 402 body in the configured protocol version."""
        if self.protocol_version is ProtocolVersion.V1:
            legacy = LegacyPaymentRequiredResponse(**requirement.model_dump())
            return legacy.model_dump()
        return PaymentRequiredResponse(paymentRequirements=[requirement]).model_dump()

    def payment_required(
        self,
        reuse_reference: Optional[str] = None,
        outcome: GateOutcome = GateOutcome.PAYMENT_REQUIRED,
    ) -> GateDecision:
        reference = reuse_reference or self.references.issue()
        body = self.payment_required_body(self.requirement_for(reference))
        return GateDecision(
            proceed=False,
            outcome=outcome,
            status_code=PAYMENT_REQUIRED_STATUS,
            body=body,
            reference=reference,
        )

    def proceed(
        self, reference: str, signature: str, outcome: GateOutcome
    ) -> GateDecision:
        return GateDecision(
            proceed=True,
            outcome=outcome,
            headers={
                self.payment_response_header: encode_settlement_response(signature)
            },
            reference=reference,
        )

    # Proof extraction

    def _check_reference(self, reference: str) -> None:
        if self.enforce_issued_references and not self.references.is_outstanding(
            reference
        ):
            raise ReferenceMismatch(f"Reference {reference} was not issued or expired")

    def _decode_payload(self, value: str) -> PaymentPayload:
        payload = decode_header(value, PaymentPayload)
        if payload.network != self.network:
            raise NetworkMismatch(
                f"Payload network {payload.network!r} != {self.network!r}"
            )
        return payload

    def _cache_hit(self, reference: str) -> Optional[GateDecision]:
        signature = self.cache.get_signature(reference)
        if signature is None:
            return None
        logger.info("Reference %s already verified (cached)", reference)
        return self.proceed(reference, signature, GateOutcome.CACHE_HIT)

    def _settled(self, reference: str, signature: str) -> GateDecision:
        self.cache.mark_paid(reference, signature)
        logger.info(
            "Payment verified for reference %s with transaction %s",
            reference,
            signature,
        )
        return self.proceed(reference, signature, GateOutcome.SETTLED)

    # Modes

    async def _verify_only(self, headers: Mapping[str, str]) -> GateDecision:
        blob = headers.get(self.payment_header.lower())
        if blob:
            reference = self._decode_payload(blob).reference
        else:
            reference = headers.get(self.reference_header.lower())
        if not reference:
            return self.payment_required()

        cached = self._cache_hit(reference)
        if cached:
            return cached
        self._check_reference(reference)

        logger.info("Verifying payment for reference %s", reference)
        signature = await self.confirmer.find_settlement(self.requirement_for(reference))
        if signature is None:
            raise ReferenceNotFound(f"No settling transaction for reference {reference}")
        return self._settled(reference, signature)

    async def _submit_and_settle(self, headers: Mapping[str, str]) -> GateDecision:
        blob = headers.get(self.payment_header.lower())
        if not blob:
            return self.payment_required()

        payload = self._decode_payload(blob)
        reference = payload.reference
        cached = self._cache_hit(reference)
        if cached:
            return cached
        self._check_reference(reference)
        requirement = self.requirement_for(reference)

        pending_signature = self.pending.take(reference)
        if pending_signature:
            logger.info(
                "Re-checking previously broadcast transaction %s for reference %s",
                pending_signature,
                reference,
            )
            if await self.confirmer.confirm(pending_signature, requirement):
                return self._settled(reference, pending_signature)
            self.pending.record(reference, pending_signature)

        verification = await self.validator.validate(payload.transaction, requirement)
        if not verification.valid:
            raise PaymentError(f"Transaction verification failed: {verification.error}")

        submission = await self.submitter.submit(payload.transaction)
        if not submission.success:
            if submission.timed_out and submission.signature:
                self.pending.record(reference, submission.signature)
            raise SubmissionFailed(f"Transaction send failed: {submission.error}")

        signature = submission.signature
        if signature is None:
            raise SubmissionFailed("Broadcast succeeded without a signature")
        if not await self.confirmer.confirm(signature, requirement):
            raise ReferenceNotFound(
                f"Transaction {signature} does not settle reference {reference}"
            )
        return self._settled(reference, signature)

    async def handle(self, headers: Mapping[str, str]) -> GateDecision:
        """Run one pass of the state machine for a request's headers."""
        normalized = {key.lower(): value for key, value in headers.items()}
        try:
            if self.settlement_mode is SettlementMode.VERIFY_ONLY:
                return await self._verify_only(normalized)
            return await self._submit_and_settle(normalized)
        except PaymentError as e:
            logger.info("Payment rejected (%s): %s", type(e).__name__, e.reason)
            return self._reject(normalized)
        except Exception:
            logger.exception("Unexpected error while processing payment")
            return self._reject(normalized)

    def _reject(self, headers: Mapping[str, str]) -> GateDecision:
        # Verify-only rejections hand back the caller's outstanding reference
        reuse = None
        if self.settlement_mode is SettlementMode.VERIFY_ONLY:
            reference = self._claimed_reference(headers)
            if reference and self.references.is_outstanding(reference):
                reuse = reference
        return self.payment_required(reuse_reference=reuse, outcome=GateOutcome.REJECTED)

    def _claimed_reference(self, headers: Mapping[str, str]) -> Optional[str]:
        blob = headers.get(self.payment_header.lower())
        if blob:
            try:
                return decode_header(blob, PaymentPayload).reference
            except MalformedPayload:
                return None
        return headers.get(self.reference_header.lower())
