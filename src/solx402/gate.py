"""Payment gate assembly and lifecycle."""

from __future__ import annotations

import logging
import time
from typing import Optional

from .application.dtos import GateDecision
from .application.use_cases.confirmer import SettlementConfirmer
from .application.use_cases.orchestrator import PaymentOrchestrator
from .application.use_cases.pre_submission import PreSubmissionValidator
from .application.use_cases.submitter import Sleep, TransactionSubmitter
from .domain.shared import LedgerClientProtocol
from .env import Settings
from .infrastructure.ledger import create_ledger_client
from .infrastructure.references import ReferenceGenerator, ReferenceRegistry
from .infrastructure.settlement_cache import (
    CacheSweeper,
    PendingSettlements,
    SettlementCache,
    TimeSource,
)

logger = logging.getLogger(__name__)


class PaymentGate:
    """Owns the ledger client, the in-memory stores and the sweeper task."""

    def __init__(
        self,
        settings: Settings,
        ledger: Optional[LedgerClientProtocol] = None,
        *,
        time_source: TimeSource = time.monotonic,
        sleep: Optional[Sleep] = None,
        reference_generator: Optional[ReferenceGenerator] = None,
    ) -> None:
        self.settings = settings
        self.ledger = ledger or create_ledger_client(
            settings.network, settings.resolved_rpc_url, settings.rpc_timeout
        )
        self.cache = SettlementCache(settings.ttl_seconds, time_source)
        self.pending = PendingSettlements(settings.ttl_seconds, time_source)
        self.references = ReferenceRegistry(
            settings.ttl_seconds, time_source, reference_generator
        )
        self.sweeper = CacheSweeper(
            [self.cache, self.pending, self.references],
            settings.sweep_interval_seconds,
        )

        submitter_kwargs = {"sleep": sleep} if sleep is not None else {}
        self.orchestrator = PaymentOrchestrator(
            cache=self.cache,
            pending=self.pending,
            references=self.references,
            validator=PreSubmissionValidator(self.ledger, settings.default_decimals),
            submitter=TransactionSubmitter(
                self.ledger,
                poll_interval_ms=settings.poll_interval_ms,
                poll_attempts=settings.poll_attempts,
                **submitter_kwargs,
            ),
            confirmer=SettlementConfirmer(
                self.ledger,
                default_decimals=settings.default_decimals,
                history_limit=settings.history_limit,
            ),
            network=settings.network,
            mint=settings.mint,
            amount=settings.amount,
            recipient=settings.recipient,
            ttl_seconds=settings.ttl_seconds,
            protocol_version=settings.protocol_version,
            settlement_mode=settings.settlement_mode,
            reference_header=settings.reference_header,
            payment_header=settings.payment_header,
            payment_response_header=settings.payment_response_header,
            enforce_issued_references=settings.enforce_issued_references,
        )

    async def handle(self, headers) -> GateDecision:
        return await self.orchestrator.handle(headers)

    async def start(self) -> None:
        self.sweeper.start()
        logger.info(
            "Payment gate started: %s %s of %s to %s (%s, %s)",
            self.settings.network,
            self.settings.amount,
            self.settings.mint,
            self.settings.recipient,
            self.settings.settlement_mode.value,
            self.settings.protocol_version.value,
        )

    async def stop(self) -> None:
        await self.sweeper.stop()
        await self.ledger.aclose()
