"""Single-use reference accounts handed out in payment requirements."""

from __future__ import annotations

import logging
import time
from typing import Callable, Optional

from solders.keypair import Keypair  # type: ignore

from .settlement_cache import ExpiringStore, TimeSource

logger = logging.getLogger(__name__)

ReferenceGenerator = Callable[[], str]


def generate_reference() -> str:
    """Return the base58 address of a freshly generated keypair.

    The private key is discarded; the address only ever appears as a
    non-signing account key on the payer's transfer.
    """
    return str(Keypair().pubkey())


class ReferenceRegistry(ExpiringStore[None]):
    """References issued in 402 responses that have not expired yet."""

    def __init__(
        self,
        ttl_seconds: float,
        time_source: TimeSource = time.monotonic,
        generator: Optional[ReferenceGenerator] = None,
    ) -> None:
        super().__init__(ttl_seconds, time_source)
        self._generator = generator or generate_reference

    def issue(self) -> str:
        """Generate a reference that has never been issued by this registry."""
        reference = self._generator()
        while self._get(reference) is not None:
            logger.warning("Reference generator returned a live reference; retrying")
            reference = self._generator()
        self._put(reference, None)
        return reference

    def is_outstanding(self, reference: str) -> bool:
        return self._get(reference) is not None
