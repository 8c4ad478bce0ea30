from __future__ import annotations

import os

from pydantic import BaseModel, Field, field_validator
from solders.pubkey import Pubkey  # type: ignore

from .domain.entities import DECIMAL_AMOUNT_RE, ProtocolVersion, SettlementMode

CLUSTER_URLS = {
    "devnet": "https://api.devnet.solana.com",
    "testnet": "https://api.testnet.solana.com",
    "mainnet-beta": "https://api.mainnet-beta.solana.com",
}

# Devnet USDC
DEFAULT_MINT = "4zMMC9srt5Ri5X14GAgXhaHii3GnPAEERYPJgZJDncDU"


class Settings(BaseModel):
    """Typed payment gate settings built from environment variables."""

    network: str = "devnet"
    rpc_url: str = ""
    rpc_timeout: float = Field(10.0, gt=0)

    # Pricing
    mint: str = DEFAULT_MINT
    amount: str = "0.05"
    recipient: str

    # Protocol
    protocol_version: ProtocolVersion = ProtocolVersion.V2
    settlement_mode: SettlementMode = SettlementMode.SUBMIT_AND_SETTLE
    reference_header: str = "X-Payment-Reference"
    payment_header: str = "X-PAYMENT"
    payment_response_header: str = "X-PAYMENT-RESPONSE"
    enforce_issued_references: bool = True
    protected_paths: list[str] = ["/api/protected"]

    # Timing
    ttl_seconds: int = Field(300, gt=0)
    sweep_interval_seconds: float = Field(60.0, gt=0)
    poll_interval_ms: int = Field(1000, ge=0)
    poll_attempts: int = Field(30, gt=0)
    history_limit: int = Field(5, gt=0)
    default_decimals: int = Field(6, ge=0)

    # API settings
    api_host: str = "0.0.0.0"
    api_port: int = 8000
    api_debug: bool = False
    app_name: str = "solx402"
    app_version: str = "0.1.0"
    log_level: str = "INFO"

    @field_validator("network")
    @classmethod
    def validate_network(cls, v: str) -> str:
        if v not in CLUSTER_URLS:
            raise ValueError(
                f"Unsupported network {v!r}; expected one of {sorted(CLUSTER_URLS)}"
            )
        return v

    @field_validator("mint", "recipient")
    @classmethod
    def validate_address(cls, v: str) -> str:
        try:
            Pubkey.from_string(v)
        except ValueError as e:
            raise ValueError(f"Invalid Solana address {v!r}: {e}") from e
        return v

    @field_validator("amount")
    @classmethod
    def validate_amount(cls, v: str) -> str:
        if not DECIMAL_AMOUNT_RE.fullmatch(v):
            raise ValueError(f"Amount must be a non-negative decimal string: {v!r}")
        if not v.replace(".", "").strip("0"):
            raise ValueError(f"Amount must be greater than zero: {v!r}")
        return v

    @property
    def resolved_rpc_url(self) -> str:
        return self.rpc_url or CLUSTER_URLS[self.network]


def _env_bool(name: str, default: str) -> bool:
    return os.environ.get(name, default).lower() == "true"


def get_settings() -> Settings:
    """Return typed settings instance sourced from env vars."""
    return Settings(
        network=os.environ.get("X402_NETWORK", "devnet"),
        rpc_url=os.environ.get("X402_RPC_URL", ""),
        rpc_timeout=float(os.environ.get("X402_RPC_TIMEOUT", "10")),
        mint=os.environ.get("X402_MINT", DEFAULT_MINT),
        amount=os.environ.get("X402_AMOUNT", "0.05"),
        recipient=os.environ.get("X402_RECIPIENT", ""),
        protocol_version=os.environ.get("X402_PROTOCOL_VERSION", "v2"),
        settlement_mode=os.environ.get(
            "X402_SETTLEMENT_MODE", "submit-and-settle"
        ),
        reference_header=os.environ.get(
            "X402_REFERENCE_HEADER", "X-Payment-Reference"
        ),
        payment_header=os.environ.get("X402_PAYMENT_HEADER", "X-PAYMENT"),
        payment_response_header=os.environ.get(
            "X402_PAYMENT_RESPONSE_HEADER", "X-PAYMENT-RESPONSE"
        ),
        enforce_issued_references=_env_bool(
            "X402_ENFORCE_ISSUED_REFERENCES", "true"
        ),
        protected_paths=[
            path.strip()
            for path in os.environ.get(
                "X402_PROTECTED_PATHS", "/api/protected"
            ).split(",")
            if path.strip()
        ],
        ttl_seconds=int(os.environ.get("X402_TTL_SECONDS", "300")),
        sweep_interval_seconds=float(
            os.environ.get("X402_SWEEP_INTERVAL_SECONDS", "60")
        ),
        poll_interval_ms=int(os.environ.get("X402_POLL_INTERVAL_MS", "1000")),
        poll_attempts=int(os.environ.get("X402_POLL_ATTEMPTS", "30")),
        history_limit=int(os.environ.get("X402_HISTORY_LIMIT", "5")),
        default_decimals=int(os.environ.get("X402_DEFAULT_DECIMALS", "6")),
        api_host=os.environ.get("API_HOST", "0.0.0.0"),
        api_port=int(os.environ.get("API_PORT", "8000")),
        api_debug=_env_bool("API_DEBUG", "false"),
        app_name=os.environ.get("APP_NAME", "solx402"),
        app_version=os.environ.get("APP_VERSION", "0.1.0"),
        log_level=os.environ.get("LOG_LEVEL", "INFO"),
    )
