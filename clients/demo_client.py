from __future__ import annotations

import json
import os
import sys
from typing import Any, Dict

import httpx

from solx402.client.payment import (
    create_payment_header_from_transaction,
    parse_settlement_response,
)
from solx402.domain.entities import PaymentRequirement


def print_response(label: str, r: httpx.Response) -> None:
    try:
        data = r.json()
        pretty = json.dumps(data, indent=2, ensure_ascii=False)
        print(f"{label}: {r.status_code}\n{pretty}")
    except ValueError:
        print(f"{label}: {r.status_code} {r.text}")


def _first_requirement(body: Dict[str, Any]) -> PaymentRequirement:
    # v2 wraps requirements in a list, v1 flattens a single one
    if "paymentRequirements" in body:
        return PaymentRequirement.model_validate(body["paymentRequirements"][0])
    return PaymentRequirement.model_validate(body)


def fetch_requirement(client: httpx.Client, url: str) -> PaymentRequirement:
    r = client.get(url)
    print_response("Challenge", r)
    if r.status_code != 402:
        raise RuntimeError(f"Expected 402 Payment Required, got {r.status_code}")
    return _first_requirement(r.json())


def pay_with_transaction(
    client: httpx.Client, url: str, requirement: PaymentRequirement, signed_tx_b64: str
) -> httpx.Response:
    # The transaction must already include requirement.reference as a read-only key
    header = create_payment_header_from_transaction(signed_tx_b64, requirement)
    return client.get(url, headers={"X-PAYMENT": header})


def pay_by_reference(
    client: httpx.Client, url: str, requirement: PaymentRequirement
) -> httpx.Response:
    input(
        f"Send {requirement.amount} of {requirement.mint} to {requirement.recipient} "
        f"with reference {requirement.reference}, then press Enter..."
    )
    return client.get(url, headers={"X-Payment-Reference": requirement.reference})


def main() -> None:
    base_url = os.getenv("X402_DEMO_BASE_URL", "http://127.0.0.1:8000")
    url = f"{base_url}/api/protected/resource"
    signed_tx_path = os.getenv("X402_DEMO_SIGNED_TX")

    with httpx.Client(timeout=90.0) as client:
        requirement = fetch_requirement(client, url)

        if signed_tx_path:
            with open(signed_tx_path, "r", encoding="utf-8") as f:
                r = pay_with_transaction(client, url, requirement, f.read().strip())
        else:
            r = pay_by_reference(client, url, requirement)

        print_response("Paid request", r)
        settlement_header = r.headers.get("X-PAYMENT-RESPONSE")
        if settlement_header is None:
            sys.exit(1)
        settlement = parse_settlement_response(settlement_header)
        print(f"Settled in transaction {settlement.transaction}")


if __name__ == "__main__":
    main()
