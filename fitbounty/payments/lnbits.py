"""LNbits wallet adapter for the payment collaborator contract.

Talks to the LNbits REST API (`/api/v1/payments`). Calls are blocking `urllib` requests run in a
worker thread so the event loop is never blocked.
"""

from __future__ import annotations

import asyncio
import json
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any
from urllib.error import HTTPError, URLError
from urllib.request import Request, urlopen

from fitbounty.payments.client import Invoice, InvoiceStatus, PaymentError


@dataclass(frozen=True)
class LNbitsConfig:
    """Connection settings for one LNbits wallet (admin key is required to pay)."""

    api_key: str
    base_url: str = "https://legend.lnbits.com"
    timeout_s: float = 30.0


def _payments_url(base_url: str, payment_hash: str | None = None) -> str:
    url = base_url.rstrip("/") + "/api/v1/payments"
    return f"{url}/{payment_hash}" if payment_hash else url


def _parse_expiry(value: Any) -> datetime | None:
    if value is None:
        return None
    try:
        if isinstance(value, (int, float)):
            return datetime.fromtimestamp(float(value), tz=UTC)
        parsed = datetime.fromisoformat(str(value))
    except (ValueError, OverflowError, OSError):
        return None
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=UTC)


def status_from_payload(payload: dict[str, Any], *, now: datetime | None = None) -> InvoiceStatus:
    """Interpret an LNbits payment-status payload.

    A paid invoice is never reported as expired.
    """

    if bool(payload.get("paid")):
        return InvoiceStatus(paid=True, expired=False)

    details = payload.get("details") or {}
    if details.get("status") == "failed":
        return InvoiceStatus(paid=False, expired=True)

    expiry = _parse_expiry(details.get("expiry"))
    current = now or datetime.now(UTC)
    return InvoiceStatus(paid=False, expired=expiry is not None and expiry <= current)


class LNbitsClient:
    """`PaymentClient` implementation backed by an LNbits wallet."""

    def __init__(self, config: LNbitsConfig) -> None:
        self._config = config

    def _request(self, method: str, url: str, payload: dict[str, Any] | None = None) -> dict[str, Any]:
        req = Request(
            url,
            method=method,
            headers={
                "X-Api-Key": self._config.api_key,
                "Content-Type": "application/json",
            },
            data=json.dumps(payload).encode() if payload is not None else None,
        )

        try:
            with urlopen(req, timeout=self._config.timeout_s) as resp:  # noqa: S310 (configured wallet URL)
                body = resp.read()
        except HTTPError as exc:
            raise PaymentError(f"LNbits HTTP error: {exc.code}") from exc
        except URLError as exc:
            raise PaymentError("LNbits connection error") from exc

        try:
            decoded = json.loads(body)
        except json.JSONDecodeError as exc:
            raise PaymentError("LNbits did not return valid JSON") from exc
        if not isinstance(decoded, dict):
            raise PaymentError("Unexpected LNbits response format")
        return decoded

    async def create_invoice(self, amount_sats: int, description: str, expiry_seconds: int) -> Invoice:
        payload = {"out": False, "amount": amount_sats, "memo": description, "expiry": expiry_seconds}
        body = await asyncio.to_thread(self._request, "POST", _payments_url(self._config.base_url), payload)

        payment_request = body.get("payment_request") or body.get("bolt11")
        payment_hash = body.get("payment_hash")
        if not payment_request or not payment_hash:
            raise PaymentError("LNbits invoice response is missing payment_request/payment_hash")
        return Invoice(payment_request=payment_request, payment_hash=payment_hash)

    async def invoice_status(self, payment_hash: str) -> InvoiceStatus:
        body = await asyncio.to_thread(
            self._request, "GET", _payments_url(self._config.base_url, payment_hash)
        )
        return status_from_payload(body)

    async def pay(self, destination_invoice: str) -> str:
        payload = {"out": True, "bolt11": destination_invoice}
        body = await asyncio.to_thread(self._request, "POST", _payments_url(self._config.base_url), payload)

        payment_hash = body.get("payment_hash")
        if not payment_hash:
            raise PaymentError("LNbits payment response is missing payment_hash")
        return str(payment_hash)
