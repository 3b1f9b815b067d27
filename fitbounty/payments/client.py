"""Payment collaborator contract.

The Lightning backend is external. The bot needs only three primitives: create an invoice, query
its status, and pay a destination invoice.
"""

from __future__ import annotations

from typing import Protocol

from pydantic import BaseModel, ConfigDict


class PaymentError(RuntimeError):
    """Raised when the payment backend fails or returns an unexpected response."""


class Invoice(BaseModel):
    """A payable invoice (`payment_request`) and the hash used to track it."""

    model_config = ConfigDict(frozen=True)

    payment_request: str
    payment_hash: str


class InvoiceStatus(BaseModel):
    model_config = ConfigDict(frozen=True)

    paid: bool = False
    expired: bool = False


class PaymentClient(Protocol):
    """Async interface to a Lightning wallet."""

    async def create_invoice(self, amount_sats: int, description: str, expiry_seconds: int) -> Invoice: ...

    async def invoice_status(self, payment_hash: str) -> InvoiceStatus: ...

    async def pay(self, destination_invoice: str) -> str:
        """Pay an invoice and return the payment hash."""
        ...
