"""Settlement gateways.

A gateway moves `amount` from the actor identified by `credential` to the
treasury and returns a settlement reference, or a failure reason the
client can act on. Gateways never retry: a payment that timed out may
still have settled, and only the caller can decide whether re-submitting
is safe.

Implementations:
- `DirectTransferGateway`: a single transfer call to the settlement service
- `VerifiedTransferGateway`: transfer, then confirm through a facilitator
- `SimulatedGateway`: random delay and failure rate, for development
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import StrEnum
from typing import Any, Optional
import asyncio
import logging
import random

import httpx

import config

logger = logging.getLogger(__name__)


class PaymentReason(StrEnum):
    CANCELLED = "cancelled"
    INSUFFICIENT_FUNDS = "insufficient_funds"
    ACCOUNT_NOT_FOUND = "account_not_found"
    NETWORK = "network"
    INVALID_AMOUNT = "invalid_amount"
    OTHER = "other"


@dataclass(frozen=True)
class PaymentResult:
    success: bool
    settlement_ref: Optional[str] = None
    reason: Optional[PaymentReason] = None
    message: Optional[str] = None

    @classmethod
    def ok(cls, settlement_ref: str) -> "PaymentResult":
        return cls(success=True, settlement_ref=settlement_ref)

    @classmethod
    def failed(cls, reason: PaymentReason, message: str, *, settlement_ref: Optional[str] = None) -> "PaymentResult":
        return cls(success=False, reason=reason, message=message, settlement_ref=settlement_ref)


def classify_error(message: Optional[str]) -> PaymentReason:
    """Map a settlement error message onto a reason code."""
    msg = (message or "").lower()
    if "rejected" in msg or "cancelled" in msg or "canceled" in msg:
        return PaymentReason.CANCELLED
    if "insufficient" in msg or "not enough" in msg:
        return PaymentReason.INSUFFICIENT_FUNDS
    if "token account" in msg or "account not found" in msg:
        return PaymentReason.ACCOUNT_NOT_FOUND
    if "timeout" in msg or "timed out" in msg or "network" in msg:
        return PaymentReason.NETWORK
    return PaymentReason.OTHER


class PaymentGateway(ABC):
    name: str = "abstract"

    async def pay(self, credential: str, amount: float) -> PaymentResult:
        """Transfer `amount` from the credential holder to the treasury."""
        if amount is None or amount <= 0:
            return PaymentResult.failed(PaymentReason.INVALID_AMOUNT, "Payment amount must be greater than 0")
        if not credential:
            return PaymentResult.failed(PaymentReason.ACCOUNT_NOT_FOUND, "A funding credential is required")

        result = await self._transfer(credential, amount)
        if result.success:
            logger.info(f"[{self.name}] paid {amount} {config.CURRENCY_UNIT}, settlement {result.settlement_ref}")
        else:
            logger.warning(f"[{self.name}] payment of {amount} failed ({result.reason}): {result.message}")
        return result

    @abstractmethod
    async def _transfer(self, credential: str, amount: float) -> PaymentResult:
        ...


class DirectTransferGateway(PaymentGateway):
    """One `POST {settlement_url}/transfers` per payment."""

    name = "direct"

    def __init__(
        self,
        settlement_url: str,
        *,
        treasury: str,
        timeout: float = 30.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.settlement_url = settlement_url.rstrip("/")
        self.treasury = treasury
        self.timeout = timeout
        self._client = client

    async def _post(self, url: str, payload: dict[str, Any]) -> httpx.Response:
        if self._client is not None:
            return await self._client.post(url, json=payload, timeout=self.timeout)
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            return await client.post(url, json=payload)

    async def _submit(self, credential: str, amount: float) -> PaymentResult:
        try:
            response = await self._post(
                f"{self.settlement_url}/transfers",
                {"credential": credential, "amount": amount, "recipient": self.treasury},
            )
        except httpx.TimeoutException:
            return PaymentResult.failed(PaymentReason.NETWORK, "Settlement request timed out")
        except httpx.TransportError as exc:
            return PaymentResult.failed(PaymentReason.NETWORK, f"Settlement service unreachable: {exc}")

        body = _json_body(response)
        if response.is_success and body.get("settlementRef"):
            return PaymentResult.ok(body["settlementRef"])

        message = body.get("error") or f"Settlement service returned HTTP {response.status_code}"
        try:
            reason = PaymentReason(body.get("reason"))
        except ValueError:
            reason = classify_error(message)
        return PaymentResult.failed(reason, message)

    async def _transfer(self, credential: str, amount: float) -> PaymentResult:
        return await self._submit(credential, amount)


class VerifiedTransferGateway(DirectTransferGateway):
    """Pay-then-verify handshake.

    The transfer is submitted as in `DirectTransferGateway`, then confirmed
    by `POST {facilitator_url}/verify`. Once a transfer has produced a
    settlement reference, every outcome keeps it so the payment can be
    reconciled.
    """

    name = "verified"

    def __init__(self, settlement_url: str, facilitator_url: str, **kwargs):
        super().__init__(settlement_url, **kwargs)
        self.facilitator_url = facilitator_url.rstrip("/")

    async def _transfer(self, credential: str, amount: float) -> PaymentResult:
        submitted = await self._submit(credential, amount)
        if not submitted.success:
            return submitted
        ref = submitted.settlement_ref

        try:
            response = await self._post(
                f"{self.facilitator_url}/verify",
                {"settlementRef": ref, "amount": amount, "recipient": self.treasury},
            )
        except httpx.TimeoutException:
            return PaymentResult.failed(
                PaymentReason.NETWORK, "Payment submitted but verification timed out", settlement_ref=ref
            )
        except httpx.TransportError as exc:
            return PaymentResult.failed(
                PaymentReason.NETWORK, f"Facilitator unreachable: {exc}", settlement_ref=ref
            )

        body = _json_body(response)
        if response.is_success and body.get("valid"):
            return PaymentResult.ok(ref)

        message = body.get("error") or f"Verification failed with HTTP {response.status_code}"
        return PaymentResult.failed(classify_error(message), message, settlement_ref=ref)


class SimulatedGateway(PaymentGateway):
    """Fake settlement with a random delay and failure rate."""

    name = "simulated"

    def __init__(
        self,
        *,
        min_delay: float = 0.5,
        max_delay: float = 1.5,
        failure_rate: float = 0.05,
        seed: Optional[int] = None,
    ):
        self.min_delay = min_delay
        self.max_delay = max_delay
        self.failure_rate = failure_rate
        self._rng = random.Random(seed)

    async def _transfer(self, credential: str, amount: float) -> PaymentResult:
        delay = self._rng.uniform(self.min_delay, self.max_delay)
        if delay > 0:
            await asyncio.sleep(delay)
        if self._rng.random() < self.failure_rate:
            return PaymentResult.failed(PaymentReason.NETWORK, "Network error, please retry")
        return PaymentResult.ok(f"sim_{self._rng.getrandbits(256):064x}")


def _json_body(response: httpx.Response) -> dict[str, Any]:
    try:
        body = response.json()
    except ValueError:
        return {}
    return body if isinstance(body, dict) else {}


def create_payment_gateway(protocol: Optional[str] = None) -> PaymentGateway:
    """Build the gateway named by `protocol` (default: config)."""
    protocol = (protocol or config.PAYMENT_PROTOCOL).lower()
    if protocol == "direct":
        return DirectTransferGateway(
            config.SETTLEMENT_URL,
            treasury=config.TREASURY_ACCOUNT,
            timeout=config.SETTLEMENT_TIMEOUT_SECONDS,
        )
    if protocol == "verified":
        return VerifiedTransferGateway(
            config.SETTLEMENT_URL,
            config.FACILITATOR_URL,
            treasury=config.TREASURY_ACCOUNT,
            timeout=config.SETTLEMENT_TIMEOUT_SECONDS,
        )
    if protocol == "simulated":
        return SimulatedGateway(
            min_delay=config.SIMULATED_MIN_DELAY,
            max_delay=config.SIMULATED_MAX_DELAY,
            failure_rate=config.SIMULATED_FAILURE_RATE,
        )
    raise ValueError(f"Unknown payment protocol: {protocol!r}")


_gateway: Optional[PaymentGateway] = None


def get_payment_gateway() -> PaymentGateway:
    """FastAPI dependency returning the configured gateway."""
    global _gateway
    if _gateway is None:
        _gateway = create_payment_gateway()
        logger.info(f"Payment gateway: {_gateway.name}")
    return _gateway
