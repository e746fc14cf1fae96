from __future__ import annotations

import asyncio
import json

import httpx
import pytest

from services.payment import (
    DirectTransferGateway,
    PaymentReason,
    SimulatedGateway,
    VerifiedTransferGateway,
    classify_error,
    create_payment_gateway,
)


def _run(gateway, credential: str = "cred", amount: float = 0.02):
    return asyncio.run(gateway.pay(credential, amount))


def _with_client(handler, build):
    async def run():
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            return await build(client).pay("cred", 0.02)

    return asyncio.run(run())


def test_non_positive_amount_rejected_without_transfer() -> None:
    requests: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return httpx.Response(200, json={"settlementRef": "tx1"})

    async def run():
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            gateway = DirectTransferGateway("http://settle", treasury="t", client=client)
            return await gateway.pay("cred", 0), await gateway.pay("cred", -1.0)

    for result in asyncio.run(run()):
        assert not result.success
        assert result.reason == PaymentReason.INVALID_AMOUNT
    assert requests == []


def test_direct_transfer_success() -> None:
    seen: list[dict] = []

    def handler(request: httpx.Request) -> httpx.Response:
        assert str(request.url) == "http://settle/transfers"
        seen.append(json.loads(request.content))
        return httpx.Response(200, json={"settlementRef": "tx-abc"})

    result = _with_client(handler, lambda c: DirectTransferGateway("http://settle/", treasury="vault", client=c))

    assert result.success
    assert result.settlement_ref == "tx-abc"
    assert seen == [{"credential": "cred", "amount": 0.02, "recipient": "vault"}]


@pytest.mark.parametrize(
    ("body", "reason"),
    [
        ({"error": "Insufficient USDC balance. Required: 0.02"}, PaymentReason.INSUFFICIENT_FUNDS),
        ({"error": "Agent USDC token account not found"}, PaymentReason.ACCOUNT_NOT_FOUND),
        ({"error": "User rejected the request"}, PaymentReason.CANCELLED),
        ({"error": "weird", "reason": "insufficient_funds"}, PaymentReason.INSUFFICIENT_FUNDS),
        ({"error": "boom"}, PaymentReason.OTHER),
    ],
)
def test_direct_transfer_failure_reasons(body: dict, reason: PaymentReason) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(402, json=body)

    result = _with_client(handler, lambda c: DirectTransferGateway("http://settle", treasury="t", client=c))
    assert not result.success
    assert result.reason == reason
    assert result.settlement_ref is None


def test_direct_transfer_timeout_is_network() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("slow", request=request)

    result = _with_client(handler, lambda c: DirectTransferGateway("http://settle", treasury="t", client=c))
    assert result.reason == PaymentReason.NETWORK


def test_verified_transfer_checks_with_facilitator() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/transfers":
            return httpx.Response(200, json={"settlementRef": "tx-1"})
        assert str(request.url) == "http://facilitator/verify"
        assert json.loads(request.content)["settlementRef"] == "tx-1"
        return httpx.Response(200, json={"valid": True})

    result = _with_client(
        handler,
        lambda c: VerifiedTransferGateway("http://settle", "http://facilitator", treasury="t", client=c),
    )
    assert result.success
    assert result.settlement_ref == "tx-1"


def test_verify_timeout_keeps_settlement_ref() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/transfers":
            return httpx.Response(200, json={"settlementRef": "tx-2"})
        raise httpx.ConnectTimeout("no answer", request=request)

    result = _with_client(
        handler,
        lambda c: VerifiedTransferGateway("http://settle", "http://facilitator", treasury="t", client=c),
    )
    assert not result.success
    assert result.reason == PaymentReason.NETWORK
    assert result.settlement_ref == "tx-2"


def test_simulated_gateway_is_deterministic_with_seed() -> None:
    ok = SimulatedGateway(min_delay=0, max_delay=0, failure_rate=0.0, seed=7)
    first = _run(ok)
    second = _run(SimulatedGateway(min_delay=0, max_delay=0, failure_rate=0.0, seed=7))
    assert first.success
    assert first.settlement_ref == second.settlement_ref
    assert first.settlement_ref.startswith("sim_")

    failing = SimulatedGateway(min_delay=0, max_delay=0, failure_rate=1.0, seed=7)
    assert _run(failing).reason == PaymentReason.NETWORK


def test_missing_credential() -> None:
    gateway = SimulatedGateway(min_delay=0, max_delay=0, failure_rate=0.0)
    assert _run(gateway, credential="").reason == PaymentReason.ACCOUNT_NOT_FOUND


def test_classify_error() -> None:
    assert classify_error("Transaction cancelled by user") == PaymentReason.CANCELLED
    assert classify_error("not enough SOL") == PaymentReason.INSUFFICIENT_FUNDS
    assert classify_error("request timed out") == PaymentReason.NETWORK
    assert classify_error(None) == PaymentReason.OTHER


def test_create_payment_gateway() -> None:
    assert isinstance(create_payment_gateway("direct"), DirectTransferGateway)
    assert isinstance(create_payment_gateway("verified"), VerifiedTransferGateway)
    assert isinstance(create_payment_gateway("simulated"), SimulatedGateway)
    with pytest.raises(ValueError):
        create_payment_gateway("carrier-pigeon")
