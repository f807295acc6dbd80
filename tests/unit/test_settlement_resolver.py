import pytest

from storefront.cart.models import CartLine
from storefront.cart.service import CartStore
from storefront.checkout.orchestrator import PaymentOrchestrator
from storefront.errors import GatewayOutcomeFailed, GatewayOutcomeUnknown, OrderSubmissionError, ValidationError
from storefront.payments.gateway import GatewayStatus
from storefront.pricing.models import PaymentMethod
from storefront.settlement.service import SettlementResolver
from storefront.state.models import AttemptStatus
from tests.fakes import SHIPPING, FakeGateway, fail_first, order_created


async def _awaiting_gateway(state, gateway):
    """Checkout démarré: snapshot + tentative Pending enregistrés sous la référence."""
    await state.save_guest_cart("g1", [CartLine(product_id="p1", quantity=2, unit_price=500)])
    outcome = await PaymentOrchestrator(state, gateway, return_url="http://testserver/return").start(
        CartStore(state, "g1"), SHIPPING, PaymentMethod.ONLINE
    )
    return outcome.gateway_reference_id


@pytest.mark.asyncio
async def test_failed_hint_is_reverified_and_success_places_once(state, store_api):
    store_api.on("POST", "orders", order_created("o-1"))
    gateway = FakeGateway(status=GatewayStatus.SUCCESS)
    reference = await _awaiting_gateway(state, gateway)

    placed = await SettlementResolver(state, gateway).resolve(reference, "failed")

    assert placed.order_id == "o-1"
    assert gateway.status_calls == [reference]
    assert gateway.confirm_calls == []
    assert store_api.count("POST", "orders") == 1
    attempt = await state.load_attempt(reference)
    assert attempt.status == AttemptStatus.SUCCESS
    assert attempt.order_placed is True
    assert await state.load_pending(reference) is None


@pytest.mark.asyncio
async def test_success_hint_goes_through_confirmation(state, store_api):
    gateway = FakeGateway(status=GatewayStatus.SUCCESS, confirm_status=GatewayStatus.FAILED)
    reference = await _awaiting_gateway(state, gateway)

    with pytest.raises(GatewayOutcomeFailed) as exc:
        await SettlementResolver(state, gateway).resolve(reference, "success")

    assert gateway.confirm_calls == [reference]
    assert exc.value.to_dict()["funds_captured"] is False
    assert store_api.count("POST", "orders") == 0
    assert await state.load_pending(reference) is not None


@pytest.mark.asyncio
async def test_pending_status_is_unknown_with_retry_action(state, store_api):
    gateway = FakeGateway(status=GatewayStatus.PENDING)
    reference = await _awaiting_gateway(state, gateway)

    with pytest.raises(GatewayOutcomeUnknown) as exc:
        await SettlementResolver(state, gateway, max_retries=3).resolve(reference)

    assert exc.value.retries_left == 3
    assert exc.value.actions == ["retry_status", "home"]


@pytest.mark.asyncio
async def test_existing_marker_short_circuits_without_gateway_call(state, store_api):
    store_api.on("POST", "orders", order_created("o-1"))
    gateway = FakeGateway(status=GatewayStatus.SUCCESS)
    reference = await _awaiting_gateway(state, gateway)
    resolver = SettlementResolver(state, gateway)
    await resolver.resolve(reference)

    again = await resolver.resolve(reference, "success")

    assert again.duplicate is True
    assert again.order_id == "o-1"
    assert gateway.status_calls == [reference]
    assert gateway.confirm_calls == []
    assert store_api.count("POST", "orders") == 1


@pytest.mark.asyncio
async def test_manual_retry_is_bounded(state, store_api):
    gateway = FakeGateway(status=GatewayStatus.UNKNOWN)
    reference = await _awaiting_gateway(state, gateway)
    resolver = SettlementResolver(state, gateway, max_retries=2)

    for left in (1, 0):
        with pytest.raises(GatewayOutcomeUnknown) as exc:
            await resolver.retry(reference)
        assert exc.value.retries_left == left

    with pytest.raises(GatewayOutcomeUnknown) as exc:
        await resolver.retry(reference)
    assert exc.value.actions == ["home", "contact_support"]
    assert len(gateway.status_calls) == 2


@pytest.mark.asyncio
async def test_submission_failure_then_retry_places_without_new_capture(state, store_api):
    store_api.on("POST", "orders", fail_first(1, order_created("o-1")))
    gateway = FakeGateway(status=GatewayStatus.SUCCESS)
    reference = await _awaiting_gateway(state, gateway)
    resolver = SettlementResolver(state, gateway)

    with pytest.raises(OrderSubmissionError):
        await resolver.resolve(reference, "success")
    assert await state.get_order_marker(reference) is None
    assert await state.load_pending(reference) is not None
    calls_before = (len(gateway.status_calls), len(gateway.confirm_calls))

    placed = await resolver.retry(reference)

    assert placed.order_id == "o-1"
    assert (len(gateway.status_calls), len(gateway.confirm_calls)) == calls_before
    assert store_api.count("POST", "orders") == 2
    assert (await state.get_order_marker(reference)).order_id == "o-1"


@pytest.mark.asyncio
async def test_unknown_reference_is_rejected(state, store_api):
    with pytest.raises(ValidationError):
        await SettlementResolver(state, FakeGateway()).resolve("ref-inconnue")
