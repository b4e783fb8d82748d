from __future__ import annotations

from datetime import datetime, timezone

import pytest

from src.core.billing.entitlements import evaluate_client_entitlement
from src.core.billing.errors import InvalidRequestError, NotFoundError, ProcessorError
from src.core.billing.lifecycle import SubscriptionLifecycleController
from support import InMemoryBillingRecords, make_record


@pytest.mark.asyncio
async def test_cancel_while_trialing_clears_selection(gateway) -> None:  # noqa: ANN001
    record = make_record(
        subscription_tier="pro",
        client_limit=30,
        external_customer_id="cus_1",
        external_subscription_id="sub_1",
    )
    records = InMemoryBillingRecords(record)

    result = await SubscriptionLifecycleController(records, gateway).apply(record.id, "cancel")

    assert gateway.calls == [("cancel_subscription", {"subscription_id": "sub_1"})]
    assert record.subscription_status == "trialing"
    assert record.external_subscription_id is None
    assert record.subscription_tier == "gym"
    assert record.client_limit == -1
    assert result.cleared is True
    assert records.commits == 1


@pytest.mark.asyncio
async def test_cancel_while_active_schedules_period_end(gateway) -> None:  # noqa: ANN001
    record = make_record(
        subscription_status="active",
        subscription_tier="studio",
        trial_ends_at=None,
        external_customer_id="cus_2",
        external_subscription_id="sub_2",
    )
    records = InMemoryBillingRecords(record)
    controller = SubscriptionLifecycleController(records, gateway)

    result = await controller.cancel(record.id)

    expected_end = datetime(2026, 11, 19, tzinfo=timezone.utc)
    assert gateway.kwargs_for("set_cancel_at_period_end") == {"subscription_id": "sub_2", "cancel": True}
    assert "cancel_subscription" not in gateway.names()
    assert record.subscription_status == "canceling"
    assert record.trial_ends_at == expected_end
    assert result.period_end == expected_end
    assert record.external_subscription_id == "sub_2"

    reactivated = await controller.apply(record.id, "reactivate")

    assert gateway.calls[-1] == ("set_cancel_at_period_end", {"subscription_id": "sub_2", "cancel": False})
    assert record.subscription_status == "active"
    assert reactivated.subscription_status == "active"


@pytest.mark.asyncio
async def test_actions_without_subscription_are_not_found(gateway) -> None:  # noqa: ANN001
    record = make_record(external_customer_id="cus_1", external_subscription_id=None)
    controller = SubscriptionLifecycleController(InMemoryBillingRecords(record), gateway)

    for action in (controller.cancel, controller.reactivate, controller.terminate):
        with pytest.raises(NotFoundError) as exc:
            await action(record.id)
        assert exc.value.error == "No active subscription"

    assert gateway.calls == []


@pytest.mark.asyncio
async def test_unknown_organization_is_not_found(gateway) -> None:  # noqa: ANN001
    controller = SubscriptionLifecycleController(InMemoryBillingRecords(), gateway)

    with pytest.raises(NotFoundError):
        await controller.cancel(make_record().id)


@pytest.mark.asyncio
async def test_reactivate_requires_canceling_state(gateway) -> None:  # noqa: ANN001
    record = make_record(subscription_status="active", external_subscription_id="sub_3")
    controller = SubscriptionLifecycleController(InMemoryBillingRecords(record), gateway)

    with pytest.raises(InvalidRequestError):
        await controller.reactivate(record.id)
    assert gateway.calls == []


@pytest.mark.asyncio
async def test_cancel_twice_is_rejected_once_canceling(gateway) -> None:  # noqa: ANN001
    record = make_record(subscription_status="canceling", external_subscription_id="sub_3")
    controller = SubscriptionLifecycleController(InMemoryBillingRecords(record), gateway)

    with pytest.raises(InvalidRequestError):
        await controller.cancel(record.id)
    assert gateway.calls == []


@pytest.mark.asyncio
async def test_terminate_cancels_immediately_from_any_state(gateway) -> None:  # noqa: ANN001
    record = make_record(subscription_status="canceling", external_subscription_id="sub_4")
    records = InMemoryBillingRecords(record)

    result = await SubscriptionLifecycleController(records, gateway).terminate(record.id)

    assert gateway.names() == ["cancel_subscription"]
    assert record.subscription_status == "canceled"
    assert result.subscription_status == "canceled"


@pytest.mark.asyncio
async def test_processor_failure_leaves_record_untouched(gateway) -> None:  # noqa: ANN001
    record = make_record(subscription_status="active", external_subscription_id="sub_5")
    records = InMemoryBillingRecords(record)
    gateway.fail_on.add("set_cancel_at_period_end")

    with pytest.raises(ProcessorError):
        await SubscriptionLifecycleController(records, gateway).cancel(record.id)

    assert record.subscription_status == "active"
    assert records.commits == 0


@pytest.mark.asyncio
async def test_unsupported_action_is_invalid(gateway) -> None:  # noqa: ANN001
    record = make_record(external_subscription_id="sub_6")
    controller = SubscriptionLifecycleController(InMemoryBillingRecords(record), gateway)

    with pytest.raises(InvalidRequestError):
        await controller.apply(record.id, "pause")  # type: ignore[arg-type]


@pytest.mark.asyncio
async def test_cancelled_trial_selection_restores_full_trial_access(gateway, catalog) -> None:  # noqa: ANN001
    record = make_record(
        subscription_tier="starter",
        client_limit=10,
        external_customer_id="cus_1",
        external_subscription_id="sub_1",
    )
    records = InMemoryBillingRecords(record)

    await SubscriptionLifecycleController(records, gateway, catalog).cancel(record.id)

    assert catalog.entitlements_for(record).unlimited_clients is True
    assert evaluate_client_entitlement(record, 10).allowed is True
