import json
import uuid
import pytest
from datetime import datetime, timedelta

from order_service.models import CANCELLABLE_STATUSES, CONFIRMABLE_STATUSES, Order, OrderStatus


def make_order(status=OrderStatus.PENDING, created_at=None, **overrides):
    fields = dict(
        id=str(uuid.uuid4()),
        customer_name="Bilal Ahmed",
        customer_email="bilal@example.com",
        customer_phone="0300-7654321",
        shipping_street="5 Canal View",
        shipping_city="Karachi",
        shipping_postal_code="74000",
        shipping_country="Pakistan",
        items=json.dumps([{"productId": "p-1", "title": "Silk Scarf", "price": 1200.0, "quantity": 1}]),
        total_price=1200.0,
        status=status,
    )
    if created_at is not None:
        fields["created_at"] = created_at
    fields.update(overrides)
    return Order(**fields)


@pytest.mark.asyncio
async def test_add_sets_defaults(store):
    order = await store.add(make_order())

    assert order.payment_method == "Cash on Delivery"
    assert order.created_at is not None
    assert order.updated_at is not None


@pytest.mark.asyncio
async def test_list_newest_first(store):
    base = datetime(2026, 3, 1, 10, 0, 0)
    t1 = await store.add(make_order(created_at=base))
    t2 = await store.add(make_order(created_at=base + timedelta(seconds=1)))
    t3 = await store.add(make_order(created_at=base + timedelta(seconds=2)))

    orders = await store.list_newest_first()

    assert [o.id for o in orders] == [t3.id, t2.id, t1.id]


@pytest.mark.asyncio
async def test_list_excludes_statuses(store):
    kept = await store.add(make_order())
    await store.add(make_order(status=OrderStatus.AWAITING_USER_CONFIRMATION))

    orders = await store.list_newest_first(exclude=[OrderStatus.AWAITING_USER_CONFIRMATION])

    assert [o.id for o in orders] == [kept.id]


@pytest.mark.asyncio
async def test_transition_applies_when_status_matches(store):
    order = await store.add(make_order())

    updated = await store.transition(order.id, CONFIRMABLE_STATUSES, OrderStatus.CONFIRMED)

    assert updated.status == OrderStatus.CONFIRMED
    assert updated.updated_at >= order.updated_at


@pytest.mark.asyncio
async def test_transition_returns_none_when_status_does_not_match(store):
    order = await store.add(make_order(status=OrderStatus.CANCELLED))

    assert await store.transition(order.id, CANCELLABLE_STATUSES, OrderStatus.CANCELLED) is None
    assert (await store.get(order.id)).status == OrderStatus.CANCELLED


@pytest.mark.asyncio
async def test_transition_returns_none_for_unknown_id(store):
    assert await store.transition(str(uuid.uuid4()), CONFIRMABLE_STATUSES, OrderStatus.CONFIRMED) is None


@pytest.mark.asyncio
async def test_confirm_by_token_promotes_and_clears_token(store):
    order = await store.add(
        make_order(
            status=OrderStatus.AWAITING_USER_CONFIRMATION,
            confirmation_token="abc123",
            confirmation_token_expires=datetime.utcnow() + timedelta(hours=1),
        )
    )

    promoted = await store.confirm_by_token("abc123", datetime.utcnow())

    assert promoted.id == order.id
    assert promoted.status == OrderStatus.PENDING
    assert promoted.confirmation_token is None
    assert await store.confirm_by_token("abc123", datetime.utcnow()) is None
