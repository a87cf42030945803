import hashlib
import json
import math
import secrets
import uuid
from datetime import datetime, timedelta
from typing import Any, List, Mapping, Union

import structlog
from pydantic import ValidationError

from order_service import emails
from order_service.config import Settings
from order_service.errors import (
    InvalidConfirmationTokenError,
    InvalidOrderIdError,
    InvalidStatusTransitionError,
    OrderNotFoundError,
    OrderValidationError,
)
from order_service.models import (
    CANCELLABLE_STATUSES,
    CONFIRMABLE_STATUSES,
    PAYMENT_METHOD_COD,
    Order,
    OrderStatus,
)
from order_service.schemas import OrderCreate, format_validation_errors
from order_service.store import OrderStore

logger = structlog.get_logger(__name__)

# Largest accepted gap between the client's total and the sum of its line items
TOTAL_TOLERANCE = 0.01


def hash_token(token: str) -> str:
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


class OrderLifecycleService:
    """Creates orders and moves them through their status transitions.

    Customer emails are best-effort: a failed send is logged as
    ``notification_failed`` and never undoes the persisted change.
    """

    def __init__(self, store: OrderStore, notifier, settings: Settings = None):
        self.store = store
        self.notifier = notifier
        self.settings = settings or Settings()

    async def create(self, payload: Union[OrderCreate, Mapping[str, Any]]) -> Order:
        if not isinstance(payload, OrderCreate):
            try:
                payload = OrderCreate.model_validate(payload)
            except ValidationError as e:
                raise OrderValidationError(format_validation_errors(e.errors())) from e

        self._check_total(payload)

        awaiting_customer = self.settings.require_customer_confirmation
        address = payload.shipping_address
        try:
            order = Order(
                id=str(uuid.uuid4()),
                customer_name=payload.customer_name,
                customer_email=payload.customer_email,
                customer_phone=payload.customer_phone,
                shipping_street=address.street,
                shipping_city=address.city,
                shipping_postal_code=address.postal_code,
                shipping_country=address.country or self.settings.default_country,
                items=json.dumps(
                    [item.model_dump(by_alias=True, exclude_none=True) for item in payload.order_items]
                ),
                total_price=payload.total_price,
                status=OrderStatus.AWAITING_USER_CONFIRMATION if awaiting_customer else OrderStatus.PENDING,
                payment_method=PAYMENT_METHOD_COD,
            )
        except ValueError as e:
            raise OrderValidationError([str(e)]) from e

        token = None
        if awaiting_customer:
            token = secrets.token_hex(32)
            order.confirmation_token = hash_token(token)
            order.confirmation_token_expires = datetime.utcnow() + timedelta(
                hours=self.settings.confirmation_token_ttl_hours
            )

        order = await self.store.add(order)
        logger.info("order_created", order_id=order.id, status=order.status.value, total_price=order.total_price)

        await self._publish(order, "OrderCreated", "order.created", total_price=order.total_price, items=order.item_list)
        if token is not None:
            confirm_url = f"{self.settings.api_base_url.rstrip('/')}/api/orders/confirm/{token}"
            subject, body = emails.customer_confirmation_request(
                order, confirm_url, self.settings.confirmation_token_ttl_hours
            )
            await self._notify(order, subject, body)
        return order

    async def list_orders(self) -> List[Order]:
        return await self.store.list_newest_first(exclude=[OrderStatus.AWAITING_USER_CONFIRMATION])

    async def confirm(self, order_id: str) -> Order:
        order_id = self._parse_id(order_id)
        order = await self.store.transition(order_id, CONFIRMABLE_STATUSES, OrderStatus.CONFIRMED)
        if order is None:
            await self._raise_transition_failure(order_id, "confirm")
        logger.info("order_confirmed", order_id=order.id)

        subject, body = emails.order_confirmed(order)
        await self._notify(order, subject, body)
        await self._publish(order, "OrderConfirmed", "order.confirmed", total_price=order.total_price)
        return order

    async def cancel(self, order_id: str) -> Order:
        order_id = self._parse_id(order_id)
        order = await self.store.transition(order_id, CANCELLABLE_STATUSES, OrderStatus.CANCELLED)
        if order is None:
            await self._raise_transition_failure(order_id, "cancel")
        logger.info("order_cancelled", order_id=order.id)

        subject, body = emails.order_cancelled(order)
        await self._notify(order, subject, body)
        await self._publish(order, "OrderCancelled", "order.cancelled", reason="Cancelled by admin")
        return order

    async def confirm_by_customer(self, token: str) -> Order:
        order = await self.store.confirm_by_token(hash_token(token or ""), datetime.utcnow())
        if order is None:
            logger.warning("invalid_confirmation_token", token_prefix=(token or "")[:10])
            raise InvalidConfirmationTokenError()
        logger.info("order_confirmed_by_customer", order_id=order.id)

        subject, body = emails.customer_confirmed(order)
        await self._notify(order, subject, body)
        return order

    def _check_total(self, payload: OrderCreate):
        expected = round(sum(item.price * item.quantity for item in payload.order_items), 2)
        if not (math.isfinite(expected) and math.isfinite(payload.total_price)):
            raise OrderValidationError(["totalPrice: order total must be a finite number"])
        if abs(expected - round(payload.total_price, 2)) > TOTAL_TOLERANCE:
            raise OrderValidationError(
                [f"totalPrice: does not match order items (expected {expected:.2f}, got {payload.total_price:.2f})"]
            )

    @staticmethod
    def _parse_id(order_id: str) -> str:
        try:
            return str(uuid.UUID(str(order_id)))
        except ValueError as e:
            raise InvalidOrderIdError(order_id) from e

    async def _raise_transition_failure(self, order_id: str, action: str):
        current = await self.store.get(order_id)
        if current is None:
            raise OrderNotFoundError(order_id)
        logger.info("order_transition_rejected", order_id=order_id, action=action, status=current.status.value)
        raise InvalidStatusTransitionError(order_id, action, current.status.value)

    async def _notify(self, order: Order, subject: str, body: str):
        try:
            await self.notifier.send(order.customer_email, subject, body, order_id=order.id)
        except Exception as e:
            logger.error("notification_failed", order_id=order.id, subject=subject, error=str(e))
            return False
        logger.info("notification_sent", order_id=order.id, subject=subject)
        return True

    async def _publish(self, order: Order, event_type: str, routing_key: str, **data):
        try:
            await self.notifier.publish_order_event(event_type, routing_key, order.id, **data)
        except Exception as e:
            logger.error("event_publish_failed", order_id=order.id, event_type=event_type, error=str(e))
