from datetime import datetime
from uuid import uuid4

from order_service.errors import NotificationError
from order_service.messaging import MessageBroker, NOTIFICATION_EXCHANGE, ORDER_EXCHANGE

EMAIL_ROUTING_KEY = "notification.email"


class EventNotifier:
    """Hands customer emails and order events to RabbitMQ.

    ``send`` is the notification contract used by the lifecycle service: one
    attempt, and a NotificationError when the message could not be published.
    """

    def __init__(self, broker: MessageBroker):
        self.broker = broker

    async def send(self, recipient: str, subject: str, body: str, order_id: str = None):
        event = {
            "event_id": str(uuid4()),
            "event_type": "EmailRequested",
            "timestamp": datetime.utcnow().isoformat(),
            "order_id": order_id,
            "recipient": recipient,
            "subject": subject,
            "body": body,
        }
        await self._publish(NOTIFICATION_EXCHANGE, EMAIL_ROUTING_KEY, event, recipient)

    async def publish_order_event(self, event_type: str, routing_key: str, order_id: str, **data):
        event = {
            "event_id": str(uuid4()),
            "event_type": event_type,
            "timestamp": datetime.utcnow().isoformat(),
            "order_id": order_id,
            **data,
        }
        await self._publish(ORDER_EXCHANGE, routing_key, event, ORDER_EXCHANGE)

    async def _publish(self, exchange: str, routing_key: str, event: dict, recipient: str):
        try:
            await self.broker.publish(exchange, routing_key, event)
        except Exception as e:
            raise NotificationError(recipient, str(e) or type(e).__name__) from e
