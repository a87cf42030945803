import json
import aio_pika
import structlog
from tenacity import retry, stop_after_attempt, wait_exponential

logger = structlog.get_logger(__name__)

ORDER_EXCHANGE = "order_exchange"
NOTIFICATION_EXCHANGE = "notification_exchange"


class MessageBroker:
    """Owns one RabbitMQ connection and the topic exchanges the order service publishes to."""

    def __init__(self, url: str):
        self.url = url
        self.connection = None
        self.channel = None
        self._exchanges = {}

    @property
    def is_connected(self) -> bool:
        return self.channel is not None and not self.channel.is_closed

    @retry(stop=stop_after_attempt(5), wait=wait_exponential(multiplier=1, min=2, max=10), reraise=True)
    async def connect(self):
        self.connection = await aio_pika.connect_robust(self.url)
        self.channel = await self.connection.channel()
        for name in (ORDER_EXCHANGE, NOTIFICATION_EXCHANGE):
            self._exchanges[name] = await self.channel.declare_exchange(
                name, aio_pika.ExchangeType.TOPIC, durable=True
            )
        logger.info("rabbitmq_connected", exchanges=sorted(self._exchanges))

    async def publish(self, exchange_name: str, routing_key: str, message_data: dict):
        """Publish one persistent JSON message; raises if the broker is unavailable."""
        if not self.is_connected:
            raise ConnectionError("RabbitMQ channel not available")

        exchange = self._exchanges.get(exchange_name)
        if exchange is None:
            exchange = await self.channel.get_exchange(exchange_name)
            self._exchanges[exchange_name] = exchange

        message = aio_pika.Message(
            json.dumps(message_data, default=str).encode("utf-8"),
            content_type="application/json",
            delivery_mode=aio_pika.DeliveryMode.PERSISTENT,
        )
        await exchange.publish(message, routing_key=routing_key)
        logger.info("event_published", routing_key=routing_key, event_type=message_data.get("event_type"))

    async def close(self):
        if self.connection is not None:
            await self.connection.close()
        self.connection = None
        self.channel = None
        self._exchanges = {}
