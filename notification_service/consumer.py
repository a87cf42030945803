import asyncio
import json
import aio_pika
import structlog
from tenacity import retry, stop_after_attempt, wait_exponential

from notification_service.config import NotificationSettings
from notification_service.mailer import SmtpMailer
from order_service.logging_config import configure_logging

logger = structlog.get_logger(__name__)

EMAIL_ROUTING_KEY = "notification.email"


def decode_event(message: aio_pika.IncomingMessage) -> dict:
    event_data = json.loads(message.body.decode())
    if not isinstance(event_data, dict):
        raise ValueError(f"expected a JSON object, got {type(event_data).__name__}")
    return event_data


async def process_email_requested(message: aio_pika.IncomingMessage, mailer):
    async with message.process():
        try:
            event_data = decode_event(message)
            recipient = event_data["recipient"]
            subject = event_data["subject"]
            body = event_data.get("body", "")
        except (ValueError, KeyError) as e:
            logger.error("malformed_email_event", error=str(e))
            return

        try:
            await mailer.send(recipient, subject, body)
        except Exception as e:
            # Single attempt; the order change that triggered this email is already committed
            logger.error(
                "email_delivery_failed",
                order_id=event_data.get("order_id"),
                recipient=recipient,
                error=str(e),
            )


async def process_order_event(message: aio_pika.IncomingMessage):
    async with message.process():
        try:
            event_data = decode_event(message)
        except ValueError as e:
            logger.error("malformed_order_event", error=str(e))
            return
        logger.info(
            "order_event_received",
            event_type=event_data.get("event_type", "UNKNOWN"),
            order_id=event_data.get("order_id", "N/A"),
        )


@retry(stop=stop_after_attempt(10), wait=wait_exponential(multiplier=1, min=2, max=30), reraise=True)
async def connect(url: str):
    return await aio_pika.connect_robust(url)


async def main(settings: NotificationSettings = None):
    settings = settings or NotificationSettings.from_env()
    configure_logging(settings.log_level, settings.log_format)
    mailer = SmtpMailer(settings)

    connection = await connect(settings.rabbitmq_url)
    async with connection:
        channel = await connection.channel()

        # Declare exchanges
        order_exchange = await channel.declare_exchange("order_exchange", aio_pika.ExchangeType.TOPIC, durable=True)
        notification_exchange = await channel.declare_exchange(
            "notification_exchange", aio_pika.ExchangeType.TOPIC, durable=True
        )

        queue = await channel.declare_queue("notification_q", durable=True)
        await queue.bind(notification_exchange, EMAIL_ROUTING_KEY)
        await queue.bind(order_exchange, "order.confirmed")
        await queue.bind(order_exchange, "order.cancelled")

        logger.info("notification_consumer_listening", queue="notification_q")

        async def on_message(message: aio_pika.IncomingMessage):
            if message.routing_key == EMAIL_ROUTING_KEY:
                await process_email_requested(message, mailer)
            elif message.routing_key.startswith("order."):
                await process_order_event(message)
            else:
                async with message.process():
                    logger.info("event_ignored", routing_key=message.routing_key)

        await queue.consume(on_message, no_ack=False)

        # Keep the main task running
        await asyncio.Future()


if __name__ == "__main__":
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        logger.info("notification_consumer_stopped")
