"""Thin RabbitMQ client: one blocking connection, one channel.

Usage:
    cfg = config.load_config()
    with RabbitMQClient.from_config(cfg.rabbitmq) as mq:
        mq.declare_queue("tiles")
        mq.publish("tiles", "render 12/3401/1552")
        for msg in mq.consume("tiles"):
            handle(msg.body)

Reconnection, acknowledgement tracking and backpressure are left to pika and
the caller. Closing the client is the only way to stop a running ``consume``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterator, Optional

import pika
from pika.exceptions import AMQPError

from .config import RabbitMQConfig, amqp_url


logger = logging.getLogger(__name__)


class RabbitMQError(RuntimeError):
    """Raised when the broker connection or channel cannot be established."""


@dataclass(frozen=True)
class MQOptions:
    """Protocol flags applied by the client.

    The defaults are fire-and-forget: queues are neither durable, auto-deleted
    nor exclusive, and consumed messages are auto-acknowledged, so a message is
    lost if the consumer dies while handling it. Set ``auto_ack=False`` and
    call ``RabbitMQClient.ack`` for at-least-once delivery, and ``durable=True``
    with ``delivery_mode=2`` for messages that survive a broker restart.
    """

    durable: bool = False
    auto_delete: bool = False
    exclusive: bool = False
    auto_ack: bool = True
    exclusive_consumer: bool = False
    mandatory: bool = False
    content_type: str = "text/plain"
    delivery_mode: Optional[int] = None


@dataclass(frozen=True)
class Delivery:
    body: bytes
    routing_key: str
    delivery_tag: int
    content_type: Optional[str] = None

    def text(self, encoding: str = "utf-8") -> str:
        return self.body.decode(encoding)


class RabbitMQClient:
    def __init__(
        self,
        host: str,
        port: int,
        username: str,
        password: str,
        options: Optional[MQOptions] = None,
    ):
        self.options = options or MQOptions()
        url = amqp_url(host, port, username, password)
        try:
            self.connection = pika.BlockingConnection(pika.URLParameters(url))
        except AMQPError as e:
            raise RabbitMQError(f"failed to connect to RabbitMQ at {host}:{port}: {e}") from e

        try:
            self.channel = self.connection.channel()
        except AMQPError as e:
            self.connection.close()
            raise RabbitMQError(f"failed to open a channel: {e}") from e

        logger.debug(f"Connected to RabbitMQ at {host}:{port}")

    @classmethod
    def from_config(cls, cfg: RabbitMQConfig, options: Optional[MQOptions] = None) -> "RabbitMQClient":
        return cls(cfg.host, cfg.port, cfg.username, cfg.password, options=options)

    def __enter__(self) -> "RabbitMQClient":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def publish(self, queue_name: str, message: str) -> None:
        """Publish to ``queue_name`` through the default exchange. No confirmation is awaited."""
        properties = pika.BasicProperties(
            content_type=self.options.content_type,
            delivery_mode=self.options.delivery_mode,
        )
        self.channel.basic_publish(
            exchange="",
            routing_key=queue_name,
            body=message.encode("utf-8"),
            properties=properties,
            mandatory=self.options.mandatory,
        )

    def declare_queue(self, name: str) -> None:
        """Declare ``name``, creating it if it does not exist."""
        self.channel.queue_declare(
            queue=name,
            durable=self.options.durable,
            auto_delete=self.options.auto_delete,
            exclusive=self.options.exclusive,
        )

    def consume(self, queue_name: str) -> Iterator[Delivery]:
        """Yield messages from ``queue_name`` as they arrive.

        Blocks between messages; ends when the channel is closed.
        """
        for method, properties, body in self.channel.consume(
            queue_name,
            auto_ack=self.options.auto_ack,
            exclusive=self.options.exclusive_consumer,
        ):
            yield Delivery(
                body=body,
                routing_key=method.routing_key,
                delivery_tag=method.delivery_tag,
                content_type=getattr(properties, "content_type", None),
            )

    def ack(self, delivery_tag: int) -> None:
        """Acknowledge a delivery; only meaningful with ``auto_ack=False``."""
        self.channel.basic_ack(delivery_tag=delivery_tag)

    def close(self) -> None:
        """Close the channel, then the connection. Safe to call more than once."""
        try:
            if self.channel.is_open:
                self.channel.close()
        finally:
            if self.connection.is_open:
                self.connection.close()
