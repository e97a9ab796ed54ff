"""RabbitMQ client against an in-memory stand-in for pika's blocking connection."""

from types import SimpleNamespace

import pika
import pytest
from pika.exceptions import AMQPConnectionError, ChannelClosedByBroker

from boot_core import rabbitmq as rabbitmq_mod
from boot_core.config import RabbitMQConfig
from boot_core.rabbitmq import MQOptions, RabbitMQClient, RabbitMQError


class _FakeChannel:
    def __init__(self, log, messages=()):
        self.log = log
        self.is_open = True
        self.messages = list(messages)
        self.published = []
        self.declared = []
        self.acked = []
        self.consume_kwargs = None

    def basic_publish(self, **kwargs):
        self.published.append(kwargs)

    def queue_declare(self, **kwargs):
        self.declared.append(kwargs)

    def consume(self, queue, **kwargs):
        self.consume_kwargs = dict(kwargs, queue=queue)
        for tag, (body, content_type) in enumerate(self.messages, start=1):
            method = SimpleNamespace(routing_key=queue, delivery_tag=tag)
            yield method, pika.BasicProperties(content_type=content_type), body

    def basic_ack(self, delivery_tag):
        self.acked.append(delivery_tag)

    def close(self):
        if not self.is_open:
            raise RuntimeError("channel already closed")
        self.log.append("channel.close")
        self.is_open = False


class _FakeConnection:
    instances = []

    def __init__(self, parameters, channel_error=None, messages=()):
        self.parameters = parameters
        self.log = []
        self.is_open = True
        self.channel_error = channel_error
        self._channel = _FakeChannel(self.log, messages)
        _FakeConnection.instances.append(self)

    def channel(self):
        if self.channel_error:
            raise self.channel_error
        return self._channel

    def close(self):
        if not self.is_open:
            raise RuntimeError("connection already closed")
        self.log.append("connection.close")
        self.is_open = False


@pytest.fixture
def fake_pika(monkeypatch):
    _FakeConnection.instances = []
    settings = {}

    def connect(parameters):
        return _FakeConnection(parameters, **settings)

    monkeypatch.setattr(rabbitmq_mod.pika, "BlockingConnection", connect)
    return settings


def _client(**kwargs):
    return RabbitMQClient("mq.local", 5672, "guest", "guest", **kwargs)


class TestConnect:

    def test_dials_assembled_url(self, fake_pika):
        client = _client()
        params = client.connection.parameters
        assert params.host == "mq.local"
        assert params.port == 5672
        assert params.credentials.username == "guest"
        assert params.credentials.password == "guest"

    def test_from_config(self, fake_pika):
        cfg = RabbitMQConfig(host="broker", port=5673, username="u", password="p@ss")
        client = RabbitMQClient.from_config(cfg)
        params = client.connection.parameters
        assert (params.host, params.port) == ("broker", 5673)
        assert params.credentials.password == "p@ss"

    def test_connection_refused(self, monkeypatch):
        def refuse(parameters):
            raise AMQPConnectionError("refused")

        monkeypatch.setattr(rabbitmq_mod.pika, "BlockingConnection", refuse)
        with pytest.raises(RabbitMQError, match="failed to connect to RabbitMQ"):
            _client()

    def test_channel_failure_closes_connection(self, fake_pika):
        fake_pika["channel_error"] = ChannelClosedByBroker(403, "ACCESS_REFUSED")
        with pytest.raises(RabbitMQError, match="failed to open a channel"):
            _client()
        assert _FakeConnection.instances[0].is_open is False


class TestOperations:

    def test_publish_defaults(self, fake_pika):
        client = _client()
        client.publish("tiles", "render 1/2/3")
        sent = client.channel.published[0]
        assert sent["exchange"] == ""
        assert sent["routing_key"] == "tiles"
        assert sent["body"] == b"render 1/2/3"
        assert sent["mandatory"] is False
        assert sent["properties"].content_type == "text/plain"
        assert sent["properties"].delivery_mode is None

    def test_declare_queue_defaults(self, fake_pika):
        client = _client()
        client.declare_queue("tiles")
        assert client.channel.declared == [
            {"queue": "tiles", "durable": False, "auto_delete": False, "exclusive": False}
        ]

    def test_options_override_flags(self, fake_pika):
        client = _client(options=MQOptions(durable=True, delivery_mode=2, auto_ack=False))
        client.declare_queue("jobs")
        client.publish("jobs", "x")
        assert client.channel.declared[0]["durable"] is True
        assert client.channel.published[0]["properties"].delivery_mode == 2
        list(client.consume("jobs"))
        assert client.channel.consume_kwargs["auto_ack"] is False

    def test_consume_auto_acks_by_default(self, fake_pika):
        fake_pika["messages"] = [(b"one", "text/plain"), (b"two", None)]
        client = _client()
        deliveries = list(client.consume("tiles"))
        assert client.channel.consume_kwargs == {"queue": "tiles", "auto_ack": True, "exclusive": False}
        assert [d.text() for d in deliveries] == ["one", "two"]
        assert [d.delivery_tag for d in deliveries] == [1, 2]
        assert deliveries[0].content_type == "text/plain"
        assert deliveries[0].routing_key == "tiles"

    def test_ack(self, fake_pika):
        client = _client(options=MQOptions(auto_ack=False))
        client.ack(5)
        assert client.channel.acked == [5]


class TestClose:

    def test_closes_channel_then_connection(self, fake_pika):
        client = _client()
        client.close()
        assert client.connection.log == ["channel.close", "connection.close"]

    def test_close_twice_is_safe(self, fake_pika):
        client = _client()
        client.close()
        client.close()
        assert client.connection.log == ["channel.close", "connection.close"]

    def test_context_manager_closes(self, fake_pika):
        with _client() as client:
            client.publish("tiles", "x")
        assert client.connection.is_open is False

    def test_connection_closed_even_if_channel_close_fails(self, fake_pika):
        client = _client()

        def broken():
            raise RuntimeError("boom")

        client.channel.close = broken
        with pytest.raises(RuntimeError):
            client.close()
        assert client.connection.is_open is False
