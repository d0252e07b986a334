"""Unit tests for the MQTT broadcaster.

The paho client is replaced with a mock for most tests. The live test at
the end requires a broker on localhost:1883 and is skipped otherwise.
"""

import json
import socket
import time
from unittest.mock import MagicMock
from uuid import uuid4

import paho.mqtt.client as mqtt
import pytest

from admin_job_tools.utils.mqtt import (
    DISPATCHER_STATUS_TOPIC,
    InvalidMQTTURLException,
    MQTTBroadcaster,
    NoOpBroadcaster,
    UnsupportedMQTTURLException,
    get_broadcaster,
    parse_mqtt_url,
    shutdown_broadcaster,
)
from admin_job_tools.utils.mqtt import mqtt_impl


# ============================================================================
# Helper Functions
# ============================================================================


def is_mqtt_running(host="localhost", port=1883, timeout=2):
    """Check if an MQTT broker is reachable on host:port."""
    try:
        sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        sock.settimeout(timeout)
        result = sock.connect_ex((host, port))
        sock.close()
        return result == 0
    except OSError:
        return False


# ============================================================================
# Fixtures
# ============================================================================


@pytest.fixture(autouse=True)
def reset_broadcaster():
    shutdown_broadcaster()
    yield
    shutdown_broadcaster()


@pytest.fixture
def fake_client(monkeypatch):
    """A paho client mock that accepts the connection immediately."""
    client = MagicMock()
    client.publish.return_value = MagicMock(rc=mqtt.MQTT_ERR_SUCCESS)

    def connect(*_args, **_kwargs):
        client.on_connect(client, None, None, 0, None)
        return mqtt.MQTT_ERR_SUCCESS

    client.connect.side_effect = connect
    monkeypatch.setattr(mqtt_impl.mqtt, "Client", MagicMock(return_value=client))
    return client


# ============================================================================
# URL parsing
# ============================================================================


def test_parse_mqtt_url():
    assert parse_mqtt_url("mqtt://broker.local:1884") == ("broker.local", 1884)
    assert parse_mqtt_url("mqtt://localhost") == ("localhost", 1883)


@pytest.mark.parametrize("url", ["//localhost:1883", "mqtt://", "mqtt://host:notaport"])
def test_parse_invalid_mqtt_url(url):
    with pytest.raises(InvalidMQTTURLException):
        _ = parse_mqtt_url(url)


def test_parse_unsupported_scheme():
    with pytest.raises(UnsupportedMQTTURLException):
        _ = parse_mqtt_url("http://localhost:1883")


# ============================================================================
# NoOpBroadcaster
# ============================================================================


def test_noop_broadcaster_accepts_everything():
    broadcaster = NoOpBroadcaster()

    assert broadcaster.connect() is True
    assert broadcaster.publish_event(topic="t", payload="{}") is True
    assert broadcaster.set_will(topic="t", payload="offline") is True
    assert broadcaster.publish_retained(topic="t", payload="online") is True
    assert broadcaster.clear_retained("t") is True
    broadcaster.disconnect()


# ============================================================================
# MQTTBroadcaster (mocked client)
# ============================================================================


def test_will_is_registered_before_connect(fake_client):
    broadcaster = MQTTBroadcaster("mqtt://broker:1883", connect_timeout=1)
    _ = broadcaster.set_will(topic=DISPATCHER_STATUS_TOPIC, payload="offline")

    assert broadcaster.connect() is True

    fake_client.will_set.assert_called_once_with(
        DISPATCHER_STATUS_TOPIC, "offline", qos=1, retain=True
    )
    calls = [c[0] for c in fake_client.method_calls]
    assert calls.index("will_set") < calls.index("connect")


def test_publish_event_and_retained(fake_client):
    broadcaster = MQTTBroadcaster("mqtt://broker:1883", connect_timeout=1)
    _ = broadcaster.connect()

    assert broadcaster.publish_event(topic="jobs/1", payload='{"status": "running"}') is True
    fake_client.publish.assert_called_with("jobs/1", '{"status": "running"}', qos=1, retain=False)

    assert broadcaster.clear_retained("jobs/1") is True
    fake_client.publish.assert_called_with("jobs/1", "", qos=1, retain=True)


def test_publish_without_connection_fails(fake_client):
    broadcaster = MQTTBroadcaster("mqtt://broker:1883", connect_timeout=1)

    assert broadcaster.publish_event(topic="jobs/1", payload="{}") is False
    fake_client.publish.assert_not_called()


def test_connect_failure_returns_false(monkeypatch):
    client = MagicMock()
    client.connect.side_effect = ConnectionRefusedError("refused")
    monkeypatch.setattr(mqtt_impl.mqtt, "Client", MagicMock(return_value=client))

    broadcaster = MQTTBroadcaster("mqtt://broker:1883", connect_timeout=0.1)

    assert broadcaster.connect() is False
    assert broadcaster.connected is False


def test_disconnect_callback_clears_connected(fake_client):
    broadcaster = MQTTBroadcaster("mqtt://broker:1883", connect_timeout=1)
    _ = broadcaster.connect()

    fake_client.on_disconnect(fake_client, None, None, 0, None)

    assert broadcaster.connected is False


# ============================================================================
# get_broadcaster singleton
# ============================================================================


def test_get_broadcaster_without_url_is_noop():
    first = get_broadcaster()

    assert isinstance(first, NoOpBroadcaster)
    assert get_broadcaster() is first


def test_get_broadcaster_reuses_instance_for_same_config(fake_client):
    first = get_broadcaster("mqtt://broker:1883", will_topic=DISPATCHER_STATUS_TOPIC)

    assert isinstance(first, MQTTBroadcaster)
    assert get_broadcaster("mqtt://broker:1883", will_topic=DISPATCHER_STATUS_TOPIC) is first
    assert get_broadcaster("mqtt://broker:1883") is not first


def test_get_broadcaster_rejects_bad_url():
    with pytest.raises(UnsupportedMQTTURLException):
        _ = get_broadcaster("amqp://broker:5672")


def test_get_broadcaster_raises_when_broker_unreachable(monkeypatch):
    monkeypatch.setattr(MQTTBroadcaster, "connect", lambda self: False)

    with pytest.raises(RuntimeError):
        _ = get_broadcaster("mqtt://broker:1883")


# ============================================================================
# Live broker
# ============================================================================


def test_live_broker_receives_job_event():
    if not is_mqtt_running():
        pytest.skip("MQTT broker not running on localhost:1883")

    topic = f"admin_jobs/test/{uuid4()}"
    received: list[dict[str, str]] = []

    subscriber = mqtt.Client(
        callback_api_version=mqtt_impl.CallbackAPIVersion.VERSION2, protocol=mqtt.MQTTv5
    )
    subscriber.on_message = lambda _c, _u, msg: received.append(json.loads(msg.payload))
    _ = subscriber.connect("localhost", 1883)
    _ = subscriber.subscribe(topic, qos=1)
    _ = subscriber.loop_start()

    broadcaster = MQTTBroadcaster("mqtt://localhost:1883")
    try:
        assert broadcaster.connect()
        time.sleep(0.2)
        assert broadcaster.publish_event(topic=topic, payload=json.dumps({"status": "running"}))

        deadline = time.time() + 3
        while not received and time.time() < deadline:
            time.sleep(0.05)
        assert received == [{"status": "running"}]
    finally:
        broadcaster.disconnect()
        _ = subscriber.loop_stop()
        _ = subscriber.disconnect()
