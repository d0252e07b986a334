"""MQTT broadcaster for job status events."""

import time
from typing import Protocol, override
from urllib.parse import urlparse

import paho.mqtt.client as mqtt
from loguru import logger
from paho.mqtt.client import ConnectFlags, DisconnectFlags
from paho.mqtt.enums import CallbackAPIVersion
from paho.mqtt.properties import Properties
from paho.mqtt.reasoncodes import ReasonCode

DEFAULT_MQTT_PORT = 1883


class InvalidMQTTURLException(ValueError):
    """The broker URL cannot be parsed into host and port."""


class UnsupportedMQTTURLException(ValueError):
    """The broker URL uses a scheme other than ``mqtt``."""


def parse_mqtt_url(url: str) -> tuple[str, int]:
    """Split ``mqtt://host[:port]`` into host and port."""
    try:
        parsed = urlparse(url)
        port = parsed.port
    except ValueError as exc:
        raise InvalidMQTTURLException(f"Invalid MQTT URL '{url}': {exc}") from exc

    if parsed.scheme != "mqtt":
        if not parsed.scheme:
            raise InvalidMQTTURLException(f"Invalid MQTT URL '{url}': missing scheme")
        raise UnsupportedMQTTURLException(
            f"Unsupported MQTT URL scheme '{parsed.scheme}' (expected mqtt://)"
        )
    if not parsed.hostname:
        raise InvalidMQTTURLException(f"Invalid MQTT URL '{url}': missing host")

    return parsed.hostname, port or DEFAULT_MQTT_PORT


# NoOpBroadcaster must work without a URL, so the protocol does not
# require one
class BroadcasterBase(Protocol):
    connected: bool

    def connect(self) -> bool:
        return False

    def disconnect(self) -> None:
        pass

    def publish_event(self, *, topic: str, payload: str, qos: int = 1) -> bool:
        return False

    def set_will(
        self, *, topic: str, payload: str, qos: int = 1, retain: bool = True
    ) -> bool:
        return False

    def publish_retained(self, *, topic: str, payload: str, qos: int = 1) -> bool:
        return False

    def clear_retained(self, topic: str, qos: int = 1) -> bool:
        return False


class MQTTBroadcaster(BroadcasterBase):
    """Publishes job events to an MQTT v5 broker."""

    def __init__(self, url: str, connect_timeout: float = 5.0):
        self.url: str = url
        self.broker, self.port = parse_mqtt_url(url)
        self.connect_timeout: float = connect_timeout
        self.client: mqtt.Client | None = None
        self.connected: bool = False
        self._will: tuple[str, str, int, bool] | None = None

    @override
    def connect(self) -> bool:
        try:
            logger.info(f"Connecting to MQTT broker {self.broker}:{self.port}")
            self.client = mqtt.Client(
                callback_api_version=CallbackAPIVersion.VERSION2,
                protocol=mqtt.MQTTv5,
            )
            self.client.on_connect = self._on_connect
            self.client.on_disconnect = self._on_disconnect
            _ = self.client.reconnect_delay_set(min_delay=1, max_delay=30)

            # The will must be registered before CONNECT is sent
            if self._will is not None:
                topic, payload, qos, retain = self._will
                self.client.will_set(topic, payload, qos=qos, retain=retain)

            _ = self.client.loop_start()
            _ = self.client.connect(self.broker, self.port, keepalive=60, clean_start=True)

            start_time = time.time()
            while not self.connected and (time.time() - start_time) < self.connect_timeout:
                time.sleep(0.1)

            return self.connected
        except Exception as e:
            logger.warning(f"Failed to connect to MQTT broker {self.broker}:{self.port}: {e}")
            self.connected = False
            return False

    @override
    def disconnect(self) -> None:
        if self.client:
            _ = self.client.loop_stop()
            _ = self.client.disconnect()
        self.connected = False

    def _publish(self, topic: str, payload: str, qos: int, retain: bool) -> bool:
        if not self.connected or not self.client:
            return False
        try:
            result = self.client.publish(topic, payload, qos=qos, retain=retain)
            return result.rc == mqtt.MQTT_ERR_SUCCESS
        except Exception as e:
            logger.error(f"Error publishing to {topic}: {e}")
            return False

    @override
    def publish_event(self, *, topic: str, payload: str, qos: int = 1) -> bool:
        return self._publish(topic, payload, qos, retain=False)

    @override
    def set_will(
        self, *, topic: str, payload: str, qos: int = 1, retain: bool = True
    ) -> bool:
        """Register the Last Will; applied on the next connect()."""
        self._will = (topic, payload, qos, retain)
        if self.client is None:
            return True
        try:
            self.client.will_set(topic, payload, qos=qos, retain=retain)
            return True
        except Exception as e:
            logger.error(f"Error setting LWT: {e}")
            return False

    @override
    def publish_retained(self, *, topic: str, payload: str, qos: int = 1) -> bool:
        return self._publish(topic, payload, qos, retain=True)

    @override
    def clear_retained(self, topic: str, qos: int = 1) -> bool:
        """Clear a retained message by publishing an empty payload."""
        return self.publish_retained(topic=topic, payload="", qos=qos)

    def _on_connect(
        self,
        _client: mqtt.Client,
        _userdata: object,
        _flags: ConnectFlags,
        reason_code: ReasonCode,
        properties: Properties | None,
    ) -> None:
        self.connected = reason_code == 0
        if self.connected:
            logger.info("MQTT connected using v5")
        else:
            logger.warning(f"MQTT connection failed: reason={reason_code}, props={properties}")

    def _on_disconnect(
        self,
        _client: mqtt.Client,
        _userdata: object,
        _disconnect_flags: DisconnectFlags,
        reason_code: ReasonCode,
        _properties: Properties | None,
    ) -> None:
        self.connected = False
        logger.warning(f"MQTT disconnected: {reason_code}")


class NoOpBroadcaster(BroadcasterBase):
    """Used when no broker is configured; every call succeeds and does nothing."""

    def __init__(self) -> None:
        self.connected = True

    @override
    def connect(self) -> bool:
        return True

    @override
    def disconnect(self) -> None:
        pass

    @override
    def publish_event(self, *, topic: str, payload: str, qos: int = 1) -> bool:
        return True

    @override
    def set_will(
        self, *, topic: str, payload: str, qos: int = 1, retain: bool = True
    ) -> bool:
        return True

    @override
    def publish_retained(self, *, topic: str, payload: str, qos: int = 1) -> bool:
        return True

    @override
    def clear_retained(self, topic: str, qos: int = 1) -> bool:
        return True
