from .mqtt_impl import (
    BroadcasterBase,
    InvalidMQTTURLException,
    MQTTBroadcaster,
    NoOpBroadcaster,
    UnsupportedMQTTURLException,
    parse_mqtt_url,
)
from .mqtt_instance import DISPATCHER_STATUS_TOPIC, get_broadcaster, shutdown_broadcaster

__all__ = [
    "BroadcasterBase",
    "DISPATCHER_STATUS_TOPIC",
    "InvalidMQTTURLException",
    "MQTTBroadcaster",
    "NoOpBroadcaster",
    "UnsupportedMQTTURLException",
    "get_broadcaster",
    "parse_mqtt_url",
    "shutdown_broadcaster",
]
