from typing import TypedDict

from loguru import logger

from .mqtt_impl import MQTTBroadcaster, NoOpBroadcaster, parse_mqtt_url

DISPATCHER_STATUS_TOPIC = "admin_jobs/dispatcher/status"


class BroadcasterConfig(TypedDict):
    url: str | None
    will_topic: str | None


_broadcaster: MQTTBroadcaster | NoOpBroadcaster | None = None
_broadcaster_config: BroadcasterConfig | None = None


def get_broadcaster(
    url: str | None = None,
    *,
    will_topic: str | None = None,
    will_payload: str = "offline",
) -> MQTTBroadcaster | NoOpBroadcaster:
    """Get or create the process-wide broadcaster.

    Args:
        url: ``mqtt://host:port``; None selects the NoOpBroadcaster.
        will_topic: Retained Last Will topic registered before connecting.
        will_payload: Last Will payload.

    Raises:
        InvalidMQTTURLException, UnsupportedMQTTURLException: Bad ``url``.
        RuntimeError: The broker could not be reached.
    """
    global _broadcaster, _broadcaster_config

    desired: BroadcasterConfig = {"url": url, "will_topic": will_topic}
    if _broadcaster is not None and _broadcaster_config == desired:
        return _broadcaster

    shutdown_broadcaster()

    if url is None:
        broadcaster: MQTTBroadcaster | NoOpBroadcaster = NoOpBroadcaster()
    else:
        _ = parse_mqtt_url(url)
        broadcaster = MQTTBroadcaster(url)
        if will_topic:
            _ = broadcaster.set_will(topic=will_topic, payload=will_payload, retain=True)

    if not broadcaster.connect():
        raise RuntimeError(
            f"Failed to connect to MQTT broker at {url}. "
            + "Check that the broker is running and the URL is correct."
        )

    logger.info(f"Broadcaster ready: {type(broadcaster).__name__}")
    _broadcaster = broadcaster
    _broadcaster_config = desired
    return broadcaster


def shutdown_broadcaster() -> None:
    """Disconnect and forget the process-wide broadcaster."""
    global _broadcaster, _broadcaster_config
    if _broadcaster is not None:
        _broadcaster.disconnect()
    _broadcaster = None
    _broadcaster_config = None
