"""MQTT publisher for decoded M-NET traffic."""

import json
import logging

import paho.mqtt.client as mqtt

from .config import MqttConfig
from .monitor import DecodedFrame, DisplayBreak, Record

logger = logging.getLogger(__name__)

# Reconnection settings
RECONNECT_DELAY_MIN = 1  # seconds
RECONNECT_DELAY_MAX = 120  # seconds


class MqttHandler:
    """Publishes decoded frames and diagnostics; never subscribes."""

    def __init__(self, config: MqttConfig, client_id: str = "mnet-sniffer") -> None:
        self._config = config
        self._connected = False

        self._client = mqtt.Client(mqtt.CallbackAPIVersion.VERSION2, client_id=client_id)
        self._client.on_connect = self._handle_connect
        self._client.on_disconnect = self._handle_disconnect

        # Enable automatic reconnection with exponential backoff
        self._client.reconnect_delay_set(RECONNECT_DELAY_MIN, RECONNECT_DELAY_MAX)

        if config.username:
            self._client.username_pw_set(config.username, config.password)

    @property
    def connected(self) -> bool:
        """Return True if currently connected to broker."""
        return self._connected

    def topic(self, line: str, kind: str) -> str:
        return f"{self._config.root_topic}/{line}/{kind}"

    def connect(self) -> None:
        """Connect to MQTT broker and start network loop."""
        logger.info(
            "Connecting to MQTT broker %s:%d",
            self._config.broker,
            self._config.port,
        )
        self._client.connect(self._config.broker, self._config.port)
        self._client.loop_start()

    def disconnect(self) -> None:
        """Stop network loop and disconnect from broker."""
        self._client.loop_stop()
        self._client.disconnect()
        logger.info("Disconnected from MQTT broker")

    def publish_record(self, line: str, record: Record) -> None:
        """Publish a monitor record as JSON; display breaks are not published."""
        if isinstance(record, DisplayBreak):
            return
        if not self._connected:
            logger.debug("Cannot publish: not connected to MQTT broker")
            return

        if isinstance(record, DecodedFrame):
            topic = self.topic(line, "frames")
            payload = record.to_dict()
        else:
            topic = self.topic(line, "diagnostics")
            payload = {
                "line": line,
                "kind": type(record).__name__,
                "raw": record.raw.hex(" ").upper(),
            }

        info = self._client.publish(topic, json.dumps(payload))
        if info.rc != mqtt.MQTT_ERR_SUCCESS:
            logger.warning("Publish to %s failed: %s", topic, mqtt.error_string(info.rc))
            return
        logger.debug("Published %s to %s", payload.get("variant", payload.get("kind")), topic)

    def _handle_connect(
        self,
        client: mqtt.Client,
        userdata: object,
        flags: mqtt.ConnectFlags,
        reason_code: mqtt.ReasonCode,
        properties: mqtt.Properties | None,
    ) -> None:
        if reason_code == 0:
            self._connected = True
            logger.info("Connected to MQTT broker")
        else:
            self._connected = False
            logger.error("MQTT connection failed: %s", reason_code)

    def _handle_disconnect(
        self,
        client: mqtt.Client,
        userdata: object,
        disconnect_flags: mqtt.DisconnectFlags,
        reason_code: mqtt.ReasonCode,
        properties: mqtt.Properties | None,
    ) -> None:
        self._connected = False
        if reason_code == 0:
            logger.info("Disconnected from MQTT broker (clean)")
        else:
            logger.warning(
                "Disconnected from MQTT broker: %s (will reconnect)",
                reason_code,
            )
