"""Tests for the MQTT publisher."""

import json
from unittest.mock import MagicMock, patch

import pytest

from mnet_sniffer.config import MqttConfig
from mnet_sniffer.formats import Variant
from mnet_sniffer.monitor import DecodedFrame, DisplayBreak
from mnet_sniffer.mqtt_handler import MqttHandler
from mnet_sniffer.protocol import BadChecksum, Frame


@pytest.fixture
def mock_client():
    with patch("mnet_sniffer.mqtt_handler.mqtt.Client") as mock_cls:
        client = MagicMock()
        client.publish.return_value.rc = 0
        mock_cls.return_value = client
        yield client


def connected_handler(config=None):
    handler = MqttHandler(config or MqttConfig(broker="localhost"))
    handler._handle_connect(handler._client, None, None, 0, None)
    return handler


def test_credentials_applied(mock_client):
    MqttHandler(MqttConfig(broker="localhost", username="u", password="p"))
    mock_client.username_pw_set.assert_called_once_with("u", "p")


def test_connect_starts_loop(mock_client):
    handler = MqttHandler(MqttConfig(broker="mqtt.local", port=1884))
    handler.connect()
    mock_client.connect.assert_called_once_with("mqtt.local", 1884)
    mock_client.loop_start.assert_called_once()


def test_publish_decoded_frame(mock_client, setpoint_request):
    handler = connected_handler(MqttConfig(broker="localhost", root_topic="hvac"))
    record = DecodedFrame(
        line="upstairs",
        frame=Frame(setpoint_request),
        variant=Variant.GET_SETPOINT,
        description="get setpoint temp",
        elapsed=0.5,
        reply=False,
    )
    handler.publish_record("upstairs", record)

    topic, payload = mock_client.publish.call_args.args
    assert topic == "hvac/upstairs/frames"
    body = json.loads(payload)
    assert body["variant"] == "get setpoint temp"
    assert body["source"] == 1
    assert body["destination"] == 2
    assert body["checksum_valid"] is True


def test_publish_diagnostic(mock_client):
    handler = connected_handler()
    handler.publish_record("mnet", BadChecksum(b"\xbd\x01"))

    topic, payload = mock_client.publish.call_args.args
    assert topic == "mnet/mnet/diagnostics"
    assert json.loads(payload) == {"line": "mnet", "kind": "BadChecksum", "raw": "BD 01"}


def test_display_breaks_not_published(mock_client):
    handler = connected_handler()
    handler.publish_record("mnet", DisplayBreak("mnet", 1.0, b"\xbd"))
    mock_client.publish.assert_not_called()


def test_not_connected_drops_records(mock_client):
    handler = MqttHandler(MqttConfig(broker="localhost"))
    handler.publish_record("mnet", BadChecksum(b"\xbd"))
    mock_client.publish.assert_not_called()


def test_disconnect_clears_state(mock_client):
    handler = connected_handler()
    assert handler.connected
    handler._handle_disconnect(mock_client, None, None, 7, None)
    assert not handler.connected
