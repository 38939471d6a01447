"""Main entry point for the M-NET sniffer."""

import argparse
import logging
import signal
import sys
import time
from pathlib import Path

from .bridge import AsciiLineCollector
from .config import Config, load_config, validate_unit
from .display import BRIDGE_INDENT, render
from .monitor import LineMonitor
from .mqtt_handler import MqttHandler
from .serial_handler import HexReplay, ReplayFinished, SerialDisconnected, SerialHandler

logger = logging.getLogger(__name__)

TRAFFIC_LOGGER = "mnet_sniffer.traffic"

# Sleep between poll cycles when no line delivered a byte
POLL_INTERVAL = 0.001  # seconds, about one character time at 9600 baud


def main() -> None:
    """Entry point for mnet-sniffer command."""
    parser = argparse.ArgumentParser(
        description="Passive sniffer and decoder for Mitsubishi M-NET traffic"
    )
    parser.add_argument(
        "-c",
        "--config",
        type=Path,
        default=Path("config.yaml"),
        help="Path to configuration file (default: config.yaml)",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable debug logging",
    )
    parser.add_argument(
        "-U",
        "--unit",
        type=int,
        help="Only show frames to or from this unit address",
    )
    parser.add_argument(
        "--replay",
        type=Path,
        help="Decode a hex text capture instead of the configured M-NET ports",
    )
    args = parser.parse_args()

    # Setup logging
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        if args.replay and not args.config.exists():
            config = Config()
        else:
            config = load_config(args.config)
    except FileNotFoundError:
        logger.error("Configuration file not found: %s", args.config)
        sys.exit(1)
    except ValueError as e:
        logger.error("Configuration error: %s", e)
        sys.exit(1)

    if args.unit is not None:
        if not validate_unit(args.unit):
            logger.error("Unit must be 0-255, got %d", args.unit)
            sys.exit(1)
        config.filter_unit = args.unit

    if config.filter_unit is not None:
        logger.info("Filtering for unit %d", config.filter_unit)

    run(config, replay=args.replay)


def setup_traffic_log(log_file: Path | None) -> logging.Logger:
    """Send decoded traffic lines to stdout and, if given, an append-mode log file."""
    traffic = logging.getLogger(TRAFFIC_LOGGER)
    for handler in list(traffic.handlers):
        traffic.removeHandler(handler)
        handler.close()

    formatter = logging.Formatter("%(message)s")
    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    if log_file is not None:
        handlers.append(logging.FileHandler(log_file, mode="a", encoding="utf-8"))
    for handler in handlers:
        handler.setFormatter(formatter)
        traffic.addHandler(handler)

    traffic.setLevel(logging.INFO)
    traffic.propagate = False
    return traffic


def open_ports(ports: list[SerialHandler]) -> list[SerialHandler]:
    """Open each port once; ports that fail are retried from the poll loop."""
    opened = []
    for port in ports:
        if port.try_reconnect():
            opened.append(port)
        else:
            logger.error("Failed to open %s, will keep retrying", port.name)
    return opened


def poll_source(source) -> list[int | None]:
    """Poll one line, reconnecting it on schedule if it is down."""
    if not source.connected:
        if source.try_reconnect():
            logger.info("%s reconnected", source.name)
        return []
    try:
        return source.poll()
    except SerialDisconnected:
        logger.warning("%s connection lost, will attempt reconnection", source.name)
        source.close()
        return []


def run(config: Config, replay: Path | None = None) -> None:
    """Run the sniffer with loaded configuration."""
    traffic = setup_traffic_log(config.log_file)

    if replay is not None:
        sources = [HexReplay(replay)]
    else:
        sources = [SerialHandler(line) for line in config.lines]
    monitors = {
        source.name: LineMonitor(source.name, config.filter_unit) for source in sources
    }

    bridge = SerialHandler(config.bridge) if config.bridge else None
    collector = AsciiLineCollector()
    indent = BRIDGE_INDENT if bridge else 0

    mqtt_handler = MqttHandler(config.mqtt) if config.mqtt else None

    # Stop polling on SIGINT/SIGTERM; partial frames are dropped
    shutdown_requested = False

    def handle_signal(signum, frame):
        nonlocal shutdown_requested
        logger.info("Shutdown requested")
        shutdown_requested = True

    previous_handlers = {
        signum: signal.signal(signum, handle_signal)
        for signum in (signal.SIGINT, signal.SIGTERM)
    }

    ports = [s for s in sources if isinstance(s, SerialHandler)]
    if bridge:
        ports.append(bridge)

    try:
        opened = open_ports(ports)
        if replay is None and not opened:
            logger.error("No serial port could be opened")
            return

        if mqtt_handler:
            try:
                mqtt_handler.connect()
            except OSError as e:
                logger.error("MQTT broker unavailable, decoding without it: %s", e)
                mqtt_handler = None

        names = [s.name for s in sources] + ([bridge.name] if bridge else [])
        logger.info("Sniffer running on %s", ", ".join(names))

        # Main loop: poll every line once per cycle
        while not shutdown_requested:
            received = False
            for source in sources:
                for byte in poll_source(source):
                    received = received or byte is not None
                    for record in monitors[source.name].feed(byte):
                        traffic.info(render(record, indent))
                        if mqtt_handler:
                            mqtt_handler.publish_record(source.name, record)

            if bridge:
                for byte in poll_source(bridge):
                    received = received or byte is not None
                    line = collector.feed(byte)
                    if line is not None:
                        traffic.info(line)

            if not received:
                time.sleep(POLL_INTERVAL)

    except ReplayFinished as e:
        logger.info("End of capture %s", e)
    finally:
        if mqtt_handler:
            mqtt_handler.disconnect()
        for port in ports:
            port.close()
        for signum, previous in previous_handlers.items():
            if previous is not None:
                signal.signal(signum, previous)
        logger.info("Sniffer stopped")


if __name__ == "__main__":
    main()
