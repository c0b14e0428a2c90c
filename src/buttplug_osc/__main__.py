import argparse
import asyncio
import contextlib
import logging
import signal

from buttplug_osc.bridge import OscBridge
from buttplug_osc.config import (
    DEFAULT_LISTEN_URL,
    DEFAULT_SERVER_URL,
    BridgeConfig,
    parse_udp_url,
)

logger = logging.getLogger(__name__)


def _udp_url(value):
    try:
        parse_udp_url(value)
    except ValueError as e:
        raise argparse.ArgumentTypeError(str(e)) from e
    return value


def parse_args(argv=None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        prog="buttplug-osc",
        description="Control Buttplug devices with OSC messages",
    )
    parser.add_argument("--intiface-websocket", default=DEFAULT_SERVER_URL,
                        help=f"Device server websocket URL (default: {DEFAULT_SERVER_URL})")
    parser.add_argument("--osc-listen", type=_udp_url, default=DEFAULT_LISTEN_URL,
                        help=f"Address to receive OSC on (default: {DEFAULT_LISTEN_URL})")
    parser.add_argument("--reconnect-delay", type=float, default=1.0,
                        help="Seconds to wait before reconnecting (default: 1.0)")
    parser.add_argument("--max-reconnect-delay", type=float, default=30.0,
                        help="Upper bound of the growing reconnect delay (default: 30.0)")
    parser.add_argument("--verbose", action="store_true",
                        help="Show debug output")
    return parser.parse_args(argv)


def config_from_args(args: argparse.Namespace) -> BridgeConfig:
    return BridgeConfig(
        server_url=args.intiface_websocket,
        listen_url=args.osc_listen,
        reconnect_delay=args.reconnect_delay,
        max_reconnect_delay=args.max_reconnect_delay,
    )


async def run_bridge(bridge: OscBridge):
    """Run the bridge with signal handling."""
    loop = asyncio.get_running_loop()

    def request_stop():
        logger.info("Stopping...")
        bridge.stop()

    with contextlib.suppress(NotImplementedError):
        loop.add_signal_handler(signal.SIGINT, request_stop)
        loop.add_signal_handler(signal.SIGTERM, request_stop)

    await bridge.run()


def main(argv=None) -> int:
    """Entry point."""
    args = parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(levelname)s: %(message)s",
        force=True,
    )

    bridge = OscBridge(config_from_args(args))

    try:
        asyncio.run(run_bridge(bridge))
    except OSError as e:
        logger.error("Cannot listen on %s: %s", args.osc_listen, e)
        return 1
    except KeyboardInterrupt:
        logger.info("Interrupted")

    return 0


if __name__ == "__main__":
    raise SystemExit(main())
