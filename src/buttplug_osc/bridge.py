import asyncio
import logging

import asyncio_atexit

from buttplug_osc.buttplug_client import ButtplugClient
from buttplug_osc.config import BridgeConfig
from buttplug_osc.control_listener import ControlListener
from buttplug_osc.device_registry import DeviceRegistry
from buttplug_osc.session_manager import (
    ExponentialBackoff,
    FixedBackoff,
    SessionManager,
)

logger = logging.getLogger(__name__)


__doc__ = """Running the OSC listener and the device server session side by side."""


class OscBridge:
    """Receives OSC control messages and forwards them to the devices of a
    Buttplug device server.

    The OSC socket stays open while the device server connection is being
    (re)established; messages received meanwhile are dropped."""

    def __init__(self, config: BridgeConfig = BridgeConfig(), client_factory=ButtplugClient):
        """Creates a new instance of OscBridge. Does not bind or connect. Use
        OscBridge.start to enter the event loop."""
        self.config = config
        self.registry = DeviceRegistry()

        if config.max_reconnect_delay > config.reconnect_delay:
            backoff = ExponentialBackoff(
                config.reconnect_delay, config.max_reconnect_delay
            )
        else:
            backoff = FixedBackoff(config.reconnect_delay)

        self.session = SessionManager(
            config.server_url, self.registry, client_factory, backoff
        )
        self.listener = ControlListener(
            config.listen_address, self.registry, self.session.send
        )
        self._stop_event = None

    def start(self):
        """Blocking event loop that runs the bridge.

        More handy than OscBridge.run when only this event loop is needed."""
        try:
            asyncio.run(self.run())
        except KeyboardInterrupt:
            logger.debug("interrupted")

    def stop(self):
        """Stop the bridge, closing the OSC socket and the device server session."""
        if self._stop_event is not None:
            self._stop_event.set()

    async def run(self):
        """Asynchronous blocking event loop.

        Raises OSError if the OSC socket cannot be bound. Makes it possible to
        run multiple async event loops with e.g. asyncio.gather."""
        self._stop_event = asyncio.Event()
        asyncio_atexit.register(self.stop)

        await self.listener.start()
        session_task = asyncio.create_task(self.session.run())

        try:
            await self._stop_event.wait()
        finally:
            try:
                await self.listener.stop()
            finally:
                await self.session.stop()
                await session_task
