import asyncio
import logging

from pythonosc.dispatcher import Dispatcher
from pythonosc.osc_packet import OscPacket, ParseError
from pythonosc.osc_server import AsyncIOOSCUDPServer

from buttplug_osc.command_translator import translate
from buttplug_osc.control_message import ADDRESS_ROOT, DecodeError, parse_message
from buttplug_osc.device_registry import DeviceRegistry

logger = logging.getLogger(__name__)


__doc__ = """Receiving OSC control datagrams and dispatching the resulting command intents."""


class ControlDispatcher(Dispatcher):
    """Dispatcher that logs datagrams it cannot decode.

    Bundle time tags are not waited for; every message is handled on arrival."""

    def __init__(self):
        super().__init__(strict_timing=False)

    def call_handlers_for_packet(self, data, client_address):
        try:
            OscPacket(data)
        except (ParseError, ValueError) as e:
            # ValueError covers undecodable strings inside an otherwise valid packet
            logger.warning("Dropping malformed datagram from %s: %s", client_address, e)
            return []
        return super().call_handlers_for_packet(data, client_address)


class ControlListener:
    """Binds one UDP socket and turns every OSC message into command intents.

    Intents are handed to dispatch, an async callable taking one intent
    (usually SessionManager.send). The listener never waits for the device
    server session; if it is not live, dispatch drops the intents."""

    def __init__(self, address, registry: DeviceRegistry, dispatch):
        """Creates a new instance of ControlListener. Does not bind the socket.

        address is a (host, port) tuple."""
        self.address = address
        self.registry = registry
        self._dispatch = dispatch
        self._transport = None
        self._tasks = set()

        self.dispatcher = ControlDispatcher()
        self.dispatcher.map(f"/{ADDRESS_ROOT}/*", self._on_message)
        self.dispatcher.set_default_handler(self._on_unhandled)

    async def start(self):
        """Bind the socket. Raises OSError if the address cannot be bound."""
        server = AsyncIOOSCUDPServer(
            self.address, self.dispatcher, asyncio.get_running_loop()
        )
        self._transport, _ = await server.create_serve_endpoint()
        host, port = self.bound_address
        logger.info("Listening for OSC on udp://%s:%d", host, port)

    async def stop(self):
        """Close the socket and let in-flight commands finish."""
        if self._transport is not None:
            self._transport.close()
            self._transport = None

        results = await asyncio.gather(*self._tasks, return_exceptions=True)
        for result in results:
            if isinstance(result, Exception):
                logger.warning("Command failed during shutdown: %s", result)

    @property
    def bound_address(self):
        """Actual (host, port) of the socket, or None if not started."""
        if self._transport is None:
            return None
        return self._transport.get_extra_info("sockname")[:2]

    async def handle_message(self, address, *params):
        """Decode one OSC message and dispatch every intent it translates to."""
        try:
            message = parse_message(address, params)
        except DecodeError as e:
            logger.warning("Dropping malformed message to %s: %s", address, e)
            return

        logger.debug("Received %s", message)
        intents = translate(message, self.registry)

        # Every intent is independent; one failing must not block the others
        await asyncio.gather(*(self._dispatch(intent) for intent in intents))

    def _on_message(self, address, *params):
        task = asyncio.get_running_loop().create_task(
            self.handle_message(address, *params)
        )
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    def _on_unhandled(self, address, *params):
        logger.debug("Ignoring OSC message to %s", address)
