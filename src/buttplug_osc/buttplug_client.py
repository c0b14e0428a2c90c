from dataclasses import dataclass
from typing import Dict, Hashable, Tuple
import asyncio
import logging

import buttplug
from buttplug import (
    ButtplugDeviceError,
    ButtplugError,
    ButtplugMessageError,
    DeviceOutputCommand,
    OutputType,
)

from buttplug_osc.command_translator import CommandKind

logger = logging.getLogger(__name__)


__doc__ = """Device server session on top of the buttplug client library.

Turns the library's device callbacks into a queue of events that the session
manager consumes."""


class DeviceServerError(Exception):
    """The device server could not be reached, or the connection broke."""


class DeviceCommandRejected(DeviceServerError):
    """The device server refused a request."""


@dataclass(frozen=True)
class DeviceAdded:
    identity: Hashable
    display_name: str
    motor_count: int


@dataclass(frozen=True)
class DeviceRemoved:
    identity: Hashable


@dataclass(frozen=True)
class ScanningFinished:
    pass


@dataclass(frozen=True)
class ConnectionClosed:
    reason: str = ""


class ButtplugClient:
    """One session with a Buttplug device server.

    A client is used for a single connection. After it has been closed,
    create a new one to reconnect.

    Events are queued from the moment connect is called, so devices that the
    server already knows about are reported as DeviceAdded right after the
    handshake. Pings required by the server are sent by the library."""

    def __init__(self, client_name="buttplug-osc", library_factory=buttplug.ButtplugClient):
        """Creates a new client. Does not connect.

        library_factory is called with client_name and must return an object
        with the buttplug.ButtplugClient interface."""
        self.client_name = client_name

        self._client = library_factory(client_name)
        self._client.on_device_added = self._on_device_added
        self._client.on_device_removed = self._on_device_removed
        self._client.on_scanning_finished = self._on_scanning_finished
        self._client.on_server_disconnect = self._on_server_disconnect

        self._events: asyncio.Queue = asyncio.Queue()
        self._vibrators: Dict[Hashable, Tuple] = {}
        self._closed = False

    @property
    def server_name(self):
        return self._client.server_name

    async def connect(self, url):
        """Connect and perform the protocol handshake.

        Raises DeviceServerError if the server cannot be reached, does not
        complete the handshake or sends data that cannot be understood."""
        await self._call(f"connecting to {url}", self._client.connect(url))

    async def disconnect(self):
        """Close the connection. Safe to call more than once."""
        if self._closed:
            return
        try:
            await self._client.disconnect()
        except ButtplugError as e:
            logger.debug("Error while disconnecting: %s", e)
        self._on_closed("disconnected")

    async def start_scanning(self):
        await self._call("StartScanning", self._client.start_scanning())

    async def stop_scanning(self):
        await self._call("StopScanning", self._client.stop_scanning())

    async def stop_all_devices(self):
        await self._call("StopCmd", self._client.stop_all_devices())

    async def send(self, identity, kind: CommandKind, payload=None):
        """Send one device command.

        kind VIBRATE drives every vibrator at payload speed, VIBRATE_MAP
        drives the motors in the payload dict, STOP stops the device."""
        if self._closed:
            raise DeviceServerError("not connected")

        device = self._client.devices.get(identity)
        if device is None:
            raise DeviceCommandRejected(f"unknown device {identity!r}")

        if kind is CommandKind.STOP:
            await self._call("stop", device.stop())
            return

        if kind is CommandKind.VIBRATE:
            command = DeviceOutputCommand(OutputType.VIBRATE, float(payload))
            await self._call("vibrate", device.run_output(command))
            return

        features = self._vibrators.get(identity, ())
        commands = [
            features[motor].run_output(
                DeviceOutputCommand(OutputType.VIBRATE, float(speed))
            )
            for motor, speed in sorted(payload.items())
            if motor < len(features)
        ]
        await self._call("vibrate", asyncio.gather(*commands))

    async def events(self):
        """Asynchronous iterator over device events. Ends after the
        ConnectionClosed event."""
        while True:
            event = await self._events.get()
            yield event
            if isinstance(event, ConnectionClosed):
                return

    # IMPLEMENTATION DETAILS

    async def _call(self, action, awaitable):
        try:
            return await awaitable
        except (ButtplugDeviceError, ButtplugMessageError) as e:
            raise DeviceCommandRejected(f"{action} rejected: {e}") from e
        except (ButtplugError, asyncio.TimeoutError, ValueError) as e:
            # Timeouts also cover replies the library could not parse
            raise DeviceServerError(f"{action} failed: {str(e) or type(e).__name__}") from e

    def _on_device_added(self, device):
        features = tuple(
            sorted(
                device.get_features_with_output(OutputType.VIBRATE),
                key=lambda feature: feature.index,
            )
        )
        self._vibrators[device.index] = features
        self._events.put_nowait(
            DeviceAdded(device.index, device.display_name or device.name, len(features))
        )

    def _on_device_removed(self, device):
        self._vibrators.pop(device.index, None)
        self._events.put_nowait(DeviceRemoved(device.index))

    def _on_scanning_finished(self):
        self._events.put_nowait(ScanningFinished())

    def _on_server_disconnect(self):
        self._on_closed("connection closed by server")

    def _on_closed(self, reason):
        if self._closed:
            return
        self._closed = True
        self._vibrators.clear()
        self._events.put_nowait(ConnectionClosed(reason))
