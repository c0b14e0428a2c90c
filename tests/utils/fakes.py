from __future__ import annotations

import asyncio

from buttplug import ButtplugDevice, ButtplugDeviceError, ErrorCode
from buttplug._messages import DeviceInfo, Error, Ok

from buttplug_osc.buttplug_client import ConnectionClosed


async def eventually(predicate, timeout: float = 1.0) -> None:
    """Yield to the event loop until predicate() is true or timeout expires."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        assert loop.time() < deadline, "condition not met in time"
        await asyncio.sleep(0.001)


class FakeClient:
    """In-memory stand-in for ButtplugClient."""

    server_name = "Fake Intiface"

    def __init__(self, connect_error=None, send_error=None, scan_error=None):
        self.connect_error = connect_error
        self.send_error = send_error
        self.scan_error = scan_error
        self.url = None
        self.connected = False
        self.sent = []
        self.scans = 0
        self.stopped_scans = 0
        self.stopped_all = False
        self._events = asyncio.Queue()

    async def connect(self, url):
        if self.connect_error is not None:
            raise self.connect_error
        self.url = url
        self.connected = True

    async def start_scanning(self):
        if self.scan_error is not None:
            raise self.scan_error
        self.scans += 1

    async def stop_scanning(self):
        self.stopped_scans += 1

    async def stop_all_devices(self):
        self.stopped_all = True

    async def send(self, identity, kind, payload=None):
        if self.send_error is not None:
            raise self.send_error
        self.sent.append((identity, kind, payload))

    async def disconnect(self):
        if self.connected:
            self.connected = False
            self.emit(ConnectionClosed("disconnected"))

    def emit(self, event):
        self._events.put_nowait(event)

    async def events(self):
        while True:
            event = await self._events.get()
            yield event
            if isinstance(event, ConnectionClosed):
                return


class ClientFactory:
    """Hands out the given clients in order, then fresh FakeClients."""

    def __init__(self, *clients: FakeClient):
        self._clients = list(clients)
        self.created: list[FakeClient] = []

    def __call__(self) -> FakeClient:
        client = self._clients.pop(0) if self._clients else FakeClient()
        self.created.append(client)
        return client


def device_info(index: int, name: str, vibrators: int = 1) -> dict:
    """DeviceList entry as sent by a Buttplug server."""
    # A non-vibrating feature must not count as a motor
    features = {"0": {"FeatureIndex": 0, "Output": {"Rotate": {"Value": [0, 10]}}}}
    for feature_index in range(1, vibrators + 1):
        features[str(feature_index)] = {
            "FeatureIndex": feature_index,
            "Output": {"Vibrate": {"Value": [0, 20]}},
        }
    return {"DeviceIndex": index, "DeviceName": name, "DeviceFeatures": features}


class FakeButtplug:
    """Stand-in for buttplug.ButtplugClient.

    Devices are real buttplug.ButtplugDevice objects; the messages they send
    are recorded and answered with Ok, or with a device Error if
    command_error is set."""

    def __init__(self, name, devices=(), connect_error=None, command_error=None):
        self.name = name
        self.server_name = None
        self.devices = {}
        self.connect_error = connect_error
        self.command_error = command_error
        self.calls: list[str] = []
        self.messages = []
        self.on_device_added = None
        self.on_device_removed = None
        self.on_scanning_finished = None
        self.on_server_disconnect = None
        self._initial_devices = list(devices)

    async def connect(self, url):
        self.calls.append("connect")
        if self.connect_error is not None:
            raise self.connect_error
        self.server_name = "Fake Intiface"
        for info in self._initial_devices:
            self.add_device(info)

    async def disconnect(self):
        self.calls.append("disconnect")
        self.devices.clear()

    async def start_scanning(self):
        self.calls.append("start_scanning")

    async def stop_scanning(self):
        self.calls.append("stop_scanning")

    async def stop_all_devices(self):
        self.calls.append("stop_all_devices")
        if self.command_error is not None:
            raise ButtplugDeviceError(self.command_error)

    def add_device(self, info: dict):
        device = ButtplugDevice(self, DeviceInfo.model_validate(info))
        self.devices[device.index] = device
        self.on_device_added(device)

    def remove_device(self, index: int):
        self.on_device_removed(self.devices.pop(index))

    def finish_scanning(self):
        self.on_scanning_finished()

    def drop_connection(self):
        self.devices.clear()
        self.on_server_disconnect()

    async def _send_device_message(self, message):
        self.messages.append(message)
        if self.command_error is not None:
            return Error(
                id=message.id,
                error_message=self.command_error,
                error_code=ErrorCode.DEVICE,
            )
        return Ok(id=message.id)
