from enum import Enum
import asyncio
import logging

from buttplug_osc.buttplug_client import (
    ButtplugClient,
    ConnectionClosed,
    DeviceAdded,
    DeviceCommandRejected,
    DeviceRemoved,
    DeviceServerError,
    ScanningFinished,
)
from buttplug_osc.command_translator import CommandIntent
from buttplug_osc.device_registry import Device, DeviceRegistry

logger = logging.getLogger(__name__)


__doc__ = """Keeping a device server session alive and mirroring its devices."""


class SessionState(Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    SCANNING = "scanning"
    LIVE = "live"
    RECONNECTING = "reconnecting"


class FixedBackoff:
    """Waits the same delay between every reconnection attempt."""

    def __init__(self, delay=1.0):
        self.delay = delay

    def next_delay(self) -> float:
        return self.delay

    def reset(self):
        pass


class ExponentialBackoff:
    """Doubles (by default) the delay after every failed attempt, up to maximum."""

    def __init__(self, initial=1.0, maximum=30.0, factor=2.0):
        self.initial = initial
        self.maximum = maximum
        self.factor = factor
        self._delay = initial

    def next_delay(self) -> float:
        delay = self._delay
        self._delay = min(self._delay * self.factor, self.maximum)
        return delay

    def reset(self):
        self._delay = self.initial


class SessionManager:
    """Manages the connection lifecycle to a device server:
    - connecting and scanning for devices
    - keeping the registry in sync with device added / removed events
    - forwarding command intents while the session is live
    - reconnecting forever after a failure

    The registry is cleared whenever the session is lost, so stale devices
    never receive commands."""

    def __init__(
        self,
        url,
        registry: DeviceRegistry,
        client_factory=ButtplugClient,
        backoff=None,
        rescan_on_remove=True,
    ):
        """Creates a new instance of SessionManager. Does not connect. Use
        SessionManager.run to enter the connection loop."""
        self.url = url
        self.registry = registry
        self.rescan_on_remove = rescan_on_remove

        self._client_factory = client_factory
        self._backoff = backoff if backoff is not None else FixedBackoff()
        self._client = None
        self._state = SessionState.DISCONNECTED
        self._ever_connected = False
        self._stop_event = None
        self._stopping = False

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def server_name(self):
        """Name reported by the device server of the current session."""
        return getattr(self._client, "server_name", None)

    async def run(self):
        """Asynchronous connection loop. Returns only after SessionManager.stop."""
        self._stop_event = asyncio.Event()
        if self._stopping:
            return

        while not self._stop_event.is_set():
            client = self._client_factory()
            self._set_state(SessionState.CONNECTING)

            try:
                await client.connect(self.url)
            except DeviceServerError as e:
                logger.warning("Connecting to %s failed: %s", self.url, e)
                await self._wait_before_retry()
                continue
            except Exception:
                logger.exception("Unexpected error connecting to %s", self.url)
                await client.disconnect()
                await self._wait_before_retry()
                continue

            if self._stop_event.is_set():
                await client.disconnect()
                break

            self._backoff.reset()
            self._ever_connected = True
            self._client = client

            try:
                await self._run_session(client)
            except DeviceServerError as e:
                logger.warning("Session with %s failed: %s", self.url, e)
            except Exception:
                logger.exception("Unexpected error in session with %s", self.url)
            finally:
                await self._drop_session(client)

            if not self._stop_event.is_set():
                await self._wait_before_retry()

        self._set_state(SessionState.DISCONNECTED)

    async def stop(self):
        """Stop all devices, close the session and end SessionManager.run."""
        self._stopping = True
        if self._stop_event is not None:
            self._stop_event.set()

        if (client := self._client) is not None:
            try:
                await client.stop_all_devices()
            except DeviceServerError as e:
                logger.debug("Could not stop devices: %s", e)
            await client.disconnect()

    async def send(self, intent: CommandIntent) -> bool:
        """Forward intent to the device server. Returns whether it was sent.

        Does nothing unless the session is live. A transport failure drops the
        session and starts reconnecting."""
        client = self._client
        if self._state is not SessionState.LIVE or client is None:
            logger.debug("Session is %s, dropping %s", self._state.value, intent)
            return False

        try:
            await client.send(intent.identity, intent.kind, intent.payload)
        except DeviceCommandRejected as e:
            logger.warning("Device server rejected %s: %s", intent.kind.value, e)
            return False
        except DeviceServerError as e:
            logger.warning("Sending to %s failed, reconnecting: %s", self.url, e)
            await self._drop_session(client)
            return False

        return True

    # IMPLEMENTATION DETAILS

    async def _run_session(self, client):
        self._set_state(SessionState.SCANNING)

        # Consume events while the scan request is in flight
        event_task = asyncio.get_running_loop().create_task(
            self._handle_events(client)
        )
        try:
            await client.start_scanning()
        except Exception:
            event_task.cancel()
            raise

        if self._client is client:
            self._set_state(SessionState.LIVE)
        await event_task

    async def _handle_events(self, client):
        async for event in client.events():
            # Events still queued by a dropped session must not refill the registry
            if self._client is not client:
                continue

            if isinstance(event, DeviceAdded):
                self._on_device_added(event)
            elif isinstance(event, DeviceRemoved):
                await self._on_device_removed(client, event)
            elif isinstance(event, ScanningFinished):
                logger.info("Scanning finished")
            elif isinstance(event, ConnectionClosed):
                logger.info("Connection to %s closed: %s", self.url, event.reason)

    def _on_device_added(self, event: DeviceAdded):
        self.registry.add(
            Device(event.identity, event.display_name, event.motor_count)
        )
        logger.info(
            "Device %s connected (%d motors)", event.display_name, event.motor_count
        )

    async def _on_device_removed(self, client, event: DeviceRemoved):
        if (device := self.registry.remove(event.identity)) is not None:
            logger.info("Device %s removed", device.display_name)

        if not self.rescan_on_remove:
            return

        # Restart the scan so the device is picked up again when it returns
        try:
            await client.stop_scanning()
        except DeviceCommandRejected:
            pass
        try:
            await client.start_scanning()
        except DeviceCommandRejected as e:
            logger.warning("Could not restart scanning: %s", e)

    async def _drop_session(self, client):
        if self._client is client:
            self._client = None
            self.registry.clear()
            if not self._stopping:
                self._set_state(SessionState.RECONNECTING)
        await client.disconnect()

    async def _wait_before_retry(self):
        delay = self._backoff.next_delay()
        logger.info("Retrying %s in %.1f s", self.url, delay)
        try:
            await asyncio.wait_for(self._stop_event.wait(), delay)
        except asyncio.TimeoutError:
            pass

    def _set_state(self, state: SessionState):
        if state is self._state:
            return
        self._state = state

        if state is SessionState.CONNECTING and self._ever_connected:
            logger.info("Reconnecting to %s", self.url)
        elif state is SessionState.CONNECTING:
            logger.info("Connecting to %s", self.url)
        elif state in (SessionState.SCANNING, SessionState.LIVE):
            logger.info(
                "Session %s with %s (%s)",
                state.value,
                self.server_name or "device server",
                self.url,
            )
        else:
            logger.info("Session %s (%s)", state.value, self.url)
