from dataclasses import dataclass
from typing import Dict, Hashable, List, Optional
import threading


__doc__ = """Thread-safe registry of the devices currently known to the device server."""


ALL_ALIAS = "all"
LAST_ALIAS = "last"


@dataclass(frozen=True)
class Device:
    """A Frozen container for one connected haptic device."""

    identity: Hashable
    display_name: str
    motor_count: int = 0


class DeviceRegistry:
    """Holds the live set of devices and the most recently connected one.

    Devices are keyed by display name: adding a device whose name is already
    present replaces the old entry, since it is the same device reconnecting
    with a new handle.

    Every operation takes the registry lock, so a reader never observes a
    half-applied add or remove. Reads return snapshots, never the internal
    containers."""

    def __init__(self):
        self._lock = threading.Lock()
        self._devices: Dict[str, Device] = {}
        self._last_connected: Optional[Device] = None

    def add(self, device: Device):
        """Insert device and make it the last connected one."""
        with self._lock:
            self._discard_identity(device.identity)
            # Re-insert at the end so iteration order follows connection order
            self._devices.pop(device.display_name, None)
            self._devices[device.display_name] = device
            self._last_connected = device

    def remove(self, identity) -> Optional[Device]:
        """Remove the device with the given identity. Returns the removed
        device, or None if nothing had that identity."""
        with self._lock:
            return self._discard_identity(identity)

    def clear(self):
        """Forget every device, e.g. after the session was lost."""
        with self._lock:
            self._devices.clear()
            self._last_connected = None

    def find_by_prefix(self, token: str) -> List[Device]:
        """Devices whose display name starts with token (case sensitive),
        in connection order."""
        with self._lock:
            return [
                device
                for name, device in self._devices.items()
                if name.startswith(token)
            ]

    def resolve_alias(self, token: str) -> Optional[List[Device]]:
        """Expand the `all` and `last` aliases. Returns None if token is not
        an alias."""
        with self._lock:
            if token == ALL_ALIAS:
                return list(self._devices.values())
            if token == LAST_ALIAS:
                return [self._last_connected] if self._last_connected else []
        return None

    @property
    def last_connected(self) -> Optional[Device]:
        """Most recently added device, if it is still connected."""
        with self._lock:
            return self._last_connected

    def devices(self) -> List[Device]:
        """Snapshot of all devices in connection order."""
        with self._lock:
            return list(self._devices.values())

    def __len__(self):
        with self._lock:
            return len(self._devices)

    def _discard_identity(self, identity):
        for name, device in self._devices.items():
            if device.identity == identity:
                del self._devices[name]
                if self._last_connected == device:
                    self._last_connected = None
                return device
        return None
