from typing import List
import logging

from buttplug_osc.device_registry import Device, DeviceRegistry

logger = logging.getLogger(__name__)


__doc__ = """Resolving the device name token of a control address to devices.

Resolution order:
- `all`: every connected device
- `last`: the most recently connected device, if it is still connected
- anything else: every device whose display name starts with the token

Matching is case sensitive. An empty result is not an error; the message is
simply dropped by the caller."""


def resolve(token: str, registry: DeviceRegistry) -> List[Device]:
    """Return the devices addressed by token, possibly none."""
    if not token:
        return []

    devices = registry.resolve_alias(token)
    if devices is None:
        devices = registry.find_by_prefix(token)

    if not devices:
        logger.debug("No device matches %r", token)
    return devices
