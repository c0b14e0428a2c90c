from dataclasses import dataclass
from enum import Enum
from numbers import Real
from typing import Any, Dict, Hashable, List, Optional, Sequence
import logging

from buttplug_osc.control_message import ControlMessage
from buttplug_osc.device_registry import Device, DeviceRegistry
from buttplug_osc.name_resolver import resolve

logger = logging.getLogger(__name__)


__doc__ = """Translating control messages into validated, device bound command intents.

Translation never raises. Anything that cannot be honoured (unknown command,
wrong arity, out of range value, unresolved name) yields no intent for the
affected device, and the rest of the fan out proceeds."""


class CommandKind(Enum):
    VIBRATE = "vibrate"
    VIBRATE_MAP = "vibrate_map"
    STOP = "stop"


@dataclass(frozen=True)
class CommandIntent:
    """A command ready to be sent to one device.

    payload is a speed for VIBRATE, a {motor index: speed} dict for
    VIBRATE_MAP and None for STOP."""

    identity: Hashable
    kind: CommandKind
    payload: Any = None


def translate(message: ControlMessage, registry: DeviceRegistry) -> List[CommandIntent]:
    """Resolve the message target and build one intent per capable device."""
    try:
        kind = CommandKind(message.command)
    except ValueError:
        logger.debug("Unknown command %r", message.command)
        return []

    devices = resolve(message.address_token, registry)
    if not devices:
        return []

    return _TRANSLATORS[kind](message.arguments, devices)


def _translate_vibrate(arguments: Sequence, devices: List[Device]):
    if len(arguments) != 1:
        logger.debug("vibrate takes 1 argument, got %d", len(arguments))
        return []

    speed = _as_speed(arguments[0])
    if speed is None:
        logger.debug("Invalid vibrate speed %r", arguments[0])
        return []

    intents = []
    for device in devices:
        if device.motor_count == 0:
            logger.debug("%s has no motors, skipping", device.display_name)
            continue
        intents.append(CommandIntent(device.identity, CommandKind.VIBRATE, speed))
    return intents


def _translate_vibrate_map(arguments: Sequence, devices: List[Device]):
    if not arguments or len(arguments) % 2:
        logger.debug(
            "vibrate_map takes (motor, speed) pairs, got %d arguments", len(arguments)
        )
        return []

    speeds = _motor_speeds(arguments)
    if not speeds:
        return []

    intents = []
    for device in devices:
        device_speeds = {
            motor: speed
            for motor, speed in speeds.items()
            if motor < device.motor_count
        }
        if not device_speeds:
            logger.debug(
                "%s has %d motors, skipping", device.display_name, device.motor_count
            )
            continue
        intents.append(
            CommandIntent(device.identity, CommandKind.VIBRATE_MAP, device_speeds)
        )
    return intents


def _translate_stop(arguments: Sequence, devices: List[Device]):
    if arguments:
        logger.debug("stop takes no arguments, got %d", len(arguments))
        return []

    return [CommandIntent(device.identity, CommandKind.STOP) for device in devices]


_TRANSLATORS = {
    CommandKind.VIBRATE: _translate_vibrate,
    CommandKind.VIBRATE_MAP: _translate_vibrate_map,
    CommandKind.STOP: _translate_stop,
}


def _motor_speeds(arguments: Sequence) -> Dict[int, float]:
    """Valid (motor, speed) pairs of a flat argument list. Invalid pairs are
    dropped; a repeated motor index keeps its last speed."""
    speeds = {}
    for motor, value in zip(arguments[::2], arguments[1::2]):
        speed = _as_speed(value)
        if not _is_motor_index(motor) or speed is None:
            logger.debug("Dropping invalid motor/speed pair (%r, %r)", motor, value)
            continue
        speeds[motor] = speed
    return speeds


def _as_speed(value) -> Optional[float]:
    # bool is a Real, but True is not a speed
    if isinstance(value, bool) or not isinstance(value, Real):
        return None

    speed = float(value)
    # NaN fails the comparison too
    if not 0.0 <= speed <= 1.0:
        return None
    return speed


def _is_motor_index(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and value >= 0
