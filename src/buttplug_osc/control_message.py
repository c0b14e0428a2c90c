from dataclasses import dataclass
from typing import Any, Tuple


__doc__ = """Decoding OSC messages into control messages.

Addresses look like `/devices/<name>/<command>[/<args...>]`. Arguments given
as path segments come first, followed by the OSC message arguments."""


ADDRESS_ROOT = "devices"


class DecodeError(Exception):
    """An OSC address that is not a valid control address."""


@dataclass(frozen=True)
class ControlMessage:
    """One decoded control instruction."""

    address_token: str
    command: str
    arguments: Tuple[Any, ...] = ()


def parse_message(address: str, params=()) -> ControlMessage:
    """Build a control message from an OSC address and its arguments."""
    _, *segments = address.split("/")

    if len(segments) < 3 or segments[0] != ADDRESS_ROOT:
        raise DecodeError(f"unexpected address {address!r}")

    _, token, command, *path_arguments = segments
    if not token:
        raise DecodeError(f"empty device name in {address!r}")
    if not command:
        raise DecodeError(f"empty command in {address!r}")

    arguments = tuple(_parse_path_argument(a) for a in path_arguments if a)
    return ControlMessage(token, command, arguments + tuple(params))


def _parse_path_argument(segment: str):
    # int before float so that "1" stays usable as a motor index
    try:
        return int(segment)
    except ValueError:
        pass
    try:
        return float(segment)
    except ValueError:
        return segment
