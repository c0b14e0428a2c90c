from dataclasses import dataclass
from typing import Tuple
from urllib.parse import urlsplit

__doc__ = """Bridge configuration and endpoint parsing."""


DEFAULT_SERVER_URL = "ws://127.0.0.1:12345"
DEFAULT_LISTEN_URL = "udp://0.0.0.0:9000"


@dataclass(frozen=True)
class BridgeConfig:
    """A Frozen container for everything the bridge needs at startup."""

    server_url: str = DEFAULT_SERVER_URL
    listen_url: str = DEFAULT_LISTEN_URL
    reconnect_delay: float = 1.0
    max_reconnect_delay: float = 30.0

    @property
    def listen_address(self) -> Tuple[str, int]:
        return parse_udp_url(self.listen_url)


def parse_udp_url(url: str) -> Tuple[str, int]:
    """Parse `udp://host:port` into a (host, port) tuple.

    Raises ValueError for anything else."""
    parts = urlsplit(url)
    if parts.scheme != "udp" or not parts.hostname:
        raise ValueError(f"expected udp://host:port, got {url!r}")

    # .port raises ValueError itself when out of range
    if parts.port is None:
        raise ValueError(f"missing port in {url!r}")

    return parts.hostname, parts.port
