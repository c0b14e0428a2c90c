from __future__ import annotations

import pytest

from buttplug_osc.device_registry import Device, DeviceRegistry
from buttplug_osc.name_resolver import resolve


@pytest.fixture
def registry() -> DeviceRegistry:
    registry = DeviceRegistry()
    registry.add(Device(0, "Lush", 1))
    registry.add(Device(1, "Lush 3", 1))
    registry.add(Device(2, "Edge", 2))
    return registry


@pytest.mark.parametrize("count", [0, 1, 5])
def test_all_returns_every_device_in_order(count):
    registry = DeviceRegistry()
    devices = [Device(i, f"device {i}", 1) for i in range(count)]
    for device in devices:
        registry.add(device)

    assert resolve("all", registry) == devices


def test_last_returns_most_recent(registry):
    assert [d.display_name for d in resolve("last", registry)] == ["Edge"]


def test_last_empty_when_never_added():
    assert resolve("last", DeviceRegistry()) == []


def test_last_empty_after_removal(registry):
    registry.remove(2)
    assert resolve("last", registry) == []


def test_exact_match_included_with_longer_names(registry):
    names = [d.display_name for d in resolve("Lush", registry)]
    assert names == ["Lush", "Lush 3"]


def test_prefix_match(registry):
    assert [d.identity for d in resolve("Ed", registry)] == [2]


def test_no_match_is_empty(registry):
    assert resolve("Hush", registry) == []
    assert resolve("lush", registry) == []


def test_empty_token_matches_nothing(registry):
    assert resolve("", registry) == []


def test_gamepad_prefix_resolves_both():
    registry = DeviceRegistry()
    registry.add(Device("a", "GamepadA", 2))
    registry.add(Device("b", "GamepadB", 2))

    assert [d.identity for d in resolve("Gamepad", registry)] == ["a", "b"]
