from __future__ import annotations

from buttplug_osc.device_registry import Device, DeviceRegistry


def _registry(*devices: Device) -> DeviceRegistry:
    registry = DeviceRegistry()
    for device in devices:
        registry.add(device)
    return registry


def test_add_sets_last_connected():
    a = Device(1, "GamepadA", 2)
    b = Device(2, "GamepadB", 2)
    registry = _registry(a, b)

    assert registry.devices() == [a, b]
    assert registry.last_connected == b


def test_add_same_name_replaces_device():
    old = Device(1, "Hush", 1)
    other = Device(2, "Lush", 1)
    new = Device(7, "Hush", 3)
    registry = _registry(old, other, new)

    assert registry.devices() == [other, new]
    assert registry.last_connected == new
    assert len(registry) == 2


def test_remove_last_connected_clears_reference():
    a = Device(1, "A", 1)
    b = Device(2, "B", 1)
    registry = _registry(a, b)

    assert registry.remove(2) == b
    assert registry.last_connected is None
    assert registry.devices() == [a]


def test_remove_other_device_keeps_last_connected():
    a = Device(1, "A", 1)
    b = Device(2, "B", 1)
    registry = _registry(a, b)

    registry.remove(1)
    assert registry.last_connected == b


def test_remove_unknown_identity_is_noop():
    registry = _registry(Device(1, "A", 1))
    assert registry.remove(42) is None
    assert len(registry) == 1


def test_clear_then_add():
    registry = _registry(Device(1, "A", 1), Device(2, "B", 1))
    registry.clear()

    assert registry.devices() == []
    assert registry.last_connected is None
    assert registry.resolve_alias("all") == []
    assert registry.resolve_alias("last") == []

    c = Device(3, "C", 1)
    registry.add(c)
    assert registry.resolve_alias("last") == [c]


def test_find_by_prefix_is_case_sensitive():
    a = Device(1, "GamepadA", 1)
    b = Device(2, "GamepadB", 1)
    registry = _registry(a, b, Device(3, "Lush", 1))

    assert registry.find_by_prefix("Gamepad") == [a, b]
    assert registry.find_by_prefix("GamepadB") == [b]
    assert registry.find_by_prefix("gamepad") == []


def test_resolve_alias_returns_none_for_names():
    registry = _registry(Device(1, "all of them", 1))
    assert registry.resolve_alias("All") is None
    assert registry.resolve_alias("all of them") is None


def test_snapshots_are_independent():
    registry = _registry(Device(1, "A", 1))
    snapshot = registry.devices()
    registry.clear()
    assert len(snapshot) == 1
