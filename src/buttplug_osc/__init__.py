from buttplug_osc.bridge import OscBridge
from buttplug_osc.config import BridgeConfig

__version__ = "0.1.0"

__doc__ = """Controls Buttplug compatible haptic devices with OSC messages

Listens for OSC messages like /devices/<name>/vibrate 0.5 and forwards them
to the devices of a Buttplug device server, such as Intiface Central.

The device name may be a prefix of the device's name, `last` for the most
recently connected device, or `all`."""
