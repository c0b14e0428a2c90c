import logging

from buttplug_osc import BridgeConfig, OscBridge

# Get helpful log info
logging.basicConfig(level=logging.INFO)

bridge = OscBridge(
    BridgeConfig(
        server_url="ws://127.0.0.1:12345",
        listen_url="udp://127.0.0.1:9000",
    )
)
bridge.start()
