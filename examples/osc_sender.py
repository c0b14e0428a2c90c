# Sends a few control messages to a running bridge.
# Start the bridge first, e.g. with examples/basic_bridge.py

import time

from pythonosc.udp_client import SimpleUDPClient

ip = "127.0.0.1"
port = 9000

osc_client = SimpleUDPClient(ip, port)

# Every device at half speed
osc_client.send_message("/devices/all/vibrate", 0.5)
time.sleep(1)

# First motor of the last connected device at full speed, second one off
osc_client.send_message("/devices/last/vibrate_map", [0, 1.0, 1, 0.0])
time.sleep(1)

# Arguments can also be part of the address
osc_client.send_message("/devices/all/vibrate/0.2", [])
time.sleep(1)

osc_client.send_message("/devices/all/stop", [])
