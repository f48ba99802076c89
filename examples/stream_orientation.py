#!/usr/bin/env python3
"""
Interactive Orientation Stream Script.

This script demonstrates the DeviceSession API.
Run it with the glasses plugged in to watch the handshake and head pose.
"""

import math
import sys
import time
import logging
from pathlib import Path

# Add SDK to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from rayneo_sdk.device import CallbackDispatcher, DeviceSession
from rayneo_sdk.models import SessionState
from rayneo_sdk.transport import PyUsbHost

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(levelname)s - %(message)s'
)


def to_euler_deg(q):
    """(w, x, y, z) -> (yaw, pitch, roll) in degrees, Y up."""
    w, x, y, z = q
    yaw = math.atan2(2 * (w * y + x * z), 1 - 2 * (y * y + x * x))
    pitch = math.asin(max(-1.0, min(1.0, 2 * (w * x - y * z))))
    roll = math.atan2(2 * (w * z + x * y), 1 - 2 * (x * x + z * z))
    return math.degrees(yaw), math.degrees(pitch), math.degrees(roll)


def main():
    latest = {}

    def on_status(message):
        print(f"\n[status] {message}")

    def on_orientation(q):
        latest["q"] = q

    # Callbacks run on this thread, from process_pending()
    dispatcher = CallbackDispatcher()
    session = DeviceSession(
        PyUsbHost(),
        on_status=on_status,
        on_orientation=on_orientation,
        dispatcher=dispatcher,
    )

    print("Starting session...")
    session.start()

    try:
        print("\nStreaming for 30 seconds (Ctrl+C to stop)...")
        deadline = time.time() + 30
        while time.time() < deadline:
            dispatcher.process_pending()

            if session.state is SessionState.IDLE and not session.is_running:
                print("\nSession is idle, giving up.")
                break

            if "q" in latest:
                yaw, pitch, roll = to_euler_deg(latest["q"])
                print(f"\rYaw: {yaw:+7.1f}  Pitch: {pitch:+7.1f}  Roll: {roll:+7.1f}", end="")
                sys.stdout.flush()

            time.sleep(0.02)

        if session.state is SessionState.STREAMING:
            print("\n\nSwitching display to 3D...")
            session.switch_to_3d()
            time.sleep(0.5)
            print("Switching display back to 2D...")
            session.switch_to_2d()
            time.sleep(0.5)

    except KeyboardInterrupt:
        print("\nInterrupted by user.")
    finally:
        print("\nStopping...")
        session.stop()
        dispatcher.process_pending()
        print("Done.")


if __name__ == "__main__":
    main()
