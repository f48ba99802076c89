"""Device layer for RayNeo glasses.

This module provides:
- Device discovery by vendor/product id (find_single_device, find_devices)
- Platform lifecycle events (DeviceEvent, DeviceEventSource)
- Consumer-thread callback delivery (CallbackDispatcher)
- The streaming session with handshake and I/O thread (DeviceSession)
"""

from .dispatcher import CallbackDispatcher
from .events import CallbackEventSource, DeviceEvent, DeviceEventKind, DeviceEventSource
from .finder import find_devices, find_single_device, is_matching_device
from .session import DEFAULT_TIMINGS, DeviceSession, SessionTimings

__all__ = [
    # Session
    'DeviceSession',
    'SessionTimings',
    'DEFAULT_TIMINGS',

    # Delivery
    'CallbackDispatcher',

    # Events
    'CallbackEventSource',
    'DeviceEvent',
    'DeviceEventKind',
    'DeviceEventSource',

    # Finder
    'find_devices',
    'find_single_device',
    'is_matching_device',
]
