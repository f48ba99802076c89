"""RayNeo SDK - USB device link and head orientation for RayNeo AR glasses."""

from .device import (
    CallbackDispatcher,
    CallbackEventSource,
    DeviceEvent,
    DeviceEventKind,
    DeviceSession,
    SessionTimings,
)
from .errors import RayNeoError
from .fusion import OrientationFilter
from .models import (
    DeviceInfo,
    EndpointSelection,
    Packet,
    ResponsePacket,
    SensorPacket,
    SensorSample,
    SessionState,
    UnknownPacket,
    UsbDevice,
    UsbEndpoint,
    UsbInterface,
)
from .protocol import PacketAssembler

__all__ = [
    "CallbackDispatcher",
    "CallbackEventSource",
    "DeviceEvent",
    "DeviceEventKind",
    "DeviceSession",
    "SessionTimings",
    "RayNeoError",
    "OrientationFilter",
    "DeviceInfo",
    "EndpointSelection",
    "Packet",
    "ResponsePacket",
    "SensorPacket",
    "SensorSample",
    "SessionState",
    "UnknownPacket",
    "UsbDevice",
    "UsbEndpoint",
    "UsbInterface",
    "PacketAssembler",
]
