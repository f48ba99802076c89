"""Immutable data models for the RayNeo device link.

All models are frozen dataclasses so they can be handed between the I/O
thread and consumer threads without copying. These models are the contract
between the codec, the orientation filter and the device session.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional, Tuple, Union

Vector3 = Tuple[float, float, float]

# USB descriptor values (USB 2.0, table 9-13)
USB_DIR_IN = 0x80
USB_ENDPOINT_DIR_MASK = 0x80

USB_ENDPOINT_XFER_CONTROL = 0
USB_ENDPOINT_XFER_BULK = 2
USB_ENDPOINT_XFER_INT = 3


@dataclass(frozen=True)
class SensorSample:
    """One decoded IMU sample.

    Attributes:
        accel: Accelerometer (x, y, z) in m/s^2
        gyro: Gyroscope (x, y, z) in deg/s
        temperature: IMU temperature in degrees Celsius
        magnet: Magnetometer (x, y, z), raw device units
        proximity: Proximity sensor reading
        light: Ambient light sensor reading
        tick: Device tick counter in 100us units (unsigned 32-bit, wraps)
    """
    accel: Vector3
    gyro: Vector3
    temperature: float
    magnet: Vector3
    proximity: float
    light: float
    tick: int


@dataclass(frozen=True)
class DeviceInfo:
    """Device information returned by the acquire-device-info handshake.

    Attributes:
        board_id: Hardware board identifier
        side_by_side: Whether the display reports side-by-side (3D) mode
    """
    board_id: int
    side_by_side: bool


# Packet variants

@dataclass(frozen=True)
class SensorPacket:
    """Frame carrying a sensor sample."""
    sample: SensorSample


@dataclass(frozen=True)
class ResponsePacket:
    """Frame answering a command.

    Attributes:
        cmd: Command id the device is responding to
        raw: Complete frame bytes, for payload-specific decoding
    """
    cmd: int
    raw: bytes


@dataclass(frozen=True)
class UnknownPacket:
    """Frame that could not be classified or decoded."""
    pass


UNKNOWN_PACKET = UnknownPacket()

Packet = Union[SensorPacket, ResponsePacket, UnknownPacket]


# USB descriptor snapshots

@dataclass(frozen=True)
class UsbEndpoint:
    """Snapshot of a USB endpoint descriptor.

    Attributes:
        address: bEndpointAddress (direction bit included)
        transfer_type: One of the USB_ENDPOINT_XFER_* values
        max_packet_size: wMaxPacketSize
    """
    address: int
    transfer_type: int
    max_packet_size: int = 64

    @property
    def direction(self) -> int:
        return self.address & USB_ENDPOINT_DIR_MASK

    @property
    def is_in(self) -> bool:
        return self.direction == USB_DIR_IN


@dataclass(frozen=True)
class UsbInterface:
    """Snapshot of a USB interface with its endpoints."""
    number: int
    endpoints: Tuple[UsbEndpoint, ...] = ()


@dataclass(frozen=True)
class UsbDevice:
    """Snapshot of an attached USB device.

    Attributes:
        device_id: Host-unique identifier (stable while attached)
        vendor_id: idVendor
        product_id: idProduct
        interfaces: Interfaces of the active configuration
        handle: Backend-specific device object (e.g. a pyusb Device)
    """
    device_id: int
    vendor_id: int
    product_id: int
    interfaces: Tuple[UsbInterface, ...] = ()
    handle: Any = field(default=None, compare=False, repr=False)


@dataclass(frozen=True)
class EndpointSelection:
    """Interface and IN/OUT endpoint pair chosen for a session."""
    interface: UsbInterface
    in_endpoint: UsbEndpoint
    out_endpoint: UsbEndpoint


class SessionState(Enum):
    """Lifecycle state of a DeviceSession."""
    IDLE = "idle"
    AWAITING_PERMISSION = "awaiting_permission"
    OPENING = "opening"
    HANDSHAKING = "handshaking"
    STREAMING = "streaming"
    STOPPING = "stopping"


Quaternion = Tuple[float, float, float, float]
IDENTITY_QUATERNION: Quaternion = (1.0, 0.0, 0.0, 0.0)


def format_device(device: Optional[UsbDevice]) -> str:
    """Short human-readable label for logs."""
    if device is None:
        return "<none>"
    return f"{device.vendor_id:04x}:{device.product_id:04x} (id={device.device_id})"
