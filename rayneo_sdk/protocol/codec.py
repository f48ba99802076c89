"""Packet codec for the RayNeo USB protocol.

Classifies framed bytes into typed packets and encodes host commands.
Pure functions with no side effects.
"""
from __future__ import annotations

import struct
from typing import Iterable, Optional

from ..models import (
    DeviceInfo,
    EndpointSelection,
    Packet,
    ResponsePacket,
    SensorPacket,
    SensorSample,
    UNKNOWN_PACKET,
    USB_ENDPOINT_XFER_CONTROL,
    USB_ENDPOINT_XFER_INT,
    UsbDevice,
    UsbEndpoint,
)
from .constants import (
    ACCEL_OFFSET,
    CMD_MARKER,
    CMD_MIN_SIZE,
    DEVINFO_BOARD_ID_OFFSET,
    DEVINFO_SIDE_BY_SIDE_OFFSET,
    GYRO_OFFSET,
    LSENSOR_OFFSET,
    MAG_X_OFFSET,
    MAG_Y_OFFSET,
    MAG_Z_OFFSET,
    PKT_MIN_LENGTH,
    PKT_RESPONSE,
    PKT_SENSOR,
    PKT_TYPE_OFFSET,
    PSENSOR_OFFSET,
    RESPONSE_CMD_OFFSET,
    SENSOR_MIN_LENGTH,
    TEMP_OFFSET,
    TICK_OFFSET,
)

_VEC3 = struct.Struct("<3f")
_F32 = struct.Struct("<f")
_U32 = struct.Struct("<I")


def classify(raw: bytes) -> Packet:
    """Classify a complete frame into a typed packet.

    Args:
        raw: One frame as returned by PacketAssembler.next_packet()

    Returns:
        SensorPacket, ResponsePacket, or UNKNOWN_PACKET when the frame is
        too short, malformed or carries an unrecognized type tag.

    Examples:
        >>> classify(b"\\x99\\x01\\x04\\x00")
        UnknownPacket()
    """
    if len(raw) < PKT_MIN_LENGTH:
        return UNKNOWN_PACKET

    tag = raw[PKT_TYPE_OFFSET]

    if tag == PKT_SENSOR:
        sample = decode_sensor_sample(raw)
        if sample is None:
            return UNKNOWN_PACKET
        return SensorPacket(sample)

    if tag == PKT_RESPONSE:
        if len(raw) <= RESPONSE_CMD_OFFSET:
            return UNKNOWN_PACKET
        return ResponsePacket(cmd=raw[RESPONSE_CMD_OFFSET], raw=bytes(raw))

    return UNKNOWN_PACKET


def decode_sensor_sample(raw: bytes) -> Optional[SensorSample]:
    """Decode the fixed-layout sensor payload.

    The third magnetometer axis lives at MAG_Z_OFFSET, after proximity and
    light, rather than next to X and Y.

    Returns:
        SensorSample, or None if the frame is shorter than the layout
    """
    if len(raw) < SENSOR_MIN_LENGTH:
        return None

    return SensorSample(
        accel=_VEC3.unpack_from(raw, ACCEL_OFFSET),
        gyro=_VEC3.unpack_from(raw, GYRO_OFFSET),
        temperature=_F32.unpack_from(raw, TEMP_OFFSET)[0],
        magnet=(
            _F32.unpack_from(raw, MAG_X_OFFSET)[0],
            _F32.unpack_from(raw, MAG_Y_OFFSET)[0],
            _F32.unpack_from(raw, MAG_Z_OFFSET)[0],
        ),
        proximity=_F32.unpack_from(raw, PSENSOR_OFFSET)[0],
        light=_F32.unpack_from(raw, LSENSOR_OFFSET)[0],
        tick=_U32.unpack_from(raw, TICK_OFFSET)[0],
    )


def decode_device_info(raw: bytes) -> Optional[DeviceInfo]:
    """Decode the acquire-device-info response payload.

    Returns:
        DeviceInfo, or None if the frame does not reach the side-by-side flag
    """
    if len(raw) <= DEVINFO_SIDE_BY_SIDE_OFFSET:
        return None

    return DeviceInfo(
        board_id=raw[DEVINFO_BOARD_ID_OFFSET],
        side_by_side=raw[DEVINFO_SIDE_BY_SIDE_OFFSET] != 0,
    )


def encode_command(cmd: int, arg: int = 0, min_size: int = CMD_MIN_SIZE) -> bytes:
    """Build a zero-padded command frame.

    Args:
        cmd: Command id (one of the CMD_* constants)
        arg: Single-byte argument
        min_size: Requested frame size, usually the OUT endpoint's
            max packet size. Frames are never shorter than 64 bytes.

    Returns:
        Command frame bytes
    """
    packet = bytearray(max(min_size, CMD_MIN_SIZE))
    packet[0] = CMD_MARKER
    packet[1] = cmd & 0xFF
    packet[2] = arg & 0xFF
    return bytes(packet)


def select_endpoints(device: UsbDevice) -> Optional[EndpointSelection]:
    """Pick the interface and endpoints to talk to the device on.

    An interface whose IN and OUT endpoints are both interrupt endpoints is
    returned as soon as it is seen. Otherwise the first interface with any
    non-control IN/OUT pair is returned.

    Returns:
        EndpointSelection, or None if no interface has an IN/OUT pair
    """
    fallback: Optional[EndpointSelection] = None

    for interface in device.interfaces:
        in_endpoint, out_endpoint = _find_endpoint_pair(interface.endpoints)
        if in_endpoint is None or out_endpoint is None:
            continue

        selection = EndpointSelection(interface, in_endpoint, out_endpoint)
        if (in_endpoint.transfer_type == USB_ENDPOINT_XFER_INT and
                out_endpoint.transfer_type == USB_ENDPOINT_XFER_INT):
            return selection
        if fallback is None:
            fallback = selection

    return fallback


def _find_endpoint_pair(endpoints: Iterable[UsbEndpoint]):
    """First non-control IN and first non-control OUT endpoint."""
    in_endpoint: Optional[UsbEndpoint] = None
    out_endpoint: Optional[UsbEndpoint] = None

    for endpoint in endpoints:
        if endpoint.transfer_type == USB_ENDPOINT_XFER_CONTROL:
            continue
        if endpoint.is_in:
            if in_endpoint is None:
                in_endpoint = endpoint
        elif out_endpoint is None:
            out_endpoint = endpoint

    return in_endpoint, out_endpoint
