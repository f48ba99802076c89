"""Protocol layer for the RayNeo USB link: framing, decoding and commands."""

from .assembler import PacketAssembler
from .codec import (
    classify,
    decode_device_info,
    decode_sensor_sample,
    encode_command,
    select_endpoints,
)
from .constants import (
    BOARD_AIR_4_PRO,
    CMD_ACQUIRE_DEVICE_INFO,
    CMD_CLOSE_IMU,
    CMD_OPEN_IMU,
    CMD_SWITCH_TO_2D,
    CMD_SWITCH_TO_3D,
    PRODUCT_ID,
    VENDOR_ID,
)

__all__ = [
    "PacketAssembler",
    "classify",
    "decode_device_info",
    "decode_sensor_sample",
    "encode_command",
    "select_endpoints",
    "BOARD_AIR_4_PRO",
    "CMD_ACQUIRE_DEVICE_INFO",
    "CMD_CLOSE_IMU",
    "CMD_OPEN_IMU",
    "CMD_SWITCH_TO_2D",
    "CMD_SWITCH_TO_3D",
    "PRODUCT_ID",
    "VENDOR_ID",
]
