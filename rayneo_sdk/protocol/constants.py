"""RayNeo USB protocol constants.

Frame layout (device -> host):
    [0]  sync byte (PKT_MAGIC)
    [1]  packet type tag (PKT_SENSOR / PKT_RESPONSE)
    [2]  total frame length in bytes
    ...  type-specific payload, multi-byte fields little-endian

Command layout (host -> device):
    [0]  CMD_MARKER, [1] command id, [2] argument, zero padded to >= 64 bytes
"""

VENDOR_ID = 0x1BBB
PRODUCT_ID = 0xAF50

BOARD_AIR_4_PRO = 0x3A

# Framing
PKT_MAGIC = 0x99
PKT_SENSOR = 0x65
PKT_RESPONSE = 0xC8
PKT_TYPE_OFFSET = 1
PKT_LENGTH_OFFSET = 2
PKT_MIN_LENGTH = 4

# Commands
CMD_MARKER = 0x66
CMD_ACQUIRE_DEVICE_INFO = 0
CMD_OPEN_IMU = 1
CMD_CLOSE_IMU = 2
CMD_SWITCH_TO_3D = 6
CMD_SWITCH_TO_2D = 7
CMD_MIN_SIZE = 64

COMMAND_NAMES = {
    CMD_ACQUIRE_DEVICE_INFO: "acquire device info",
    CMD_OPEN_IMU: "open IMU",
    CMD_CLOSE_IMU: "close IMU",
    CMD_SWITCH_TO_3D: "switch to 3D",
    CMD_SWITCH_TO_2D: "switch to 2D",
}

RESPONSE_CMD_OFFSET = 8

# Sensor payload
ACCEL_OFFSET = 4
GYRO_OFFSET = 16
TEMP_OFFSET = 28
MAG_X_OFFSET = 32
MAG_Y_OFFSET = 36
TICK_OFFSET = 40
PSENSOR_OFFSET = 44
LSENSOR_OFFSET = 48
MAG_Z_OFFSET = 52
SENSOR_MIN_LENGTH = MAG_Z_OFFSET + 4

# Device info payload
DEVINFO_BOARD_ID_OFFSET = 21
DEVINFO_SIDE_BY_SIDE_OFFSET = 43

ASSEMBLER_CAPACITY = 4096
