"""Sensor fusion: orientation filter and IMU mounting table."""

from .mounting import MOUNTING_ROTATIONS, MountingRotation, mounting_for_board
from .orientation import OrientationFilter, SharedOrientation

__all__ = [
    "MOUNTING_ROTATIONS",
    "MountingRotation",
    "mounting_for_board",
    "OrientationFilter",
    "SharedOrientation",
]
