"""IMU mounting rotations per board.

Some boards mount the IMU tilted relative to the glasses frame. Samples are
rotated by the board's mounting rotation before fusion. Boards missing from
the table are assumed to be aligned.
"""
from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Dict, Optional

import numpy as np

from ..protocol.constants import BOARD_AIR_4_PRO
from . import quaternion


@dataclass(frozen=True)
class MountingRotation:
    """Fixed rotation from IMU frame to device frame.

    Attributes:
        axis: Rotation axis in the IMU frame
        angle_deg: Rotation angle in degrees
    """
    axis: tuple = (1.0, 0.0, 0.0)
    angle_deg: float = 0.0

    def as_quaternion(self) -> np.ndarray:
        return quaternion.from_axis_angle(self.axis, math.radians(self.angle_deg))


IDENTITY_MOUNTING = MountingRotation()

MOUNTING_ROTATIONS: Dict[int, MountingRotation] = {
    BOARD_AIR_4_PRO: MountingRotation(axis=(1.0, 0.0, 0.0), angle_deg=-20.0),
}


def mounting_for_board(board_id: Optional[int]) -> MountingRotation:
    """Look up the mounting rotation for a board id."""
    if board_id is None:
        return IDENTITY_MOUNTING
    return MOUNTING_ROTATIONS.get(board_id, IDENTITY_MOUNTING)
