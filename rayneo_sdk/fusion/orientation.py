"""Complementary orientation filter for RayNeo IMU samples.

Integrates gyroscope rate into a quaternion, pulls the estimate toward the
accelerometer's "up" to cancel tilt drift, and learns gyro bias while the
head is still. One update() call per sensor sample.
"""
from __future__ import annotations

import math
import threading
import time
from typing import Callable, Optional

import numpy as np

from ..models import IDENTITY_QUATERNION, Quaternion, SensorSample
from . import quaternion
from .mounting import MountingRotation, mounting_for_board

WORLD_UP = np.array([0.0, 1.0, 0.0])
ACCEL_GAIN = 1.5
GRAVITY_MPS2 = 9.81
STATIONARY_ACCEL_TOL = 1.25       # m/s^2
STATIONARY_GYRO_RAD_PER_SEC = 0.18
GYRO_BIAS_UPDATE_HZ = 0.5
ACCEL_MIN_NORM = 1e-3

TICK_SECONDS = 1e-4               # device tick is 100us
DEFAULT_DT = 0.01
MIN_DT = 0.001
MAX_DT = 0.1

DEG_TO_RAD = math.pi / 180.0


class OrientationFilter:
    """Accelerometer/gyroscope complementary filter.

    State is owned by a single thread (the session's I/O thread).
    """

    def __init__(
        self,
        board_id: Optional[int] = None,
        *,
        mounting: Optional[MountingRotation] = None,
        accel_gain: float = ACCEL_GAIN,
        clock: Callable[[], float] = time.monotonic,
    ):
        """Initialize filter.

        Args:
            board_id: Board identifier used to look up the IMU mounting rotation
            mounting: Explicit mounting rotation, overrides board_id
            accel_gain: Tilt correction gain; 0 disables accelerometer correction
            clock: Monotonic clock in seconds, used when device ticks stall
        """
        self._mounting = mounting or mounting_for_board(board_id)
        self._imu_rotation = self._mounting.as_quaternion()
        self._accel_gain = accel_gain
        self._clock = clock

        self._q = quaternion.identity()
        self._gyro_bias = np.zeros(3)
        self._last_tick: Optional[int] = None
        self._last_time: Optional[float] = None

    @property
    def mounting(self) -> MountingRotation:
        return self._mounting

    @property
    def gyro_bias(self) -> np.ndarray:
        """Current gyro bias estimate in rad/s (copy)."""
        return self._gyro_bias.copy()

    @property
    def orientation(self) -> Quaternion:
        return quaternion.as_tuple(self._q)

    def reset(self) -> None:
        """Return to identity orientation with zero bias."""
        self._q = quaternion.identity()
        self._gyro_bias = np.zeros(3)
        self._last_tick = None
        self._last_time = None

    def update(self, sample: SensorSample) -> Quaternion:
        """Fuse one sample.

        Args:
            sample: Decoded sensor sample

        Returns:
            Unit quaternion (w, x, y, z)
        """
        accel = quaternion.rotate(self._imu_rotation, np.asarray(sample.accel, dtype=float))
        gyro = quaternion.rotate(
            self._imu_rotation, np.asarray(sample.gyro, dtype=float) * DEG_TO_RAD
        )

        dt = self._delta_time(sample.tick)

        accel_norm = float(np.linalg.norm(accel))
        stationary = (
            abs(accel_norm - GRAVITY_MPS2) < STATIONARY_ACCEL_TOL
            and float(np.linalg.norm(gyro)) < STATIONARY_GYRO_RAD_PER_SEC
        )
        if stationary:
            alpha = min(1.0, dt * GYRO_BIAS_UPDATE_HZ)
            self._gyro_bias = self._gyro_bias * (1.0 - alpha) + gyro * alpha
        omega = gyro - self._gyro_bias

        if accel_norm > ACCEL_MIN_NORM:
            measured_up = accel / accel_norm
            predicted_up = quaternion.normalize_vector(
                quaternion.rotate(quaternion.conjugate(self._q), WORLD_UP)
            )
            omega = omega + np.cross(predicted_up, measured_up) * self._accel_gain

        self._q = quaternion.normalize(quaternion.integrate_body_rate(self._q, omega, dt))
        return quaternion.as_tuple(self._q)

    def _delta_time(self, tick: int) -> float:
        """Seconds since the previous sample, clamped to [MIN_DT, MAX_DT]."""
        now = self._clock()
        dt = DEFAULT_DT
        if self._last_tick is not None and tick > self._last_tick:
            dt = (tick - self._last_tick) * TICK_SECONDS
        elif self._last_time is not None and now > self._last_time:
            dt = now - self._last_time

        if dt < MIN_DT or dt > MAX_DT:
            dt = DEFAULT_DT

        self._last_tick = tick
        self._last_time = now
        return dt


class SharedOrientation:
    """Latest orientation, readable from any thread.

    The writer replaces the whole quaternion under the lock so readers never
    see a half-written value.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._quaternion: Quaternion = IDENTITY_QUATERNION

    def set(self, q: Quaternion) -> None:
        with self._lock:
            self._quaternion = (q[0], q[1], q[2], q[3])

    def get(self) -> Quaternion:
        with self._lock:
            return self._quaternion

    def reset(self) -> None:
        self.set(IDENTITY_QUATERNION)
