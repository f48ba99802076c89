"""Quaternion helpers on numpy arrays.

Quaternions are float64 arrays laid out (w, x, y, z); vectors are (x, y, z).
"""
from __future__ import annotations

import math

import numpy as np

QUAT_EPSILON = 1e-6
VEC_EPSILON = 1e-6


def identity() -> np.ndarray:
    return np.array([1.0, 0.0, 0.0, 0.0])


def multiply(a: np.ndarray, b: np.ndarray) -> np.ndarray:
    """Hamilton product a * b."""
    aw, ax, ay, az = a
    bw, bx, by, bz = b
    return np.array([
        aw * bw - ax * bx - ay * by - az * bz,
        aw * bx + ax * bw + ay * bz - az * by,
        aw * by - ax * bz + ay * bw + az * bx,
        aw * bz + ax * by - ay * bx + az * bw,
    ])


def conjugate(q: np.ndarray) -> np.ndarray:
    return np.array([q[0], -q[1], -q[2], -q[3]])


def normalize(q: np.ndarray) -> np.ndarray:
    """Unit quaternion; near-zero input collapses to identity."""
    n = float(np.linalg.norm(q))
    if n < QUAT_EPSILON or not math.isfinite(n):
        return identity()
    return q / n


def normalize_vector(v: np.ndarray) -> np.ndarray:
    """Unit vector; near-zero input collapses to the zero vector."""
    n = float(np.linalg.norm(v))
    if n < VEC_EPSILON:
        return np.zeros(3)
    return v / n


def rotate(q: np.ndarray, v: np.ndarray) -> np.ndarray:
    """Rotate vector v by quaternion q (q * v * q^-1)."""
    qv = np.array([0.0, v[0], v[1], v[2]])
    r = multiply(multiply(q, qv), conjugate(q))
    return r[1:]


def from_axis_angle(axis, angle_rad: float) -> np.ndarray:
    n_axis = normalize_vector(np.asarray(axis, dtype=float))
    half = angle_rad * 0.5
    s = math.sin(half)
    return normalize(np.array([math.cos(half), n_axis[0] * s, n_axis[1] * s, n_axis[2] * s]))


def integrate_body_rate(q: np.ndarray, omega: np.ndarray, dt: float) -> np.ndarray:
    """Advance q by body angular rate omega (rad/s) over dt seconds.

    Uses q_dot = 0.5 * q * (0, omega). The result is not normalized.
    """
    q_dot = multiply(q, np.array([0.0, omega[0], omega[1], omega[2]])) * 0.5
    return q + q_dot * dt


def as_tuple(q: np.ndarray):
    return (float(q[0]), float(q[1]), float(q[2]), float(q[3]))
