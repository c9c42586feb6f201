"""
coords.py
=========

Conversion from Sith engine space to the target space.

Sith: right-handed, Z up. Euler rotations are (pitch, yaw, roll) in degrees
about X, Z and Y respectively.

Target: left-handed, Y up (X right, Z forward).

Positions swap Y and Z. Rotations are negated (the swap flips handedness)
and recomposed as ``R = Ry(-yaw) * Rx(-pitch) * Rz(-roll)``. Pixel UVs are
divided by the texture size and optionally flipped in V.
"""

from __future__ import annotations

import math
from typing import List, Tuple

Vec2 = Tuple[float, float]
Vec3 = Tuple[float, float, float]
Quat = Tuple[float, float, float, float]
Matrix3 = List[List[float]]


def sith_to_target_position(v: Vec3) -> Vec3:
    """Convert a Sith (X, Y, Z-up) position into target (X, Y-up, Z) coordinates."""
    return (v[0], v[2], v[1])


def target_to_sith_position(v: Vec3) -> Vec3:
    """Inverse of :func:`sith_to_target_position` (the swap is its own inverse)."""
    return (v[0], v[2], v[1])


def _rotation_x(degrees: float) -> Matrix3:
    a = math.radians(degrees)
    s, c = math.sin(a), math.cos(a)
    return [[1.0, 0.0, 0.0], [0.0, c, -s], [0.0, s, c]]


def _rotation_y(degrees: float) -> Matrix3:
    a = math.radians(degrees)
    s, c = math.sin(a), math.cos(a)
    return [[c, 0.0, s], [0.0, 1.0, 0.0], [-s, 0.0, c]]


def _rotation_z(degrees: float) -> Matrix3:
    a = math.radians(degrees)
    s, c = math.sin(a), math.cos(a)
    return [[c, -s, 0.0], [s, c, 0.0], [0.0, 0.0, 1.0]]


def matrix3_multiply(a: Matrix3, b: Matrix3) -> Matrix3:
    return [
        [sum(a[row][k] * b[k][col] for k in range(3)) for col in range(3)]
        for row in range(3)
    ]


def matrix3_transform(m: Matrix3, v: Vec3) -> Vec3:
    return (
        m[0][0] * v[0] + m[0][1] * v[1] + m[0][2] * v[2],
        m[1][0] * v[0] + m[1][1] * v[1] + m[1][2] * v[2],
        m[2][0] * v[0] + m[2][1] * v[1] + m[2][2] * v[2],
    )


def sith_to_target_rotation_matrix(pitch_yaw_roll: Vec3) -> Matrix3:
    """Build the target-space rotation matrix for a Sith (pitch, yaw, roll) in degrees."""
    pitch = -pitch_yaw_roll[0]
    yaw = -pitch_yaw_roll[1]
    roll = -pitch_yaw_roll[2]
    # Yaw turned about Sith Z, which is target Y: outermost.
    return matrix3_multiply(
        _rotation_y(yaw),
        matrix3_multiply(_rotation_x(pitch), _rotation_z(roll)),
    )


def matrix3_to_quaternion(matrix: Matrix3) -> Quat:
    """Convert a row-major 3x3 rotation matrix into an (x, y, z, w) quaternion."""
    m00, m01, m02 = matrix[0]
    m10, m11, m12 = matrix[1]
    m20, m21, m22 = matrix[2]

    trace = m00 + m11 + m22
    if trace > 0.0:
        s = math.sqrt(trace + 1.0) * 2.0
        w = 0.25 * s
        x = (m21 - m12) / s
        y = (m02 - m20) / s
        z = (m10 - m01) / s
    elif m00 > m11 and m00 > m22:
        s = math.sqrt(1.0 + m00 - m11 - m22) * 2.0
        w = (m21 - m12) / s
        x = 0.25 * s
        y = (m01 + m10) / s
        z = (m02 + m20) / s
    elif m11 > m22:
        s = math.sqrt(1.0 + m11 - m00 - m22) * 2.0
        w = (m02 - m20) / s
        x = (m01 + m10) / s
        y = 0.25 * s
        z = (m12 + m21) / s
    else:
        s = math.sqrt(1.0 + m22 - m00 - m11) * 2.0
        w = (m10 - m01) / s
        x = (m02 + m20) / s
        y = (m12 + m21) / s
        z = 0.25 * s

    norm = math.sqrt(x * x + y * y + z * z + w * w)
    if norm == 0.0:
        return (0.0, 0.0, 0.0, 1.0)
    return (x / norm, y / norm, z / norm, w / norm)


def sith_to_target_rotation(pitch_yaw_roll: Vec3) -> Quat:
    """Convert Sith Euler degrees into a target-space (x, y, z, w) quaternion."""
    return matrix3_to_quaternion(sith_to_target_rotation_matrix(pitch_yaw_roll))


def pixel_to_uv(pixel_uv: Vec2, width: int, height: int, flip_v: bool = False) -> Vec2:
    """Normalise a pixel-space UV by the texture size."""
    u = pixel_uv[0] / float(width)
    v = pixel_uv[1] / float(height)
    if flip_v:
        v = 1.0 - v
    return (u, v)
