"""Vector and 4x4 homogeneous transform primitives.

Vectors are float64 arrays of shape (3,), transforms are float64 arrays of
shape (4, 4) combining a rotation block and a translation column.

Example:
    >>> import numpy as np
    >>> from optics_core.linalg import rotation_from_axis_angle, transform_vector
    >>> r = rotation_from_axis_angle(np.array([0.0, 0.0, 1.0]), np.pi / 2)
    >>> np.allclose(transform_vector(r, np.array([1.0, 0.0, 0.0])), [0.0, 1.0, 0.0])
    True
"""

from __future__ import annotations

from typing import Sequence

import numpy as np
from numpy.typing import NDArray

Vector = NDArray[np.float64]
Matrix = NDArray[np.float64]

CANONICAL_NORMAL = np.array([-1.0, 0.0, 0.0])
SINGULAR_DET = 1e-15


def vec3(values: Sequence[float] | Vector | None, default: Sequence[float] = (0.0, 0.0, 0.0)) -> Vector:
    """Build a 3-vector from a possibly short or missing sequence."""

    if values is None:
        return np.asarray(default, dtype=float).copy()
    out = np.asarray(default, dtype=float).copy()
    vals = [v for v in values][:3]
    for i, v in enumerate(vals):
        out[i] = float(v) if v is not None else out[i]
    return out


def normalize(v: Vector) -> Vector:
    vv = np.asarray(v, dtype=float)
    n = np.linalg.norm(vv)
    if n == 0:
        raise ValueError("Cannot normalize zero vector")
    return vv / n


def identity() -> Matrix:
    return np.eye(4, dtype=float)


def translation(offset: Vector) -> Matrix:
    m = identity()
    m[:3, 3] = np.asarray(offset, dtype=float)
    return m


def rotation_z(angle: float) -> Matrix:
    c, s = np.cos(angle), np.sin(angle)
    m = identity()
    m[:2, :2] = [[c, -s], [s, c]]
    return m


def rotation_from_axis_angle(axis: Vector, angle: float) -> Matrix:
    """Rodrigues rotation about a unit axis."""

    x, y, z = normalize(axis)
    c, s = np.cos(angle), np.sin(angle)
    t = 1.0 - c
    m = identity()
    m[:3, :3] = [
        [t * x * x + c, t * x * y - s * z, t * x * z + s * y],
        [t * x * y + s * z, t * y * y + c, t * y * z - s * x],
        [t * x * z - s * y, t * y * z + s * x, t * z * z + c],
    ]
    return m


def rotation_between(from_vec: Vector, to_vec: Vector) -> Matrix:
    """Single great-circle rotation taking ``from_vec`` onto ``to_vec``."""

    a = normalize(from_vec)
    b = normalize(to_vec)
    dot = float(np.dot(a, b))
    if abs(dot - 1.0) < 1e-6:
        return identity()
    if abs(dot + 1.0) < 1e-6:
        helper = np.array([1.0, 0.0, 0.0]) if abs(a[0]) < 0.9 else np.array([0.0, 1.0, 0.0])
        return rotation_from_axis_angle(np.cross(helper, a), np.pi)
    axis = np.cross(a, b)
    return rotation_from_axis_angle(axis, float(np.arccos(np.clip(dot, -1.0, 1.0))))


def upright_rotation(from_vec: Vector, to_vec: Vector) -> Matrix:
    """Two-step alignment of ``from_vec`` onto ``to_vec`` keeping a stable roll.

    The XY projections are aligned first with a rotation about Z, then a single
    Rodrigues rotation closes the remaining elevation gap.
    """

    a = normalize(from_vec)
    b = normalize(to_vec)
    if abs(float(np.dot(a, b)) - 1.0) < 1e-6:
        return identity()

    a_xy = np.hypot(a[0], a[1])
    b_xy = np.hypot(b[0], b[1])
    if a_xy < 1e-6 or b_xy < 1e-6:
        return rotation_between(a, b)

    fa = a[:2] / a_xy
    fb = b[:2] / b_xy
    dot_xy = float(np.clip(fa[0] * fb[0] + fa[1] * fb[1], -1.0, 1.0))
    cross_z = float(fa[0] * fb[1] - fa[1] * fb[0])
    rz = rotation_z(float(np.arctan2(cross_z, dot_xy)))

    a_rot = rz[:3, :3] @ a
    phi = float(np.arccos(np.clip(np.dot(a_rot, b), -1.0, 1.0)))
    if abs(phi) < 1e-6:
        return rz
    axis = np.cross(a_rot, b)
    if np.linalg.norm(axis) < 1e-6:
        return rz
    return rotation_from_axis_angle(axis, phi) @ rz


def compose(rotation: Matrix, offset: Vector) -> Matrix:
    """Rotation block of ``rotation`` with translation ``offset``."""

    m = identity()
    m[:3, :3] = np.asarray(rotation, dtype=float)[:3, :3]
    m[:3, 3] = np.asarray(offset, dtype=float)
    return m


def invert(m: Matrix) -> Matrix:
    mm = np.asarray(m, dtype=float)
    if abs(np.linalg.det(mm)) < SINGULAR_DET:
        raise ValueError("Matrix is not invertible")
    return np.linalg.inv(mm)


def transform_point(m: Matrix, p: Vector) -> Vector:
    h = np.asarray(m, dtype=float) @ np.append(np.asarray(p, dtype=float), 1.0)
    return h[:3] / h[3] if h[3] != 0.0 else h[:3]


def transform_vector(m: Matrix, v: Vector) -> Vector:
    return np.asarray(m, dtype=float)[:3, :3] @ np.asarray(v, dtype=float)


def get_translation(m: Matrix) -> Vector:
    return np.asarray(m, dtype=float)[:3, 3].copy()


def matrices_equal(a: Matrix, b: Matrix, tol: float = 1e-10) -> bool:
    return bool(np.all(np.abs(np.asarray(a) - np.asarray(b)) <= tol))


def normal_from_angles(azimuth_deg: float, elevation_deg: float) -> Vector:
    """Surface normal for [azimuth, elevation] relative to the canonical backward axis."""

    az = np.deg2rad(azimuth_deg)
    el = np.deg2rad(elevation_deg)
    return normalize(np.array([-np.cos(el) * np.cos(az), -np.cos(el) * np.sin(az), np.sin(el)]))


def direction_from_angles(azimuth_deg: float, elevation_deg: float) -> Vector:
    """Propagation direction for [azimuth, elevation] relative to +X."""

    az = np.deg2rad(azimuth_deg)
    el = np.deg2rad(elevation_deg)
    return normalize(np.array([np.cos(az) * np.cos(el), np.sin(az) * np.cos(el), np.sin(el)]))
