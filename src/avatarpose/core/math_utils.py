"""NumPy-backed math utilities: Vec3, Quaternion, Mat4 operations.

Provides lightweight wrappers and utility functions for 3D math.
Vectors are plain numpy arrays; quaternions are [x, y, z, w] arrays.
Matrices are 4x4 numpy arrays (column vectors, translation in the last column).
"""

import numpy as np
from numpy.typing import NDArray

# Type aliases
Vec3 = NDArray[np.float64]
Mat4 = NDArray[np.float64]
Quat = NDArray[np.float64]  # [x, y, z, w]


def vec3(x: float = 0.0, y: float = 0.0, z: float = 0.0) -> Vec3:
    return np.array([x, y, z], dtype=np.float64)


def mat4_from_quaternion(q: Quat) -> Mat4:
    """Convert quaternion [x,y,z,w] to 4x4 rotation matrix."""
    x, y, z, w = q
    m = np.eye(4, dtype=np.float64)
    m[0, 0] = 1 - 2 * (y * y + z * z)
    m[0, 1] = 2 * (x * y - z * w)
    m[0, 2] = 2 * (x * z + y * w)
    m[1, 0] = 2 * (x * y + z * w)
    m[1, 1] = 1 - 2 * (x * x + z * z)
    m[1, 2] = 2 * (y * z - x * w)
    m[2, 0] = 2 * (x * z - y * w)
    m[2, 1] = 2 * (y * z + x * w)
    m[2, 2] = 1 - 2 * (x * x + y * y)
    return m


def mat4_compose(position: Vec3, quaternion: Quat) -> Mat4:
    """Compose a rigid transform matrix from position and quaternion rotation."""
    m = mat4_from_quaternion(quaternion)
    m[0, 3] = position[0]
    m[1, 3] = position[1]
    m[2, 3] = position[2]
    return m


# Quaternion operations

def quat_identity() -> Quat:
    return np.array([0.0, 0.0, 0.0, 1.0], dtype=np.float64)


def quat_from_euler(x: float, y: float, z: float, order: str = "XYZ") -> Quat:
    """Create quaternion from Euler angles (radians)."""
    cx, sx = np.cos(x / 2), np.sin(x / 2)
    cy, sy = np.cos(y / 2), np.sin(y / 2)
    cz, sz = np.cos(z / 2), np.sin(z / 2)

    if order == "XYZ":
        return np.array([
            sx * cy * cz + cx * sy * sz,
            cx * sy * cz - sx * cy * sz,
            cx * cy * sz + sx * sy * cz,
            cx * cy * cz - sx * sy * sz,
        ], dtype=np.float64)
    elif order == "YXZ":
        return np.array([
            sx * cy * cz + cx * sy * sz,
            cx * sy * cz - sx * cy * sz,
            cx * cy * sz - sx * sy * cz,
            cx * cy * cz + sx * sy * sz,
        ], dtype=np.float64)
    else:
        raise ValueError(f"Unsupported Euler order: {order}")


def quat_from_axis_angle(axis: Vec3, angle: float) -> Quat:
    """Create quaternion from axis-angle."""
    half = angle / 2
    s = np.sin(half)
    a = normalize(axis)
    return np.array([a[0] * s, a[1] * s, a[2] * s, np.cos(half)], dtype=np.float64)


def quat_multiply(a: Quat, b: Quat) -> Quat:
    """Multiply two quaternions (a * b): b is applied first, then a."""
    ax, ay, az, aw = a
    bx, by, bz, bw = b
    return np.array([
        aw * bx + ax * bw + ay * bz - az * by,
        aw * by - ax * bz + ay * bw + az * bx,
        aw * bz + ax * by - ay * bx + az * bw,
        aw * bw - ax * bx - ay * by - az * bz,
    ], dtype=np.float64)


def quat_conjugate(q: Quat) -> Quat:
    return np.array([-q[0], -q[1], -q[2], q[3]], dtype=np.float64)


def quat_inverse(q: Quat) -> Quat:
    """Inverse of a (possibly non-unit) quaternion."""
    n2 = float(np.dot(q, q))
    if n2 < 1e-20:
        return quat_identity()
    return quat_conjugate(q) / n2


def quat_normalize(q: Quat) -> Quat:
    n = np.linalg.norm(q)
    if n < 1e-10:
        return quat_identity()
    return q / n


def quat_slerp(a: Quat, b: Quat, t: float) -> Quat:
    """Spherical linear interpolation between two quaternions."""
    dot = np.dot(a, b)
    if dot < 0:
        b = -b
        dot = -dot
    if dot > 0.9995:
        result = a + t * (b - a)
        return quat_normalize(result)
    theta = np.arccos(np.clip(dot, -1.0, 1.0))
    sin_theta = np.sin(theta)
    if sin_theta < 1e-10:
        return a.copy()
    wa = np.sin((1 - t) * theta) / sin_theta
    wb = np.sin(t * theta) / sin_theta
    return quat_normalize(wa * a + wb * b)


def quat_angle(q: Quat) -> float:
    """Rotation angle (radians, in [0, pi]) represented by a unit quaternion."""
    w = abs(float(q[3]))
    return 2.0 * float(np.arccos(min(1.0, w)))


def quat_rotate_vec3(q: Quat, v: Vec3) -> Vec3:
    """Rotate a vector by a quaternion."""
    qv = q[:3]
    w = q[3]
    t = 2.0 * np.cross(qv, v)
    return v + w * t + np.cross(qv, t)


# Vector operations

def normalize(v: Vec3) -> Vec3:
    n = np.linalg.norm(v)
    if n < 1e-10:
        return np.zeros_like(v)
    return v / n


def lerp_vec3(a: Vec3, b: Vec3, t: float) -> Vec3:
    return a + (b - a) * t


def clamp(value: float, lo: float, hi: float) -> float:
    return max(lo, min(hi, value))


def rad_to_deg(radians: float) -> float:
    return radians * 180.0 / np.pi


# ── Batch (vectorized) quaternion operations ──────────────────────────

def batch_quat_multiply(a: NDArray, b: NDArray) -> NDArray:
    """Multiply (N, 4) quaternions [x, y, z, w]: result = a * b.

    Either operand may be a single (4,) quaternion, broadcast over N.
    """
    a = np.atleast_2d(a)
    b = np.atleast_2d(b)
    ax, ay, az, aw = a[:, 0], a[:, 1], a[:, 2], a[:, 3]
    bx, by, bz, bw = b[:, 0], b[:, 1], b[:, 2], b[:, 3]
    return np.column_stack([
        aw * bx + ax * bw + ay * bz - az * by,
        aw * by - ax * bz + ay * bw + az * bx,
        aw * bz + ax * by - ay * bx + az * bw,
        aw * bw - ax * bx - ay * by - az * bz,
    ])


def batch_quat_normalize(q: NDArray) -> NDArray:
    """Normalize (N, 4) quaternions; zero rows become identity."""
    q = np.array(q, dtype=np.float64)
    n = np.linalg.norm(q, axis=1)
    bad = n < 1e-10
    q[bad] = quat_identity()
    n[bad] = 1.0
    return q / n[:, None]
