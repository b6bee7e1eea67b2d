"""
SE(3) geometry on 4x4 homogeneous matrices.

Convention: T_a_b maps points expressed in frame b into frame a,
    p_a = T_a_b[:3, :3] @ p_b + T_a_b[:3, 3]
so composition reads left to right: T_a_c = T_a_b @ T_b_c.

Quaternions are (x, y, z, w), matching ROS and scipy.

Numerical Policy:
    RIGID_ATOL = 1e-6 bounds ||R^T R - I|| and |det R - 1| for a matrix
    to count as a rigid transform. Registration results are built from an
    SVD every iteration, so they stay well inside this.
"""

from typing import Sequence, Tuple

import numpy as np
from scipy.spatial.transform import Rotation


RIGID_ATOL: float = 1e-6


def se3_identity() -> np.ndarray:
    return np.eye(4, dtype=np.float64)


def make_transform(R: np.ndarray, t: Sequence[float]) -> np.ndarray:
    """Assemble a 4x4 transform from a 3x3 rotation and a translation."""
    T = np.eye(4, dtype=np.float64)
    T[:3, :3] = np.asarray(R, dtype=np.float64)
    T[:3, 3] = np.asarray(t, dtype=np.float64).reshape(3)
    return T


def quat_to_rotmat(quat_xyzw: Sequence[float]) -> np.ndarray:
    """Rotation matrix from a quaternion (x, y, z, w). Normalizes the input."""
    q = np.asarray(quat_xyzw, dtype=np.float64).reshape(4)
    n = np.linalg.norm(q)
    if n < 1e-12:
        raise ValueError(f"Cannot build a rotation from zero quaternion {q}")
    return Rotation.from_quat(q / n).as_matrix()


def rotmat_to_quat(R: np.ndarray) -> Tuple[float, float, float, float]:
    """Quaternion (x, y, z, w) from a rotation matrix, w >= 0."""
    q = Rotation.from_matrix(np.asarray(R, dtype=np.float64)).as_quat()
    if q[3] < 0.0:
        q = -q
    return float(q[0]), float(q[1]), float(q[2]), float(q[3])


def transform_from_trans_quat(trans: Sequence[float], quat_xyzw: Sequence[float]) -> np.ndarray:
    """4x4 transform from translation [x, y, z] and quaternion [qx, qy, qz, qw]."""
    trans = np.asarray(trans, dtype=np.float64).reshape(-1)
    if trans.shape[0] != 3:
        raise ValueError(f"Expected translation [x, y, z], got shape {trans.shape}")
    quat = np.asarray(quat_xyzw, dtype=np.float64).reshape(-1)
    if quat.shape[0] != 4:
        raise ValueError(f"Expected quaternion [qx, qy, qz, qw], got shape {quat.shape}")
    return make_transform(quat_to_rotmat(quat), trans)


def transform_from_yaw(translation: Sequence[float], yaw: float) -> np.ndarray:
    """translation(t) composed with a rotation of `yaw` radians about +Z."""
    c, s = np.cos(yaw), np.sin(yaw)
    R = np.array([[c, -s, 0.0], [s, c, 0.0], [0.0, 0.0, 1.0]], dtype=np.float64)
    return make_transform(R, translation)


def se3_inverse(T: np.ndarray) -> np.ndarray:
    """Closed-form inverse of a rigid transform: (R, t)^-1 = (R^T, -R^T t)."""
    T = np.asarray(T, dtype=np.float64)
    R_inv = T[:3, :3].T
    return make_transform(R_inv, -R_inv @ T[:3, 3])


def se3_compose(T_a_b: np.ndarray, T_b_c: np.ndarray) -> np.ndarray:
    """T_a_c = T_a_b @ T_b_c."""
    return np.asarray(T_a_b, dtype=np.float64) @ np.asarray(T_b_c, dtype=np.float64)


def euler_ypr(R: np.ndarray) -> Tuple[float, float, float]:
    """
    Intrinsic Z-Y-X decomposition R = Rz(yaw) @ Ry(pitch) @ Rx(roll).

    Returns (yaw, pitch, roll) in radians, pitch in [-pi/2, pi/2].
    """
    yaw, pitch, roll = Rotation.from_matrix(np.asarray(R, dtype=np.float64)).as_euler("ZYX")
    return float(yaw), float(pitch), float(roll)


def yaw_of(T: np.ndarray) -> float:
    return euler_ypr(np.asarray(T)[:3, :3])[0]


def is_rigid(T: np.ndarray, atol: float = RIGID_ATOL) -> bool:
    """True if T is a finite 4x4 homogeneous matrix with an orthonormal, proper rotation."""
    T = np.asarray(T, dtype=np.float64)
    if T.shape != (4, 4) or not np.all(np.isfinite(T)):
        return False
    R = T[:3, :3]
    return (
        np.allclose(R.T @ R, np.eye(3), atol=atol)
        and abs(np.linalg.det(R) - 1.0) < atol
        and np.allclose(T[3], [0.0, 0.0, 0.0, 1.0], atol=atol)
    )


def transform_points(T: np.ndarray, points: np.ndarray) -> np.ndarray:
    """
    Apply T to the xyz columns of an (N, >=3) array.

    Extra columns (intensity) are carried through unchanged.
    """
    points = np.asarray(points)
    out = np.array(points, dtype=np.float64, copy=True)
    if points.shape[0] == 0:
        return out
    T = np.asarray(T, dtype=np.float64)
    out[:, :3] = points[:, :3] @ T[:3, :3].T + T[:3, 3]
    return out
