"""
SE(3) transforms on 4x4 homogeneous matrices.

Usage:
    from map_localizer.common.transforms import se3_compose, se3_inverse
"""

from __future__ import annotations

from map_localizer.common.transforms.se3 import (
    euler_ypr,
    is_rigid,
    make_transform,
    quat_to_rotmat,
    rotmat_to_quat,
    se3_compose,
    se3_identity,
    se3_inverse,
    transform_from_trans_quat,
    transform_from_yaw,
    transform_points,
    yaw_of,
)

__all__ = [
    "euler_ypr",
    "is_rigid",
    "make_transform",
    "quat_to_rotmat",
    "rotmat_to_quat",
    "se3_compose",
    "se3_identity",
    "se3_inverse",
    "transform_from_trans_quat",
    "transform_from_yaw",
    "transform_points",
    "yaw_of",
]
