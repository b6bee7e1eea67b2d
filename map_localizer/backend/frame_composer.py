"""
Frame composition: map->lidar registration result to vehicle pose.

    T_map_base = T_map_lidar @ inv(T_base_lidar)

Orientation is reported as intrinsic Z-Y-X (yaw, pitch, roll), translation
is read directly from T_map_base.
"""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np

from map_localizer.common.messages import PoseStamped, TransformStamped
from map_localizer.common.transforms.se3 import (
    euler_ypr,
    is_rigid,
    rotmat_to_quat,
    se3_compose,
    se3_inverse,
)


@dataclass(frozen=True)
class PoseRecord:
    """One row of the result log."""
    frame_index: int
    x: float
    y: float
    z: float
    yaw: float
    pitch: float
    roll: float

    def as_row(self) -> list:
        return [self.frame_index, self.x, self.y, self.z, self.yaw, self.pitch, self.roll]


@dataclass(frozen=True)
class ComposedFrames:
    record: PoseRecord
    vehicle_pose: np.ndarray        # T_map_base
    lidar_pose: PoseStamped         # map -> lidar pose for external consumers
    frame_broadcast: TransformStamped  # inverse relation, parent = lidar frame


class FrameComposer:
    def __init__(self, extrinsic: np.ndarray, map_frame: str, lidar_frame: str):
        """
        Args:
            extrinsic: T_base_lidar, pose of the lidar in the vehicle frame
            map_frame: Frame id of the reference map
            lidar_frame: Frame id of the scans
        """
        extrinsic = np.asarray(extrinsic, dtype=np.float64)
        if not is_rigid(extrinsic):
            raise ValueError(f"Extrinsic is not a rigid transform:\n{extrinsic}")
        self.extrinsic = extrinsic
        self._extrinsic_inv = se3_inverse(extrinsic)
        self.map_frame = map_frame
        self.lidar_frame = lidar_frame

    def vehicle_pose(self, T_map_lidar: np.ndarray) -> np.ndarray:
        return se3_compose(T_map_lidar, self._extrinsic_inv)

    def lidar_pose(self, T_map_base: np.ndarray) -> np.ndarray:
        """Inverse of `vehicle_pose`: T_map_lidar = T_map_base @ T_base_lidar."""
        return se3_compose(T_map_base, self.extrinsic)

    def compose(self, T_map_lidar: np.ndarray, frame_index: int, stamp: float) -> ComposedFrames:
        T_map_lidar = np.asarray(T_map_lidar, dtype=np.float64)
        T_map_base = self.vehicle_pose(T_map_lidar)
        yaw, pitch, roll = euler_ypr(T_map_base[:3, :3])
        t = T_map_base[:3, 3]
        record = PoseRecord(
            frame_index=int(frame_index),
            x=float(t[0]),
            y=float(t[1]),
            z=float(t[2]),
            yaw=yaw,
            pitch=pitch,
            roll=roll,
        )
        return ComposedFrames(
            record=record,
            vehicle_pose=T_map_base,
            lidar_pose=pose_stamped(T_map_lidar, stamp, self.map_frame),
            frame_broadcast=TransformStamped(
                stamp=stamp,
                parent_frame=self.lidar_frame,
                child_frame=self.map_frame,
                transform=se3_inverse(T_map_lidar),
            ),
        )


def pose_stamped(T: np.ndarray, stamp: float, frame_id: str) -> PoseStamped:
    t = np.asarray(T, dtype=np.float64)[:3, 3]
    return PoseStamped(
        stamp=stamp,
        frame_id=frame_id,
        position=(float(t[0]), float(t[1]), float(t[2])),
        orientation=rotmat_to_quat(np.asarray(T)[:3, :3]),
    )
