"""
SE(3) helpers and frame composition.

Round-trip law: lidar -> vehicle -> lidar must reproduce the registration
result for any valid extrinsic.
"""

import math

import numpy as np
import pytest
from scipy.spatial.transform import Rotation

from map_localizer.backend.frame_composer import FrameComposer
from map_localizer.common.transforms.se3 import (
    euler_ypr,
    is_rigid,
    make_transform,
    rotmat_to_quat,
    se3_compose,
    se3_inverse,
    transform_from_trans_quat,
    transform_from_yaw,
    transform_points,
)


def _random_transform(rng) -> np.ndarray:
    R = Rotation.from_rotvec(rng.normal(scale=0.8, size=3)).as_matrix()
    return make_transform(R, rng.normal(scale=5.0, size=3))


class TestSE3:
    def test_inverse_composes_to_identity(self):
        rng = np.random.default_rng(0)
        for _ in range(20):
            T = _random_transform(rng)
            assert np.allclose(se3_compose(T, se3_inverse(T)), np.eye(4), atol=1e-12)
            assert np.allclose(se3_compose(se3_inverse(T), T), np.eye(4), atol=1e-12)

    def test_yaw_transform(self):
        T = transform_from_yaw([1.0, 2.0, 3.0], math.pi / 2)
        assert np.allclose(T[:3, :3] @ [1.0, 0.0, 0.0], [0.0, 1.0, 0.0])
        assert np.allclose(T[:3, 3], [1.0, 2.0, 3.0])

    def test_euler_ypr_decomposition(self):
        yaw, pitch, roll = 0.4, -0.2, 0.1
        R = Rotation.from_euler("ZYX", [yaw, pitch, roll]).as_matrix()
        Rz = Rotation.from_rotvec([0, 0, yaw]).as_matrix()
        Ry = Rotation.from_rotvec([0, pitch, 0]).as_matrix()
        Rx = Rotation.from_rotvec([roll, 0, 0]).as_matrix()
        assert np.allclose(R, Rz @ Ry @ Rx)
        assert np.allclose(euler_ypr(R), (yaw, pitch, roll))

    def test_quaternion_roundtrip(self):
        q = np.array([0.1, -0.2, 0.3, 0.9])
        q /= np.linalg.norm(q)
        T = transform_from_trans_quat([0.0, 0.0, 0.0], q)
        assert np.allclose(rotmat_to_quat(T[:3, :3]), q)

    def test_transform_points_keeps_intensity(self):
        pts = np.array([[1.0, 0.0, 0.0, 42.0]])
        out = transform_points(transform_from_yaw([0.0, 0.0, 1.0], math.pi), pts)
        assert np.allclose(out, [[-1.0, 0.0, 1.0, 42.0]])

    def test_is_rigid(self):
        assert is_rigid(np.eye(4))
        scaled = np.eye(4)
        scaled[0, 0] = 2.0
        assert not is_rigid(scaled)
        reflection = np.diag([1.0, 1.0, -1.0, 1.0])
        assert not is_rigid(reflection)


class TestFrameComposer:
    def test_extrinsic_roundtrip_law(self):
        rng = np.random.default_rng(7)
        for _ in range(25):
            extrinsic = _random_transform(rng)
            T_map_lidar = _random_transform(rng)
            composer = FrameComposer(extrinsic, "world", "lidar")
            T_map_base = composer.vehicle_pose(T_map_lidar)
            assert is_rigid(T_map_base)
            assert np.allclose(composer.lidar_pose(T_map_base), T_map_lidar, atol=1e-9)

    def test_vehicle_pose_with_mount_offset(self):
        # Lidar mounted 1 m ahead of and 2 m above the vehicle origin
        extrinsic = make_transform(np.eye(3), [1.0, 0.0, 2.0])
        composer = FrameComposer(extrinsic, "world", "lidar")
        T_map_lidar = transform_from_yaw([11.0, 5.0, 2.0], math.pi / 2)
        frames = composer.compose(T_map_lidar, frame_index=1, stamp=0.5)
        # Vehicle origin is 1 m behind the lidar along the lidar heading (+Y in map)
        assert frames.record.x == pytest.approx(11.0)
        assert frames.record.y == pytest.approx(4.0)
        assert frames.record.z == pytest.approx(0.0)
        assert frames.record.yaw == pytest.approx(math.pi / 2)
        assert frames.record.pitch == pytest.approx(0.0, abs=1e-12)
        assert frames.record.roll == pytest.approx(0.0, abs=1e-12)

    def test_outputs(self):
        composer = FrameComposer(np.eye(4), "world", "lidar")
        T_map_lidar = transform_from_yaw([1.0, 2.0, 0.0], 0.3)
        frames = composer.compose(T_map_lidar, frame_index=3, stamp=12.5)

        assert frames.record.frame_index == 3
        assert frames.lidar_pose.frame_id == "world"
        assert frames.lidar_pose.stamp == 12.5
        assert np.allclose(frames.lidar_pose.position, [1.0, 2.0, 0.0])
        assert np.allclose(frames.lidar_pose.orientation, [0.0, 0.0, math.sin(0.15), math.cos(0.15)])

        tf = frames.frame_broadcast
        assert tf.parent_frame == "lidar"
        assert tf.child_frame == "world"
        assert tf.stamp == 12.5
        assert np.allclose(tf.transform @ T_map_lidar, np.eye(4), atol=1e-12)

    def test_record_row_order(self):
        composer = FrameComposer(np.eye(4), "world", "lidar")
        record = composer.compose(transform_from_yaw([1.0, 2.0, 3.0], 0.1), 9, 0.0).record
        assert record.as_row()[0] == 9
        assert np.allclose(record.as_row()[1:], [1.0, 2.0, 3.0, 0.1, 0.0, 0.0])

    def test_rejects_non_rigid_extrinsic(self):
        with pytest.raises(ValueError):
            FrameComposer(np.diag([2.0, 1.0, 1.0, 1.0]), "world", "lidar")
