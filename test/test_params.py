"""
Parameter model tests.

Invalid configuration must fail at construction with ConfigurationError,
never surface later as a bad extrinsic or an empty yaw sweep.
"""

import numpy as np
import pytest

from map_localizer.common import constants
from map_localizer.common.errors import ConfigurationError
from map_localizer.common.param_models import (
    LocalizerParams,
    RegistrationParams,
    load_params,
    yaw_sweep,
)
from map_localizer.common.transforms.se3 import is_rigid


class TestDefaults:
    def test_defaults_match_constants(self):
        params = LocalizerParams()
        assert params.map_leaf_size == constants.MAP_LEAF_SIZE_DEFAULT
        assert params.initial_registration.max_correspondence_distance == 2.0
        assert params.tracking_registration.max_correspondence_distance == 1.0
        assert params.tracking_registration.max_iterations == 1000
        assert params.readiness_timeout_sec is None

    def test_default_sweep_has_four_candidates(self):
        yaws = LocalizerParams().init_yaw_candidates()
        assert np.allclose(yaws, [0.0, 0.05, 0.10, 0.15])

    def test_default_extrinsic_is_identity(self):
        assert np.allclose(LocalizerParams().extrinsic_matrix(), np.eye(4))

    def test_params_are_frozen(self):
        params = LocalizerParams()
        with pytest.raises(Exception):
            params.map_leaf_size = 1.0


class TestExtrinsicValidation:
    def test_wrong_translation_length_rejected(self):
        with pytest.raises(ConfigurationError):
            LocalizerParams(base_to_lidar_trans=[0.0, 0.0])

    def test_wrong_rotation_length_rejected(self):
        with pytest.raises(ConfigurationError):
            LocalizerParams(base_to_lidar_rot=[0.0, 0.0, 1.0])

    def test_zero_quaternion_rejected(self):
        with pytest.raises(ConfigurationError):
            LocalizerParams(base_to_lidar_rot=[0.0, 0.0, 0.0, 0.0])

    def test_unnormalized_quaternion_is_normalized(self):
        params = LocalizerParams(base_to_lidar_trans=[1.0, 2.0, 3.0], base_to_lidar_rot=[0.0, 0.0, 2.0, 2.0])
        T = params.extrinsic_matrix()
        assert is_rigid(T)
        assert np.allclose(T[:3, 3], [1.0, 2.0, 3.0])
        assert np.isclose(np.arctan2(T[1, 0], T[0, 0]), np.pi / 2)

    def test_unknown_key_rejected(self):
        with pytest.raises(ConfigurationError):
            LocalizerParams(baselink2lidar_trans=[0.0, 0.0, 0.0])


class TestYawSweep:
    def test_empty_range_rejected(self):
        with pytest.raises(ConfigurationError):
            LocalizerParams(init_yaw_start=0.2, init_yaw_end=0.2)

    def test_reversed_range_rejected(self):
        with pytest.raises(ConfigurationError):
            LocalizerParams(init_yaw_start=0.3, init_yaw_end=0.1)

    @pytest.mark.parametrize("step", [0.0, -0.05])
    def test_non_positive_step_rejected(self, step):
        with pytest.raises(ConfigurationError):
            LocalizerParams(init_yaw_step=step)

    @pytest.mark.parametrize(
        "field, value",
        [
            ("init_yaw_end", float("inf")),
            ("init_yaw_start", float("-inf")),
            ("init_yaw_end", float("nan")),
            ("init_yaw_step", float("inf")),
        ],
    )
    def test_non_finite_bounds_rejected(self, field, value):
        with pytest.raises(ConfigurationError):
            LocalizerParams(**{field: value})

    @pytest.mark.parametrize(
        "start, end, step",
        [(0.0, float("inf"), 0.05), (float("nan"), 0.2, 0.05), (-1e308, 1e308, 0.05)],
    )
    def test_sweep_rejects_unbounded_range(self, start, end, step):
        with pytest.raises(ConfigurationError):
            yaw_sweep(start, end, step)

    def test_end_is_exclusive(self):
        assert np.allclose(yaw_sweep(0.0, 0.3, 0.1), [0.0, 0.1, 0.2])

    def test_single_candidate(self):
        assert np.allclose(yaw_sweep(-0.1, 0.0, 0.5), [-0.1])


class TestRegistrationParams:
    def test_non_positive_distance_rejected(self):
        with pytest.raises(ConfigurationError):
            RegistrationParams(max_correspondence_distance=0.0)

    def test_zero_iterations_rejected(self):
        with pytest.raises(ConfigurationError):
            LocalizerParams(tracking_registration={"max_iterations": 0})


class TestLoadParams:
    def test_ros_parameters_wrapper(self, tmp_path):
        path = tmp_path / "localizer.yaml"
        path.write_text(
            "localizer:\n"
            "  ros__parameters:\n"
            "    base_to_lidar_trans: [0.5, 0.0, 1.8]\n"
            "    base_to_lidar_rot: [0.0, 0.0, 0.0, 1.0]\n"
            "    scan_leaf_size: 0.5\n"
            "    tracking_registration:\n"
            "      max_correspondence_distance: 0.8\n"
        )
        params = load_params(str(path))
        assert params.scan_leaf_size == 0.5
        assert params.base_to_lidar_trans == [0.5, 0.0, 1.8]
        assert params.tracking_registration.max_correspondence_distance == 0.8
        assert params.tracking_registration.max_iterations == 1000

    def test_flat_file(self, tmp_path):
        path = tmp_path / "flat.yaml"
        path.write_text("map_frame: map\nlidar_frame: velodyne\n")
        params = load_params(str(path))
        assert params.map_frame == "map"
        assert params.lidar_frame == "velodyne"

    def test_bad_extrinsic_in_file_is_fatal(self, tmp_path):
        path = tmp_path / "bad.yaml"
        path.write_text("localizer:\n  base_to_lidar_rot: [0.0, 1.0]\n")
        with pytest.raises(ConfigurationError):
            load_params(str(path))

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_params(str(tmp_path / "nope.yaml"))

    def test_shipped_config_loads(self):
        import os

        path = os.path.join(os.path.dirname(__file__), "..", "config", "localizer.yaml")
        params = load_params(path)
        assert is_rigid(params.extrinsic_matrix())
