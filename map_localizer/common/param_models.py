"""Pydantic parameter models for the map localizer."""

from __future__ import annotations

import math
import os
from typing import Any, Dict, List, Optional

import numpy as np
import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from map_localizer.common import constants
from map_localizer.common.errors import ConfigurationError
from map_localizer.common.transforms.se3 import transform_from_trans_quat


def yaw_sweep(start: float, end: float, step: float) -> np.ndarray:
    """
    Candidate yaws start, start + step, ... strictly below end.

    Raises ConfigurationError if a bound is non-finite, step is non-positive
    or no candidate remains.
    """
    if not (math.isfinite(start) and math.isfinite(end) and math.isfinite(step)):
        raise ConfigurationError(f"initial yaw sweep bounds must be finite, got [{start}, {end}) step {step}")
    if not step > 0.0:
        raise ConfigurationError(f"initial yaw sweep step must be > 0, got {step}")
    span = (end - start) / step
    if not math.isfinite(span):
        raise ConfigurationError(f"initial yaw sweep [{start}, {end}) with step {step} is unbounded")
    # Tolerance keeps float noise in span from adding a candidate at end
    count = int(math.ceil(span - 1e-9))
    if count <= 0:
        raise ConfigurationError(
            f"initial yaw sweep [{start}, {end}) with step {step} has no candidates"
        )
    return start + step * np.arange(count, dtype=np.float64)


class _FrozenParams(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    def __init__(self, **data: Any):
        try:
            super().__init__(**data)
        except ValidationError as exc:
            raise ConfigurationError(f"{type(self).__name__}: {exc}") from exc


class RegistrationParams(_FrozenParams):
    """Budgets for one registration call."""

    max_correspondence_distance: float = Field(constants.TRACK_MAX_CORRESPONDENCE_DIST, gt=0.0)
    max_iterations: int = Field(constants.ICP_MAX_ITER_DEFAULT, ge=1)
    transformation_epsilon: float = Field(constants.ICP_TRANSFORMATION_EPSILON_DEFAULT, ge=0.0)
    euclidean_fitness_epsilon: float = Field(constants.ICP_EUCLIDEAN_FITNESS_EPSILON_DEFAULT, ge=0.0)


class LocalizerParams(_FrozenParams):
    """
    Immutable localizer configuration, built once at startup.

    Every component receives the same instance; nothing reads parameters
    from anywhere else.
    """

    # T_base_lidar: translation [x, y, z] and quaternion [qx, qy, qz, qw]
    base_to_lidar_trans: List[float] = Field(
        default_factory=lambda: [0.0, 0.0, 0.0],
        min_length=3,
        max_length=3,
    )
    base_to_lidar_rot: List[float] = Field(
        default_factory=lambda: [0.0, 0.0, 0.0, 1.0],
        min_length=4,
        max_length=4,
    )

    map_leaf_size: float = Field(constants.MAP_LEAF_SIZE_DEFAULT, gt=0.0)
    scan_leaf_size: float = Field(constants.SCAN_LEAF_SIZE_DEFAULT, gt=0.0)

    map_frame: str = Field(constants.MAP_FRAME_DEFAULT, min_length=1)
    lidar_frame: str = Field(constants.LIDAR_FRAME_DEFAULT, min_length=1)
    result_save_path: str = constants.RESULT_SAVE_PATH_DEFAULT

    init_yaw_start: float = Field(constants.INIT_YAW_START_DEFAULT, allow_inf_nan=False)
    init_yaw_end: float = Field(constants.INIT_YAW_END_DEFAULT, allow_inf_nan=False)
    init_yaw_step: float = Field(constants.INIT_YAW_STEP_DEFAULT, allow_inf_nan=False)

    initial_registration: RegistrationParams = Field(
        default_factory=lambda: RegistrationParams(
            max_correspondence_distance=constants.INIT_MAX_CORRESPONDENCE_DIST
        )
    )
    tracking_registration: RegistrationParams = Field(
        default_factory=lambda: RegistrationParams(
            max_correspondence_distance=constants.TRACK_MAX_CORRESPONDENCE_DIST
        )
    )

    readiness_timeout_sec: Optional[float] = Field(None, gt=0.0)
    readiness_report_interval_sec: float = Field(constants.READINESS_REPORT_INTERVAL_SEC, gt=0.0)

    @field_validator("base_to_lidar_rot")
    @classmethod
    def _quaternion_nonzero(cls, v: List[float]) -> List[float]:
        if not np.all(np.isfinite(v)) or float(np.linalg.norm(v)) < 1e-12:
            raise ValueError(f"base_to_lidar_rot must be a finite non-zero quaternion, got {v}")
        return v

    @field_validator("base_to_lidar_trans")
    @classmethod
    def _translation_finite(cls, v: List[float]) -> List[float]:
        if not np.all(np.isfinite(v)):
            raise ValueError(f"base_to_lidar_trans must be finite, got {v}")
        return v

    @model_validator(mode="after")
    def _sweep_nonempty(self) -> "LocalizerParams":
        yaw_sweep(self.init_yaw_start, self.init_yaw_end, self.init_yaw_step)
        return self

    def init_yaw_candidates(self) -> np.ndarray:
        return yaw_sweep(self.init_yaw_start, self.init_yaw_end, self.init_yaw_step)

    def extrinsic_matrix(self) -> np.ndarray:
        """T_base_lidar as a 4x4 homogeneous matrix."""
        return transform_from_trans_quat(self.base_to_lidar_trans, self.base_to_lidar_rot)


def _unwrap_ros_parameters(data: Dict[str, Any], section: str) -> Dict[str, Any]:
    """Accept flat files, `section:` blocks, and the ROS 2 ros__parameters wrapper."""
    for key in (section, "/**"):
        block = data.get(key)
        if isinstance(block, dict):
            return dict(block.get("ros__parameters", block))
    return dict(data)


def load_params(path: str, section: str = "localizer") -> LocalizerParams:
    """Load LocalizerParams from a YAML file."""
    if not os.path.isfile(path):
        raise FileNotFoundError(f"Config file not found: {path}")
    with open(path, "r", encoding="utf-8") as f:
        try:
            data = yaml.safe_load(f) or {}
        except yaml.YAMLError as exc:
            raise ConfigurationError(f"Config file is not valid YAML: {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigurationError(f"Config file must hold a mapping: {path}")
    return LocalizerParams(**_unwrap_ros_parameters(data, section))
