import os
import sys
from typing import List

import numpy as np
import pytest

# Ensure local package import works for pytest collection.
_TEST_DIR = os.path.dirname(__file__)
_PKG_ROOT = os.path.abspath(os.path.join(_TEST_DIR, ".."))
if _PKG_ROOT not in sys.path:
    sys.path.insert(0, _PKG_ROOT)

from map_localizer.backend.outputs import OutputSink  # noqa: E402
from map_localizer.common.messages import PointCloudMsg, PoseStamped, TransformStamped  # noqa: E402
from map_localizer.common.param_models import LocalizerParams  # noqa: E402
from map_localizer.common.transforms.se3 import (  # noqa: E402
    se3_inverse,
    transform_from_yaw,
    transform_points,
)


class RecordingSink(OutputSink):
    """Keeps every output for inspection."""

    def __init__(self):
        self.poses: List[PoseStamped] = []
        self.scans: List[PointCloudMsg] = []
        self.transforms: List[TransformStamped] = []

    def publish_pose(self, pose: PoseStamped) -> None:
        self.poses.append(pose)

    def publish_transformed_scan(self, cloud: PointCloudMsg) -> None:
        self.scans.append(cloud)

    def broadcast_transform(self, transform: TransformStamped) -> None:
        self.transforms.append(transform)


def scan_from_pose(map_points: np.ndarray, T_map_lidar: np.ndarray) -> np.ndarray:
    """What a lidar at T_map_lidar sees of the map, in the lidar frame."""
    return transform_points(se3_inverse(T_map_lidar), map_points)


# =============================================================================
# Synthetic Clouds
# =============================================================================


@pytest.fixture
def structured_map():
    """Random 3D cloud with intensity, ~1 m point spacing, seeded."""
    rng = np.random.default_rng(42)
    xyz = rng.uniform([-5.0, -5.0, -1.5], [5.0, 5.0, 1.5], size=(300, 3))
    intensity = rng.uniform(0.0, 100.0, size=(300, 1))
    return np.hstack([xyz, intensity])


@pytest.fixture
def flat_grid_map():
    """11 x 11 grid at z = 0 with 1 m spacing."""
    g = np.arange(-5.0, 5.0 + 0.5, 1.0)
    xx, yy = np.meshgrid(g, g)
    return np.column_stack([xx.ravel(), yy.ravel(), np.zeros(xx.size)])


@pytest.fixture
def true_pose():
    """Lidar at (1, 0, 0) turned 2 degrees about +Z."""
    return transform_from_yaw([1.0, 0.0, 0.0], np.deg2rad(2.0))


@pytest.fixture
def make_params(tmp_path):
    """LocalizerParams with fine leaf sizes and a temp result log."""

    def _make(**overrides) -> LocalizerParams:
        kwargs = dict(
            map_leaf_size=0.01,
            scan_leaf_size=0.01,
            result_save_path=str(tmp_path / "result.csv"),
            readiness_report_interval_sec=0.05,
        )
        kwargs.update(overrides)
        return LocalizerParams(**kwargs)

    return _make


@pytest.fixture
def recording_sink():
    return RecordingSink()
