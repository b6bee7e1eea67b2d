"""
Transport-neutral message types.

Inputs mirror sensor_msgs/PointCloud2 and geometry_msgs/PointStamped;
outputs mirror geometry_msgs/PoseStamped and TransformStamped. Stamps are
float seconds.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Tuple

import numpy as np


@dataclass(frozen=True)
class PointCloudMsg:
    """A point cloud: (N, 3) xyz or (N, 4) xyz + intensity."""
    points: np.ndarray
    stamp: float = 0.0
    frame_id: str = ""


@dataclass(frozen=True)
class PositionFixMsg:
    """Coarse position fix (GNSS or similar). Carries no orientation."""
    position: Tuple[float, float, float]
    stamp: float = 0.0
    frame_id: str = ""

    def as_array(self) -> np.ndarray:
        return np.asarray(self.position, dtype=np.float64).reshape(3)


@dataclass(frozen=True)
class PoseStamped:
    stamp: float
    frame_id: str
    position: Tuple[float, float, float]
    orientation: Tuple[float, float, float, float] = (0.0, 0.0, 0.0, 1.0)  # (x, y, z, w)


@dataclass(frozen=True)
class TransformStamped:
    """
    Frame relation for broadcast.

    `transform` is T_parent_child (maps child-frame points into parent).
    """
    stamp: float
    parent_frame: str
    child_frame: str
    transform: np.ndarray = field(default_factory=lambda: np.eye(4, dtype=np.float64))
