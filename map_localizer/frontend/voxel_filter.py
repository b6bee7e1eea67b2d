"""
Voxel grid downsampling for map and scan clouds.

Every occupied voxel of edge `leaf_size` is replaced by the centroid of the
points inside it. All columns are averaged, so intensity becomes the mean
intensity of the voxel. Non-finite points are dropped first.

Output order follows the sorted voxel index, so the result is deterministic
for a given input.
"""

import logging

import numpy as np

_logger = logging.getLogger(__name__)


def as_xyzi(points: np.ndarray) -> np.ndarray:
    """
    Normalize a cloud to an (N, 4) float64 array [x, y, z, intensity].

    (N, 3) input gets zero intensity. Columns beyond the fourth are dropped.
    """
    points = np.asarray(points, dtype=np.float64)
    if points.ndim != 2 or points.shape[1] < 3:
        raise ValueError(f"Expected (N, 3) or (N, 4) point array, got shape {points.shape}")
    if points.shape[1] == 3:
        return np.hstack([points, np.zeros((points.shape[0], 1), dtype=np.float64)])
    return np.ascontiguousarray(points[:, :4])


class VoxelGridFilter:
    """Centroid voxel grid with a fixed leaf size."""

    def __init__(self, leaf_size: float):
        if not leaf_size > 0.0:
            raise ValueError(f"leaf_size must be > 0, got {leaf_size}")
        self.leaf_size = float(leaf_size)

    def filter(self, points: np.ndarray) -> np.ndarray:
        """
        Downsample an (N, >=3) cloud.

        Returns:
            (M, C) array with M <= N and the same column count C as the input
        """
        points = np.asarray(points, dtype=np.float64)
        if points.ndim != 2 or points.shape[1] < 3:
            raise ValueError(f"Expected (N, >=3) point array, got shape {points.shape}")

        finite = np.all(np.isfinite(points), axis=1)
        if not np.all(finite):
            _logger.debug(f"Voxel filter dropped {int(np.sum(~finite))} non-finite points")
            points = points[finite]
        if points.shape[0] == 0:
            return points

        origin = np.min(points[:, :3], axis=0)
        voxel_indices = np.floor((points[:, :3] - origin) / self.leaf_size).astype(np.int64)

        _, inverse, counts = np.unique(voxel_indices, axis=0, return_inverse=True, return_counts=True)
        inverse = inverse.reshape(-1)

        sums = np.zeros((counts.shape[0], points.shape[1]), dtype=np.float64)
        np.add.at(sums, inverse, points)
        return sums / counts[:, None]


def voxel_filter(points: np.ndarray, leaf_size: float) -> np.ndarray:
    """Voxel grid filter with a one-off leaf size."""
    return VoxelGridFilter(leaf_size).filter(points)
