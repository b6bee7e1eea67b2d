"""
Point-to-point Iterative Closest Point (ICP) registration.

Given source points S = {s_i} (scan, sensor frame) and target points
T = {t_j} (map), find the rigid transform X that maps S onto T.

ICP alternates:
    - Correspondence: c(i) = argmin_j ||X·s_i - t_j||, rejected when the
      distance exceeds the max correspondence distance
    - Update: closed-form least squares for the increment via SVD
      (Arun et al. 1987), left-composed onto X

Convergence is declared when either
    - the increment is negligible: ||dt||² <= transformation_epsilon and
      its rotation angle cosine >= ROTATION_COS_THRESHOLD, or
    - the correspondence MSE changed by less than euclidean_fitness_epsilon.
Running out of iterations is NOT convergence; the last estimate is still
returned with converged=False.

Fitness score: mean squared distance from each transformed source point to
its nearest target point, over points within `max_range` (unbounded by
default). Lower is better.

Reference:
    - Besl & McKay (1992) for ICP algorithm
    - Arun, Huang & Blostein (1987) for the SVD solution
"""

import logging
from dataclasses import dataclass

import numpy as np
from scipy.spatial import cKDTree

from map_localizer.common import constants
from map_localizer.common.param_models import RegistrationParams

_logger = logging.getLogger(__name__)

# cos(angle) of the increment above which the rotation counts as unchanged
ROTATION_COS_THRESHOLD = 0.99999


@dataclass
class RegistrationResult:
    """ICP outcome with solver metadata."""
    transformation: np.ndarray  # 4x4, maps source frame into target frame
    fitness_score: float        # Mean squared NN distance after alignment
    converged: bool             # Whether a convergence criterion was met
    iterations: int             # Iterations actually used
    max_iterations: int         # Iteration budget
    n_source: int
    n_target: int
    n_correspondences: int      # Correspondences used in the last update


def best_fit_transform(src: np.ndarray, tgt: np.ndarray) -> np.ndarray:
    """
    Closed-form rigid registration via SVD (Arun et al. 1987).

    Finds T = argmin_T sum ||T·src_i - tgt_i||² for paired (K, 3) arrays.
    Exact for the given correspondences.
    """
    src_cent = np.mean(src, axis=0)
    tgt_cent = np.mean(tgt, axis=0)
    H = (src - src_cent).T @ (tgt - tgt_cent)
    U, _, Vt = np.linalg.svd(H)
    R = Vt.T @ U.T

    # Reflection case
    if np.linalg.det(R) < 0.0:
        Vt[2, :] *= -1.0
        R = Vt.T @ U.T

    T = np.eye(4, dtype=np.float64)
    T[:3, :3] = R
    T[:3, 3] = tgt_cent - R @ src_cent
    return T


def _apply(T: np.ndarray, xyz: np.ndarray) -> np.ndarray:
    return xyz @ T[:3, :3].T + T[:3, 3]


class IcpRegistration:
    """
    ICP against a fixed target cloud.

    The KD-tree over the target is built once and reused for every
    `align` call, so one instance serves every scan against the same map.
    """

    def __init__(self, target: np.ndarray):
        target = np.asarray(target, dtype=np.float64)
        if target.ndim != 2 or target.shape[1] < 3:
            raise ValueError(f"Expected (M, >=3) target array, got shape {target.shape}")
        if target.shape[0] < constants.MIN_POINTS_FOR_ICP:
            raise ValueError(
                f"ICP target needs at least {constants.MIN_POINTS_FOR_ICP} points, got {target.shape[0]}"
            )
        self.target = np.ascontiguousarray(target[:, :3])
        self._tree = cKDTree(self.target)

    @property
    def n_target(self) -> int:
        return self.target.shape[0]

    def fitness_score(self, source: np.ndarray, transformation: np.ndarray, max_range: float = np.inf) -> float:
        """Mean squared nearest-neighbour distance of transformed source points within max_range."""
        xyz = _apply(np.asarray(transformation, dtype=np.float64), np.asarray(source, dtype=np.float64)[:, :3])
        dist, _ = self._tree.query(xyz, k=1)
        inside = dist <= max_range
        if not np.any(inside):
            return float("inf")
        return float(np.mean(dist[inside] ** 2))

    def align(
        self,
        source: np.ndarray,
        init: np.ndarray,
        params: RegistrationParams,
    ) -> RegistrationResult:
        """
        Register `source` onto the target starting from `init`.

        Args:
            source: Source point cloud (N, >=3), sensor frame
            init: Initial guess, 4x4 source-to-target transform
            params: Correspondence distance, iteration budget and epsilons

        Returns:
            RegistrationResult; converged=False when the budget ran out
        """
        source = np.asarray(source, dtype=np.float64)
        if source.ndim != 2 or source.shape[1] < 3:
            raise ValueError(f"Expected (N, >=3) source array, got shape {source.shape}")
        if source.shape[0] < constants.MIN_POINTS_FOR_ICP:
            raise ValueError(
                f"ICP source needs at least {constants.MIN_POINTS_FOR_ICP} points, got {source.shape[0]}"
            )
        src = np.ascontiguousarray(source[:, :3])
        transform = np.array(init, dtype=np.float64, copy=True)
        if transform.shape != (4, 4):
            raise ValueError(f"Expected 4x4 initial transform, got shape {transform.shape}")

        max_dist = params.max_correspondence_distance
        prev_mse = None
        converged = False
        iters = 0
        n_corr = 0

        for i in range(params.max_iterations):
            iters = i + 1
            src_tf = _apply(transform, src)

            dist, nn_idx = self._tree.query(src_tf, k=1, distance_upper_bound=max_dist)
            valid = np.isfinite(dist)
            n_corr = int(np.sum(valid))
            if n_corr < constants.MIN_POINTS_FOR_ICP:
                _logger.debug(f"ICP stopped at iteration {iters}: only {n_corr} correspondences")
                break

            mse = float(np.mean(dist[valid] ** 2))
            delta = best_fit_transform(src_tf[valid], self.target[nn_idx[valid]])
            transform = delta @ transform

            translation_sqr = float(delta[:3, 3] @ delta[:3, 3])
            cos_angle = 0.5 * (float(np.trace(delta[:3, :3])) - 1.0)
            if translation_sqr <= params.transformation_epsilon and cos_angle >= ROTATION_COS_THRESHOLD:
                converged = True
                break
            if prev_mse is not None and abs(prev_mse - mse) < params.euclidean_fitness_epsilon:
                converged = True
                break
            prev_mse = mse

        return RegistrationResult(
            transformation=transform,
            fitness_score=self.fitness_score(src, transform),
            converged=converged,
            iterations=iters,
            max_iterations=params.max_iterations,
            n_source=src.shape[0],
            n_target=self.n_target,
            n_correspondences=n_corr,
        )
