"""
Initial pose search.

The position fix has no heading, so the first scan is registered from a
sweep of yaw hypotheses about the fix position:

    guess(yaw) = translation(fix) · Rz(yaw)

Each guess is refined with the coarse registration budget. The refined
transform with the strictly lowest fitness wins; on ties the earliest
candidate is kept. Candidates that fail to converge still compete on
fitness.
"""

import logging
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

import numpy as np

from map_localizer.common.errors import ConfigurationError
from map_localizer.common.param_models import LocalizerParams, RegistrationParams
from map_localizer.common.transforms.se3 import transform_from_yaw
from map_localizer.frontend.icp import IcpRegistration

_logger = logging.getLogger(__name__)


@dataclass
class YawCandidate:
    yaw: float            # Seed yaw (radians)
    fitness: float
    converged: bool
    iterations: int
    transform: np.ndarray  # Refined T_map_lidar


@dataclass
class InitialPoseResult:
    transform: np.ndarray  # Best refined T_map_lidar
    fitness: float
    yaw: float             # Seed yaw of the winning candidate
    candidates: List[YawCandidate] = field(default_factory=list)


class InitialPoseSearch:
    """Yaw sweep around a position fix."""

    def __init__(self, yaw_candidates: Sequence[float], registration: RegistrationParams):
        yaws = np.asarray(yaw_candidates, dtype=np.float64).reshape(-1)
        if yaws.size == 0:
            raise ConfigurationError("Initial pose search needs at least one yaw candidate")
        self.yaw_candidates = yaws
        self.registration = registration

    @classmethod
    def from_params(cls, params: LocalizerParams) -> "InitialPoseSearch":
        return cls(params.init_yaw_candidates(), params.initial_registration)

    def run(self, icp: IcpRegistration, scan: np.ndarray, fix: np.ndarray) -> InitialPoseResult:
        """
        Args:
            icp: Registration against the downsampled map
            scan: Downsampled first scan, sensor frame
            fix: Position fix (x, y, z) in the map frame
        """
        fix = np.asarray(fix, dtype=np.float64).reshape(3)
        candidates: List[YawCandidate] = []
        best: Optional[YawCandidate] = None

        for yaw in self.yaw_candidates:
            guess = transform_from_yaw(fix, float(yaw))
            result = icp.align(scan, guess, self.registration)
            candidate = YawCandidate(
                yaw=float(yaw),
                fitness=result.fitness_score,
                converged=result.converged,
                iterations=result.iterations,
                transform=result.transformation,
            )
            candidates.append(candidate)
            _logger.debug(
                f"Initial yaw {yaw:.4f}: fitness={result.fitness_score:.6g}, "
                f"converged={result.converged}, iterations={result.iterations}"
            )
            if best is None or candidate.fitness < best.fitness:
                best = candidate

        if not any(c.converged for c in candidates):
            _logger.warning("Initial pose search: no yaw candidate converged, using best fitness anyway")
        _logger.info(f"Initial guess from yaw {best.yaw:.4f} (fitness {best.fitness:.6g})")

        return InitialPoseResult(
            transform=best.transform,
            fitness=best.fitness,
            yaw=best.yaw,
            candidates=candidates,
        )
