"""Per-scan registration seeded from the previous pose."""

import logging
from dataclasses import dataclass

import numpy as np

from map_localizer.common.param_models import RegistrationParams
from map_localizer.frontend.icp import IcpRegistration

_logger = logging.getLogger(__name__)


@dataclass
class MatchResult:
    transform: np.ndarray  # Refined T_map_lidar
    fitness: float
    converged: bool
    iterations: int


class ScanMatcher:
    """
    Tight-threshold ICP from a warm start.

    The seed is the previous scan's pose (constant-pose motion model), so the
    correspondence distance can be smaller than in the initial search.
    Non-convergence is accepted: the best-effort transform is returned.
    """

    def __init__(self, registration: RegistrationParams):
        self.registration = registration

    def match(self, icp: IcpRegistration, scan: np.ndarray, seed: np.ndarray) -> MatchResult:
        result = icp.align(scan, seed, self.registration)
        if not result.converged:
            _logger.debug(
                f"Scan match used full budget ({result.iterations} iterations), "
                f"fitness={result.fitness_score:.6g}"
            )
        return MatchResult(
            transform=result.transformation,
            fitness=result.fitness_score,
            converged=result.converged,
            iterations=result.iterations,
        )
