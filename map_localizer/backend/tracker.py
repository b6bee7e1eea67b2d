"""
Tracker state threaded through the localizer.

Flags only move false -> true. The phase is derived from them:

    WAITING   map or fix still missing
    SEEDING   both present, initial pose search not yet run
    TRACKING  initialized; every scan is matched from the previous pose
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Optional

import numpy as np

from map_localizer.common.transforms.se3 import is_rigid, se3_identity


class TrackerPhase(enum.Enum):
    WAITING = "waiting"
    SEEDING = "seeding"
    TRACKING = "tracking"


@dataclass
class TrackerState:
    map_ready: bool = False
    fix_ready: bool = False
    initialized: bool = False
    current_pose: np.ndarray = field(default_factory=se3_identity)  # T_map_lidar
    last_fix: Optional[np.ndarray] = None
    frame_index: int = 0
    cumulative_fitness: float = 0.0

    @property
    def phase(self) -> TrackerPhase:
        if self.initialized:
            return TrackerPhase.TRACKING
        if self.map_ready and self.fix_ready:
            return TrackerPhase.SEEDING
        return TrackerPhase.WAITING

    @property
    def ready(self) -> bool:
        return self.map_ready and self.fix_ready

    def mark_map_ready(self) -> bool:
        """Returns True on the false -> true transition."""
        first = not self.map_ready
        self.map_ready = True
        return first

    def mark_fix(self, position: np.ndarray) -> bool:
        """Store the latest fix (last value wins). Returns True on the first fix."""
        self.last_fix = np.asarray(position, dtype=np.float64).reshape(3).copy()
        first = not self.fix_ready
        self.fix_ready = True
        return first

    def seed(self, pose: np.ndarray) -> None:
        """Install the initial pose search result and enter TRACKING."""
        if self.initialized:
            raise RuntimeError("TrackerState already initialized")
        if not self.ready:
            raise RuntimeError(f"Cannot seed tracker in phase {self.phase.value}")
        self._set_pose(pose)
        self.initialized = True

    def advance(self, pose: np.ndarray, fitness: float) -> int:
        """
        Record one matched scan.

        Returns the 1-based index of the scan.
        """
        if not self.initialized:
            raise RuntimeError("Cannot track before the initial pose is seeded")
        fitness = float(fitness)
        if not fitness >= 0.0:
            raise ValueError(f"Fitness score must be non-negative, got {fitness}")
        self._set_pose(pose)
        self.cumulative_fitness += fitness
        self.frame_index += 1
        return self.frame_index

    def _set_pose(self, pose: np.ndarray) -> None:
        pose = np.array(pose, dtype=np.float64, copy=True)
        if not is_rigid(pose):
            raise ValueError(f"Pose is not a rigid transform:\n{pose}")
        self.current_pose = pose
