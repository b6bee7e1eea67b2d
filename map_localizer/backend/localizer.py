"""
Map Localizer.

Scan-to-map localization against a prior point cloud:

    map ───────┐
               ├─► readiness gate ─► initial pose search (once) ─► TRACKING
    fix ───────┘                                                     │
    scan ─► voxel filter ─► scan matcher (seed = previous pose) ─► frame composer
                                                                     │
                    transformed scan / lidar pose / tf / result log ◄┘

`Localizer` is the synchronous engine and must be driven from one thread.
`LocalizerService` owns a Localizer on a worker thread and takes map, fix
and scan deliveries as messages, so callbacks from any transport thread
never touch engine state directly.
"""

from __future__ import annotations

import logging
import queue
import threading
from concurrent.futures import Future
from dataclasses import dataclass
from typing import Any, Callable, List, Optional

import numpy as np

from map_localizer.backend.frame_composer import FrameComposer, PoseRecord, pose_stamped
from map_localizer.backend.initial_pose import InitialPoseResult, InitialPoseSearch
from map_localizer.backend.outputs import OutputSink
from map_localizer.backend.result_log import ResultLog
from map_localizer.backend.scan_matcher import ScanMatcher
from map_localizer.backend.tracker import TrackerPhase, TrackerState
from map_localizer.common import constants
from map_localizer.common.errors import LocalizerNotReady
from map_localizer.common.messages import (
    PointCloudMsg,
    PositionFixMsg,
    PoseStamped,
    TransformStamped,
)
from map_localizer.common.param_models import LocalizerParams
from map_localizer.common.transforms.se3 import make_transform, transform_points
from map_localizer.frontend.icp import IcpRegistration
from map_localizer.frontend.readiness import ReadinessGate
from map_localizer.frontend.voxel_filter import VoxelGridFilter, as_xyzi

_logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ReferenceMap:
    """A delivered map with its downsampled copy and registration target."""
    points: np.ndarray       # (N, 4) as delivered
    downsampled: np.ndarray  # (M, 4) after the map voxel filter
    icp: IcpRegistration


@dataclass
class LocalizationResult:
    frame_index: int
    stamp: float
    T_map_lidar: np.ndarray
    T_map_base: np.ndarray
    record: PoseRecord
    fitness: float
    converged: bool
    iterations: int
    initial: Optional[InitialPoseResult] = None  # Set on the scan that seeded tracking


class Localizer:
    """Synchronous localization engine. Not thread-safe."""

    def __init__(
        self,
        params: LocalizerParams,
        sink: Optional[OutputSink] = None,
        result_log: Optional[ResultLog] = None,
    ):
        self.params = params
        self.sink = sink if sink is not None else OutputSink()
        self.state = TrackerState()
        self.composer = FrameComposer(params.extrinsic_matrix(), params.map_frame, params.lidar_frame)
        self.initial_search = InitialPoseSearch.from_params(params)
        self.matcher = ScanMatcher(params.tracking_registration)
        self._map_filter = VoxelGridFilter(params.map_leaf_size)
        self._scan_filter = VoxelGridFilter(params.scan_leaf_size)
        self._map: Optional[ReferenceMap] = None
        self.result_log = result_log if result_log is not None else ResultLog(params.result_save_path)
        self._shut_down = False
        self.skipped_scans = 0

    @property
    def phase(self) -> TrackerPhase:
        return self.state.phase

    @property
    def reference_map(self) -> Optional[ReferenceMap]:
        return self._map

    def missing_inputs(self) -> List[str]:
        missing = []
        if not self.state.map_ready:
            missing.append(constants.READINESS_INPUT_MAP)
        if not self.state.fix_ready:
            missing.append(constants.READINESS_INPUT_FIX)
        return missing

    # -------------------------------------------------------------------------
    # Inputs
    # -------------------------------------------------------------------------

    def on_map(self, msg: PointCloudMsg) -> bool:
        """
        Install (or replace) the reference map.

        Returns True on the first map delivery.
        """
        points = as_xyzi(msg.points)
        downsampled = self._map_filter.filter(points)
        # Build everything first so a bad map leaves the previous one in place
        self._map = ReferenceMap(points=points, downsampled=downsampled, icp=IcpRegistration(downsampled))
        first = self.state.mark_map_ready()
        verb = "received" if first else "replaced"
        _logger.info(f"Map {verb}: {points.shape[0]} points, {downsampled.shape[0]} after downsampling")
        return first

    def on_fix(self, msg: PositionFixMsg) -> bool:
        """
        Buffer a position fix (last value wins).

        The first fix also emits a bootstrap pose at the fix with identity
        orientation. Returns True on the first fix.
        """
        position = msg.as_array()
        first = self.state.mark_fix(position)
        if first and not self.state.initialized:
            T = make_transform(np.eye(3), position)
            self.sink.publish_pose(
                PoseStamped(
                    stamp=msg.stamp,
                    frame_id=self.params.map_frame,
                    position=(float(position[0]), float(position[1]), float(position[2])),
                )
            )
            self.sink.broadcast_transform(
                TransformStamped(
                    stamp=msg.stamp,
                    parent_frame=self.params.map_frame,
                    child_frame=self.params.lidar_frame,
                    transform=T,
                )
            )
            _logger.info(f"First position fix: ({position[0]:.3f}, {position[1]:.3f}, {position[2]:.3f})")
        return first

    def on_scan(self, msg: PointCloudMsg) -> Optional[LocalizationResult]:
        """
        Localize one scan.

        A scan with fewer than MIN_POINTS_FOR_ICP points left after filtering
        is skipped with a warning and returns None; the pose and frame index
        are unchanged.

        Raises:
            LocalizerNotReady: map or fix not yet delivered (nothing is output)
            RuntimeError: called after shutdown
        """
        if self._shut_down:
            raise RuntimeError("Localizer has been shut down")
        if not self.state.ready:
            raise LocalizerNotReady(self.missing_inputs())

        reference = self._map
        scan = as_xyzi(msg.points)
        scan_down = self._scan_filter.filter(scan)
        if scan_down.shape[0] < constants.MIN_POINTS_FOR_ICP:
            self.skipped_scans += 1
            _logger.warning(
                f"Skipping scan at t={msg.stamp:.3f}: {scan_down.shape[0]} usable points after filtering, "
                f"keeping pose of frame {self.state.frame_index}"
            )
            return None

        initial = None
        if not self.state.initialized:
            initial = self.initial_search.run(reference.icp, scan_down, self.state.last_fix)
            self.state.seed(initial.transform)
            _logger.info("Get initial guess: tracking started")

        match = self.matcher.match(reference.icp, scan_down, self.state.current_pose)
        frame_index = self.state.advance(match.transform, match.fitness)
        frames = self.composer.compose(match.transform, frame_index, msg.stamp)

        self.sink.publish_transformed_scan(
            PointCloudMsg(
                points=transform_points(match.transform, scan),
                stamp=msg.stamp,
                frame_id=self.params.map_frame,
            )
        )
        self.sink.broadcast_transform(frames.frame_broadcast)
        self.sink.publish_pose(frames.lidar_pose)
        self.result_log.append(frames.record)

        _logger.debug(
            f"Frame {frame_index}: fitness={match.fitness:.6g}, converged={match.converged}, "
            f"iterations={match.iterations}"
        )
        return LocalizationResult(
            frame_index=frame_index,
            stamp=msg.stamp,
            T_map_lidar=match.transform,
            T_map_base=frames.vehicle_pose,
            record=frames.record,
            fitness=match.fitness,
            converged=match.converged,
            iterations=match.iterations,
            initial=initial,
        )

    def current_pose(self, stamp: float = 0.0) -> PoseStamped:
        """Latest map -> lidar pose."""
        return pose_stamped(self.state.current_pose, stamp, self.params.map_frame)

    def shutdown(self) -> float:
        """Report the cumulative fitness and close the result log. Idempotent."""
        if not self._shut_down:
            self._shut_down = True
            _logger.info(
                f"ICP score: {self.state.cumulative_fitness:.6f} over {self.state.frame_index} scans"
            )
            self.result_log.close()
        return self.state.cumulative_fitness


_USE_CONFIGURED_TIMEOUT = object()
_STOP = object()


class LocalizerService:
    """
    Single worker thread owning a Localizer.

    Map and fix deliveries are queued and applied in order. `submit_scan`
    waits on the readiness gate, queues the scan and blocks until it is
    localized; scans are never buffered beyond the one being processed.
    """

    def __init__(
        self,
        params: LocalizerParams,
        sink: Optional[OutputSink] = None,
        result_log: Optional[ResultLog] = None,
    ):
        self.params = params
        self.localizer = Localizer(params, sink=sink, result_log=result_log)
        self.gate = ReadinessGate(report_interval_sec=params.readiness_report_interval_sec)
        self._inbox: "queue.Queue[Any]" = queue.Queue()
        self._thread = threading.Thread(target=self._run, name="map_localizer", daemon=True)
        self._lock = threading.Lock()
        self._accepting = False

    def start(self) -> "LocalizerService":
        with self._lock:
            if self._thread.is_alive() or self._accepting:
                raise RuntimeError("LocalizerService already started")
            self._accepting = True
            self._thread.start()
        _logger.info("Localizer service started")
        return self

    def __enter__(self) -> "LocalizerService":
        return self.start()

    def __exit__(self, exc_type, exc, tb) -> None:
        self.stop()

    def _submit(self, handler: Callable[[Any], Any], msg: Any) -> Future:
        future: Future = Future()
        with self._lock:
            if not self._accepting:
                raise RuntimeError("LocalizerService is not running")
            self._inbox.put((handler, msg, future))
        return future

    def submit_map(self, msg: PointCloudMsg) -> Future:
        return self._submit(self._apply_map, msg)

    def submit_fix(self, msg: PositionFixMsg) -> Future:
        return self._submit(self._apply_fix, msg)

    def submit_scan(self, msg: PointCloudMsg, timeout: Any = _USE_CONFIGURED_TIMEOUT) -> Optional[LocalizationResult]:
        """
        Localize a scan, blocking until the result is available.

        Returns None when the scan was skipped for having too few points.

        Args:
            timeout: Readiness wait in seconds; None waits forever. Defaults to
                params.readiness_timeout_sec.

        Raises:
            LocalizerNotReady: readiness wait timed out or the service stopped
        """
        if timeout is _USE_CONFIGURED_TIMEOUT:
            timeout = self.params.readiness_timeout_sec
        self.gate.wait(timeout)
        return self._submit(self.localizer.on_scan, msg).result()

    def _apply_map(self, msg: PointCloudMsg) -> bool:
        first = self.localizer.on_map(msg)
        self.gate.mark_ready(constants.READINESS_INPUT_MAP)
        return first

    def _apply_fix(self, msg: PositionFixMsg) -> bool:
        first = self.localizer.on_fix(msg)
        self.gate.mark_ready(constants.READINESS_INPUT_FIX)
        return first

    def _run(self) -> None:
        while True:
            item = self._inbox.get()
            if item is _STOP:
                break
            handler, msg, future = item
            if not future.set_running_or_notify_cancel():
                continue
            try:
                result = handler(msg)
            except Exception as exc:
                _logger.error(f"Localizer worker: {type(exc).__name__}: {exc}")
                future.set_exception(exc)
            else:
                future.set_result(result)

    def stop(self, timeout: Optional[float] = None) -> float:
        """
        Finish queued work, stop the worker and shut the engine down.

        Returns the cumulative fitness. If the worker is still busy when
        `timeout` expires, the engine is left running and the result log open;
        call stop again to finish.
        """
        with self._lock:
            was_accepting = self._accepting
            self._accepting = False
            if was_accepting:
                self._inbox.put(_STOP)
        self.gate.close()
        if self._thread.is_alive():
            self._thread.join(timeout)
            if self._thread.is_alive():
                _logger.warning(f"Localizer worker still busy after {timeout}s; shutdown deferred")
                return self.localizer.state.cumulative_fitness
        return self.localizer.shutdown()
