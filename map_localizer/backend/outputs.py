"""
Output sink interface.

The localizer hands every external output to a sink: pose updates, the scan
re-expressed in the map frame, and frame relations for broadcast. A
transport adapter (ROS publisher, socket, recorder) subclasses OutputSink
and overrides what it forwards; the base methods drop the output.
"""

import logging

from map_localizer.common.messages import PointCloudMsg, PoseStamped, TransformStamped

_logger = logging.getLogger(__name__)


class OutputSink:
    def publish_pose(self, pose: PoseStamped) -> None:
        pass

    def publish_transformed_scan(self, cloud: PointCloudMsg) -> None:
        pass

    def broadcast_transform(self, transform: TransformStamped) -> None:
        pass


class LoggingSink(OutputSink):
    """Logs every output at debug level."""

    def publish_pose(self, pose: PoseStamped) -> None:
        x, y, z = pose.position
        _logger.debug(f"pose [{pose.frame_id}] t={pose.stamp:.3f}: ({x:.3f}, {y:.3f}, {z:.3f})")

    def publish_transformed_scan(self, cloud: PointCloudMsg) -> None:
        _logger.debug(f"scan [{cloud.frame_id}] t={cloud.stamp:.3f}: {cloud.points.shape[0]} points")

    def broadcast_transform(self, transform: TransformStamped) -> None:
        _logger.debug(
            f"tf {transform.parent_frame} -> {transform.child_frame} t={transform.stamp:.3f}"
        )
