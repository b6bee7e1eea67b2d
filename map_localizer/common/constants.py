"""
Map localizer default parameters.

=============================================================================
CONVENTION QUICK REFERENCE
=============================================================================

POSES:
  4x4 homogeneous matrices. T_map_lidar maps lidar-frame points into the map:
      p_map = T_map_lidar[:3, :3] @ p_lidar + T_map_lidar[:3, 3]

EXTRINSICS:
  T_base_lidar = pose of the lidar in the vehicle (base_link) frame,
  given as translation [x, y, z] + quaternion [qx, qy, qz, qw].
  Vehicle pose: T_map_base = T_map_lidar @ inv(T_base_lidar)

EULER ANGLES:
  Intrinsic Z-Y-X: R = Rz(yaw) @ Ry(pitch) @ Rx(roll), radians.

POINT CLOUDS:
  (N, 4) float arrays [x, y, z, intensity]; (N, 3) gets zero intensity.
=============================================================================
"""

# =============================================================================
# Downsampling
# =============================================================================

MAP_LEAF_SIZE_DEFAULT = 0.3  # meters
SCAN_LEAF_SIZE_DEFAULT = 0.3  # meters

# =============================================================================
# Initial yaw sweep (radians, end exclusive)
# =============================================================================

INIT_YAW_START_DEFAULT = 0.0
INIT_YAW_END_DEFAULT = 0.2
INIT_YAW_STEP_DEFAULT = 0.05

# =============================================================================
# Registration budgets
# =============================================================================

# Coarse search: the fix carries no heading, so correspondences may be far
INIT_MAX_CORRESPONDENCE_DIST = 2.0
# Tracking: the previous pose is assumed close
TRACK_MAX_CORRESPONDENCE_DIST = 1.0

ICP_MAX_ITER_DEFAULT = 1000
ICP_TRANSFORMATION_EPSILON_DEFAULT = 1e-8
ICP_EUCLIDEAN_FITNESS_EPSILON_DEFAULT = 1e-8

# Fewer source points than this cannot constrain SE(3)
MIN_POINTS_FOR_ICP = 3

# =============================================================================
# Frames and I/O
# =============================================================================

MAP_FRAME_DEFAULT = "world"
LIDAR_FRAME_DEFAULT = "lidar"
RESULT_SAVE_PATH_DEFAULT = "result.csv"
RESULT_LOG_HEADER = "id,x,y,z,yaw,pitch,roll"

# =============================================================================
# Readiness
# =============================================================================

READINESS_REPORT_INTERVAL_SEC = 1.0
READINESS_INPUT_MAP = "map"
READINESS_INPUT_FIX = "fix"
