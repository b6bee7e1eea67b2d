"""
Backend package: the localization engine.

- tracker: TrackerState and phases
- initial_pose: one-time yaw sweep around the position fix
- scan_matcher: warm-started per-scan registration
- frame_composer: lidar pose to vehicle pose and log records
- localizer: Localizer engine and LocalizerService worker
"""
