"""
Frontend package: point cloud preprocessing and registration primitives.

- voxel_filter: voxel grid downsampling
- icp: point-to-point ICP against a fixed target
- readiness: gate that holds scans until map and fix are available
"""
