"""
Common package for the map localizer.

Shared parameters, message types and transforms used by frontend and backend.

Subpackages:
- transforms/: SE(3) geometry operations
"""
