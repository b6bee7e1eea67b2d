"""
Map localizer: scan-to-map ICP localization against a prior point cloud.

Subpackages:
- common/: parameters, messages, errors, SE(3) transforms
- frontend/: voxel filtering, ICP registration, readiness gate
- backend/: tracker state, initial pose search, scan matcher, frame composer, engine
"""

from __future__ import annotations

from importlib import import_module
from typing import Any

__all__ = [
    "Localizer",
    "LocalizerService",
    "LocalizationResult",
    "LocalizerParams",
    "load_params",
    "ConfigurationError",
    "LocalizerNotReady",
    "PointCloudMsg",
    "PositionFixMsg",
    "OutputSink",
]

_LAZY_ATTRS: dict[str, tuple[str, str]] = {
    "Localizer": ("map_localizer.backend.localizer", "Localizer"),
    "LocalizerService": ("map_localizer.backend.localizer", "LocalizerService"),
    "LocalizationResult": ("map_localizer.backend.localizer", "LocalizationResult"),
    "LocalizerParams": ("map_localizer.common.param_models", "LocalizerParams"),
    "load_params": ("map_localizer.common.param_models", "load_params"),
    "ConfigurationError": ("map_localizer.common.errors", "ConfigurationError"),
    "LocalizerNotReady": ("map_localizer.common.errors", "LocalizerNotReady"),
    "PointCloudMsg": ("map_localizer.common.messages", "PointCloudMsg"),
    "PositionFixMsg": ("map_localizer.common.messages", "PositionFixMsg"),
    "OutputSink": ("map_localizer.backend.outputs", "OutputSink"),
}


def __getattr__(name: str) -> Any:
    target = _LAZY_ATTRS.get(name)
    if target is None:
        raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
    module_name, attr_name = target
    module = import_module(module_name)
    return getattr(module, attr_name)


def __dir__() -> list[str]:
    return sorted(set(globals().keys()) | set(_LAZY_ATTRS.keys()))
