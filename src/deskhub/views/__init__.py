"""Per-project view lifecycle."""

from .errors import SurfaceError, ViewError, ViewNotFound, ViewOperationFailed
from .registry import DEFAULT_NAMESPACE, ViewRegistry, project_url
from .surface import HeadlessSurface, ViewSurface
from .types import DestroyOutcome, Geometry, SyncReport, ViewSnapshot

__all__ = [
    "DEFAULT_NAMESPACE",
    "DestroyOutcome",
    "Geometry",
    "HeadlessSurface",
    "SurfaceError",
    "SyncReport",
    "ViewError",
    "ViewNotFound",
    "ViewOperationFailed",
    "ViewRegistry",
    "ViewSnapshot",
    "ViewSurface",
    "project_url",
]
