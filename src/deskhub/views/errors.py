"""View lifecycle error definitions."""

from __future__ import annotations


class ViewError(RuntimeError):
    """Base class for view lifecycle errors."""


class ViewNotFound(ViewError):
    """Raised when an operation targets a label with no live view."""

    def __init__(self, label: str) -> None:
        super().__init__(f"找不到 view：{label}")
        self.label = label


class ViewOperationFailed(ViewError):
    """Raised when the host surface rejects a geometry or visibility change."""


class SurfaceError(RuntimeError):
    """Raised by surface implementations when the host refuses an operation."""
