"""Host capability used by the view registry.

The registry never talks to a windowing toolkit directly; it calls a
:class:`ViewSurface` supplied by the host. ``HeadlessSurface`` keeps the state
in memory for the HTTP gateway and for tests. ``ScriptEvalSurface`` covers
hosts whose child views can only be hidden by evaluating a script inside them.
"""

from __future__ import annotations

import itertools
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Protocol

from .errors import SurfaceError
from .types import Geometry

SHOW_SCRIPT = (
    "document.documentElement.style.display = 'block';"
    " if (document.body) { document.body.style.display = 'block'; }"
    " document.documentElement.style.visibility = 'visible';"
)
HIDE_SCRIPT = (
    "document.documentElement.style.display = 'none';"
    " if (document.body) { document.body.style.display = 'none'; }"
    " document.documentElement.style.visibility = 'hidden';"
)


class ViewSurface(Protocol):
    supports_destroy: bool

    def create(self, label: str, url: str, geometry: Geometry, visible: bool) -> Any:
        ...

    def set_visibility(self, ref: Any, visible: bool) -> None:
        ...

    def set_position(self, ref: Any, x: float, y: float) -> None:
        ...

    def set_size(self, ref: Any, width: float, height: float) -> None:
        ...

    def destroy(self, ref: Any) -> None:
        ...


@dataclass
class HeadlessView:
    label: str
    url: str
    x: float
    y: float
    width: float
    height: float
    visible: bool
    closed: bool = False


@dataclass
class HeadlessSurface:
    """In-memory surface; records every call in ``calls``."""

    supports_destroy: bool = True
    views: dict[int, HeadlessView] = field(default_factory=dict)
    calls: list[tuple[Any, ...]] = field(default_factory=list)
    _ids: Any = field(default_factory=lambda: itertools.count(1), init=False, repr=False)
    _lock: threading.Lock = field(default_factory=threading.Lock, init=False, repr=False)

    def create(self, label: str, url: str, geometry: Geometry, visible: bool) -> int:
        with self._lock:
            ref = next(self._ids)
            self.views[ref] = HeadlessView(
                label=label,
                url=url,
                x=geometry.x,
                y=geometry.y,
                width=geometry.width,
                height=geometry.height,
                visible=visible,
            )
            self.calls.append(("create", label))
            return ref

    def set_visibility(self, ref: int, visible: bool) -> None:
        with self._lock:
            view = self._live(ref)
            view.visible = visible
            self.calls.append(("show" if visible else "hide", view.label))

    def set_position(self, ref: int, x: float, y: float) -> None:
        with self._lock:
            view = self._live(ref)
            view.x, view.y = x, y
            self.calls.append(("position", view.label))

    def set_size(self, ref: int, width: float, height: float) -> None:
        with self._lock:
            view = self._live(ref)
            view.width, view.height = width, height
            self.calls.append(("size", view.label))

    def destroy(self, ref: int) -> None:
        if not self.supports_destroy:
            raise SurfaceError("此 surface 不支援銷毀 view")
        with self._lock:
            view = self._live(ref)
            view.closed = True
            view.visible = False
            self.calls.append(("destroy", view.label))

    def _live(self, ref: int) -> HeadlessView:
        view = self.views.get(ref)
        if view is None or view.closed:
            raise SurfaceError(f"view 不存在：{ref}")
        return view


class ScriptEvalSurface(ABC):
    """Abstract base for hosts that hide views by evaluating scripts in them.

    Not usable directly: subclasses implement ``create``, ``set_position``, ``set_size`` and
    ``eval_script``. Such hosts usually cannot close a child view, so
    ``supports_destroy`` defaults to False and the registry falls back to
    suppression.
    """

    supports_destroy = False

    @abstractmethod
    def create(self, label: str, url: str, geometry: Geometry, visible: bool) -> Any:
        raise NotImplementedError

    @abstractmethod
    def set_position(self, ref: Any, x: float, y: float) -> None:
        raise NotImplementedError

    @abstractmethod
    def set_size(self, ref: Any, width: float, height: float) -> None:
        raise NotImplementedError

    @abstractmethod
    def eval_script(self, ref: Any, script: str) -> None:
        raise NotImplementedError

    def set_visibility(self, ref: Any, visible: bool) -> None:
        self.eval_script(ref, SHOW_SCRIPT if visible else HIDE_SCRIPT)

    def destroy(self, ref: Any) -> None:
        raise SurfaceError("此 surface 不支援銷毀 view")
