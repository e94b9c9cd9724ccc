"""Registry of per-project views.

Labels are ``<namespace><project_id>``; all views sharing a namespace form an
exclusivity group in which at most one view is visible. No namespace
may be a prefix of another, so two groups never produce the same label. Every
mutation and every read goes through one re-entrant lock because the
exclusivity invariant spans several entries.
"""

from __future__ import annotations

import logging
import threading
from typing import Callable

from ..fs.safety import validate_project_id
from ..resources.paths import DEFAULT_SCHEME
from .errors import SurfaceError, ViewNotFound, ViewOperationFailed
from .surface import ViewSurface
from .types import DestroyOutcome, Geometry, SyncReport, ViewHandle, ViewSnapshot

logger = logging.getLogger(__name__)

DEFAULT_NAMESPACE = "child_"

UrlBuilder = Callable[[str], str]


def project_url(project_id: str, scheme: str = DEFAULT_SCHEME) -> str:
    return f"{scheme}://{project_id}/"


class ViewRegistry:
    def __init__(
        self,
        surface: ViewSurface,
        *,
        namespace: str = DEFAULT_NAMESPACE,
        url_builder: UrlBuilder | None = None,
    ) -> None:
        if not namespace:
            raise ValueError("namespace 不可為空")
        self.surface = surface
        self.namespace = namespace
        self._url_builder = url_builder or project_url
        self._views: dict[str, ViewHandle] = {}
        self._namespaces: set[str] = {namespace}
        self._lock = threading.RLock()

    def label_for(self, project_id: str, namespace: str | None = None) -> str:
        validate_project_id(project_id)
        group = namespace or self.namespace
        self._claim_namespace(group)
        return f"{group}{project_id}"

    # -- mutations -------------------------------------------------------

    def create(
        self,
        project_id: str,
        geometry: Geometry,
        visible: bool = True,
        namespace: str | None = None,
    ) -> bool:
        """Create the view for ``project_id``; False if it already exists.

        A new view displaces every sibling in its group first, visible or not:
        siblings are destroyed when the surface allows it and suppressed
        otherwise.
        """

        group = namespace or self.namespace
        label = self.label_for(project_id, group)
        with self._lock:
            if label in self._views:
                logger.info("view 已存在：%s", label)
                return False

            for sibling in self._group(group, exclude=label):
                self._displace(sibling)

            url = self._url_builder(project_id)
            try:
                ref = self.surface.create(label, url, geometry, visible)
            except SurfaceError as exc:
                raise ViewOperationFailed(f"建立 view 失敗 {label}：{exc}") from exc
            self._views[label] = ViewHandle(
                label=label,
                project_id=project_id,
                namespace=group,
                url=url,
                geometry=geometry,
                visible=visible,
                surface_ref=ref,
            )
            logger.info("已建立 view：%s（%s）", label, url, extra={"label": label})
            return True

    def show(self, project_id: str, namespace: str | None = None) -> None:
        label = self.label_for(project_id, namespace)
        with self._lock:
            target = self._require(label)
            for sibling in self._group(target.namespace, exclude=label):
                if not sibling.visible:
                    continue
                try:
                    self._set_visibility(sibling, False)
                except ViewOperationFailed as exc:
                    logger.warning("隱藏 view 失敗 %s：%s", sibling.label, exc)
            self._set_visibility(target, True)
            logger.info("已切換顯示 view：%s", label, extra={"label": label})

    def hide(self, project_id: str, namespace: str | None = None) -> None:
        label = self.label_for(project_id, namespace)
        with self._lock:
            handle = self._views.get(label)
            if handle is None:
                return
            self._set_visibility(handle, False)

    def destroy(self, project_id: str, namespace: str | None = None) -> DestroyOutcome:
        label = self.label_for(project_id, namespace)
        with self._lock:
            handle = self._views.get(label)
            if handle is None:
                return DestroyOutcome.ABSENT
            outcome = self._retire(handle)
            logger.info("view %s：%s", outcome.value, label, extra={"label": label})
            return outcome

    def move(self, project_id: str, geometry: Geometry, namespace: str | None = None) -> None:
        label = self.label_for(project_id, namespace)
        with self._lock:
            self._apply_geometry(self._require(label), geometry)

    def sync_all(self, geometry: Geometry, namespace: str | None = None) -> SyncReport:
        """Move and resize every view of a namespace, tolerating failures."""
        group = namespace or self.namespace
        report = SyncReport(updated=[], failed={})
        with self._lock:
            for handle in self._group(group):
                try:
                    self._apply_geometry(handle, geometry)
                except ViewOperationFailed as exc:
                    logger.warning("同步 view 位置失敗 %s：%s", handle.label, exc)
                    report.failed[handle.label] = str(exc)
                else:
                    report.updated.append(handle.label)
        return report

    # -- reads -----------------------------------------------------------

    def get(self, project_id: str, namespace: str | None = None) -> ViewSnapshot | None:
        label = self.label_for(project_id, namespace)
        with self._lock:
            handle = self._views.get(label)
            return ViewSnapshot.of(handle) if handle else None

    def is_visible(self, project_id: str, namespace: str | None = None) -> bool:
        snapshot = self.get(project_id, namespace)
        return bool(snapshot and snapshot.visible)

    def labels(self) -> list[str]:
        with self._lock:
            return sorted(self._views)

    def visible_labels(self, namespace: str | None = None) -> list[str]:
        with self._lock:
            return sorted(
                handle.label
                for handle in self._views.values()
                if handle.visible and (namespace is None or handle.namespace == namespace)
            )

    def snapshot(self) -> list[ViewSnapshot]:
        with self._lock:
            return [ViewSnapshot.of(self._views[label]) for label in sorted(self._views)]

    def __len__(self) -> int:
        with self._lock:
            return len(self._views)

    # -- internals (lock held) -------------------------------------------

    def _claim_namespace(self, namespace: str) -> None:
        with self._lock:
            if namespace in self._namespaces:
                return
            for known in self._namespaces:
                if known.startswith(namespace) or namespace.startswith(known):
                    raise ValueError(f"namespace {namespace!r} 與既有的 {known!r} 重疊")
            self._namespaces.add(namespace)

    def _require(self, label: str) -> ViewHandle:
        handle = self._views.get(label)
        if handle is None:
            raise ViewNotFound(label)
        return handle

    def _group(self, namespace: str, exclude: str | None = None) -> list[ViewHandle]:
        return [
            handle
            for label, handle in self._views.items()
            if handle.namespace == namespace and label != exclude
        ]

    def _set_visibility(self, handle: ViewHandle, visible: bool) -> None:
        try:
            self.surface.set_visibility(handle.surface_ref, visible)
        except SurfaceError as exc:
            action = "顯示" if visible else "隱藏"
            raise ViewOperationFailed(f"{action} view 失敗 {handle.label}：{exc}") from exc
        handle.visible = visible

    def _apply_geometry(self, handle: ViewHandle, geometry: Geometry) -> None:
        try:
            self.surface.set_position(handle.surface_ref, geometry.x, geometry.y)
            self.surface.set_size(handle.surface_ref, geometry.width, geometry.height)
        except SurfaceError as exc:
            raise ViewOperationFailed(f"更新 view 位置失敗 {handle.label}：{exc}") from exc
        handle.geometry = geometry

    def _retire(self, handle: ViewHandle) -> DestroyOutcome:
        if self.surface.supports_destroy:
            try:
                self.surface.destroy(handle.surface_ref)
            except SurfaceError as exc:
                raise ViewOperationFailed(f"銷毀 view 失敗 {handle.label}：{exc}") from exc
            del self._views[handle.label]
            return DestroyOutcome.DESTROYED
        self._set_visibility(handle, False)
        return DestroyOutcome.SUPPRESSED

    def _displace(self, handle: ViewHandle) -> None:
        try:
            outcome = self._retire(handle)
        except ViewOperationFailed as exc:
            logger.warning("移除其他 view 失敗 %s：%s", handle.label, exc)
            return
        logger.info("已移除其他 view（%s）：%s", outcome.value, handle.label)
