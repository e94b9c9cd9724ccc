"""View registry dataclasses."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Mapping


@dataclass(frozen=True)
class Geometry:
    x: float
    y: float
    width: float
    height: float

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "Geometry":
        try:
            return cls(
                x=float(data["x"]),
                y=float(data["y"]),
                width=float(data["width"]),
                height=float(data["height"]),
            )
        except KeyError as exc:
            raise ValueError(f"缺少座標欄位：{exc.args[0]}") from exc
        except (TypeError, ValueError) as exc:
            raise ValueError("座標欄位必須為數字") from exc


class DestroyOutcome(str, Enum):
    DESTROYED = "destroyed"
    SUPPRESSED = "suppressed"
    ABSENT = "absent"


@dataclass
class ViewHandle:
    """Live view owned by the registry. Never handed out directly."""

    label: str
    project_id: str
    namespace: str
    url: str
    geometry: Geometry
    visible: bool
    surface_ref: Any = None


@dataclass(frozen=True)
class ViewSnapshot:
    label: str
    project_id: str
    namespace: str
    url: str
    geometry: Geometry
    visible: bool

    @classmethod
    def of(cls, handle: ViewHandle) -> "ViewSnapshot":
        return cls(
            label=handle.label,
            project_id=handle.project_id,
            namespace=handle.namespace,
            url=handle.url,
            geometry=handle.geometry,
            visible=handle.visible,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "label": self.label,
            "project_id": self.project_id,
            "url": self.url,
            "visible": self.visible,
            "x": self.geometry.x,
            "y": self.geometry.y,
            "width": self.geometry.width,
            "height": self.geometry.height,
        }


@dataclass
class SyncReport:
    updated: list[str]
    failed: dict[str, str]

    @property
    def ok(self) -> bool:
        return not self.failed
