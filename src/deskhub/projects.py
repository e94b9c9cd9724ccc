"""Configured projects hosted by the shell."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path, PurePosixPath
from typing import Any, Iterable, Iterator, Mapping

from .fs.safety import validate_project_id


@dataclass(frozen=True)
class ProjectSpec:
    id: str
    name: str
    description: str = ""
    entry: str = ""
    port: int | None = None
    window: dict[str, Any] = field(default_factory=dict)

    @property
    def asset_subdir(self) -> str:
        """Directory of the entry document relative to the resource root."""
        if not self.entry:
            return self.id
        parent = PurePosixPath(self.entry).parent.as_posix()
        return self.id if parent == "." else parent

    def asset_dir(self, root: Path) -> Path:
        return root.joinpath(*self.asset_subdir.split("/"))


def parse_project(data: Mapping[str, Any]) -> ProjectSpec:
    project_id = str(data.get("id") or "").strip()
    validate_project_id(project_id)
    port = data.get("port")
    window = data.get("window") or {}
    if not isinstance(window, Mapping):
        raise ValueError(f"projects.{project_id}.window 必須為物件")
    return ProjectSpec(
        id=project_id,
        name=str(data.get("name") or project_id),
        description=str(data.get("description") or ""),
        entry=str(data.get("entry") or ""),
        port=int(port) if port not in (None, "") else None,
        window=dict(window),
    )


class ProjectCatalog:
    def __init__(self, projects: Iterable[ProjectSpec] = ()) -> None:
        self._projects: dict[str, ProjectSpec] = {}
        for project in projects:
            if project.id in self._projects:
                raise ValueError(f"重複的 project id：{project.id}")
            self._projects[project.id] = project

    @classmethod
    def from_config(cls, config: Mapping[str, Any]) -> "ProjectCatalog":
        entries = config.get("projects") or []
        if not isinstance(entries, list):
            raise ValueError("projects 設定必須為清單")
        return cls(parse_project(entry) for entry in entries)

    def get(self, project_id: str) -> ProjectSpec | None:
        return self._projects.get(project_id)

    def ids(self) -> list[str]:
        return list(self._projects)

    def __contains__(self, project_id: object) -> bool:
        return project_id in self._projects

    def __iter__(self) -> Iterator[ProjectSpec]:
        return iter(self._projects.values())

    def __len__(self) -> int:
        return len(self._projects)
