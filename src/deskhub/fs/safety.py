"""Checks that keep project ids and asset paths inside their bounds."""

from __future__ import annotations

from pathlib import Path

# Project ids end up in view labels, URLs (<scheme>://<id>/) and directory names.
MAX_PROJECT_ID_LENGTH = 128
_FORBIDDEN_ID_CHARS = frozenset("/\\:?#%")


def is_within(target: Path, base: Path) -> bool:
    try:
        target.relative_to(base)
    except ValueError:
        return False
    return True


def validate_project_id(project_id: str) -> None:
    if not isinstance(project_id, str) or not project_id.strip():
        raise ValueError("project_id 不可為空")
    problems = (
        len(project_id) > MAX_PROJECT_ID_LENGTH,
        ".." in project_id,
        any(ch.isspace() or ord(ch) < 32 for ch in project_id),
        any(ch in _FORBIDDEN_ID_CHARS for ch in project_id),
    )
    if any(problems):
        raise ValueError(f"project_id 格式不正確：{project_id!r}")
