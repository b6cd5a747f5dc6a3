from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import yaml
from filelock import FileLock

PROJECT_SUBDIRS = ["cards"]
FOREST_FILE = "cards/forest.yaml"


def now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass
class FSStore:
    data_dir: Path

    def __post_init__(self) -> None:
        self.data_dir.mkdir(parents=True, exist_ok=True)

    def _project_dir(self, project_id: str) -> Path:
        base = self.data_dir.resolve()
        target = (base / project_id).resolve()
        if not str(target).startswith(str(base)) or target == base:
            raise ValueError("Invalid project path")
        return target

    def _safe_path(self, project_id: str, *parts: str) -> Path:
        pdir = self._project_dir(project_id)
        target = (pdir.joinpath(*parts)).resolve()
        if not str(target).startswith(str(pdir)):
            raise ValueError("Path traversal blocked")
        return target

    def has_project(self, project_id: str) -> bool:
        try:
            return (self._project_dir(project_id) / "project.yaml").exists()
        except ValueError:
            return False

    def ensure_project(self, project_id: str, title: str) -> Path:
        pdir = self._project_dir(project_id)
        pdir.mkdir(parents=True, exist_ok=True)
        for s in PROJECT_SUBDIRS:
            (pdir / s).mkdir(exist_ok=True)
        if not (pdir / "project.yaml").exists():
            self.write_yaml(project_id, "project.yaml", {"id": project_id, "title": title, "created_at": now_iso()})
        return pdir

    def read_yaml(self, project_id: str, rel: str) -> Any:
        path = self._safe_path(project_id, rel)
        if not path.exists():
            return {}
        text = path.read_text(encoding="utf-8")
        if not text.strip():
            return {}
        return yaml.safe_load(text) or {}

    def write_yaml(self, project_id: str, rel: str, data: Any) -> None:
        path = self._safe_path(project_id, rel)
        path.parent.mkdir(parents=True, exist_ok=True)
        with FileLock(str(path) + ".lock"):
            path.write_text(yaml.safe_dump(data, allow_unicode=True, sort_keys=False), encoding="utf-8")

    def list_projects(self) -> list[dict[str, Any]]:
        out = []
        for p in self.data_dir.iterdir():
            if p.is_dir() and (p / "project.yaml").exists():
                out.append(yaml.safe_load((p / "project.yaml").read_text(encoding="utf-8")) or {})
        return sorted(out, key=lambda x: x.get("id", ""))

    def read_forest(self, project_id: str) -> list[dict[str, Any]]:
        data = self.read_yaml(project_id, FOREST_FILE)
        if isinstance(data, dict):
            return list(data.get("cards") or [])
        return list(data or [])

    def write_forest(self, project_id: str, cards: list[dict[str, Any]]) -> None:
        self.write_yaml(project_id, FOREST_FILE, {"saved_at": now_iso(), "cards": cards})

    def init_demo_project(self, project_id: str = "demo_project_001") -> None:
        self.ensure_project(project_id, "Demo Novel Project")
        if self.read_forest(project_id):
            return
        ts = now_iso()
        role = {
            "id": "role-demo-001", "containerType": "collection", "title": "林秋", "type": "主角", "tag": "role",
            "isCollapsed": False, "isVisible": True, "createdAt": ts, "updatedAt": ts,
            "showAddButton": True, "showLayoutStyleButton": True, "showRelateButton": False,
            "childCards": [
                {"id": "role-demo-001-desc", "containerType": "editor", "title": "角色描述", "tag": "role-角色描述",
                 "parent": "role-demo-001", "props": [{"name": "角色描述", "value": "角色描述"}],
                 "content": "调查记者，短发、灰色风衣，左手虎口有旧伤。", "isCollapsed": True, "createdAt": ts, "updatedAt": ts},
                {"id": "role-demo-001-goal", "containerType": "editor", "title": "核心动机", "tag": "role-核心动机",
                 "parent": "role-demo-001", "props": [{"name": "核心动机", "value": "核心动机"}],
                 "content": "查明父亲死亡真相。", "isCollapsed": True, "createdAt": ts, "updatedAt": ts},
            ],
        }
        outline = {
            "id": "outline-demo-001", "containerType": "collection", "title": "第一卷提纲", "tag": "outline",
            "layoutStyle": "vertical", "isCollapsed": True, "createdAt": ts, "updatedAt": ts, "childCards": [],
        }
        self.write_forest(project_id, [role, outline])
