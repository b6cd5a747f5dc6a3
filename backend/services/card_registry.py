from __future__ import annotations

import logging
import threading

from models.card import Forest, forest_to_list
from services.card_system import CardSystem
from settings import Settings
from storage.fs_store import FSStore

logger = logging.getLogger(__name__)


class CardSystemRegistry:
    """One live CardSystem per project, loaded from and saved back to the store."""

    def __init__(self, store: FSStore, settings: Settings) -> None:
        self.store = store
        self.settings = settings
        self.systems: dict[str, CardSystem] = {}
        self.lock = threading.Lock()

    def get(self, project_id: str) -> CardSystem | None:
        with self.lock:
            if project_id in self.systems:
                return self.systems[project_id]
            if not self.store.has_project(project_id):
                return None
            return self._load(project_id)

    def _load(self, project_id: str) -> CardSystem:
        project = self.store.read_yaml(project_id, "project.yaml")
        system = CardSystem(
            self.store.read_forest(project_id),
            title=project.get("title", project_id),
            buttons_config=self.settings.buttons,
            default_collapsed=self.settings.default_collapsed,
            debug_checks=self.settings.debug_checks,
        )
        system.subscribe(lambda forest: self._save(project_id, forest))
        self.systems[project_id] = system
        logger.info("loaded card system for %s (%d cards)", project_id, len(system.all_card_ids()))
        return system

    def _save(self, project_id: str, forest: Forest) -> None:
        self.store.write_forest(project_id, forest_to_list(forest))
