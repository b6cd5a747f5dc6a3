from __future__ import annotations

import logging
import threading
from typing import Any, Callable

from models.card import (
    SYSTEM_BUTTONS_DEFAULT,
    Card,
    CardButtonsConfig,
    CardContainerType,
    CollectionCard,
    CollectionLayoutStyle,
    Forest,
    RelatedItem,
    forest_from_list,
    forest_to_list,
)
from services import tree_repository as repo
from services.card_factory import DefaultCardFactory
from services.drag_session import DragSession, MoveCommand
from services.tree_repository import MoveResult

logger = logging.getLogger(__name__)

ForestListener = Callable[[Forest], None]


class CardSystem:
    """Owns one forest and republishes it after every committed command.

    Each command computes the next forest from the current one and swaps it in
    with a single assignment before listeners run, so a listener never sees a
    half-applied change. Commands that change nothing do not notify. Commands
    are serialised on one re-entrant lock.
    """

    def __init__(
        self,
        initial_cards: Forest | list[dict[str, Any]] | None = None,
        *,
        title: str = "",
        factory: DefaultCardFactory | None = None,
        buttons_config: CardButtonsConfig = SYSTEM_BUTTONS_DEFAULT,
        default_collapsed: bool = True,
        debug_checks: bool = False,
        on_forest_changed: ForestListener | None = None,
    ) -> None:
        if initial_cards and isinstance(initial_cards, list) and isinstance(initial_cards[0], dict):
            initial_cards = forest_from_list(initial_cards)
        self._forest: Forest = tuple(initial_cards or ())
        self.title = title
        self.factory = factory or DefaultCardFactory()
        self.buttons_config = buttons_config
        self.default_collapsed = default_collapsed
        self.debug_checks = debug_checks
        self._listeners: list[ForestListener] = []
        if on_forest_changed is not None:
            self._listeners.append(on_forest_changed)
        self._drag: DragSession | None = None
        # commands may arrive from several request threads
        self._lock = threading.RLock()
        if debug_checks:
            repo.check_invariants(self._forest)

    # --- state -------------------------------------------------------------

    @property
    def forest(self) -> Forest:
        return self._forest

    def snapshot(self) -> list[dict[str, Any]]:
        return forest_to_list(self._forest)

    def subscribe(self, listener: ForestListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _commit(self, new_forest: Forest, action: str) -> bool:
        if new_forest is self._forest:
            return False
        if self.debug_checks:
            repo.check_invariants(new_forest)
        self._forest = new_forest
        logger.debug("%s committed (%d cards)", action, repo.count_cards(new_forest))
        for listener in list(self._listeners):
            listener(new_forest)
        return True

    # --- queries -----------------------------------------------------------

    def find(self, card_id: str) -> Card | None:
        return repo.index_forest(self._forest).cards.get(card_id)

    def all_card_ids(self) -> list[str]:
        return [card.id for card, _parent, _pos in repo.iter_cards(self._forest)]

    def children_of(self, parent_id: str | None) -> Forest | None:
        return repo.children_of(self._forest, parent_id)

    def path_to(self, card_id: str) -> list[str]:
        return repo.index_forest(self._forest).path_to(card_id)

    def buttons_for(self, card_id: str) -> CardButtonsConfig | None:
        card = self.find(card_id)
        if card is None:
            return None
        return card.buttons().layered_over(self.buttons_config)

    # --- commands ----------------------------------------------------------

    def add_card(
        self,
        container_type: CardContainerType | str,
        title: str | None = None,
        hide_title: bool = False,
        props: list[Any] | None = None,
        *,
        tag: str | None = None,
        type: str | None = None,
    ) -> Card:
        card = self.factory.create_card(
            title,
            container_type,
            tag=tag,
            props=props,
            hide_title=hide_title,
            is_collapsed=self.default_collapsed,
            type=type,
        )
        with self._lock:
            self._commit(repo.append_root(self._forest, card), "add_card")
        return card

    def add_child_card(
        self,
        parent_id: str,
        container_type: CardContainerType | str,
        title: str | None = None,
        hide_title: bool = False,
        props: list[Any] | None = None,
        *,
        tag: str | None = None,
        type: str | None = None,
    ) -> Card | None:
        with self._lock:
            parent = self.find(parent_id)
            if not isinstance(parent, CollectionCard):
                return None
            card = self.factory.create_card(
                title,
                container_type,
                tag=tag,
                parent=parent_id,
                parent_tag=parent.tag,
                props=props,
                hide_title=hide_title,
                is_collapsed=self.default_collapsed,
                parent_card_count=len(parent.child_cards),
                type=type,
            )
            forest = repo.insert_child(self._forest, parent_id, card)
            if forest is self._forest:
                return None
            if parent.is_collapsed:
                forest = repo.update_by_id(forest, parent_id, {"is_collapsed": False})
            self._commit(forest, "add_child_card")
            return card

    def update_card(self, card_id: str, patch: dict[str, Any]) -> bool:
        with self._lock:
            return self._commit(repo.update_by_id(self._forest, card_id, patch), "update_card")

    def delete_card(self, card_id: str) -> bool:
        with self._lock:
            return self._commit(repo.remove_by_id(self._forest, card_id), "delete_card")

    def relate_card(self, card_id: str, item: RelatedItem | dict[str, Any]) -> bool:
        return self.update_card(card_id, {"related_item": item})

    def unrelate_card(self, card_id: str) -> bool:
        with self._lock:
            card = self.find(card_id)
            if card is None or card.related_item is None:
                return False
            return self.update_card(card_id, {"related_item": None})

    def change_layout_style(self, card_id: str, style: CollectionLayoutStyle | str) -> bool:
        with self._lock:
            if not isinstance(self.find(card_id), CollectionCard):
                return False
            return self.update_card(card_id, {"layout_style": style})

    def toggle_collapse(self, card_id: str) -> bool:
        with self._lock:
            card = self.find(card_id)
            if card is None:
                return False
            return self.update_card(card_id, {"is_collapsed": not card.is_collapsed})

    def toggle_visibility(self, card_id: str) -> bool:
        with self._lock:
            card = self.find(card_id)
            if card is None:
                return False
            return self.update_card(card_id, {"is_visible": not card.is_visible})

    def move_card(
        self,
        drag_index: int,
        hover_index: int,
        drag_parent_id: str | None = None,
        hover_parent_id: str | None = None,
    ) -> MoveResult:
        with self._lock:
            result = repo.move(self._forest, drag_index, hover_index, drag_parent_id, hover_parent_id)
            self._commit(result.forest, "move_card")
            return result

    def _commit_drag(self, command: MoveCommand) -> MoveResult:
        return self.move_card(command.drag_index, command.hover_index, command.drag_parent_id, command.hover_parent_id)

    def drag_session(self) -> DragSession:
        """The single gesture session bound to this forest."""
        with self._lock:
            if self._drag is None:
                self._drag = DragSession(lambda: self._forest, self._commit_drag, lock=self._lock)
            return self._drag
