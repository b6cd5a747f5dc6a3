"""Copy-on-write mutations over a forest of cards.

Every function takes a forest (tuple of root cards) and returns a forest.
Untouched branches keep their object identity; every card on the path to a
change is replaced, so observers can diff subtrees with ``is``. Stale ids and
out-of-range indices never raise: the input forest comes back unchanged.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import Any, Callable, Iterator

from models.card import (
    Card,
    CardProperty,
    CollectionCard,
    CollectionLayoutStyle,
    EditorCard,
    Forest,
    RelatedItem,
    field_names,
    now_utc,
    props_from_list,
    related_from_dict,
)
from models.errors import InvariantViolation, MoveOutcome

logger = logging.getLogger(__name__)

ROOT_SENTINEL = "root"

PROTECTED_FIELDS = {"id", "parent", "child_cards", "created_at", "updated_at"}

_TEXT_FIELDS = {"title", "content", "tag", "type"}
_FLAG_FIELDS = {
    "is_collapsed",
    "is_visible",
    "hide_title",
    "show_edit_button",
    "show_add_button",
    "show_delete_button",
    "show_relate_button",
    "show_layout_style_button",
    "show_visibility_button",
}
_NULLABLE_FIELDS = {
    "tag",
    "type",
    "related_item",
    "layout_style",
    "show_edit_button",
    "show_add_button",
    "show_delete_button",
    "show_relate_button",
    "show_layout_style_button",
    "show_visibility_button",
}

_CAMEL_TO_ATTR = {
    "isCollapsed": "is_collapsed",
    "isVisible": "is_visible",
    "hideTitle": "hide_title",
    "layoutStyle": "layout_style",
    "relatedItem": "related_item",
    "childCards": "child_cards",
    "createdAt": "created_at",
    "updatedAt": "updated_at",
    "showEditButton": "show_edit_button",
    "showAddButton": "show_add_button",
    "showDeleteButton": "show_delete_button",
    "showRelateButton": "show_relate_button",
    "showLayoutStyleButton": "show_layout_style_button",
    "showVisibilityButton": "show_visibility_button",
}


def normalize_parent(parent_id: str | None) -> str | None:
    if parent_id is None or parent_id == ROOT_SENTINEL or parent_id == "":
        return None
    return parent_id


def iter_cards(forest: Forest) -> Iterator[tuple[Card, str | None, int]]:
    """Depth-first, pre-order walk yielding (card, parent_id, position)."""
    stack: list[tuple[Card, str | None, int]] = [(c, None, i) for i, c in reversed(list(enumerate(forest)))]
    while stack:
        card, parent_id, pos = stack.pop()
        yield card, parent_id, pos
        if isinstance(card, CollectionCard):
            stack.extend((c, card.id, i) for i, c in reversed(list(enumerate(card.child_cards))))


@dataclass
class ForestIndex:
    cards: dict[str, Card]
    parents: dict[str, str | None]
    positions: dict[str, int]

    @classmethod
    def build(cls, forest: Forest) -> "ForestIndex":
        cards: dict[str, Card] = {}
        parents: dict[str, str | None] = {}
        positions: dict[str, int] = {}
        for card, parent_id, pos in iter_cards(forest):
            if card.id in cards:
                continue
            cards[card.id] = card
            parents[card.id] = parent_id
            positions[card.id] = pos
        return cls(cards=cards, parents=parents, positions=positions)

    def path_to(self, card_id: str) -> list[str]:
        """Ids from the root-level ancestor down to ``card_id`` (inclusive)."""
        if card_id not in self.cards:
            return []
        chain = [card_id]
        parent_id = self.parents[card_id]
        while parent_id is not None:
            chain.append(parent_id)
            parent_id = self.parents.get(parent_id)
        chain.reverse()
        return chain

    def is_within(self, card_id: str, ancestor_id: str) -> bool:
        """True when ``card_id`` is ``ancestor_id`` or one of its descendants."""
        current: str | None = card_id
        while current is not None:
            if current == ancestor_id:
                return True
            current = self.parents.get(current)
        return False


_last_index: tuple[Forest, ForestIndex] | None = None


def index_forest(forest: Forest) -> ForestIndex:
    global _last_index
    # read the shared slot once; another thread may replace it at any time
    cached = _last_index
    if cached is not None and cached[0] is forest:
        return cached[1]
    index = ForestIndex.build(forest)
    _last_index = (forest, index)
    return index


def find_by_id(forest: Forest, card_id: str) -> Card | None:
    for card, _parent, _pos in iter_cards(forest):
        if card.id == card_id:
            return card
    return None


def children_of(forest: Forest, parent_id: str | None) -> Forest | None:
    parent_id = normalize_parent(parent_id)
    if parent_id is None:
        return forest
    container = index_forest(forest).cards.get(parent_id)
    if not isinstance(container, CollectionCard):
        return None
    return container.child_cards


def count_cards(forest: Forest) -> int:
    return sum(1 for _ in iter_cards(forest))


def _replace_card(forest: Forest, card_id: str, fn: Callable[[Card], Card]) -> Forest:
    index = index_forest(forest)
    chain = index.path_to(card_id)
    if not chain:
        return forest

    def rebuild(siblings: Forest, depth: int) -> Forest:
        cid = chain[depth]
        pos = index.positions[cid]
        card = siblings[pos]
        if depth == len(chain) - 1:
            new = fn(card)
        else:
            kids = rebuild(card.child_cards, depth + 1)
            new = card if kids is card.child_cards else replace(card, child_cards=kids)
        if new is card:
            return siblings
        return siblings[:pos] + (new,) + siblings[pos + 1:]

    return rebuild(forest, 0)


def _replace_children(forest: Forest, parent_id: str | None, fn: Callable[[Forest], Forest]) -> Forest:
    if parent_id is None:
        return fn(forest)

    def apply(card: Card) -> Card:
        if not isinstance(card, CollectionCard):
            return card
        kids = fn(card.child_cards)
        return card if kids is card.child_cards else replace(card, child_cards=kids)

    return _replace_card(forest, parent_id, apply)


def _coerce(attr: str, value: Any) -> Any:
    """Typed value for ``attr``; raises TypeError/ValueError when it does not fit."""
    if value is None:
        if attr in _NULLABLE_FIELDS:
            return None
        raise TypeError(f"{attr} cannot be null")
    if attr in _TEXT_FIELDS:
        if not isinstance(value, str):
            raise TypeError(f"{attr} must be a string")
        return value
    if attr in _FLAG_FIELDS:
        if not isinstance(value, bool):
            raise TypeError(f"{attr} must be a boolean")
        return value
    if attr == "related_item":
        if isinstance(value, RelatedItem):
            return value
        if not isinstance(value, dict) or not value.get("id"):
            raise TypeError("related item needs an id")
        return related_from_dict(value)
    if attr == "props":
        if not isinstance(value, (list, tuple)):
            raise TypeError("props must be a list")
        if not all(isinstance(p, CardProperty) or (isinstance(p, dict) and isinstance(p.get("name"), str)) for p in value):
            raise TypeError("each prop needs a name")
        return props_from_list(value)
    if attr == "layout_style":
        return CollectionLayoutStyle(value)
    return value


def normalize_patch(card: Card, patch: dict[str, Any]) -> dict[str, Any]:
    """Map a loose patch (snake_case or camelCase) onto the fields ``card`` carries.

    Unknown or protected keys and values of the wrong shape are dropped, never raised.
    """
    allowed = field_names(type(card))
    out: dict[str, Any] = {}
    dropped = []
    invalid = []
    for key, value in patch.items():
        attr = _CAMEL_TO_ATTR.get(key, key)
        if attr in PROTECTED_FIELDS or attr not in allowed:
            dropped.append(key)
            continue
        try:
            out[attr] = _coerce(attr, value)
        except (TypeError, ValueError):
            invalid.append(key)
    if dropped:
        logger.warning("dropped patch keys %s for %s card %s", dropped, card.container_type.value, card.id)
    if invalid:
        logger.warning("dropped malformed values for %s on card %s", invalid, card.id)
    return out


def update_by_id(forest: Forest, card_id: str, patch: dict[str, Any] | None) -> Forest:
    def apply(card: Card) -> Card:
        changes = normalize_patch(card, patch or {})
        if not changes:
            return card
        changes.setdefault("updated_at", now_utc())
        return replace(card, **changes)

    return _replace_card(forest, card_id, apply)


def append_root(forest: Forest, new_card: Card) -> Forest:
    index = index_forest(forest)
    if any(c.id in index.cards for c, _p, _i in iter_cards((new_card,))):
        logger.warning("refusing to add card %s: id already in forest", new_card.id)
        return forest
    if new_card.parent is not None:
        new_card = replace(new_card, parent=None)
    return forest + (new_card,)


def insert_child(forest: Forest, parent_id: str | None, new_card: Card) -> Forest:
    parent_id = normalize_parent(parent_id)
    if parent_id is None:
        return forest
    index = index_forest(forest)
    if not isinstance(index.cards.get(parent_id), CollectionCard):
        return forest
    if any(c.id in index.cards for c, _p, _i in iter_cards((new_card,))):
        logger.warning("refusing to insert card %s: id already in forest", new_card.id)
        return forest
    child = new_card if new_card.parent == parent_id else replace(new_card, parent=parent_id)
    return _replace_children(forest, parent_id, lambda kids: kids + (child,))


def remove_by_id(forest: Forest, card_id: str) -> Forest:
    index = index_forest(forest)
    if card_id not in index.cards:
        return forest
    pos = index.positions[card_id]
    return _replace_children(forest, index.parents[card_id], lambda kids: kids[:pos] + kids[pos + 1:])


@dataclass(frozen=True)
class MoveResult:
    forest: Forest
    outcome: MoveOutcome

    @property
    def ok(self) -> bool:
        return self.outcome.ok


def _container(index: ForestIndex, forest: Forest, parent_id: str | None) -> tuple[Forest | None, MoveOutcome | None]:
    if parent_id is None:
        return forest, None
    card = index.cards.get(parent_id)
    if card is None:
        return None, MoveOutcome.NOT_FOUND
    if isinstance(card, EditorCard):
        return None, MoveOutcome.INVALID_TARGET
    return card.child_cards, None


def check_move(
    forest: Forest,
    drag_index: int,
    hover_index: int,
    drag_parent_id: str | None,
    hover_parent_id: str | None,
) -> MoveOutcome:
    """Classify a move without performing it."""
    drag_parent_id = normalize_parent(drag_parent_id)
    hover_parent_id = normalize_parent(hover_parent_id)
    index = index_forest(forest)

    source, problem = _container(index, forest, drag_parent_id)
    if source is None:
        return problem
    if not 0 <= drag_index < len(source):
        return MoveOutcome.NOT_FOUND

    if drag_parent_id == hover_parent_id:
        target = min(max(0, hover_index), len(source) - 1)
        return MoveOutcome.NOOP if target == drag_index else MoveOutcome.MOVED

    dest, _ = _container(index, forest, hover_parent_id)
    if dest is None:
        return MoveOutcome.INVALID_TARGET
    if hover_parent_id is not None and index.is_within(hover_parent_id, source[drag_index].id):
        return MoveOutcome.CYCLE_REJECTED
    return MoveOutcome.MOVED


def move(
    forest: Forest,
    drag_index: int,
    hover_index: int,
    drag_parent_id: str | None = None,
    hover_parent_id: str | None = None,
) -> MoveResult:
    drag_parent_id = normalize_parent(drag_parent_id)
    hover_parent_id = normalize_parent(hover_parent_id)

    outcome = check_move(forest, drag_index, hover_index, drag_parent_id, hover_parent_id)
    if outcome is not MoveOutcome.MOVED:
        if not outcome.ok:
            logger.warning(
                "move rejected (%s): %s[%s] -> %s[%s]",
                outcome.value, drag_parent_id or ROOT_SENTINEL, drag_index, hover_parent_id or ROOT_SENTINEL, hover_index,
            )
        return MoveResult(forest, outcome)

    index = index_forest(forest)
    source, _ = _container(index, forest, drag_parent_id)
    dragged = source[drag_index]

    if drag_parent_id == hover_parent_id:
        target = min(max(0, hover_index), len(source) - 1)
        moved = replace(dragged, updated_at=now_utc())

        def reorder(kids: Forest) -> Forest:
            rest = kids[:drag_index] + kids[drag_index + 1:]
            return rest[:target] + (moved,) + rest[target:]

        logger.debug("reorder in %s: %s -> %s", drag_parent_id or ROOT_SENTINEL, drag_index, target)
        return MoveResult(_replace_children(forest, drag_parent_id, reorder), MoveOutcome.MOVED)

    removed = _replace_children(forest, drag_parent_id, lambda kids: kids[:drag_index] + kids[drag_index + 1:])
    dest = children_of(removed, hover_parent_id)
    target = min(max(0, hover_index), len(dest))
    moved = replace(dragged, parent=hover_parent_id, updated_at=now_utc())
    result = _replace_children(removed, hover_parent_id, lambda kids: kids[:target] + (moved,) + kids[target:])
    logger.debug(
        "cross-container move of %s: %s[%s] -> %s[%s]",
        dragged.id, drag_parent_id or ROOT_SENTINEL, drag_index, hover_parent_id or ROOT_SENTINEL, target,
    )
    return MoveResult(result, MoveOutcome.MOVED)


def check_invariants(forest: Forest) -> None:
    """Raise InvariantViolation when the forest is not a proper single-owner tree."""
    seen: set[str] = set()
    for card, parent_id, _pos in iter_cards(forest):
        if not isinstance(card, (EditorCard, CollectionCard)):
            raise InvariantViolation(f"unexpected node {card!r}")
        if card.id in seen:
            raise InvariantViolation(f"card {card.id} appears more than once")
        seen.add(card.id)
        if card.parent != parent_id:
            raise InvariantViolation(f"card {card.id} points at parent {card.parent!r} but lives under {parent_id!r}")
