from __future__ import annotations

from dataclasses import dataclass, field, fields
from datetime import datetime, timezone
from enum import Enum
from typing import Any, ClassVar, Union

from models.errors import InvariantViolation


class CardContainerType(str, Enum):
    EDITOR = "editor"
    COLLECTION = "collection"


class CollectionLayoutStyle(str, Enum):
    VERTICAL = "vertical"
    HORIZONTAL = "horizontal"
    ADAPTIVE = "adaptive"


def now_utc() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class CardProperty:
    name: str
    value: str = ""


@dataclass(frozen=True)
class RelatedItem:
    """Weak reference to an object outside the tree, e.g. a chapter."""

    id: str
    title: str
    type: str
    is_external: bool = False


@dataclass(frozen=True)
class CardButtonsConfig:
    show_edit_button: bool | None = None
    show_add_button: bool | None = None
    show_delete_button: bool | None = None
    show_relate_button: bool | None = None
    show_layout_style_button: bool | None = None
    show_visibility_button: bool | None = None

    def layered_over(self, default: "CardButtonsConfig") -> "CardButtonsConfig":
        # card override -> system default -> visible
        resolved = {}
        for f in fields(self):
            own = getattr(self, f.name)
            fallback = getattr(default, f.name)
            resolved[f.name] = own if own is not None else (fallback if fallback is not None else True)
        return CardButtonsConfig(**resolved)


SYSTEM_BUTTONS_DEFAULT = CardButtonsConfig(
    show_edit_button=True,
    show_add_button=True,
    show_delete_button=True,
    show_relate_button=False,
    show_layout_style_button=True,
    show_visibility_button=False,
)


@dataclass(frozen=True)
class _CardFields:
    id: str
    title: str
    tag: str | None = None
    type: str | None = None
    parent: str | None = None
    props: tuple[CardProperty, ...] = ()
    is_collapsed: bool = True
    is_visible: bool = True
    hide_title: bool = False
    related_item: RelatedItem | None = None
    show_edit_button: bool | None = None
    show_add_button: bool | None = None
    show_delete_button: bool | None = None
    show_relate_button: bool | None = None
    show_layout_style_button: bool | None = None
    show_visibility_button: bool | None = None
    created_at: datetime = field(default_factory=now_utc)
    updated_at: datetime = field(default_factory=now_utc)

    def buttons(self) -> CardButtonsConfig:
        return CardButtonsConfig(
            show_edit_button=self.show_edit_button,
            show_add_button=self.show_add_button,
            show_delete_button=self.show_delete_button,
            show_relate_button=self.show_relate_button,
            show_layout_style_button=self.show_layout_style_button,
            show_visibility_button=self.show_visibility_button,
        )


@dataclass(frozen=True)
class EditorCard(_CardFields):
    container_type: ClassVar[CardContainerType] = CardContainerType.EDITOR

    content: str = ""


@dataclass(frozen=True)
class CollectionCard(_CardFields):
    container_type: ClassVar[CardContainerType] = CardContainerType.COLLECTION

    child_cards: tuple["Card", ...] = ()
    layout_style: CollectionLayoutStyle | None = None


Card = Union[EditorCard, CollectionCard]
Forest = tuple[Card, ...]

CARD_CLASSES: dict[CardContainerType, type] = {
    CardContainerType.EDITOR: EditorCard,
    CardContainerType.COLLECTION: CollectionCard,
}

# snake_case attribute -> persisted camelCase key
_WIRE_KEYS = {
    "id": "id",
    "title": "title",
    "tag": "tag",
    "type": "type",
    "parent": "parent",
    "is_collapsed": "isCollapsed",
    "is_visible": "isVisible",
    "hide_title": "hideTitle",
    "show_edit_button": "showEditButton",
    "show_add_button": "showAddButton",
    "show_delete_button": "showDeleteButton",
    "show_relate_button": "showRelateButton",
    "show_layout_style_button": "showLayoutStyleButton",
    "show_visibility_button": "showVisibilityButton",
    "content": "content",
    "layout_style": "layoutStyle",
}
_ATTR_KEYS = {v: k for k, v in _WIRE_KEYS.items()}


def field_names(card_cls: type) -> set[str]:
    return {f.name for f in fields(card_cls)}


def _related_to_dict(item: RelatedItem) -> dict[str, Any]:
    return {"id": item.id, "title": item.title, "type": item.type, "isExternal": item.is_external}


def related_from_dict(data: dict[str, Any] | RelatedItem) -> RelatedItem:
    if isinstance(data, RelatedItem):
        return data
    return RelatedItem(
        id=str(data["id"]),
        title=str(data.get("title", "")),
        type=str(data.get("type", "")),
        is_external=bool(data.get("isExternal", data.get("is_external", False))),
    )


def props_from_list(items: list[Any] | tuple[Any, ...] | None) -> tuple[CardProperty, ...]:
    out = []
    for p in items or ():
        if isinstance(p, CardProperty):
            out.append(p)
        else:
            out.append(CardProperty(name=str(p.get("name", "")), value=str(p.get("value", ""))))
    return tuple(out)


def _iso(value: datetime) -> str:
    return value.isoformat()


def _parse_dt(value: Any) -> datetime:
    if isinstance(value, datetime):
        return value
    if not value:
        return now_utc()
    return datetime.fromisoformat(str(value))


def card_to_dict(card: Card) -> dict[str, Any]:
    out: dict[str, Any] = {"containerType": card.container_type.value}
    for attr, key in _WIRE_KEYS.items():
        if not hasattr(card, attr):
            continue
        value = getattr(card, attr)
        if value is None:
            continue
        out[key] = value.value if isinstance(value, Enum) else value
    out["props"] = [{"name": p.name, "value": p.value} for p in card.props]
    if card.related_item is not None:
        out["relatedItem"] = _related_to_dict(card.related_item)
    out["createdAt"] = _iso(card.created_at)
    out["updatedAt"] = _iso(card.updated_at)
    if isinstance(card, CollectionCard):
        out["childCards"] = [card_to_dict(c) for c in card.child_cards]
    return out


def card_from_dict(data: dict[str, Any]) -> Card:
    raw_type = data.get("containerType", CardContainerType.COLLECTION.value if "childCards" in data else CardContainerType.EDITOR.value)
    try:
        container_type = CardContainerType(raw_type)
    except ValueError as exc:
        raise InvariantViolation(f"unknown containerType {raw_type!r} on card {data.get('id')!r}") from exc

    if container_type is CardContainerType.EDITOR and data.get("childCards"):
        raise InvariantViolation(f"editor card {data.get('id')!r} carries childCards")

    kwargs: dict[str, Any] = {}
    allowed = field_names(CARD_CLASSES[container_type])
    for key, value in data.items():
        attr = _ATTR_KEYS.get(key)
        if attr is None or attr not in allowed or value is None:
            continue
        kwargs[attr] = value
    if "layout_style" in kwargs:
        kwargs["layout_style"] = CollectionLayoutStyle(kwargs["layout_style"])
    kwargs["id"] = str(data["id"])
    kwargs.setdefault("title", "")
    kwargs["props"] = props_from_list(data.get("props"))
    if data.get("relatedItem"):
        kwargs["related_item"] = related_from_dict(data["relatedItem"])
    kwargs["created_at"] = _parse_dt(data.get("createdAt"))
    kwargs["updated_at"] = _parse_dt(data.get("updatedAt"))
    if container_type is CardContainerType.COLLECTION:
        kwargs["child_cards"] = tuple(card_from_dict(c) for c in data.get("childCards") or [])
        return CollectionCard(**kwargs)
    return EditorCard(**kwargs)


def forest_to_list(forest: Forest) -> list[dict[str, Any]]:
    return [card_to_dict(c) for c in forest]


def forest_from_list(items: list[dict[str, Any]] | None) -> Forest:
    return tuple(card_from_dict(c) for c in items or [])
