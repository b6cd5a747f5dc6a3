from __future__ import annotations

import string
import uuid
from datetime import datetime
from typing import Any, Callable

from models.card import (
    Card,
    CardContainerType,
    CardProperty,
    CollectionCard,
    EditorCard,
    now_utc,
    props_from_list,
)

CUSTOM_PROP = "custom"
DEFAULT_TITLES = {
    CardContainerType.EDITOR: "新建编辑器",
    CardContainerType.COLLECTION: "新建集合",
}

_DIGITS36 = string.digits + string.ascii_lowercase


def to_base36(n: int) -> str:
    if n == 0:
        return "0"
    sign = "-" if n < 0 else ""
    n = abs(n)
    out = []
    while n:
        n, r = divmod(n, 36)
        out.append(_DIGITS36[r])
    return sign + "".join(reversed(out))


def derive_tag(
    container_type: CardContainerType,
    tag: str | None,
    parent: str | None,
    props: tuple[CardProperty, ...],
    parent_card_count: int | None,
    created_at: datetime,
) -> str | None:
    if tag:
        return tag
    if not parent:
        return None
    if props and props[0].name != CUSTOM_PROP:
        return f"{parent}-{props[0].name}"
    if container_type is CardContainerType.COLLECTION:
        return f"{parent}-{to_base36(int(created_at.timestamp() * 1000))}"
    return f"{parent}-{(parent_card_count or 0) + 1}"


class DefaultCardFactory:
    def __init__(
        self,
        clock: Callable[[], datetime] = now_utc,
        id_factory: Callable[[], str] = lambda: str(uuid.uuid4()),
    ) -> None:
        self.clock = clock
        self.id_factory = id_factory

    def create_card(
        self,
        title: str | None,
        container_type: CardContainerType | str,
        *,
        tag: str | None = None,
        parent: str | None = None,
        parent_tag: str | None = None,
        props: list[Any] | tuple[Any, ...] | None = None,
        hide_title: bool = False,
        is_collapsed: bool = True,
        parent_card_count: int | None = None,
        type: str | None = None,
    ) -> Card:
        """Build a fresh card.

        ``parent_tag`` overrides the prefix used for tag derivation; without it
        the parent id is used. ``parent_card_count`` is the number of siblings
        already in the parent, so an editor card gets ``{parent}-{count + 1}``.
        """
        container_type = CardContainerType(container_type)
        props = props_from_list(props)
        created = self.clock()
        common = dict(
            id=self.id_factory(),
            title=title or DEFAULT_TITLES[container_type],
            tag=derive_tag(container_type, tag, (parent_tag or parent) if parent else None, props, parent_card_count, created),
            type=type,
            parent=parent,
            props=props,
            hide_title=hide_title,
            is_collapsed=is_collapsed,
            is_visible=True,
            created_at=created,
            updated_at=created,
        )
        if container_type is CardContainerType.COLLECTION:
            return CollectionCard(
                **common,
                child_cards=(),
                show_add_button=True,
                show_layout_style_button=True,
                show_relate_button=False,
                show_visibility_button=True,
            )
        return EditorCard(
            **common,
            content="",
            show_add_button=False,
            show_layout_style_button=False,
            show_relate_button=True,
            show_visibility_button=False,
        )
