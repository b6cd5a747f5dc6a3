from datetime import datetime, timezone

from models.card import CardContainerType, CardProperty, CollectionCard, EditorCard
from services.card_factory import DefaultCardFactory, derive_tag, to_base36

FIXED = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


def make_factory() -> DefaultCardFactory:
    counter = iter(range(1, 1000))
    return DefaultCardFactory(clock=lambda: FIXED, id_factory=lambda: f"card-{next(counter)}")


def test_tag_from_first_property():
    card = make_factory().create_card("T", CardContainerType.EDITOR, parent="role", props=[{"name": "desc", "value": "d"}])
    assert card.tag == "role-desc"


def test_custom_property_falls_back_to_sequence_for_editor():
    card = make_factory().create_card(
        "T", CardContainerType.EDITOR, parent="role", props=[{"name": "custom", "value": "x"}], parent_card_count=2,
    )
    assert card.tag == "role-3"


def test_editor_without_props_starts_at_one():
    card = make_factory().create_card("T", "editor", parent="role")
    assert card.tag == "role-1"


def test_collection_without_props_uses_base36_timestamp():
    card = make_factory().create_card("T", CardContainerType.COLLECTION, parent="outline")
    millis = int(FIXED.timestamp() * 1000)
    assert card.tag == f"outline-{to_base36(millis)}"
    assert int(card.tag.split("-", 1)[1], 36) == millis


def test_collection_with_named_property():
    card = make_factory().create_card("T", CardContainerType.COLLECTION, parent="role", props=[CardProperty("角色描述", "角色描述")])
    assert card.tag == "role-角色描述"


def test_explicit_tag_wins_and_root_cards_have_no_tag():
    factory = make_factory()
    assert factory.create_card("T", "editor", tag="fixed", parent="role").tag == "fixed"
    assert factory.create_card("T", "editor", props=[{"name": "desc"}]).tag is None


def test_parent_tag_overrides_prefix_but_not_parent_link():
    card = make_factory().create_card("T", "editor", parent="abc123", parent_tag="role", props=[{"name": "desc"}])
    assert card.tag == "role-desc"
    assert card.parent == "abc123"


def test_defaults_per_container_type():
    factory = make_factory()
    coll = factory.create_card(None, CardContainerType.COLLECTION)
    ed = factory.create_card(None, CardContainerType.EDITOR)

    assert isinstance(coll, CollectionCard) and coll.child_cards == ()
    assert (coll.show_add_button, coll.show_layout_style_button, coll.show_relate_button) == (True, True, False)
    assert coll.title == "新建集合"

    assert isinstance(ed, EditorCard) and ed.content == ""
    assert (ed.show_add_button, ed.show_layout_style_button, ed.show_relate_button) == (False, False, True)
    assert ed.title == "新建编辑器"

    assert coll.id != ed.id
    assert coll.created_at == coll.updated_at == FIXED
    assert coll.is_visible and coll.is_collapsed


def test_derive_tag_is_deterministic():
    args = (CardContainerType.EDITOR, None, "p", (CardProperty("custom", "x"),), 4, FIXED)
    assert derive_tag(*args) == derive_tag(*args) == "p-5"


def test_base36():
    assert to_base36(0) == "0"
    assert to_base36(35) == "z"
    assert to_base36(36) == "10"
