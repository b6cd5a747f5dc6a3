"""Randomised operation sequences checking the single-owner tree invariants."""
import random

import pytest

from models.card import CollectionCard
from services import tree_repository as repo
from services.card_factory import DefaultCardFactory


def _containers(forest):
    return [None] + [c.id for c, _p, _i in repo.iter_cards(forest) if isinstance(c, CollectionCard)]


def _random_move_args(rng: random.Random, forest):
    containers = _containers(forest)
    src = rng.choice(containers)
    dst = rng.choice(containers) if rng.random() < 0.7 else src
    src_kids = repo.children_of(forest, src) or ()
    dst_kids = repo.children_of(forest, dst) or ()
    drag_index = rng.randrange(len(src_kids) + 1)
    hover_index = rng.randrange(-1, len(dst_kids) + 3)
    return drag_index, hover_index, src, dst


def _snapshot_ids(forest):
    return sorted(c.id for c, _p, _i in repo.iter_cards(forest))


@pytest.mark.parametrize("seed", range(25))
def test_random_sequences_keep_tree_shape(seed):
    rng = random.Random(seed)
    counter = iter(range(10_000))
    factory = DefaultCardFactory(id_factory=lambda: f"n{next(counter)}")
    forest = ()

    for _ in range(150):
        op = rng.random()
        if op < 0.35 or not forest:
            kind = rng.choice(["editor", "collection"])
            parent = rng.choice(_containers(forest))
            card = factory.create_card(None, kind, parent=parent)
            forest = repo.append_root(forest, card) if parent is None else repo.insert_child(forest, parent, card)
        elif op < 0.85:
            before_ids = _snapshot_ids(forest)
            before_cards = {c.id: c for c, _p, _i in repo.iter_cards(forest)}
            args = _random_move_args(rng, forest)
            src_kids = repo.children_of(forest, args[2]) or ()
            dragged = src_kids[args[0]] if args[0] < len(src_kids) else None
            result = repo.move(forest, *args)
            if not result.ok or result.outcome.value == "noop":
                assert result.forest is forest
            # conservation: nothing gained, nothing lost
            assert _snapshot_ids(result.forest) == before_ids
            for card, _p, _i in repo.iter_cards(result.forest):
                old = before_cards[card.id]
                assert card.created_at == old.created_at
                assert card.container_type is old.container_type
            if result.outcome.value == "moved":
                moved = repo.find_by_id(result.forest, dragged.id)
                assert moved.parent == repo.normalize_parent(args[3])
                if isinstance(moved, CollectionCard):
                    assert moved.child_cards is dragged.child_cards
                else:
                    assert moved.content == dragged.content
            forest = result.forest
        elif op < 0.93:
            ids = [c.id for c, _p, _i in repo.iter_cards(forest)]
            forest = repo.update_by_id(forest, rng.choice(ids), {"title": f"t{rng.random():.3f}"})
        else:
            ids = [c.id for c, _p, _i in repo.iter_cards(forest)]
            victim = rng.choice(ids)
            subtree = {c.id for c, _p, _i in repo.iter_cards((repo.find_by_id(forest, victim),))}
            before = set(_snapshot_ids(forest))
            forest = repo.remove_by_id(forest, victim)
            assert set(_snapshot_ids(forest)) == before - subtree

        repo.check_invariants(forest)
        ids = _snapshot_ids(forest)
        assert len(ids) == len(set(ids))


@pytest.mark.parametrize("seed", range(10))
def test_moving_into_own_subtree_always_rejected(seed):
    rng = random.Random(seed)
    counter = iter(range(10_000))
    factory = DefaultCardFactory(id_factory=lambda: f"n{next(counter)}")
    root = factory.create_card(None, "collection")
    forest = (root,)
    for _ in range(30):
        parent = rng.choice(_containers(forest)[1:])
        forest = repo.insert_child(forest, parent, factory.create_card(None, rng.choice(["editor", "collection"]), parent=parent))

    for target in _containers(forest)[1:]:
        result = repo.move(forest, 0, 0, None, target)
        assert result.outcome.value == "cycle_rejected"
        assert result.forest is forest
