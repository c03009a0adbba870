"""WorldStateStore tests: partial updates, atomic batches, bounds."""

import pytest

from tilescript_core import Actor, ActorStats, Position, Tile, WorldBounds
from tilescript_engine.world_store import WorldStateStore


def make_store() -> WorldStateStore:
    store = WorldStateStore(bounds=WorldBounds(width=10, height=8))
    store.add_actor(Actor(id="qubit", position=Position(x=2, y=2), stats=ActorStats(energy=50)))
    store.add_tile(Tile(id="farm", type="farmland", position=Position(x=3, y=2), state={"status": "empty", "crop": None}))
    return store


def test_update_actor_merges_stats() -> None:
    store = make_store()
    store.update_actor("qubit", stats={"energy": 40})

    actor = store.get_actor("qubit")
    assert actor.stats.energy == 40
    assert actor.stats.max_energy == 100


def test_snapshots_are_not_mutated_by_updates() -> None:
    store = make_store()
    snapshot = store.get_actor("qubit")

    store.update_actor("qubit", position=Position(x=3, y=2))

    assert snapshot.position == Position(x=2, y=2)
    assert store.get_actor("qubit").position == Position(x=3, y=2)


def test_update_tile_merges_state() -> None:
    store = make_store()
    store.update_tile("farm", state={"status": "growing"})

    assert store.get_tile("farm").state == {"status": "growing", "crop": None}


def test_get_tile_at_position() -> None:
    store = make_store()
    assert store.get_tile_at(Position(x=3, y=2)).id == "farm"
    assert store.get_tile_at(Position(x=0, y=0)) is None


def test_apply_is_all_or_nothing() -> None:
    store = make_store()

    with pytest.raises(ValueError):
        store.apply(
            actor=("qubit", {"stats": {"energy": 10}}),
            tile=("missing", {"state": {"status": "ready"}}),
            resources={"wheat": 3},
        )

    assert store.get_actor("qubit").stats.energy == 50
    assert store.get_resource("wheat") == 0


def test_apply_writes_every_part() -> None:
    store = make_store()
    store.apply(
        actor=("qubit", {"stats": {"energy": 45}}),
        tile=("farm", {"state": {"status": "empty"}}),
        resources={"wheat": 1},
    )

    assert store.get_actor("qubit").stats.energy == 45
    assert store.get_resource("wheat") == 1


def test_debit_energy_refuses_overdraft() -> None:
    store = make_store()

    assert store.debit_energy("qubit", 20)
    assert not store.debit_energy("qubit", 31)
    assert store.get_actor("qubit").stats.energy == 30


def test_resources_cannot_go_negative() -> None:
    store = make_store()
    with pytest.raises(ValueError):
        store.update_resources(wheat=-1)


def test_objects_must_be_inside_the_world() -> None:
    store = make_store()
    with pytest.raises(ValueError):
        store.add_actor(Actor(id="outside", position=Position(x=10, y=0)))


def test_duplicate_ids_rejected() -> None:
    store = make_store()
    with pytest.raises(ValueError):
        store.add_actor(Actor(id="qubit"))


def test_negative_energy_is_invalid() -> None:
    store = make_store()
    with pytest.raises(ValueError):
        store.update_actor("qubit", stats={"energy": -5})
