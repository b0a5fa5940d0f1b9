import pytest

import db
import pet_store
from errors import CapExceeded, NotFound


def _mint(owner, seed_source):
    with db.write_txn() as cx:
        return pet_store.mint(cx, owner, seed_source=seed_source)


def test_mint_creates_level_one_pet(db_path, seed_source):
    pet = _mint("alice", seed_source)
    assert pet.id == 1
    assert pet.owner == "alice"
    assert pet.level == 1
    assert pet.skills == []
    assert 1 <= pet.rarity <= 5
    assert min(pet.attack, pet.defense, pet.speed, pet.hp) > 0


def test_mint_cap_is_five(db_path, seed_source):
    for _ in range(5):
        _mint("alice", seed_source)
    with pytest.raises(CapExceeded):
        _mint("alice", seed_source)
    with db.read_conn() as cx:
        assert pet_store.pet_count(cx, "alice") == 5
        assert len(pet_store.pets_of(cx, "alice")) == 5


def test_cap_is_per_owner(db_path, seed_source):
    for _ in range(5):
        _mint("alice", seed_source)
    pet = _mint("bob", seed_source)
    assert pet.id == 6
    assert pet.owner == "bob"


def test_ids_are_monotonic_and_unique(db_path, seed_source):
    ids = [_mint(owner, seed_source).id for owner in ("a", "b", "a", "c")]
    assert ids == [1, 2, 3, 4]


def test_mint_uses_injected_seed(db_path):
    seen = []

    def source(owner, pet_id):
        seen.append((owner, pet_id))
        return "fixed"

    pet = _mint("alice", source)
    assert seen == [("alice", 1)]
    with db.read_conn() as cx:
        assert pet_store.get(cx, pet.id).seed == "fixed"


def test_get_and_owner_of_unknown(db_path):
    with db.read_conn() as cx:
        with pytest.raises(NotFound):
            pet_store.get(cx, 42)
        with pytest.raises(NotFound):
            pet_store.owner_of(cx, 42)


def test_ownership_index_matches_pets(db_path, seed_source):
    _mint("alice", seed_source)
    _mint("bob", seed_source)
    _mint("alice", seed_source)
    with db.read_conn() as cx:
        assert pet_store.owner_of(cx, 2) == "bob"
        assert [p.id for p in pet_store.pets_of(cx, "alice")] == [1, 3]
        assert pet_store.token_of_owner_by_index(cx, "alice", 1) == 3
        with pytest.raises(NotFound):
            pet_store.token_of_owner_by_index(cx, "alice", 2)
        for pet in pet_store.pets_of(cx, "alice"):
            assert pet_store.owner_of(cx, pet.id) == pet.owner


def test_mint_records_event(db_path, seed_source):
    pet = _mint("alice", seed_source)
    with db.read_conn() as cx:
        events = pet_store.history(cx, pet.id)
    assert len(events) == 1
    assert events[0]["kind"] == "mint"
    assert events[0]["account"] == "alice"
    assert events[0]["detail"]["rarity"] == pet.rarity


def test_collection_stats(db_path, seed_source):
    for owner in ("a", "b", "c"):
        _mint(owner, seed_source)
    with db.read_conn() as cx:
        stats = pet_store.collection_stats(cx)
    assert stats["minted_total"] == 3
    assert stats["cap_per_owner"] == 5
    assert sum(stats["rarity_counts"].values()) == 3


def test_to_dict_shape(db_path, seed_source):
    d = _mint("alice", seed_source).to_dict()
    assert set(d) >= {"id", "owner", "rarity", "rarity_name", "level",
                      "attack", "defense", "speed", "hp", "skills"}
    assert "seed" not in d
