import logging, sqlite3

from errors import NotOwner, MaxLevel
import economy
import pet_attributes
import pet_store

log = logging.getLogger(__name__)

def _owned_pet(cx: sqlite3.Connection, caller: str, pet_id: int) -> pet_store.Pet:
    pet = pet_store.get(cx, pet_id)
    if caller != pet_store.owner_of(cx, pet_id):
        raise NotOwner(pet_id=pet.id)
    return pet

def train(cx: sqlite3.Connection, ledger, caller: str, pet_id: int, signer=None) -> pet_store.Pet:
    """
    Charge `training_cost` and bump all four stats.

    The training seed is derived from the mint seed and how many times the
    pet has trained, so a pet's growth is reproducible from its history.
    Run inside a write transaction; the debit is the last step so a failed
    payment leaves nothing behind.
    """
    pet = _owned_pet(cx, caller, pet_id)
    cost = economy.get_params(cx)["training_cost"]

    bump = pet_attributes.train_increments(f"{pet.seed}:{pet.train_count}")
    before = (pet.attack, pet.defense, pet.speed, pet.hp)
    pet.attack  += bump["attack"]
    pet.defense += bump["defense"]
    pet.speed   += bump["speed"]
    pet.hp      += bump["hp"]
    pet.train_count += 1
    pet_store.save_progress(cx, pet)
    pet_store.log_event(cx, pet.id, "train", caller, cost, bump)

    ledger.debit(cx, caller, cost, signer=signer, memo=f"PET TRAIN #{pet.id}")
    log.info("PET_TRAIN id=%s by=%s cost=%s stats=%s->%s", pet.id, caller, cost, before,
             (pet.attack, pet.defense, pet.speed, pet.hp))
    return pet_store.get(cx, pet.id)

def upgrade(cx: sqlite3.Connection, ledger, caller: str, pet_id: int, signer=None) -> pet_store.Pet:
    """Charge `upgrade_cost` and raise the level by one; refuses at the cap."""
    pet = _owned_pet(cx, caller, pet_id)
    if pet.level >= pet_store.MAX_LEVEL:
        raise MaxLevel(pet_id=pet.id, level=pet.level)
    cost = economy.get_params(cx)["upgrade_cost"]

    pet.level += 1
    pet_store.save_progress(cx, pet)
    pet_store.log_event(cx, pet.id, "upgrade", caller, cost, {"level": pet.level})

    ledger.debit(cx, caller, cost, signer=signer, memo=f"PET UPGRADE #{pet.id}")
    log.info("PET_UPGRADE id=%s by=%s cost=%s level=%s", pet.id, caller, cost, pet.level)
    return pet_store.get(cx, pet.id)
