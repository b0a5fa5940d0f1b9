import json, logging
from flask import Blueprint, request, jsonify, make_response, url_for, current_app

import db
import economy
import pet_attributes
import pet_store
import progression
from errors import PetError, BadRequest

bp_pets = Blueprint("pets", __name__)
log = logging.getLogger(__name__)

# ---------- helpers ----------
def _json_body() -> dict:
    return request.get_json(silent=True) or {}

def _account(j: dict, key: str) -> str:
    v = j.get(key)
    v = v.strip() if isinstance(v, str) else ""
    if not v:
        raise BadRequest(f"{key}_required")
    return v

def _ledger():
    return current_app.config["LEDGER"]

def _seed_source():
    return current_app.config.get("SEED_SOURCE") or pet_attributes.new_seed

def _ok(**kw):
    out = {"ok": True}; out.update(kw); return jsonify(out)

@bp_pets.app_errorhandler(PetError)
def pet_error(e: PetError):
    log.warning("PET_FAIL %s %s %s", request.path, e.error, json.dumps(e.detail, default=str))
    return jsonify(e.to_dict()), e.status

# ---------- reads ----------
@bp_pets.get("/api/pets/<int:pet_id>")
def pets_get(pet_id):
    with db.read_conn() as cx:
        pet = pet_store.get(cx, pet_id)
    return _ok(pet=pet.to_dict())

@bp_pets.get("/api/pets/<int:pet_id>/history")
def pets_history(pet_id):
    with db.read_conn() as cx:
        events = pet_store.history(cx, pet_id)
    return _ok(pet_id=pet_id, events=events)

@bp_pets.get("/api/pets/owner/<owner>")
def pets_of_owner(owner):
    owner = owner.strip()
    with db.read_conn() as cx:
        pets = pet_store.pets_of(cx, owner)
    return _ok(owner=owner, count=len(pets), cap=pet_store.PET_CAP, pets=[p.to_dict() for p in pets])

@bp_pets.get("/api/pets/owner/<owner>/index/<int:index>")
def pets_owner_index(owner, index):
    with db.read_conn() as cx:
        pet_id = pet_store.token_of_owner_by_index(cx, owner.strip(), index)
    return _ok(owner=owner.strip(), index=index, pet_id=pet_id)

@bp_pets.get("/api/pets/stats")
def pets_stats():
    with db.read_conn() as cx:
        stats = pet_store.collection_stats(cx)
    return _ok(**stats)

@bp_pets.get("/petmeta/<int:pet_id>.json")
def pets_metadata(pet_id):
    with db.read_conn() as cx:
        pet = pet_store.get(cx, pet_id)
    meta = {
        "name": f"Battle Pet #{pet.id}",
        "description": "A Battle Pet that trains, levels up, and battles.",
        "external_url": url_for("pets.pets_get", pet_id=pet.id, _external=True),
        "attributes": [
            {"trait_type": "Rarity", "value": pet_attributes.rarity_name(pet.rarity)},
            {"trait_type": "Level", "value": pet.level, "max_value": pet_store.MAX_LEVEL},
            {"trait_type": "Attack", "value": pet.attack},
            {"trait_type": "Defense", "value": pet.defense},
            {"trait_type": "Speed", "value": pet.speed},
            {"trait_type": "HP", "value": pet.hp},
        ],
    }
    resp = make_response(json.dumps(meta), 200)
    resp.headers["Content-Type"] = "application/json; charset=utf-8"
    resp.headers["Cache-Control"] = "no-store"
    return resp

# ---------- writes ----------
@bp_pets.post("/api/pets/mint")
def pets_mint():
    owner = _account(_json_body(), "owner")
    with db.write_txn() as cx:
        pet = pet_store.mint(cx, owner, seed_source=_seed_source())
    return _ok(pet=pet.to_dict())

@bp_pets.post("/api/pets/<int:pet_id>/train")
def pets_train(pet_id):
    j = _json_body()
    caller = _account(j, "caller")
    ledger = _ledger()
    with db.write_txn() as cx:
        cost = economy.get_params(cx)["training_cost"]
        pet = progression.train(cx, ledger, caller, pet_id, signer=j.get("signer"))
        balance = ledger.balance_of(cx, caller) if ledger.backend == "local" else None
    return _ok(pet=pet.to_dict(), cost=cost, balance=balance)

@bp_pets.post("/api/pets/<int:pet_id>/upgrade")
def pets_upgrade(pet_id):
    j = _json_body()
    caller = _account(j, "caller")
    ledger = _ledger()
    with db.write_txn() as cx:
        cost = economy.get_params(cx)["upgrade_cost"]
        pet = progression.upgrade(cx, ledger, caller, pet_id, signer=j.get("signer"))
        balance = ledger.balance_of(cx, caller) if ledger.backend == "local" else None
    return _ok(pet=pet.to_dict(), cost=cost, balance=balance)

# ---------- economy ----------
@bp_pets.get("/api/economy")
def economy_get():
    with db.read_conn() as cx:
        params = economy.get_params(cx)
    return _ok(**params)

@bp_pets.post("/api/economy/training-cost")
def economy_set_training_cost():
    j = _json_body()
    caller = _account(j, "caller")
    with db.write_txn() as cx:
        params = economy.set_training_cost(cx, caller, j.get("amount"))
    return _ok(**params)

@bp_pets.post("/api/economy/upgrade-cost")
def economy_set_upgrade_cost():
    j = _json_body()
    caller = _account(j, "caller")
    with db.write_txn() as cx:
        params = economy.set_upgrade_cost(cx, caller, j.get("amount"))
    return _ok(**params)
