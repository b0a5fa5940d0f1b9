import json, time, logging, sqlite3
from dataclasses import dataclass, field
from typing import Callable, List

from errors import CapExceeded, NotFound
import pet_attributes

log = logging.getLogger(__name__)

# ----- per-owner cap -----
PET_CAP = 5
MAX_LEVEL = 100

def _now_i() -> int:
    return int(time.time())


@dataclass
class Pet:
    id: int
    owner: str
    rarity: int
    level: int
    attack: int
    defense: int
    speed: int
    hp: int
    skills: List[str] = field(default_factory=list)
    seed: str = ""
    train_count: int = 0
    minted_at: int | None = None
    updated_at: int | None = None

    @classmethod
    def from_row(cls, r: sqlite3.Row) -> "Pet":
        return cls(
            id=int(r["id"]), owner=r["owner"], rarity=int(r["rarity"]), level=int(r["level"]),
            attack=int(r["attack"]), defense=int(r["defense"]), speed=int(r["speed"]), hp=int(r["hp"]),
            skills=json.loads(r["skills_json"] or "[]"), seed=r["seed"],
            train_count=int(r["train_count"] or 0),
            minted_at=r["minted_at"], updated_at=r["updated_at"],
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "owner": self.owner,
            "rarity": self.rarity,
            "rarity_name": pet_attributes.rarity_name(self.rarity),
            "level": self.level,
            "attack": self.attack,
            "defense": self.defense,
            "speed": self.speed,
            "hp": self.hp,
            "skills": list(self.skills),
            "minted_at": self.minted_at,
            "updated_at": self.updated_at,
        }


# ---------- events ----------
def log_event(cx: sqlite3.Connection, pet_id: int, kind: str, account: str, cost: int = 0, detail: dict | None = None):
    cx.execute(
        "INSERT INTO pet_events(pet_id, kind, account, cost, detail_json, created_at) VALUES(?,?,?,?,?,?)",
        (pet_id, kind, account, int(cost), json.dumps(detail or {}), _now_i())
    )

def history(cx: sqlite3.Connection, pet_id: int) -> list[dict]:
    get(cx, pet_id)
    rows = cx.execute(
        "SELECT kind, account, cost, detail_json, created_at FROM pet_events WHERE pet_id=? ORDER BY id",
        (pet_id,)
    ).fetchall()
    return [{
        "kind": r["kind"],
        "account": r["account"],
        "cost": int(r["cost"]),
        "detail": json.loads(r["detail_json"] or "{}"),
        "created_at": r["created_at"],
    } for r in rows]


# ---------- reads ----------
def get(cx: sqlite3.Connection, pet_id: int) -> Pet:
    r = cx.execute("SELECT * FROM pets WHERE id=?", (int(pet_id),)).fetchone()
    if not r:
        raise NotFound(pet_id=pet_id)
    return Pet.from_row(r)

def owner_of(cx: sqlite3.Connection, pet_id: int) -> str:
    row = cx.execute("SELECT owner FROM pet_owners WHERE pet_id=?", (int(pet_id),)).fetchone()
    if not row:
        raise NotFound(pet_id=pet_id)
    return row["owner"]

def pet_count(cx: sqlite3.Connection, owner: str) -> int:
    row = cx.execute("SELECT COUNT(1) AS n FROM pet_owners WHERE owner=?", (owner,)).fetchone()
    return int(row["n"] if row else 0)

def pets_of(cx: sqlite3.Connection, owner: str) -> list[Pet]:
    rows = cx.execute("""
      SELECT p.* FROM pets p
      JOIN pet_owners o ON o.pet_id = p.id
      WHERE o.owner=?
      ORDER BY p.id
    """, (owner,)).fetchall()
    return [Pet.from_row(r) for r in rows]

def token_of_owner_by_index(cx: sqlite3.Connection, owner: str, index: int) -> int:
    if index < 0:
        raise NotFound(owner=owner, index=index)
    row = cx.execute(
        "SELECT pet_id FROM pet_owners WHERE owner=? ORDER BY pet_id LIMIT 1 OFFSET ?",
        (owner, int(index))
    ).fetchone()
    if not row:
        raise NotFound(owner=owner, index=index)
    return int(row["pet_id"])

def collection_stats(cx: sqlite3.Connection) -> dict:
    rows = cx.execute("SELECT rarity, COUNT(1) AS n FROM pets GROUP BY rarity").fetchall()
    rarity_counts = {name: 0 for name in pet_attributes.RARITY_NAMES.values()}
    for r in rows:
        rarity_counts[pet_attributes.rarity_name(r["rarity"])] = int(r["n"])
    return {
        "cap_per_owner": PET_CAP,
        "max_level": MAX_LEVEL,
        "minted_total": sum(rarity_counts.values()),
        "rarity_counts": rarity_counts,
    }


# ---------- writes ----------
def _next_id(cx: sqlite3.Connection) -> int:
    row = cx.execute("SELECT seq FROM sqlite_sequence WHERE name='pets'").fetchone()
    return int(row["seq"] if row else 0) + 1

def mint(cx: sqlite3.Connection, owner: str,
         seed_source: Callable[[str, int], str] = pet_attributes.new_seed) -> Pet:
    """
    Mint a new pet for `owner`. Must run inside a write transaction: the pet
    row, its ownership-index row and the mint event land together.
    """
    held = pet_count(cx, owner)
    if held >= PET_CAP:
        log.info("PET_MINT_CAP owner=%s held=%s", owner, held)
        raise CapExceeded(owner=owner, held=held, cap=PET_CAP)

    pet_id = _next_id(cx)
    seed = seed_source(owner, pet_id)
    attrs = pet_attributes.generate(seed)
    ts = _now_i()

    cx.execute("""
      INSERT INTO pets(id, owner, rarity, level, attack, defense, speed, hp,
                       skills_json, seed, train_count, minted_at, updated_at)
      VALUES(?,?,?,1,?,?,?,?,'[]',?,0,?,?)
    """, (pet_id, owner, attrs["rarity"], attrs["attack"], attrs["defense"],
          attrs["speed"], attrs["hp"], seed, ts, ts))
    cx.execute("INSERT INTO pet_owners(pet_id, owner) VALUES(?,?)", (pet_id, owner))
    log_event(cx, pet_id, "mint", owner, 0, attrs)

    log.info("PET_MINT id=%s owner=%s rarity=%s", pet_id, owner, attrs["rarity"])
    return get(cx, pet_id)

def save_progress(cx: sqlite3.Connection, pet: Pet):
    cx.execute("""
      UPDATE pets SET level=?, attack=?, defense=?, speed=?, hp=?, train_count=?, updated_at=?
      WHERE id=?
    """, (pet.level, pet.attack, pet.defense, pet.speed, pet.hp, pet.train_count, _now_i(), pet.id))
