import os, time, logging, sqlite3

from errors import NotAdministrator
from ledger import parse_amount

log = logging.getLogger(__name__)

# ---------- config ----------
ADMIN_ACCOUNT = os.getenv("ADMIN_ACCOUNT", "").strip()

# Initial costs, in the game token's smallest unit. Only used to seed the
# singleton row; after that the stored values win.
DEFAULT_TRAINING_COST = int(os.getenv("TRAINING_COST", "10"))
DEFAULT_UPGRADE_COST  = int(os.getenv("UPGRADE_COST", "50"))

def _now_i() -> int:
    return int(time.time())

def is_admin(account: str | None) -> bool:
    if not account or not ADMIN_ACCOUNT:
        return False
    return account.strip() == ADMIN_ACCOUNT

def _require_admin(caller: str | None):
    if not is_admin(caller):
        raise NotAdministrator(caller=caller)

def init_params(cx: sqlite3.Connection):
    cx.execute(
        "INSERT OR IGNORE INTO economy_params(id, training_cost, upgrade_cost, updated_by, updated_at) "
        "VALUES(1, ?, ?, NULL, ?)",
        (DEFAULT_TRAINING_COST, DEFAULT_UPGRADE_COST, _now_i())
    )

def get_params(cx: sqlite3.Connection) -> dict:
    row = cx.execute("SELECT training_cost, upgrade_cost FROM economy_params WHERE id=1").fetchone()
    if not row:
        return {"training_cost": DEFAULT_TRAINING_COST, "upgrade_cost": DEFAULT_UPGRADE_COST}
    return {"training_cost": int(row["training_cost"]), "upgrade_cost": int(row["upgrade_cost"])}

def _set_cost(cx: sqlite3.Connection, caller: str, column: str, amount) -> dict:
    _require_admin(caller)
    v = parse_amount(amount)
    init_params(cx)
    cx.execute(
        f"UPDATE economy_params SET {column}=?, updated_by=?, updated_at=? WHERE id=1",
        (v, caller, _now_i())
    )
    log.info("ECONOMY_SET %s=%s by=%s", column, v, caller)
    return get_params(cx)

def set_training_cost(cx: sqlite3.Connection, caller: str, amount) -> dict:
    return _set_cost(cx, caller, "training_cost", amount)

def set_upgrade_cost(cx: sqlite3.Connection, caller: str, amount) -> dict:
    return _set_cost(cx, caller, "upgrade_cost", amount)
