import os, sqlite3, threading, logging
from contextlib import contextmanager

# --- Persistent locations (works on Render or locally) ---
DATA_ROOT = os.getenv("DATA_ROOT", "/var/data/battlepets")
DB_PATH   = os.getenv("SQLITE_DB_PATH", os.path.join(DATA_ROOT, "battlepets.sqlite"))
BUSY_TIMEOUT_MS = int(os.getenv("SQLITE_BUSY_TIMEOUT_MS", "3000"))  # 3s default

# One writer at a time inside this process; BEGIN IMMEDIATE covers other processes.
_lock = threading.Lock()
log = logging.getLogger(__name__)

def _ensure_dirs(path: str):
    d = os.path.dirname(path)
    if d:
        os.makedirs(d, exist_ok=True)

def conn(path: str | None = None) -> sqlite3.Connection:
    path = path or DB_PATH
    _ensure_dirs(path)
    cx = sqlite3.connect(path, check_same_thread=False, isolation_level=None)
    cx.row_factory = sqlite3.Row
    cx.execute("PRAGMA foreign_keys=ON;")
    cx.execute("PRAGMA journal_mode=WAL;")
    cx.execute("PRAGMA synchronous=NORMAL;")
    cx.execute(f"PRAGMA busy_timeout={BUSY_TIMEOUT_MS};")
    return cx

@contextmanager
def read_conn(path: str | None = None):
    """Plain connection for queries; sees the last committed state."""
    cx = conn(path)
    try:
        yield cx
    finally:
        cx.close()

@contextmanager
def write_txn(path: str | None = None):
    """
    Single-writer transaction boundary for every state-mutating call.
    Commits when the block finishes, rolls back on any exception so no
    partial mutation is ever visible.
    """
    with _lock:
        cx = conn(path)
        try:
            cx.execute("BEGIN IMMEDIATE")
            try:
                yield cx
            except BaseException:
                if cx.in_transaction:
                    cx.execute("ROLLBACK")
                raise
            cx.execute("COMMIT")
        finally:
            cx.close()

def init_db(path: str | None = None):
    with _lock:
        cx = conn(path)
        try:
            cx.executescript("""
            -- Pet table: ids come from AUTOINCREMENT so they are never reused
            CREATE TABLE IF NOT EXISTS pets(
              id INTEGER PRIMARY KEY AUTOINCREMENT,
              owner TEXT NOT NULL,
              rarity INTEGER NOT NULL CHECK(rarity BETWEEN 1 AND 5),
              level INTEGER NOT NULL DEFAULT 1 CHECK(level BETWEEN 1 AND 100),
              attack INTEGER NOT NULL CHECK(attack > 0),
              defense INTEGER NOT NULL CHECK(defense > 0),
              speed INTEGER NOT NULL CHECK(speed > 0),
              hp INTEGER NOT NULL CHECK(hp > 0),
              skills_json TEXT NOT NULL DEFAULT '[]',
              seed TEXT NOT NULL,
              train_count INTEGER NOT NULL DEFAULT 0,
              minted_at INTEGER,
              updated_at INTEGER
            );

            -- Ownership index (one row per pet, keyed by pet id)
            CREATE TABLE IF NOT EXISTS pet_owners(
              pet_id INTEGER PRIMARY KEY,
              owner TEXT NOT NULL,
              FOREIGN KEY(pet_id) REFERENCES pets(id)
            );
            CREATE INDEX IF NOT EXISTS idx_pet_owners_owner ON pet_owners(owner);

            -- Economy parameters (singleton row id=1)
            CREATE TABLE IF NOT EXISTS economy_params(
              id INTEGER PRIMARY KEY CHECK(id = 1),
              training_cost INTEGER NOT NULL CHECK(training_cost >= 0),
              upgrade_cost INTEGER NOT NULL CHECK(upgrade_cost >= 0),
              updated_by TEXT,
              updated_at INTEGER
            );

            -- Append-only audit of mint/train/upgrade
            CREATE TABLE IF NOT EXISTS pet_events(
              id INTEGER PRIMARY KEY AUTOINCREMENT,
              pet_id INTEGER NOT NULL,
              kind TEXT NOT NULL,      -- mint | train | upgrade
              account TEXT NOT NULL,
              cost INTEGER NOT NULL DEFAULT 0,
              detail_json TEXT,
              created_at INTEGER NOT NULL,
              FOREIGN KEY(pet_id) REFERENCES pets(id)
            );
            CREATE INDEX IF NOT EXISTS idx_pet_events_pet ON pet_events(pet_id);

            -- Local game-token ledger (LEDGER_BACKEND=local)
            CREATE TABLE IF NOT EXISTS token_balances(
              account TEXT PRIMARY KEY,
              balance INTEGER NOT NULL DEFAULT 0 CHECK(balance >= 0),
              updated_at INTEGER
            );
            """)
        finally:
            cx.close()
    log.info("DB_READY %s", path or DB_PATH)
