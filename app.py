import os, json, logging
from flask import Flask, jsonify
from dotenv import load_dotenv

# ----------------- ENV -----------------
# Load .env before the modules below read their config at import time.
load_dotenv()
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
logging.basicConfig(level=LOG_LEVEL, format="%(asctime)s %(levelname)s %(name)s %(message)s")

import db
import economy
import pet_store
from ledger import ledger_from_env
from pets_api import bp_pets
from faucet import bp_faucet

log = logging.getLogger(__name__)

APP_NAME = os.getenv("APP_NAME", "BATTLE PETS")

def _log_env_summary(app: Flask):
    log.info("APP_ENV_SUMMARY %s", json.dumps({
        "APP_NAME": APP_NAME,
        "DB_PATH": db.DB_PATH,
        "LEDGER": app.config["LEDGER"].backend,
        "PET_CAP": pet_store.PET_CAP,
        "ADMIN_SET": bool(economy.ADMIN_ACCOUNT),
    }))
    if not economy.ADMIN_ACCOUNT:
        log.warning("ADMIN_ACCOUNT is not set; economy changes will be denied for all callers.")

# ----------------- APP -----------------
def create_app(ledger=None, seed_source=None) -> Flask:
    app = Flask(__name__)
    app.config["LEDGER"] = ledger or ledger_from_env()
    if seed_source is not None:
        app.config["SEED_SOURCE"] = seed_source

    db.init_db()
    with db.write_txn() as cx:
        economy.init_params(cx)

    app.register_blueprint(bp_pets)
    app.register_blueprint(bp_faucet)

    @app.get("/healthz")
    def healthz():
        return jsonify({"ok": True, "app": APP_NAME, "ledger": app.config["LEDGER"].backend})

    _log_env_summary(app)
    return app
