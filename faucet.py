# faucet.py
import os, time, json, logging
from flask import Blueprint, request, jsonify, current_app

import db
import economy
from errors import BadRequest, NotAdministrator

bp_faucet = Blueprint("faucet", __name__)
log = logging.getLogger(__name__)

# -------- Config --------
FAUCET_AMOUNT = int(os.environ.get("FAUCET_AMOUNT", "1000"))  # game-token units per drip

# -------- tiny per-IP rate limit --------
_last = {}
def rate_limited(ip, window=60, max_hits=6):
    now = time.time()
    for k in [k for k, (t0, _) in _last.items() if now - t0 > window]:
        del _last[k]
    t, c = _last.get(ip, (0, 0))
    if now - t > window:
        _last[ip] = (now, 1)
        return False
    c += 1
    _last[ip] = (t, c)
    return c > max_hits

def _log(tag, obj):
    log.info("%s %s", tag, json.dumps(obj, ensure_ascii=False, default=str))

def _local_ledger():
    ledger = current_app.config["LEDGER"]
    return ledger if ledger.backend == "local" else None

# -------- balances --------
@bp_faucet.get("/api/token/balance/<account>")
def token_balance(account):
    account = account.strip()
    ledger = current_app.config["LEDGER"]
    with db.read_conn() as cx:
        bal = ledger.balance_of(cx, account)
    return jsonify({"ok": True, "account": account, "balance": bal})

@bp_faucet.post("/api/token/grant")
def token_grant():
    j = request.get_json(silent=True) or {}
    caller = (j.get("caller") or "").strip()
    account = (j.get("account") or "").strip()
    if not economy.is_admin(caller):
        raise NotAdministrator(caller=caller)
    if not account:
        raise BadRequest("account_required")
    ledger = _local_ledger()
    if ledger is None:
        return jsonify({"ok": False, "error": "local_ledger_only"}), 403
    with db.write_txn() as cx:
        bal = ledger.credit(cx, account, j.get("amount"))
    _log("TOKEN_GRANT", {"by": caller, "account": account, "balance": bal})
    return jsonify({"ok": True, "account": account, "balance": bal})

# -------- main faucet --------
@bp_faucet.post("/faucet")
def faucet():
    ip = (request.headers.get("X-Forwarded-For") or request.remote_addr or "").split(",")[0].strip()
    if rate_limited(ip):
        return jsonify({"ok": False, "error": "rate-limit"}), 429

    dest = ((request.get_json(silent=True) or {}).get("dest") or "").strip()
    if not dest:
        return jsonify({"ok": False, "error": "bad-dest"}), 400

    ledger = _local_ledger()
    if ledger is None:
        return jsonify({"ok": False, "error": "faucet_disabled"}), 403

    with db.write_txn() as cx:
        bal = ledger.credit(cx, dest, FAUCET_AMOUNT)
    _log("FAUCET_OK", {"ip": ip, "dest": dest, "amount": FAUCET_AMOUNT, "balance": bal})
    return jsonify({"ok": True, "dest": dest, "amount": FAUCET_AMOUNT, "balance": bal})
