# ledger.py
import os, json, time, logging, sqlite3
from decimal import Decimal, ROUND_DOWN
import requests
from stellar_sdk import (
    Server, Keypair, Asset, TransactionBuilder, StrKey, exceptions as sx
)
from stellar_sdk.client.requests_client import RequestsClient

from errors import InsufficientFunds, BadRequest, PaymentFailed, PaymentPending

log = logging.getLogger(__name__)

# ---------- env ----------
LEDGER_BACKEND = os.getenv("LEDGER_BACKEND", "local").strip().lower()

HORIZON_URL = os.getenv("HORIZON_URL", "https://horizon-testnet.stellar.org").strip()
PASSPHRASE  = os.getenv("NETWORK_PASSPHRASE", "auto").strip()

GAME_TOKEN_CODE   = os.getenv("GAME_TOKEN_CODE", "PETS").strip()
GAME_TOKEN_ISSUER = os.getenv("GAME_TOKEN_ISSUER", "").strip()
TREASURY_PUBLIC   = os.getenv("TREASURY_PUBLIC", "").strip()

# Stellar amounts carry 7 decimals; ledger units are stroops of the game token
STROOPS_PER_TOKEN = 10_000_000

# SQLite INTEGER is signed 64-bit; larger values would overflow or turn into REAL
MAX_AMOUNT = 2 ** 63 - 1

# ---------- small helpers ----------
def _now_i() -> int:
    return int(time.time())

def _mask(k: str | None) -> str:
    if not k: return ""
    k = k.strip()
    if len(k) <= 8: return k[:1] + "…"
    return f"{k[:4]}…{k[-4:]}"

def parse_amount(amount) -> int:
    """Non-negative integer amount from JSON input (int or ASCII digit string)."""
    if isinstance(amount, int) and not isinstance(amount, bool):
        v = amount
    elif isinstance(amount, str) and amount.strip().isascii() and amount.strip().isdigit():
        v = int(amount.strip())
    else:
        raise BadRequest("bad_amount")
    if v < 0:
        raise BadRequest("bad_amount")
    if v > MAX_AMOUNT:
        raise BadRequest("amount_too_large", max=MAX_AMOUNT)
    return v

def units_to_amount(units: int) -> str:
    d = Decimal(int(units)) / Decimal(STROOPS_PER_TOKEN)
    return str(d.quantize(Decimal("0.0000001"), rounding=ROUND_DOWN))

def amount_to_units(amount: str) -> int:
    return int((Decimal(str(amount)) * STROOPS_PER_TOKEN).to_integral_value(rounding=ROUND_DOWN))


# ---------- local ledger ----------
class LocalLedger:
    """
    Game-token balances kept in the same SQLite file as the pets. Debits run
    on the caller's connection, so they commit or roll back together with
    the pet mutation.
    """
    backend = "local"

    def balance_of(self, cx: sqlite3.Connection, account: str) -> int:
        row = cx.execute("SELECT balance FROM token_balances WHERE account=?", (account,)).fetchone()
        return int(row["balance"]) if row else 0

    def credit(self, cx: sqlite3.Connection, account: str, amount: int) -> int:
        amount = parse_amount(amount)
        if self.balance_of(cx, account) + amount > MAX_AMOUNT:
            raise BadRequest("amount_too_large", max=MAX_AMOUNT)
        cx.execute("""
          INSERT INTO token_balances(account, balance, updated_at) VALUES(?,?,?)
          ON CONFLICT(account) DO UPDATE SET
            balance=token_balances.balance + excluded.balance,
            updated_at=excluded.updated_at
        """, (account, amount, _now_i()))
        bal = self.balance_of(cx, account)
        log.info("LEDGER_CREDIT account=%s amount=%s balance=%s", account, amount, bal)
        return bal

    def debit(self, cx: sqlite3.Connection, account: str, amount: int, signer=None, memo=None) -> int:
        amount = parse_amount(amount)
        if amount == 0:
            return self.balance_of(cx, account)
        cur = cx.execute(
            "UPDATE token_balances SET balance=balance-?, updated_at=? WHERE account=? AND balance>=?",
            (amount, _now_i(), account, amount)
        )
        if cur.rowcount != 1:
            have = self.balance_of(cx, account)
            log.info("LEDGER_DEBIT_SHORT account=%s need=%s have=%s", account, amount, have)
            raise InsufficientFunds(balance=have, needed=amount)
        bal = self.balance_of(cx, account)
        log.info("LEDGER_DEBIT account=%s amount=%s balance=%s memo=%s", account, amount, bal, memo)
        return bal


# ---------- Stellar ledger ----------
class StellarLedger:
    """
    Game token held on Stellar. A debit is a payment from the caller to the
    treasury, signed with the caller's secret. Callers submit it as the last
    step of their write transaction so a failed payment rolls the local
    mutation back.
    """
    backend = "stellar"

    def __init__(self, server: Server, asset: Asset, treasury_pub: str, network_passphrase: str):
        self.server = server
        self.asset = asset
        self.treasury_pub = treasury_pub
        self.network_passphrase = network_passphrase

    def _account_json(self, pub_g: str) -> dict | None:
        try:
            return self.server.accounts().account_id(pub_g).call()
        except sx.NotFoundError:
            return None

    def _base_fee(self) -> int:
        try:
            return int(self.server.fetch_base_fee())
        except Exception as e:
            log.warning("BASE_FEE_FALLBACK %s: %s", type(e).__name__, e)
            return 100

    def balance_of(self, cx, account: str) -> int:
        j = self._account_json(account)
        if not j:
            return 0
        for b in j.get("balances", []):
            if b.get("asset_code") == self.asset.code and b.get("asset_issuer") == self.asset.issuer:
                return amount_to_units(b.get("balance", "0"))
        return 0

    def debit(self, cx, account: str, amount: int, signer=None, memo=None) -> int:
        amount = parse_amount(amount)
        have = self.balance_of(cx, account)
        if amount == 0:
            return have
        if not signer:
            raise BadRequest("signer_required")
        try:
            kp = Keypair.from_secret(signer)
        except Exception:
            raise BadRequest("bad_signer")
        if kp.public_key != account:
            raise BadRequest("signer_mismatch")
        if have < amount:
            log.info("LEDGER_DEBIT_SHORT account=%s need=%s have=%s", _mask(account), amount, have)
            raise InsufficientFunds(balance=have, needed=amount)

        acc = self.server.load_account(account)
        tb = TransactionBuilder(acc, self.network_passphrase, base_fee=self._base_fee()).append_payment_op(
            destination=self.treasury_pub, amount=units_to_amount(amount), asset=self.asset
        )
        if memo:
            tb = tb.add_text_memo(memo[:28])
        tx = tb.set_timeout(180).build()
        tx.sign(kp)
        tx_hash = tx.hash_hex()
        try:
            self.server.submit_transaction(tx)
        except sx.BadResponseError as e:
            extras = json.dumps(getattr(e, "extras", None) or {}, default=str)
            log.warning("LEDGER_DEBIT_FAIL account=%s extras=%s", _mask(account), extras)
            if "op_underfunded" in extras:
                raise InsufficientFunds(balance=have, needed=amount)
            raise
        except sx.ConnectionError as e:
            log.warning("LEDGER_DEBIT_TIMEOUT account=%s hash=%s %s", _mask(account), tx_hash, e)
            self._confirm_landed(tx_hash)
        log.info("LEDGER_DEBIT account=%s amount=%s hash=%s", _mask(account), amount, tx_hash)
        return have - amount

    def _confirm_landed(self, tx_hash: str) -> None:
        """
        Settle a submit whose response never arrived. Returns when Horizon
        shows the payment applied; otherwise raises so the local mutation
        rolls back.
        """
        try:
            rec = self.server.transactions().transaction(tx_hash).call()
        except (sx.NotFoundError, sx.ConnectionError):
            log.warning("LEDGER_DEBIT_PENDING hash=%s", tx_hash)
            raise PaymentPending(hash=tx_hash)
        if not rec.get("successful"):
            log.warning("LEDGER_DEBIT_REJECTED hash=%s", tx_hash)
            raise PaymentFailed(hash=tx_hash)
        log.info("LEDGER_DEBIT_CONFIRMED hash=%s", tx_hash)


# ---------- backend selection ----------
def _network_passphrase() -> str:
    if PASSPHRASE.lower() != "auto":
        return PASSPHRASE
    try:
        r = requests.get(HORIZON_URL, timeout=6)
        r.raise_for_status()
        return r.json().get("network_passphrase") or "Test SDF Network ; September 2015"
    except Exception as e:
        log.warning("PASSPHRASE_FALLBACK %s: %s", type(e).__name__, e)
        return "Test SDF Network ; September 2015"

def ledger_from_env():
    if LEDGER_BACKEND == "local":
        return LocalLedger()
    if LEDGER_BACKEND != "stellar":
        raise RuntimeError(f"Unknown LEDGER_BACKEND: {LEDGER_BACKEND}")
    problems = []
    if not StrKey.is_valid_ed25519_public_key(GAME_TOKEN_ISSUER or ""): problems.append("GAME_TOKEN_ISSUER invalid")
    if not StrKey.is_valid_ed25519_public_key(TREASURY_PUBLIC or ""):   problems.append("TREASURY_PUBLIC invalid")
    if problems:
        raise RuntimeError("ledger env invalid: " + ", ".join(problems))
    server = Server(HORIZON_URL, client=RequestsClient(num_retries=1, post_timeout=10))
    log.info("LEDGER_ENV_SUMMARY %s", json.dumps({
        "HORIZON_URL": HORIZON_URL,
        "GAME_TOKEN_CODE": GAME_TOKEN_CODE,
        "GAME_TOKEN_ISSUER_masked": _mask(GAME_TOKEN_ISSUER),
        "TREASURY_masked": _mask(TREASURY_PUBLIC),
    }))
    return StellarLedger(server, Asset(GAME_TOKEN_CODE, GAME_TOKEN_ISSUER), TREASURY_PUBLIC, _network_passphrase())
