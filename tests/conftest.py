import itertools

import pytest

import db
import economy
from ledger import LocalLedger
from app import create_app


@pytest.fixture
def db_path(tmp_path, monkeypatch):
    path = str(tmp_path / "pets.sqlite")
    monkeypatch.setattr(db, "DB_PATH", path)
    db.init_db()
    with db.write_txn() as cx:
        economy.init_params(cx)
    return path


@pytest.fixture
def admin(monkeypatch):
    monkeypatch.setattr(economy, "ADMIN_ACCOUNT", "admin")
    return "admin"


@pytest.fixture
def ledger():
    return LocalLedger()


@pytest.fixture
def seed_source():
    counter = itertools.count()
    return lambda owner, pet_id: f"test:{owner}:{pet_id}:{next(counter)}"


@pytest.fixture
def fund(db_path, ledger):
    def _fund(account, amount):
        with db.write_txn() as cx:
            return ledger.credit(cx, account, amount)
    return _fund


@pytest.fixture
def client(db_path, admin, ledger, seed_source):
    app = create_app(ledger=ledger, seed_source=seed_source)
    app.config["TESTING"] = True
    return app.test_client()
