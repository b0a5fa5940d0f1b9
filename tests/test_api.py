import faucet


def _mint(client, owner):
    return client.post("/api/pets/mint", json={"owner": owner})


def test_healthz(client):
    r = client.get("/healthz")
    assert r.status_code == 200
    assert r.get_json()["ledger"] == "local"


def test_scenario_over_http(client, fund):
    for i in range(5):
        r = _mint(client, "A")
        assert r.status_code == 200
        pet = r.get_json()["pet"]
        assert pet["id"] == i + 1
        assert pet["level"] == 1
        assert 1 <= pet["rarity"] <= 5
        assert min(pet["attack"], pet["defense"], pet["speed"], pet["hp"]) > 0

    r = _mint(client, "A")
    assert r.status_code == 409
    assert r.get_json() == {"ok": False, "error": "cap_exceeded", "retryable": False,
                            "owner": "A", "held": 5, "cap": 5}

    r = client.get("/api/pets/owner/A")
    assert r.get_json()["count"] == 5

    assert client.post("/api/economy/training-cost", json={"caller": "admin", "amount": 10}).status_code == 200
    assert client.post("/api/economy/upgrade-cost", json={"caller": "admin", "amount": 50}).status_code == 200
    fund("A", 1000)

    before = client.get("/api/pets/1").get_json()["pet"]
    r = client.post("/api/pets/1/train", json={"caller": "A"})
    body = r.get_json()
    assert r.status_code == 200
    assert body["balance"] == 990
    assert body["cost"] == 10
    for stat in ("attack", "defense", "speed", "hp"):
        assert body["pet"][stat] >= before[stat]

    r = client.post("/api/pets/1/upgrade", json={"caller": "A"})
    body = r.get_json()
    assert body["pet"]["level"] == 2
    assert body["balance"] == 940

    events = client.get("/api/pets/1/history").get_json()["events"]
    assert [e["kind"] for e in events] == ["mint", "train", "upgrade"]


def test_error_mapping(client, fund):
    _mint(client, "alice")

    r = client.get("/api/pets/99")
    assert r.status_code == 404
    assert r.get_json()["error"] == "not_found"

    r = client.post("/api/pets/1/train", json={"caller": "bob"})
    assert r.status_code == 403
    assert r.get_json()["error"] == "not_owner"

    r = client.post("/api/pets/1/upgrade", json={"caller": "alice"})
    assert r.status_code == 402
    body = r.get_json()
    assert body["error"] == "insufficient_funds"
    assert body["retryable"] is True
    assert client.get("/api/pets/1").get_json()["pet"]["level"] == 1

    r = client.post("/api/pets/1/train", json={})
    assert r.status_code == 400
    assert r.get_json()["error"] == "caller_required"

    r = client.post("/api/economy/training-cost", json={"caller": "alice", "amount": 1})
    assert r.status_code == 403
    assert r.get_json()["error"] == "not_administrator"

    r = client.post("/api/economy/upgrade-cost", json={"caller": "admin", "amount": -3})
    assert r.status_code == 400
    assert r.get_json()["error"] == "bad_amount"


def test_economy_read(client):
    r = client.get("/api/economy")
    body = r.get_json()
    assert body["ok"] is True
    assert set(body) == {"ok", "training_cost", "upgrade_cost"}


def test_owner_index_and_stats(client):
    _mint(client, "alice")
    _mint(client, "bob")
    _mint(client, "alice")
    r = client.get("/api/pets/owner/alice/index/1")
    assert r.get_json()["pet_id"] == 3
    assert client.get("/api/pets/owner/alice/index/5").status_code == 404

    stats = client.get("/api/pets/stats").get_json()
    assert stats["minted_total"] == 3
    assert stats["max_level"] == 100


def test_metadata(client):
    pet = _mint(client, "alice").get_json()["pet"]
    r = client.get(f"/petmeta/{pet['id']}.json")
    assert r.status_code == 200
    assert r.headers["Cache-Control"] == "no-store"
    meta = r.get_json()
    traits = {a["trait_type"]: a["value"] for a in meta["attributes"]}
    assert traits["Rarity"] == pet["rarity_name"]
    assert traits["Level"] == 1
    assert traits["HP"] == pet["hp"]


def test_faucet_and_balance(client, monkeypatch):
    monkeypatch.setattr(faucet, "_last", {})
    r = client.post("/faucet", json={"dest": "alice"})
    assert r.status_code == 200
    assert r.get_json()["balance"] == faucet.FAUCET_AMOUNT
    r = client.get("/api/token/balance/alice")
    assert r.get_json()["balance"] == faucet.FAUCET_AMOUNT

    assert client.post("/faucet", json={}).status_code == 400


def test_faucet_rate_limit(client, monkeypatch):
    monkeypatch.setattr(faucet, "_last", {})
    codes = [client.post("/faucet", json={"dest": "alice"}).status_code for _ in range(7)]
    assert codes[:6] == [200] * 6
    assert codes[6] == 429


def test_grant_is_admin_only(client):
    r = client.post("/api/token/grant", json={"caller": "alice", "account": "alice", "amount": 5})
    assert r.status_code == 403
    r = client.post("/api/token/grant", json={"caller": "admin", "account": "alice", "amount": 5})
    assert r.get_json()["balance"] == 5


def test_oversized_amounts_are_bad_requests(client):
    r = client.post("/api/economy/upgrade-cost", json={"caller": "admin", "amount": 2 ** 63})
    assert r.status_code == 400
    assert r.get_json()["error"] == "amount_too_large"
    r = client.post("/api/token/grant", json={"caller": "admin", "account": "alice", "amount": "²"})
    assert r.status_code == 400
    assert r.get_json()["error"] == "bad_amount"
    assert client.get("/api/economy").get_json()["upgrade_cost"] != 2 ** 63


def test_rate_limit_forgets_idle_ips(monkeypatch):
    monkeypatch.setattr(faucet, "_last", {"10.0.0.1": (0, 3), "10.0.0.2": (0, 1)})
    assert faucet.rate_limited("10.0.0.3") is False
    assert set(faucet._last) == {"10.0.0.3"}
