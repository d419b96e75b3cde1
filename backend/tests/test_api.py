"""HTTP surface tests. Startup hooks are not run, so seeding never happens here."""

import pytest
from fastapi.testclient import TestClient

from footymarket import store
from footymarket.errors import TransientStoreError
from footymarket.main import app


@pytest.fixture
def client():
    return TestClient(app)


def test_root_and_health(client):
    assert client.get("/healthz").json() == {"ok": True}
    assert client.get("/").json()["service"] == "FootyMarket API"


class TestUsers:
    def test_create_user_starts_with_balance(self, client):
        response = client.post("/users", json={"username": "  Jordan ", "email": "Jordan@Example.com"})

        assert response.status_code == 201
        body = response.json()
        assert body["username"] == "jordan"
        assert body["email"] == "jordan@example.com"
        assert body["balance"] == 1000.0

    def test_duplicate_username_rejected(self, client):
        client.post("/users", json={"username": "jordan"})
        response = client.post("/users", json={"username": "jordan"})
        assert response.status_code == 400

    def test_invalid_username_rejected(self, client):
        response = client.post("/users", json={"username": "bad name!"})
        assert response.status_code == 400

    def test_unknown_user_is_404(self, client):
        response = client.get("/users/999")
        assert response.status_code == 404
        assert response.json() == {"detail": "User not found", "error_code": "NOT_FOUND"}


class TestPlayers:
    def test_list_and_filter(self, client, make_player):
        make_player()
        make_player(name="Pedri", team="Barcelona", league="La Liga", position="Midfielder", price="120")

        assert len(client.get("/players").json()) == 2
        assert len(client.get("/players", params={"league": "ALL"}).json()) == 2
        names = [p["name"] for p in client.get("/players", params={"league": "La Liga"}).json()]
        assert names == ["Pedri"]

    def test_player_detail(self, client, make_player):
        player = make_player(price="100")
        body = client.get(f"/players/{player.id}").json()
        assert body["current_price"] == 100.0
        assert client.get("/players/999").status_code == 404


class TestTrading:
    def test_buy_then_sell(self, client, make_user, make_player):
        user = make_user()
        player = make_player(price="100")

        response = client.post("/trade/buy", json={"user_id": user.id, "player_id": player.id, "quantity": 2, "price": 100})
        assert response.status_code == 200
        body = response.json()
        assert body["transaction"]["type"] == "buy"
        assert body["total"] == 200.0
        assert body["new_balance"] == 800.0
        assert body["holding_quantity"] == 2
        assert body["average_buy_price"] == 100.0

        response = client.post("/trade/sell", json={"user_id": user.id, "player_id": player.id, "quantity": 2})
        assert response.status_code == 200
        body = response.json()
        assert body["new_balance"] == 1000.0
        assert body["holding_quantity"] == 0
        assert body["average_buy_price"] is None

    @pytest.mark.parametrize(
        "path,quantity,balance,status,code",
        [
            ("/trade/buy", 1, "50", 400, "INSUFFICIENT_FUNDS"),
            ("/trade/sell", 1, "1000", 400, "INSUFFICIENT_SHARES"),
            ("/trade/buy", 0, "1000", 400, "INVALID_QUANTITY"),
            ("/trade/buy", 101, "100000", 400, "INVALID_QUANTITY"),
            ("/trade/buy", 2.5, "1000", 400, "INVALID_QUANTITY"),
            ("/trade/sell", True, "1000", 400, "INVALID_QUANTITY"),
            ("/quote/buy", 2.5, "1000", 400, "INVALID_QUANTITY"),
        ],
    )
    def test_rejections(self, client, make_user, make_player, path, quantity, balance, status, code):
        user = make_user(balance=balance)
        player = make_player(price="100")

        response = client.post(path, json={"user_id": user.id, "player_id": player.id, "quantity": quantity})

        assert response.status_code == status
        assert response.json()["error_code"] == code

    def test_stale_price_is_conflict(self, client, make_user, make_player):
        user = make_user()
        player = make_player(price="100")

        response = client.post(
            "/trade/buy",
            json={"user_id": user.id, "player_id": player.id, "quantity": 1, "price": 95},
        )

        assert response.status_code == 409
        assert response.json()["error_code"] == "STALE_PRICE"

    def test_store_failure_is_503(self, client, make_user, make_player, monkeypatch):
        user = make_user()
        player = make_player()

        def unavailable(*args, **kwargs):
            raise TransientStoreError("get_user")

        monkeypatch.setattr(store, "get_user", unavailable)
        response = client.post("/trade/buy", json={"user_id": user.id, "player_id": player.id, "quantity": 1})

        assert response.status_code == 503
        assert response.json()["error_code"] == "STORE_UNAVAILABLE"

    def test_quote_buy(self, client, make_user, make_player):
        user = make_user(balance="150")
        player = make_player(price="100")

        body = client.post("/quote/buy", json={"user_id": user.id, "player_id": player.id, "quantity": 2}).json()

        assert body["side"] == "buy"
        assert body["total"] == 200.0
        assert body["allowed"] is False
        assert body["shortfall"] == 50.0


class TestPortfolio:
    def test_portfolio_and_transactions(self, client, make_user, make_player, set_price):
        user = make_user()
        player = make_player(price="100")
        client.post("/trade/buy", json={"user_id": user.id, "player_id": player.id, "quantity": 2})
        set_price(player, "150")

        body = client.get(f"/users/{user.id}/portfolio").json()
        assert body["balance"] == 800.0
        assert body["portfolio_value"] == 300.0
        assert body["total_invested"] == 200.0
        assert body["unrealized_pnl"] == 100.0
        assert body["unrealized_pnl_percent"] == 50.0
        assert body["net_worth"] == 1100.0
        assert body["positions"][0]["player"]["name"] == "Erling Haaland"

        history = client.get(f"/users/{user.id}/transactions").json()
        assert len(history) == 1
        assert history[0]["quantity"] == 2

    def test_empty_portfolio(self, client, make_user):
        user = make_user()
        body = client.get(f"/users/{user.id}/portfolio").json()
        assert body["positions"] == []
        assert body["unrealized_pnl_percent"] == 0.0
        assert body["net_worth"] == 1000.0


class TestStats:
    def test_upsert_statuses(self, client, make_player):
        player = make_player()
        payload = {"player_id": player.id, "season": 2025, "gameweek": 4, "goals": 1, "minutes_played": 90}

        assert client.post("/stats", json=payload).json()["status"] == "created"
        assert client.post("/stats", json=payload).json()["status"] == "unchanged"
        assert client.post("/stats", json={**payload, "goals": 2}).json()["status"] == "updated"

        stats = client.get(f"/players/{player.id}/stats").json()
        assert len(stats) == 1
        assert stats[0]["goals"] == 2

    def test_invalid_payload(self, client, make_player):
        player = make_player()
        response = client.post("/stats", json={"player_id": player.id, "season": 2025, "gameweek": 0})
        assert response.status_code == 422


class TestMarketViews:
    def test_movers_split_gainers_and_losers(self, client, db, make_player):
        riser = make_player(price="100")
        faller = make_player(name="Pedri", team="Barcelona", league="La Liga", position="Midfielder", price="120")
        store.ensure_initial_price_history(db)
        with store.store_operation(db, "test_prices", commit=True):
            store.set_player_price(db, riser, 110, source="PRICE_UPDATE")
            store.set_player_price(db, faller, 90, source="PRICE_UPDATE")

        body = client.get("/market/movers").json()

        assert [row["name"] for row in body["gainers"]] == ["Erling Haaland"]
        assert [row["name"] for row in body["losers"]] == ["Pedri"]

    @pytest.mark.parametrize("path", ["/market/movers", "/market/ticker"])
    def test_degrades_to_empty_when_store_unavailable(self, client, monkeypatch, path):
        def unavailable(db):
            raise TransientStoreError("list_price_changes")

        monkeypatch.setattr(store, "list_price_changes", unavailable)
        response = client.get(path)

        assert response.status_code == 200
        body = response.json()
        if path == "/market/movers":
            assert body["gainers"] == [] and body["losers"] == []
        else:
            assert body == []


def test_trade_routes_document_error_body(client):
    paths = client.get("/openapi.json").json()["paths"]

    for path in ("/trade/buy", "/trade/sell", "/quote/buy", "/quote/sell"):
        responses = paths[path]["post"]["responses"]
        for status in ("400", "404", "409", "503"):
            schema = responses[status]["content"]["application/json"]["schema"]
            assert schema["$ref"].endswith("/ErrorOut")
