"""
HTTP API tests over in-memory services
"""

import pytest

from tests.fixtures.market import ist

API = "/api/v1"


def create_user(client, username, **extra):
    response = client.post(f"{API}/users", json={"username": username, **extra})
    assert response.status_code == 201
    return response.json()


def create_contest(client, entry_fee=10, start=None, end=None, **extra):
    response = client.post(f"{API}/contests", json={
        "name": "College Cup",
        "entry_fee": entry_fee,
        "start_date": (start or ist(2024, 1, 10, 9, 15)).isoformat(),
        "end_date": (end or ist(2024, 1, 10, 15, 30)).isoformat(),
        **extra,
    })
    assert response.status_code == 201
    return response.json()


def create_portfolio(client, user_id, holdings=(("TCS", 2),)):
    response = client.post(f"{API}/portfolios", json={
        "userId": user_id,
        "holdings": [{"symbol": s, "quantity": q} for s, q in holdings],
    })
    assert response.status_code == 201
    return response.json()


def join(client, contest_id, user_id, portfolio_id):
    return client.post(f"{API}/contests/{contest_id}/join",
                       json={"userId": user_id, "portfolioId": portfolio_id})


class TestContestEndpoints:

    def test_create_and_get_contest(self, client):
        contest = create_contest(client)

        assert contest["status"] == "live"
        assert contest["storedStatus"] == "upcoming"
        assert contest["timeRemaining"] == "Ends in 4h 30m"
        assert contest["participants"] == 0

        fetched = client.get(f"{API}/contests/{contest['id']}").json()
        assert fetched["id"] == contest["id"]

    def test_create_rejects_inverted_window(self, client):
        response = client.post(f"{API}/contests", json={
            "name": "Backwards",
            "start_date": ist(2024, 1, 10, 15, 30).isoformat(),
            "end_date": ist(2024, 1, 10, 9, 15).isoformat(),
        })
        assert response.status_code == 400

    def test_list_filters_fest_mode(self, client):
        create_contest(client)
        create_contest(client, fest_mode=True)
        assert len(client.get(f"{API}/contests").json()) == 2
        fest = client.get(f"{API}/contests", params={"fest": "true"}).json()
        assert [c["fest_mode"] for c in fest] == [True]

    def test_unknown_contest(self, client):
        assert client.get(f"{API}/contests/00000000-0000-0000-0000-000000000000").status_code == 404

    def test_join_flow(self, client):
        contest = create_contest(client, entry_fee=10)
        user = create_user(client, "alice")
        portfolio = create_portfolio(client, user["id"])

        response = join(client, contest["id"], user["id"], portfolio["id"])

        assert response.status_code == 201
        assert client.get(f"{API}/users/{user['id']}").json()["virtual_balance"] == "90"
        detail = client.get(f"{API}/contests/{contest['id']}").json()
        assert detail["participants"] == 1
        assert detail["prizePool"] == 10.0
        assert join(client, contest["id"], user["id"], portfolio["id"]).status_code == 400

    def test_join_errors(self, client):
        contest = create_contest(client, entry_fee=500)
        user = create_user(client, "poor")
        portfolio = create_portfolio(client, user["id"])

        assert join(client, contest["id"], user["id"], portfolio["id"]).status_code == 400
        missing = "00000000-0000-0000-0000-000000000000"
        assert join(client, missing, user["id"], portfolio["id"]).status_code == 404
        assert join(client, contest["id"], missing, portfolio["id"]).status_code == 404

    def test_contest_leaderboard(self, client, price_source):
        contest = create_contest(client, entry_fee=0)
        for name, symbol in (("tcs-fan", "TCS"), ("infy-fan", "INFY")):
            user = create_user(client, name)
            portfolio = create_portfolio(client, user["id"], [(symbol, 1)])
            assert join(client, contest["id"], user["id"], portfolio["id"]).status_code == 201

        price_source.prices["INFY"] = 1650.0
        for entry in client.get(f"{API}/contests/{contest['id']}/leaderboard").json():
            assert client.post(f"{API}/portfolios/{entry['portfolioId']}/valuate").status_code == 200

        board = client.get(f"{API}/contests/{contest['id']}/leaderboard").json()
        assert [e["username"] for e in board] == ["infy-fan", "tcs-fan"]
        assert board[0]["roi"] == pytest.approx(10.0)
        assert len(client.get(f"{API}/contests/{contest['id']}/leaderboard", params={"limit": 1}).json()) == 1


class TestPortfolioEndpoints:

    def test_create_portfolio_buys_at_quotes(self, client):
        user = create_user(client, "bob")
        portfolio = create_portfolio(client, user["id"], [("TCS", 2), ("INFY", 1)])

        assert float(portfolio["total_value"]) == 8500.0
        assert {h["stock_symbol"] for h in portfolio["holdings"]} == {"TCS", "INFY"}

    def test_create_portfolio_validation(self, client):
        user = create_user(client, "carol")
        response = client.post(f"{API}/portfolios", json={
            "userId": user["id"], "holdings": [{"symbol": "TCS", "quantity": 0}],
        })
        assert response.status_code == 422
        response = client.post(f"{API}/portfolios", json={
            "userId": "00000000-0000-0000-0000-000000000000", "holdings": [{"symbol": "TCS", "quantity": 1}],
        })
        assert response.status_code == 404

    def test_valuate(self, client, price_source):
        user = create_user(client, "dave")
        portfolio = create_portfolio(client, user["id"], [("RELIANCE", 40)])
        price_source.prices["RELIANCE"] = 2687.5

        metrics = client.post(f"{API}/portfolios/{portfolio['id']}/valuate").json()

        assert metrics["roi"] == pytest.approx(7.5)
        assert metrics["totalPL"] == pytest.approx(7500.0)

    def test_valuate_errors(self, client, price_source):
        assert client.post(f"{API}/portfolios/00000000-0000-0000-0000-000000000000/valuate").status_code == 404
        user = create_user(client, "erin")
        portfolio = create_portfolio(client, user["id"])
        price_source.fail = True
        assert client.post(f"{API}/portfolios/{portfolio['id']}/valuate").status_code == 503


class TestMarketEndpoints:

    def test_market_status(self, client):
        status = client.get(f"{API}/market/status").json()
        assert status["exchange"] == "NSE"
        assert status["isOpen"] is True
        assert status["nextOpen"] == ist(2024, 1, 11, 9, 15).isoformat()
        assert status["schedulerState"] == "idle"

    def test_quotes(self, client):
        quotes = client.get(f"{API}/stocks/quotes", params={"symbols": "TCS, INFY"}).json()
        assert [q["symbol"] for q in quotes] == ["TCS", "INFY"]

    def test_too_many_symbols(self, client):
        symbols = ",".join(f"S{i}" for i in range(101))
        assert client.get(f"{API}/stocks/quotes", params={"symbols": symbols}).status_code == 400


class TestUsersAndReferrals:

    def test_duplicate_username(self, client):
        create_user(client, "frank")
        assert client.post(f"{API}/users", json={"username": "frank"}).status_code == 400

    def test_set_balance(self, client):
        user = create_user(client, "gina")
        response = client.patch(f"{API}/users/{user['id']}/balance", json={"balance": 250})
        assert response.json()["virtual_balance"] == "250"

    def test_valuate_user_portfolios(self, client):
        user = create_user(client, "gus")
        create_portfolio(client, user["id"])
        create_portfolio(client, user["id"], [("INFY", 3)])

        response = client.post(f"{API}/users/{user['id']}/portfolios/valuate")

        assert response.status_code == 200
        assert response.json() == {"valuated": 2, "failed": 0}
        missing = client.post(f"{API}/users/00000000-0000-0000-0000-000000000000/portfolios/valuate")
        assert missing.status_code == 404

    def test_referrals(self, client):
        referrer = create_user(client, "hank")
        first = create_user(client, "ivy")
        second = create_user(client, "jack")

        for referred in (first, second):
            response = client.post(f"{API}/referrals", json={"referrerId": referrer["id"], "referredId": referred["id"]})
            assert response.status_code == 201

        again = client.post(f"{API}/referrals", json={"referrerId": second["id"], "referredId": first["id"]})
        assert again.status_code == 400
        self_ref = client.post(f"{API}/referrals", json={"referrerId": first["id"], "referredId": first["id"]})
        assert self_ref.status_code == 400

        assert client.get(f"{API}/referrals/{referrer['id']}/count").json()["count"] == 2
        top = client.get(f"{API}/referrals/top").json()
        assert top[0] == {"userId": referrer["id"], "username": "hank", "referralCount": 2}

    def test_college_leaderboard(self, client):
        college = client.post(f"{API}/colleges", json={"name": "IIT Delhi", "city": "Delhi"}).json()
        contest = create_contest(client, entry_fee=0)
        member = create_user(client, "kim", collegeId=college["id"])
        outsider = create_user(client, "lee")
        for user in (member, outsider):
            portfolio = create_portfolio(client, user["id"])
            join(client, contest["id"], user["id"], portfolio["id"])

        board = client.get(f"{API}/leaderboard/college/{college['id']}", params={"contestId": contest["id"]}).json()

        assert [e["username"] for e in board] == ["kim"]
        assert [u["username"] for u in client.get(f"{API}/colleges/{college['id']}/users").json()] == ["kim"]
        assert len(client.get(f"{API}/users/{member['id']}/contests").json()) == 1
