"""
test_routes.py — HTTP routes for portfolios, references and clients.
"""

import json


def _post(client, url, body):
    return client.post(url, data=json.dumps(body), content_type="application/json")


class TestHealth:
    def test_health(self, client):
        r = client.get("/health")
        assert r.status_code == 200
        assert r.get_json()["database"] == "ok"

    def test_unknown_route(self, client):
        r = client.get("/nope")
        assert r.status_code == 404
        assert r.get_json()["success"] is False


class TestPortfolios:
    def test_list(self, client):
        r = client.get("/api/portfolios")
        assert r.status_code == 200
        data = r.get_json()["data"]
        assert data["valid_codes"] == list(range(1, 11))
        assert [p["code"] for p in data["portfolios"]] == [1, 2, 3]
        assert data["portfolios"][0]["client_count"] == 0
        assert all(p["issuable"] for p in data["portfolios"])

    def test_out_of_range_portfolio_not_issuable(self, client, app_ctx):
        from database import db
        from models import Portfolio
        db.session.add(Portfolio(code=12, name="Retired range"))
        db.session.commit()

        portfolios = client.get("/api/portfolios").get_json()["data"]["portfolios"]
        assert {p["code"]: p["issuable"] for p in portfolios}[12] is False

    def test_create_with_code(self, client):
        r = _post(client, "/api/portfolios", {"code": 7, "name": "Payroll"})
        assert r.status_code == 201
        assert r.get_json()["data"]["portfolio"]["code"] == 7

    def test_create_assigns_next_code(self, client):
        r = _post(client, "/api/portfolios", {"name": "Next"})
        assert r.status_code == 201
        assert r.get_json()["data"]["portfolio"]["code"] == 4

    def test_create_duplicate(self, client):
        r = _post(client, "/api/portfolios", {"code": 2, "name": "Again"})
        assert r.status_code == 409

    def test_create_out_of_range(self, client):
        r = _post(client, "/api/portfolios", {"code": 11, "name": "Too far"})
        assert r.status_code == 400
        assert r.get_json()["details"]["kind"] == "InvalidPortfolioError"

    def test_create_requires_name(self, client):
        r = _post(client, "/api/portfolios", {"code": 5})
        assert r.status_code == 400

    def test_delete_unused(self, client):
        r = client.delete("/api/portfolios/3")
        assert r.status_code == 200
        assert client.delete("/api/portfolios/3").status_code == 404

    def test_delete_referenced_refused(self, client):
        _post(client, "/api/clients", {"name": "Acme Ltd", "portfolio_code": 1})
        r = client.delete("/api/portfolios/1")
        assert r.status_code == 409


class TestReferences:
    def test_issue(self, client):
        r = _post(client, "/api/references", {"portfolio_code": 1})
        assert r.status_code == 201
        data = r.get_json()["data"]
        assert data == {"client_ref": "1A001", "portfolio_code": 1, "alpha": "A", "sequence": 1}

    def test_issue_rolls_over(self, client):
        refs = [
            _post(client, "/api/references", {"portfolio_code": 2}).get_json()["data"]["client_ref"]
            for _ in range(4)
        ]
        assert refs == ["2A001", "2A002", "2A003", "2B001"]

    def test_issue_invalid_portfolio(self, client):
        for code in (0, 11, "abc", None, "\u00b2"):
            r = _post(client, "/api/references", {"portfolio_code": code})
            assert r.status_code == 400
            assert r.get_json()["details"]["kind"] == "InvalidPortfolioError"

        buckets = client.get("/api/references/buckets").get_json()["data"]["buckets"]
        assert buckets == []

    def test_issue_exhausted(self, client, seed_bucket):
        seed_bucket(5, "Z", 4)
        r = _post(client, "/api/references", {"portfolio_code": 5})
        assert r.status_code == 409
        assert r.get_json()["details"]["kind"] == "AllocationSpaceExhaustedError"

    def test_parse(self, client):
        r = client.get("/api/references/10M012")
        assert r.status_code == 200
        assert r.get_json()["data"] == {
            "client_ref": "10M012", "portfolio_code": 10, "alpha": "M", "sequence": 12,
        }

    def test_parse_malformed(self, client):
        r = client.get("/api/references/1a001")
        assert r.status_code == 400
        assert r.get_json()["details"]["kind"] == "FormatError"

    def test_parse_rejects_trailing_newline(self, client):
        r = client.get("/api/references/1A001%0A")
        assert r.status_code == 400
        assert r.get_json()["details"]["kind"] == "FormatError"

    def test_buckets(self, client):
        for _ in range(4):
            _post(client, "/api/references", {"portfolio_code": 1})
        _post(client, "/api/references", {"portfolio_code": 2})

        r = client.get("/api/references/buckets?portfolio_code=1")
        data = r.get_json()["data"]
        assert data["capacity"] == 3
        assert data["buckets"] == [
            {"portfolio_code": 1, "alpha": "A", "next_index": 4},
            {"portfolio_code": 1, "alpha": "B", "next_index": 2},
        ]

    def test_buckets_invalid_filter(self, client):
        r = client.get("/api/references/buckets?portfolio_code=99")
        assert r.status_code == 400

    def test_buckets_unicode_digit_filter(self, client):
        r = client.get("/api/references/buckets?portfolio_code=%C2%B2")
        assert r.status_code == 400
        assert r.get_json()["details"]["kind"] == "InvalidPortfolioError"


class TestClients:
    def test_create_client(self, client):
        r = _post(client, "/api/clients", {"name": "Nova Coin Ltd", "portfolio_code": 2})
        assert r.status_code == 201
        created = r.get_json()["data"]["client"]
        assert created["client_ref"] == "2A001"
        assert created["status"] == "ACTIVE"

        r = client.get("/api/clients/2A001")
        assert r.status_code == 200
        assert r.get_json()["data"]["client"]["name"] == "Nova Coin Ltd"

    def test_create_writes_audit_entry(self, client, app_ctx):
        from models import AuditLog
        r = _post(client, "/api/clients", {"name": "123 Homes", "portfolio_code": 3})
        client_id = r.get_json()["data"]["client"]["client_id"]

        entry = AuditLog.query.filter_by(record_id=client_id).one()
        assert entry.action == "client_ref.issued"
        assert entry.details == {"client_ref": "3A001", "portfolio_code": 3}

    def test_references_are_unique_across_clients(self, client):
        refs = {
            _post(client, "/api/clients", {"name": f"Client {i}", "portfolio_code": 1})
            .get_json()["data"]["client"]["client_ref"]
            for i in range(7)
        }
        assert refs == {"1A001", "1A002", "1A003", "1B001", "1B002", "1B003", "1C001"}

    def test_unknown_portfolio(self, client):
        r = _post(client, "/api/clients", {"name": "Orphan", "portfolio_code": 9})
        assert r.status_code == 404

    def test_invalid_portfolio(self, client):
        r = _post(client, "/api/clients", {"name": "Orphan", "portfolio_code": 0})
        assert r.status_code == 400

    def test_bad_status(self, client):
        r = _post(client, "/api/clients", {"name": "X", "portfolio_code": 1, "status": "GONE"})
        assert r.status_code == 400

    def test_missing_name(self, client):
        r = _post(client, "/api/clients", {"portfolio_code": 1})
        assert r.status_code == 400

    def test_unknown_client(self, client):
        assert client.get("/api/clients/1Z999").status_code == 404

    def test_malformed_reference_lookup(self, client):
        r = client.get("/api/clients/1a001")
        assert r.status_code == 400
        assert r.get_json()["success"] is False
