"""
Tests for the Flask API (src/api/)

Tests cover:
- Health and metrics endpoints
- Work, payment and distribution endpoints
- Governance endpoints
- Error kinds mapped to HTTP status codes
- API key and caller identity handling
"""

import sys

import pytest

sys.path.insert(0, "src")

WORK_BODY = {
    "title": "Night Drive",
    "collaborators": ["alice", "bob", "carol"],
    "percentages": [4000, 3500, 2500],
    "governance_enabled": True,
}


def as_caller(identity):
    return {"X-Caller-Id": identity}


@pytest.fixture
def created_work(flask_client):
    """Create the three-way work over HTTP and return its id."""
    response = flask_client.post("/works", json=WORK_BODY, headers=as_caller("alice"))
    assert response.status_code == 201
    return response.get_json()["work_id"]


# ============================================================
# Monitoring Endpoints
# ============================================================

class TestMonitoringEndpoints:
    """Tests for /health and /metrics."""

    def test_health(self, flask_client):
        response = flask_client.get("/health")
        data = response.get_json()

        assert response.status_code == 200
        assert data["status"] == "healthy"
        assert data["checks"]["platform"]["works"] == 0

    def test_readiness(self, flask_client):
        assert flask_client.get("/health/ready").status_code == 200

    def test_prometheus_metrics(self, flask_client, created_work):
        response = flask_client.get("/metrics")

        assert response.status_code == 200
        assert response.mimetype == "text/plain"
        assert "collab_royalty_works_created_total" in response.get_data(as_text=True)

    def test_request_id_echoed(self, flask_client):
        response = flask_client.get("/health", headers={"X-Request-ID": "abc123"})
        assert response.headers["X-Request-ID"] == "abc123"

    def test_unknown_route_is_json(self, flask_client):
        response = flask_client.get("/nowhere")
        assert response.status_code == 404
        assert response.get_json()["error"] == "Endpoint not found"


# ============================================================
# Work Endpoints
# ============================================================

class TestWorkEndpoints:
    """Tests for work registration and lookup."""

    def test_create_work(self, flask_client):
        response = flask_client.post("/works", json=WORK_BODY, headers=as_caller("alice"))
        data = response.get_json()

        assert response.status_code == 201
        assert data["work_id"] == 1
        assert data["work"]["creator"] == "alice"
        assert data["work"]["share_total"] == 10000

    def test_create_requires_caller(self, flask_client):
        response = flask_client.post("/works", json=WORK_BODY)
        assert response.status_code == 400
        assert "Caller" in response.get_json()["error"]

    def test_create_schema_error(self, flask_client):
        response = flask_client.post(
            "/works", json={"title": "x", "collaborators": "alice"}, headers=as_caller("alice")
        )
        assert response.status_code == 400

    def test_bad_percentages(self, flask_client):
        body = dict(WORK_BODY, percentages=[4000, 3500, 2000])
        response = flask_client.post("/works", json=body, headers=as_caller("alice"))

        assert response.status_code == 400
        assert response.get_json()["error"] == "invalid_percentage_set"

    def test_duplicate_collaborators(self, flask_client):
        body = dict(WORK_BODY, collaborators=["alice", "alice", "bob"])
        response = flask_client.post("/works", json=body, headers=as_caller("alice"))
        assert response.get_json()["error"] == "invalid_collaborator_set"

    def test_get_work(self, flask_client, created_work):
        data = flask_client.get(f"/works/{created_work}").get_json()
        assert data["title"] == "Night Drive"
        assert data["collaborators"] == ["alice", "bob", "carol"]

    def test_get_unknown_work(self, flask_client):
        response = flask_client.get("/works/99")
        assert response.status_code == 404
        assert response.get_json()["error"] == "work_not_found"

    def test_list_works_filtered(self, flask_client, created_work):
        flask_client.post(
            "/works",
            json={"title": "Solo", "collaborators": ["dave"], "percentages": [10000]},
            headers=as_caller("dave"),
        )
        assert flask_client.get("/works").get_json()["count"] == 2
        assert flask_client.get("/works?collaborator=bob").get_json()["count"] == 1

    def test_collaborators(self, flask_client, created_work):
        data = flask_client.get(f"/works/{created_work}/collaborators").get_json()
        assert data["collaborators"] == ["alice", "bob", "carol"]

    def test_share(self, flask_client, created_work):
        data = flask_client.get(f"/works/{created_work}/shares/bob").get_json()
        assert data["percentage"] == 3500

    def test_share_of_non_collaborator(self, flask_client, created_work):
        response = flask_client.get(f"/works/{created_work}/shares/mallory")
        assert response.status_code == 404


# ============================================================
# Payment & Distribution Endpoints
# ============================================================

class TestPaymentEndpoints:
    """Tests for payments and distributions."""

    def test_payment_and_distribution(self, flask_client, created_work, transfers):
        response = flask_client.post(
            f"/works/{created_work}/payments", json={"amount": 100_000_000}, headers=as_caller("fan")
        )
        data = response.get_json()

        assert response.status_code == 200
        assert data["fee"] == 2_500_000
        assert data["net"] == 97_500_000
        assert data["ledger"]["pending_distribution"] == 97_500_000

        response = flask_client.post(f"/works/{created_work}/distributions")
        data = response.get_json()

        assert response.status_code == 200
        assert data["distributed"] == 97_500_000
        assert [p["amount"] for p in data["payouts"]] == [39_000_000, 34_125_000, 24_375_000]
        assert transfers.balance("carol") == 24_375_000

        revenue = flask_client.get(f"/works/{created_work}/revenue").get_json()
        assert revenue["total_distributed"] == 97_500_000
        assert revenue["balanced"] is True
        assert revenue["last_distribution_result"]["residual"] == 0

    def test_insufficient_funds_is_402(self, flask_client, created_work):
        response = flask_client.post(
            f"/works/{created_work}/payments", json={"amount": 500}, headers=as_caller("nobody")
        )
        assert response.status_code == 402
        assert response.get_json()["error"] == "insufficient_funds"

    def test_invalid_amount(self, flask_client, created_work):
        response = flask_client.post(
            f"/works/{created_work}/payments", json={"amount": 0}, headers=as_caller("fan")
        )
        assert response.status_code == 400
        assert response.get_json()["error"] == "invalid_amount"

    def test_amount_must_be_integer(self, flask_client, created_work):
        response = flask_client.post(
            f"/works/{created_work}/payments", json={"amount": "100"}, headers=as_caller("fan")
        )
        assert response.status_code == 400

    def test_nothing_pending_is_409(self, flask_client, created_work):
        response = flask_client.post(f"/works/{created_work}/distributions")
        assert response.status_code == 409
        assert response.get_json()["error"] == "no_pending_revenue"

    def test_pool_account_as_caller_is_403(self, flask_client, created_work):
        response = flask_client.post(
            f"/works/{created_work}/payments", json={"amount": 10}, headers=as_caller("platform-pool")
        )
        assert response.status_code == 403
        assert response.get_json()["error"] == "unauthorized"

    def test_payment_to_unknown_work(self, flask_client):
        response = flask_client.post("/works/5/payments", json={"amount": 10}, headers=as_caller("fan"))
        assert response.status_code == 404


# ============================================================
# Governance Endpoints
# ============================================================

class TestGovernanceEndpoints:
    """Tests for proposals and votes."""

    @pytest.fixture
    def proposal_id(self, flask_client, created_work):
        response = flask_client.post(
            f"/works/{created_work}/proposals",
            json={"proposal_type": "royalty-update", "target": "carol", "new_percentage": 4500},
            headers=as_caller("alice"),
        )
        assert response.status_code == 201
        return response.get_json()["proposal_id"]

    def test_full_proposal_flow(self, flask_client, created_work, proposal_id):
        for voter in ("alice", "bob"):
            response = flask_client.post(
                f"/proposals/{proposal_id}/votes", json={"choice": True}, headers=as_caller(voter)
            )
            assert response.status_code == 200

        proposal = flask_client.get(f"/proposals/{proposal_id}").get_json()
        assert proposal["current_status"] == "passed"

        response = flask_client.post(f"/proposals/{proposal_id}/execute", headers=as_caller("carol"))
        data = response.get_json()
        assert response.status_code == 200
        assert data["proposal"]["status"] == "executed"
        assert data["share_total"] == 12000

        share = flask_client.get(f"/works/{created_work}/shares/carol").get_json()
        assert share["percentage"] == 4500

    def test_double_vote_is_409(self, flask_client, proposal_id):
        flask_client.post(f"/proposals/{proposal_id}/votes", json={"choice": True}, headers=as_caller("alice"))
        response = flask_client.post(
            f"/proposals/{proposal_id}/votes", json={"choice": False}, headers=as_caller("alice")
        )
        assert response.status_code == 409
        assert response.get_json()["error"] == "already_voted"

    def test_outsider_vote_is_403(self, flask_client, proposal_id):
        response = flask_client.post(
            f"/proposals/{proposal_id}/votes", json={"choice": True}, headers=as_caller("mallory")
        )
        assert response.status_code == 403

    def test_execute_not_passed_is_409(self, flask_client, proposal_id):
        response = flask_client.post(f"/proposals/{proposal_id}/execute", headers=as_caller("alice"))
        assert response.status_code == 409
        assert response.get_json()["error"] == "proposal_not_passed"

    def test_get_vote(self, flask_client, proposal_id):
        flask_client.post(f"/proposals/{proposal_id}/votes", json={"choice": False}, headers=as_caller("bob"))

        assert flask_client.get(f"/proposals/{proposal_id}/votes/bob").get_json()["choice"] is False
        assert flask_client.get(f"/proposals/{proposal_id}/votes/carol").status_code == 404

    def test_unknown_proposal(self, flask_client):
        response = flask_client.get("/proposals/77")
        assert response.status_code == 404
        assert response.get_json()["error"] == "proposal_not_found"

    def test_list_by_status(self, flask_client, proposal_id):
        assert flask_client.get("/proposals?status=active").get_json()["count"] == 1
        assert flask_client.get("/proposals?status=passed").get_json()["count"] == 0
        assert flask_client.get("/proposals?status=bogus").status_code == 400

    def test_invalid_type(self, flask_client, created_work):
        response = flask_client.post(
            f"/works/{created_work}/proposals", json={"proposal_type": "coup"}, headers=as_caller("alice")
        )
        assert response.status_code == 400
        assert response.get_json()["error"] == "invalid_proposal"


# ============================================================
# Platform Endpoints
# ============================================================

class TestPlatformEndpoints:
    """Tests for /platform routes."""

    def test_fee(self, flask_client):
        assert flask_client.get("/platform/fee").get_json() == {"fee_bps": 250, "fee_percent": 2.5}

    def test_stats(self, flask_client, created_work):
        data = flask_client.get("/platform/stats").get_json()
        assert data["works"]["total"] == 1

    def test_events(self, flask_client, created_work):
        data = flask_client.get("/platform/events?type=work_created").get_json()
        assert data["count"] == 1
        assert data["events"][0]["data"]["work_id"] == created_work

    def test_deposit_and_balance(self, flask_client):
        response = flask_client.post("/platform/accounts/erin/deposits", json={"amount": 750})
        assert response.get_json()["balance"] == 750
        assert flask_client.get("/platform/accounts/erin").get_json()["balance"] == 750


# ============================================================
# Served Platform Clock
# ============================================================

class TestServedClock:
    """The app built from the environment runs on the wall block clock."""

    @pytest.fixture
    def wall_time(self, monkeypatch):
        import block_clock

        now = {"t": 50_000.0}
        monkeypatch.setattr(block_clock.time, "monotonic", lambda: now["t"])
        return now

    @pytest.fixture
    def served_client(self, monkeypatch, wall_time):
        from api import create_app

        monkeypatch.setenv("ROYALTY_BLOCK_SECONDS", "60")
        monkeypatch.setenv("ROYALTY_VOTING_PERIOD_BLOCKS", "2")
        app = create_app(config={"TESTING": True, "ROYALTY_REQUIRE_AUTH": False})
        return app.test_client()

    def test_proposal_expires_with_wall_time(self, served_client, wall_time):
        from api.utils import managers
        from block_clock import WallBlockClock

        assert isinstance(managers.platform.clock, WallBlockClock)

        served_client.post("/works", json=WORK_BODY, headers=as_caller("alice"))
        wall_time["t"] += 60
        response = served_client.post(
            "/works/1/proposals",
            json={"proposal_type": "royalty-update", "target": "carol", "new_percentage": 4500},
            headers=as_caller("alice"),
        )
        proposal = response.get_json()["proposal"]
        assert proposal["created_at"] == 1
        assert proposal["expires_at"] == 3

        wall_time["t"] += 60 * 3
        response = served_client.post(
            "/proposals/1/votes", json={"choice": True}, headers=as_caller("alice")
        )
        assert response.status_code == 409
        assert response.get_json()["error"] == "proposal_expired"
        assert served_client.get("/proposals/1").get_json()["current_status"] == "expired"


# ============================================================
# Authentication
# ============================================================

class TestAuthentication:
    """API key enforcement."""

    @pytest.fixture
    def secured_client(self, platform):
        from api import create_app

        app = create_app(
            platform=platform,
            config={"TESTING": True, "ROYALTY_REQUIRE_AUTH": True, "ROYALTY_API_KEY": "test-api-key-12345"},
        )
        return app.test_client()

    def test_missing_key(self, secured_client):
        assert secured_client.get("/works").status_code == 401

    def test_wrong_key(self, secured_client):
        assert secured_client.get("/works", headers={"X-API-Key": "nope"}).status_code == 403

    def test_valid_key(self, secured_client, test_auth_headers):
        assert secured_client.get("/works", headers=test_auth_headers).status_code == 200

    def test_health_is_open(self, secured_client):
        assert secured_client.get("/health").status_code == 200

    def test_deposits_disabled_by_default(self, platform, test_auth_headers):
        from api import create_app

        app = create_app(platform=platform, config={"TESTING": True, "ROYALTY_REQUIRE_AUTH": False})
        app.config["ROYALTY_ENABLE_DEPOSITS"] = False
        response = app.test_client().post("/platform/accounts/erin/deposits", json={"amount": 1})
        assert response.status_code == 403
