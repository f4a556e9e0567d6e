"""
Unit tests for the Rule Graph service API.
"""

import json

import pytest
from fastapi.testclient import TestClient

from shared.config import get_config
from shared.errors import MalformedRuleSetError
from service_rulegraph.app.main import RuleGraphService, create_app


RULESET = [
    {
        "id": "pete",
        "rules": [{"operation": "equal", "left_side": "user.name", "right_side": "Pete"}],
    },
    {
        "id": "teen",
        "skip_probability": 0,
        "rules": [
            {"operation": "greater_than", "left_side": "user.age", "right_side": "12"},
            {"operation": "lower_than", "left_side": "user.age", "right_side": "20"},
        ],
    },
]


class TestRuleGraphService:
    """Test cases for RuleGraphService."""

    @pytest.fixture
    def service(self):
        """Create RuleGraphService instance."""
        return RuleGraphService(get_config("rulegraph", 8020))

    @pytest.fixture
    def client(self, service):
        """Create test client."""
        return TestClient(service.app)

    @pytest.fixture
    def loaded_client(self, client):
        """Create test client with the sample rule set loaded."""
        response = client.put("/rulegraph/rules", content=json.dumps(RULESET))
        assert response.status_code == 200
        return client

    def test_root_endpoint(self, client):
        """Test root endpoint."""
        response = client.get("/")

        assert response.status_code == 200
        data = response.json()
        assert data["service"] == "rulegraph"
        assert "evaluate" in data["capabilities"]

    def test_health_reports_ruleset_state(self, client):
        """Test health endpoint before and after loading rules."""
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "ok"
        assert response.json()["dependencies"] == {"ruleset": "empty"}

        client.put("/rulegraph/rules", content=json.dumps(RULESET))

        assert client.get("/health").json()["dependencies"] == {"ruleset": "loaded"}

    def test_replace_rules(self, client):
        """Test bulk rule set replacement."""
        response = client.put("/rulegraph/rules", content=json.dumps(RULESET))

        assert response.status_code == 200
        assert response.json() == {"success": True, "rule_groups": 2, "rules": 3}

    def test_get_rules(self, loaded_client):
        """Test reading back the loaded rule set."""
        response = loaded_client.get("/rulegraph/rules")

        assert response.status_code == 200
        data = response.json()
        assert data["total"] == 2
        assert [group["id"] for group in data["rule_groups"]] == ["pete", "teen"]
        assert data["rule_groups"][0]["rules"][0] == RULESET[0]["rules"][0]

    def test_evaluate(self, loaded_client):
        """Test evaluating a document."""
        response = loaded_client.post(
            "/rulegraph/evaluate",
            content=json.dumps({"user": {"name": "Pete", "age": 13}})
        )

        assert response.status_code == 200
        data = response.json()
        assert data["matched_ids"] == ["pete", "teen"]
        assert data["evaluation_time_ms"] >= 0

    def test_evaluate_no_match(self, loaded_client):
        """Test evaluating a document matching nothing."""
        response = loaded_client.post(
            "/rulegraph/evaluate",
            content=json.dumps({"user": {"name": "Andrew", "age": 40}})
        )

        assert response.status_code == 200
        assert response.json()["matched_ids"] == []

    def test_evaluate_lone_surrogate_string(self, loaded_client):
        """Test strings with unpaired surrogate escapes evaluate normally."""
        response = loaded_client.post("/rulegraph/evaluate", content=b'{"user": {"name": "\\ud800"}}')

        assert response.status_code == 200
        assert response.json()["matched_ids"] == []

    def test_evaluate_malformed_document(self, loaded_client):
        """Test malformed documents are rejected."""
        response = loaded_client.post("/rulegraph/evaluate", content=b'{"user": ')

        assert response.status_code == 400
        assert response.json()["code"] == "MALFORMED_INPUT"

    def test_evaluate_coercion_error_returns_partial_matches(self, loaded_client):
        """Test rule errors report the groups matched before the failure."""
        response = loaded_client.post(
            "/rulegraph/evaluate",
            content=json.dumps({"user": {"name": "Pete", "age": "thirteen"}})
        )

        assert response.status_code == 422
        data = response.json()
        assert data["code"] == "COERCION_ERROR"
        assert data["details"]["matched_ids"] == ["pete"]

    def test_malformed_rule_set_keeps_current_rules(self, loaded_client):
        """Test a rejected rule set does not replace the loaded one."""
        bad = [{"id": "bad", "rules": [], "skip_probability": 1.5}]

        response = loaded_client.put("/rulegraph/rules", content=json.dumps(bad))

        assert response.status_code == 400
        assert response.json()["code"] == "MALFORMED_RULE_SET"
        assert loaded_client.get("/rulegraph/rules").json()["total"] == 2

    def test_unknown_operation_rejected(self, client):
        """Test rule sets with unknown operations are rejected."""
        bad = [{"id": "bad", "rules": [{"operation": "contains", "left_side": "a", "right_side": "b"}]}]

        response = client.put("/rulegraph/rules", content=json.dumps(bad))

        assert response.status_code == 400
        assert response.json()["details"]["operation"] == "contains"

    def test_stats(self, loaded_client):
        """Test statistics endpoint."""
        response = loaded_client.get("/rulegraph/stats")

        assert response.status_code == 200
        data = response.json()
        assert data["engine"]["total_rule_groups"] == 2
        assert data["engine"]["total_rules"] == 3
        assert data["seeded"] is False

    def test_metrics_endpoint(self, loaded_client):
        """Test evaluations show up in the metrics endpoint."""
        loaded_client.post("/rulegraph/evaluate", content=b'{"user": {"name": "Pete"}}')

        response = loaded_client.get("/metrics")

        assert response.status_code == 200
        assert 'rulegraph_evaluations_total{status="ok"} 1.0' in response.text
        assert "rulegraph_rule_groups 2.0" in response.text


class TestRuleGraphServiceConfig:
    """Test cases for configuration driven behaviour."""

    def test_ruleset_file_loaded_at_startup(self, tmp_path):
        """Test the configured rule set file is loaded on start."""
        path = tmp_path / "rules.json"
        path.write_text(json.dumps(RULESET), encoding="utf-8")

        service = RuleGraphService(get_config("rulegraph", 8020, ruleset_file=str(path)))

        assert len(service.rule_graph.rule_nodes) == 2

    def test_malformed_ruleset_file_fails_startup(self, tmp_path):
        """Test a bad rule set file stops the service from starting."""
        path = tmp_path / "rules.json"
        path.write_text("[{", encoding="utf-8")

        with pytest.raises(MalformedRuleSetError):
            RuleGraphService(get_config("rulegraph", 8020, ruleset_file=str(path)))

    def test_skip_seed_makes_results_reproducible(self):
        """Test seeded services reproduce skip decisions."""
        ruleset = json.dumps([{"id": str(i), "rules": [], "skip_probability": 0.5} for i in range(30)])

        outcomes = []
        for _ in range(2):
            client = TestClient(create_app(get_config("rulegraph", 8020, skip_seed=11)))
            client.put("/rulegraph/rules", content=ruleset)
            outcomes.append(client.post("/rulegraph/evaluate", content=b"{}").json()["matched_ids"])

        assert outcomes[0] == outcomes[1]
        assert 0 < len(outcomes[0]) < 30
