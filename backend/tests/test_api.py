"""
API Tests
REST surface over a demo-seeded app (FastAPI TestClient)

Seed: 7 networks, 6 protocols, 9 opportunities, configuration #1
(parallel, maxAgents=4) holding 4 agents of which #2 is already scanning.

Run: python -m pytest tests/test_api.py -v
"""

import pytest


def _error_code(response):
    return response.json()["error"]["code"]


# =============================================================================
# TEST: Agent instances
# =============================================================================

class TestAgentInstancesAPI:

    def test_list_is_enriched(self, client):
        response = client.get("/api/agent-instances")

        assert response.status_code == 200
        agents = response.json()
        assert len(agents) == 4
        alpha = agents[0]
        assert alpha["name"] == "Yield Scanner Alpha"
        assert alpha["protocol"] == {"id": 1, "name": "Aave v3"}
        assert alpha["network"] == {"id": 2, "name": "Polygon"}
        assert alpha["performance"]["successRate"] == 98

    def test_get_one(self, client):
        assert client.get("/api/agent-instances/3").json()["name"] == "Yield Scanner Gamma"
        assert client.get("/api/agent-instances/99").status_code == 404

    def test_create_and_capacity(self, client):
        configuration = client.post("/api/agent-configurations", json={"maxAgents": 1}).json()

        created = client.post("/api/agent-instances", json={
            "name": "Solo",
            "configurationId": configuration["id"],
            "assignedProtocol": 2,
        })
        assert created.status_code == 201
        assert created.json()["status"] == "idle"
        assert created.json()["currentTask"] == "Waiting for initialization"

        rejected = client.post("/api/agent-instances", json={"name": "Extra", "configurationId": configuration["id"]})
        assert rejected.status_code == 400
        assert _error_code(rejected) == "CAPACITY_EXCEEDED"
        assert "(1)" in rejected.json()["error"]["message"]

    def test_seed_configuration_is_full(self, client):
        response = client.post("/api/agent-instances", json={"name": "Fifth", "configurationId": 1})
        assert response.status_code == 400
        assert response.json()["error"]["details"] == {"limit": 4, "current": 4}

    def test_create_validation(self, client):
        response = client.post("/api/agent-instances", json={"configurationId": 1})

        assert response.status_code == 400
        assert _error_code(response) == "VALIDATION_ERROR"
        fields = [f["field"] for f in response.json()["error"]["details"]["fields"]]
        assert "name" in fields

    def test_create_unknown_configuration(self, client):
        response = client.post("/api/agent-instances", json={"name": "Lost", "configurationId": 77})
        assert response.status_code == 404
        assert _error_code(response) == "NOT_FOUND"

    def test_update(self, client):
        response = client.put("/api/agent-instances/1", json={"currentTask": "Rebalancing"})
        assert response.status_code == 200
        assert response.json()["currentTask"] == "Rebalancing"
        assert client.put("/api/agent-instances/99", json={"currentTask": "x"}).status_code == 404

    def test_update_with_nulls_keeps_agent_attached(self, client):
        response = client.put("/api/agent-instances/1", json={"configurationId": None, "name": None})

        assert response.status_code == 400
        assert _error_code(response) == "VALIDATION_ERROR"
        assert response.json()["error"]["details"]["fields"]
        agent = client.get("/api/agent-instances/1").json()
        assert agent["configurationId"] == 1
        assert agent["name"] == "Yield Scanner Alpha"

    def test_update_performance_out_of_range(self, client):
        response = client.put("/api/agent-instances/1", json={"performance": {"successRate": 500}})

        assert response.status_code == 400
        fields = [f["field"] for f in response.json()["error"]["details"]["fields"]]
        assert fields == ["performance.successRate"]
        assert client.get("/api/agent-instances/1").json()["performance"]["successRate"] == 98

    def test_delete(self, client):
        assert client.delete("/api/agent-instances/1").json() == {"success": True}
        assert client.delete("/api/agent-instances/1").status_code == 404
        assert len(client.get("/api/agent-instances").json()) == 3


# =============================================================================
# TEST: Scans
# =============================================================================

class TestScanAPI:

    def test_scan_is_accepted_and_flips_status(self, client):
        response = client.post("/api/agent-instances/1/scan")

        assert response.status_code == 202
        body = response.json()
        assert body["message"] == "Scan initiated"
        assert body["instance"]["status"] == "scanning"
        assert body["instance"]["currentTask"] == "Scanning for yield opportunities"
        assert client.get("/api/agent-instances/1").json()["status"] == "scanning"
        assert client.get("/api/infrastructure/health").json()["inFlightScans"] == 1

    def test_scan_unknown_agent(self, client):
        assert client.post("/api/agent-instances/99/scan").status_code == 404

    def test_parallel_scan_skips_busy_agents(self, client):
        response = client.post("/api/parallel-scan", json={"configurationId": 1})

        assert response.status_code == 200
        body = response.json()
        assert body["message"] == "Parallel scan initiated with 3 agents"
        assert [a["id"] for a in body["agents"]] == [1, 3, 4]
        assert all(a["currentTask"] == "Parallel scanning for yield opportunities" for a in body["agents"])

        latest = client.get("/api/activities/recent?limit=1").json()[0]
        assert latest["description"] == "Started parallel scanning with 3 agents"
        assert latest["details"] == {"agentIds": [1, 3, 4], "configurationId": 1}

    def test_parallel_scan_defaults_to_first_configuration(self, client):
        response = client.post("/api/parallel-scan")
        assert response.status_code == 200
        assert len(response.json()["agents"]) == 3

    def test_parallel_scan_with_everyone_busy(self, client):
        client.post("/api/parallel-scan", json={"configurationId": 1})

        response = client.post("/api/parallel-scan", json={"configurationId": 1})

        assert response.status_code == 400
        assert _error_code(response) == "NO_AVAILABLE_AGENTS"

    def test_parallel_scan_not_enabled(self, client):
        configuration = client.post("/api/agent-configurations", json={"parallelScanning": False}).json()
        client.post("/api/agent-instances", json={"name": "Serial", "configurationId": configuration["id"]})

        response = client.post("/api/parallel-scan", json={"configurationId": configuration["id"]})

        assert response.status_code == 400
        assert _error_code(response) == "NOT_ENABLED"

    def test_parallel_scan_unknown_configuration(self, client):
        assert client.post("/api/parallel-scan", json={"configurationId": 50}).status_code == 404


# =============================================================================
# TEST: Agent configurations
# =============================================================================

class TestAgentConfigurationsAPI:

    def test_list_and_get(self, client):
        configurations = client.get("/api/agent-configurations").json()
        assert len(configurations) == 1
        assert configurations[0]["networks"] == ["ethereum", "polygon", "bsc", "base"]
        assert client.get("/api/agent-configurations/1").json()["maxAgents"] == 4
        assert client.get("/api/agent-configurations/9").status_code == 404

    def test_update_max_agents(self, client):
        assert client.put("/api/agent-configurations/1", json={"maxAgents": 2}).status_code == 400

        response = client.put("/api/agent-configurations/1", json={"maxAgents": 6, "riskTolerance": "medium"})
        assert response.status_code == 200
        assert response.json()["maxAgents"] == 6
        assert response.json()["riskTolerance"] == "medium"

    @pytest.mark.parametrize("body", [{"maxAgents": None}, {"maxAgents": 0}])
    def test_update_max_agents_invalid_is_400(self, client, body):
        response = client.put("/api/agent-configurations/1", json=body)

        assert response.status_code == 400
        assert _error_code(response) == "VALIDATION_ERROR"
        assert client.get("/api/agent-configurations/1").json()["maxAgents"] == 4


# =============================================================================
# TEST: Strategies
# =============================================================================

class TestStrategiesAPI:

    @pytest.fixture
    def strategy(self, client):
        response = client.post("/api/yield-strategies", json={
            "name": "Polygon Stables",
            "triggerType": "apy-based",
            "targetProtocols": [1],
            "targetNetworks": [2],
            "conditions": {"minApy": 10, "maxRisk": "low", "assetTypes": ["USDC"]},
            "userId": 3,
        })
        assert response.status_code == 201
        return response.json()

    def test_create_is_enriched(self, strategy):
        assert strategy["status"] == "active"
        assert strategy["protocolInfo"] == [{"id": 1, "name": "Aave v3"}]
        assert strategy["networkInfo"] == [{"id": 2, "name": "Polygon"}]
        assert strategy["conditions"]["maxRisk"] == "low"
        assert strategy["totalExecutions"] == 0

    def test_create_requires_trigger_type(self, client):
        response = client.post("/api/yield-strategies", json={"name": "No trigger"})
        assert response.status_code == 400
        assert _error_code(response) == "VALIDATION_ERROR"

    def test_execute(self, client, strategy):
        response = client.post(f"/api/yield-strategies/{strategy['id']}/execute")

        assert response.status_code == 200
        body = response.json()
        assert body["message"] == "Strategy executed successfully"
        execution = body["execution"]
        assert execution["status"] == "success"
        assert execution["opportunityId"] == 1
        assert execution["details"]["apy"] == 18.4

        detail = client.get(f"/api/yield-strategies/{strategy['id']}").json()
        assert detail["totalExecutions"] == 1
        assert detail["totalInvested"] == pytest.approx(1.0)
        assert detail["totalReturn"] == pytest.approx(18.4 / 100 / 365)
        assert [e["id"] for e in detail["executions"]] == [execution["id"]]
        assert str(execution["id"]) in detail["executionResults"]

        assert len(client.get(f"/api/yield-strategies/{strategy['id']}/executions").json()) == 1
        assert len(client.get("/api/strategy-executions").json()) == 1

    def test_execute_without_eligible_opportunity(self, client):
        created = client.post("/api/yield-strategies", json={
            "name": "Solana dreams",
            "triggerType": "time-based",
            "targetProtocols": [1],
            "targetNetworks": [6],
        }).json()

        response = client.post(f"/api/yield-strategies/{created['id']}/execute")

        assert response.status_code == 200
        assert response.json()["execution"]["status"] == "failed"
        assert client.get(f"/api/yield-strategies/{created['id']}").json()["totalExecutions"] == 0

    def test_execute_unknown_strategy(self, client):
        assert client.post("/api/yield-strategies/404/execute").status_code == 404
        assert client.get("/api/yield-strategies/404/executions").status_code == 404

    def test_update_ignores_cumulative_fields(self, client, strategy):
        response = client.put(f"/api/yield-strategies/{strategy['id']}", json={
            "status": "paused",
            "totalInvested": 1_000_000,
        })

        assert response.status_code == 200
        assert response.json()["status"] == "paused"
        assert response.json()["totalInvested"] == 0

    def test_partial_conditions_update_keeps_stored_values(self, client, strategy):
        response = client.put(f"/api/yield-strategies/{strategy['id']}", json={
            "conditions": {"minApy": 12},
            "actions": {"autoCompound": False},
        })

        assert response.status_code == 200
        body = response.json()
        assert body["conditions"] == {"minApy": 12, "maxRisk": "low", "assetTypes": ["USDC"]}
        assert body["actions"]["autoCompound"] is False
        assert body["actions"]["depositAmount"] == "1.0 ETH"

    @pytest.mark.parametrize("body, field_name", [
        ({"status": "archived"}, "status"),
        ({"triggerType": "moon-based"}, "triggerType"),
        ({"conditions": {"maxRisk": "extreme"}}, "conditions.maxRisk"),
    ])
    def test_invalid_enum_lists_field(self, client, strategy, body, field_name):
        response = client.put(f"/api/yield-strategies/{strategy['id']}", json=body)

        assert response.status_code == 400
        assert _error_code(response) == "VALIDATION_ERROR"
        fields = [f["field"] for f in response.json()["error"]["details"]["fields"]]
        assert fields == [field_name]

    def test_list_by_user(self, client, strategy):
        client.post("/api/yield-strategies", json={"name": "Other", "triggerType": "gas-based", "userId": 4})

        assert [s["id"] for s in client.get("/api/yield-strategies?userId=3").json()] == [strategy["id"]]
        assert len(client.get("/api/yield-strategies").json()) == 2

    def test_delete(self, client, strategy):
        assert client.delete(f"/api/yield-strategies/{strategy['id']}").json()["success"] is True
        assert client.get(f"/api/yield-strategies/{strategy['id']}").status_code == 404
        assert client.delete(f"/api/yield-strategies/{strategy['id']}").status_code == 404


# =============================================================================
# TEST: Catalog / activity / analytics
# =============================================================================

class TestCatalogAPI:

    def test_protocols(self, client):
        assert len(client.get("/api/protocols").json()) == 6
        assert client.get("/api/protocols/1").json()["name"] == "Aave v3"
        assert client.get("/api/protocols/99").status_code == 404

        created = client.post("/api/protocols", json={"name": "Yearn", "logo": "YFI", "riskLevel": "medium"})
        assert created.status_code == 201
        assert created.json()["id"] == 7

    def test_networks(self, client):
        networks = client.get("/api/networks").json()
        assert [n["shortName"] for n in networks] == ["ETH", "MATIC", "BSC", "ARB", "OP", "SOL", "BASE"]

    def test_opportunities_enriched(self, client):
        opportunities = client.get("/api/opportunities").json()
        assert len(opportunities) == 9
        assert opportunities[0]["protocol"]["name"] == "Aave v3"
        assert opportunities[0]["network"]["shortName"] == "MATIC"

    def test_top_opportunities(self, client):
        top = client.get("/api/opportunities/top?limit=2").json()
        assert [o["apy"] for o in top] == [34.5, 31.2]

    def test_create_opportunity(self, client):
        response = client.post("/api/opportunities", json={
            "protocolId": 2, "networkId": 1, "asset": "USDT", "apy": 12.0,
        })

        assert response.status_code == 201
        assert response.json()["riskLevel"] == "medium"
        latest = client.get("/api/activities/recent?limit=1").json()[0]
        assert latest["type"] == "opportunity"
        assert latest["details"]["opportunityId"] == response.json()["id"]

    def test_create_opportunity_validation(self, client):
        assert client.post("/api/opportunities", json={
            "protocolId": 99, "networkId": 1, "asset": "USDT", "apy": 12.0,
        }).status_code == 400
        assert client.post("/api/opportunities", json={
            "protocolId": 1, "networkId": 1, "asset": "USDT", "apy": -1,
        }).status_code == 400

    def test_activities(self, client):
        activities = client.get("/api/activities").json()
        # two seeded feed entries plus one per seeded agent
        assert len(activities) == 6
        assert activities[0]["type"] == "opportunity"
        assert len(client.get("/api/activities/recent").json()) == 3

    def test_analytics_summary(self, client):
        summary = client.get("/api/analytics/summary").json()

        assert summary["opportunitiesCount"] == 9
        assert summary["tvl"] == pytest.approx(3_620_000_000)
        assert summary["avgApy"] == pytest.approx(20.4)
        assert summary["weeklyYield"] == pytest.approx(3_620_000_000 * 0.204 / 52)

    def test_analytics_historical(self, client):
        history = client.get("/api/analytics/historical?period=30days").json()

        assert history["period"] == "30days"
        assert history["bestProtocol"] == "PancakeSwap"
        assert history["avgApy"] == pytest.approx(20.4)
        assert history["agentAccuracy"] == pytest.approx(97.25, abs=0.1)
        assert len(history["timeSeriesData"]) == 30

        first_day = history["timeSeriesData"][0]
        assert [d["protocol"] for d in first_day["data"]] == [
            "PancakeSwap", "SushiSwap", "Aave v3", "Convex Finance", "Compound",
        ]
        # Fixed draw of 0.0 puts every jitter at -2 points
        assert first_day["data"][0]["apy"] == pytest.approx(32.5)

    def test_analytics_historical_defaults_and_rejects_unknown_period(self, client):
        assert len(client.get("/api/analytics/historical").json()["timeSeriesData"]) == 7

        response = client.get("/api/analytics/historical?period=1year")
        assert response.status_code == 400
        assert _error_code(response) == "VALIDATION_ERROR"


# =============================================================================
# TEST: Infrastructure endpoints
# =============================================================================

class TestInfrastructureAPI:

    def test_health(self, client):
        health = client.get("/api/infrastructure/health").json()
        assert health["status"] == "healthy"
        assert health["version"] == "1.0.0"
        assert health["inFlightScans"] == 0

    def test_errors_are_tracked(self, client):
        client.get("/api/agent-instances/99")

        stats = client.get("/api/infrastructure/errors").json()

        assert stats["error_counts"]["NotFoundError"] == 1

    def test_config_hides_secrets(self, client):
        data = client.get("/api/infrastructure/config").json()

        assert "sentry_dsn" not in data["monitoring"]
        assert data["features"]["enable_seed_demo_data"] is True
