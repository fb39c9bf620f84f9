import asyncio
from datetime import datetime

from fastapi.testclient import TestClient

from api_server import create_app
from conftest import FakeChainReader, make_protocol

WALLET = "0xAbCdEf0123456789aBcDeF0123456789AbCdEf01"


def transaction_body(**overrides):
    body = {
        "walletAddress": WALLET,
        "transactionHash": "0x" + "f" * 64,
        "transactionType": "deposit",
        "protocolId": "p-1",
        "poolName": "USDC/SOMI Pool",
        "amount": "25.5",
        "tokenSymbol": "USDC",
        "status": "pending",
    }
    body.update(overrides)
    return body


# ----- metrics -----

def test_risk_metrics_empty(client):
    response = client.get("/api/risk-metrics")
    assert response.status_code == 200
    assert response.json() == {
        "totalValue": "0.00", "avgRiskScore": 0, "protocolsMonitored": 0, "activeAlerts": 0,
    }


def test_risk_metrics_aggregates(client, repo):
    make_protocol(repo, "0x1", symbol="A-B", risk_score=80, tvl="100.50")
    make_protocol(repo, "0x2", symbol="C-D", risk_score=61, tvl="200.25")

    body = client.get("/api/risk-metrics").json()

    assert body["totalValue"] == "300.75"
    assert body["avgRiskScore"] == 71
    assert body["protocolsMonitored"] == 2
    assert body["activeAlerts"] == 1


# ----- protocols -----

def test_protocol_search_filters_and_sorting(client, repo):
    make_protocol(repo, "0xAAA1", symbol="USDC-SOMI", risk_score=30, risk_level="low", tvl="900.00", apy="5")
    make_protocol(repo, "0xBBB2", symbol="WETH-SOMI", risk_score=75, risk_level="high", tvl="2500.00")
    make_protocol(repo, "0xCCC3", symbol="DAI-USDC", risk_score=55, risk_level="medium", tvl="100.00", apy="80")

    default = client.get("/api/protocols").json()
    assert [p["symbol"] for p in default] == ["WETH-SOMI", "USDC-SOMI", "DAI-USDC"]
    assert "contractAddress" in default[0] and "riskScore" in default[0]

    search = client.get("/api/protocols", params={"search": "usdc"}).json()
    assert {p["symbol"] for p in search} == {"USDC-SOMI", "DAI-USDC"}

    by_address = client.get("/api/protocols", params={"search": "bbb2"}).json()
    assert [p["symbol"] for p in by_address] == ["WETH-SOMI"]

    high = client.get("/api/protocols", params={"riskLevel": "high"}).json()
    assert [p["symbol"] for p in high] == ["WETH-SOMI"]

    with_apy = client.get("/api/protocols", params={"minApy": "0"}).json()
    assert {p["symbol"] for p in with_apy} == {"USDC-SOMI", "DAI-USDC"}

    tvl_window = client.get("/api/protocols", params={"minTvl": "100", "maxTvl": "900"}).json()
    assert {p["symbol"] for p in tvl_window} == {"USDC-SOMI", "DAI-USDC"}

    by_risk = client.get("/api/protocols", params={"sortBy": "riskScore", "sortOrder": "asc"}).json()
    assert [p["riskScore"] for p in by_risk] == [30, 55, 75]

    unknown = client.get("/api/protocols", params={"sortBy": "color"}).json()
    assert [p["symbol"] for p in unknown] == ["WETH-SOMI", "USDC-SOMI", "DAI-USDC"]


def test_manual_scan_unavailable_when_scheduler_stopped(client):
    assert client.post("/api/protocols/scan").json() == {"status": "unavailable"}


# ----- alerts -----

def test_alert_severity_thresholds(client, repo):
    critical = make_protocol(repo, "0x1", symbol="HOT-ONE", risk_score=85, risk_level="high")
    make_protocol(repo, "0x2", symbol="WARM-TWO", risk_score=75, risk_level="high")
    make_protocol(repo, "0x3", symbol="EDGE-THREE", risk_score=70, risk_level="high")

    alerts = {a["protocolId"]: a for a in client.get("/api/alerts").json()}

    assert len(alerts) == 2
    assert alerts[critical.id]["severity"] == "critical"
    assert alerts[critical.id]["id"] == f"alert-{critical.id}"
    assert alerts[critical.id]["type"] == "high_risk"
    assert alerts[critical.id]["title"] == "High Risk Detected: HOT-ONE Pool"
    assert alerts[critical.id]["message"] == (
        "HOT-ONE shows elevated risk score of 85/100. Consider reviewing your position."
    )
    assert [a["severity"] for a in alerts.values() if a["protocolId"] != critical.id] == ["warning"]


# ----- risk timeline -----

def test_timeline_pivots_shared_timestamps(client, repo):
    first = make_protocol(repo, "0x1", symbol="USDC-SOMI")
    second = make_protocol(repo, "0x2", symbol="WETH-SOMI")
    early = datetime(2025, 3, 4, 21, 5, 0)
    late = datetime(2025, 3, 4, 21, 20, 0)

    repo.add_risk_timeline_entry(first.id, 50, late)
    repo.add_risk_timeline_entry(first.id, 45, early)
    repo.add_risk_timeline_entry(second.id, 72, early)
    repo.add_risk_timeline_entry("deleted-protocol", 99, early)

    rows = client.get("/api/risk-timeline").json()

    assert rows == [
        {"timestamp": "Mar 4, 09:05 PM", "isoTime": "2025-03-04T21:05:00.000Z", "USDC-SOMI": 45, "WETH-SOMI": 72},
        {"timestamp": "Mar 4, 09:20 PM", "isoTime": "2025-03-04T21:20:00.000Z", "USDC-SOMI": 50},
    ]

    only_second = client.get("/api/risk-timeline", params={"protocolId": second.id}).json()
    assert only_second == [
        {"timestamp": "Mar 4, 09:05 PM", "isoTime": "2025-03-04T21:05:00.000Z", "WETH-SOMI": 72},
    ]


def test_timeline_empty(client):
    assert client.get("/api/risk-timeline").json() == []


# ----- wallet-scoped reads -----

def test_wallet_required(client):
    for path in ("/api/ai-insights", "/api/positions", "/api/portfolio-history", "/api/transaction-history"):
        response = client.get(path)
        assert response.status_code == 400
        assert response.json() == {"error": "Wallet address required"}


def test_positions_case_insensitive(client, repo):
    repo.create_position(WALLET, "p-1", "USDC/SOMI Pool", "100", "medium")

    mixed = client.get("/api/positions", params={"wallet": WALLET}).json()
    lower = client.get("/api/positions", params={"wallet": WALLET.lower()}).json()

    assert mixed == lower
    assert mixed[0]["walletAddress"] == WALLET.lower()
    assert mixed[0]["poolName"] == "USDC/SOMI Pool"


# ----- analysis -----

def test_analyze_position_validation(client):
    assert client.post("/api/analyze-position", json={}).status_code == 400
    missing = client.post("/api/analyze-position", json={"walletAddress": WALLET})
    assert missing.status_code == 404
    assert missing.json() == {"error": "No positions found for this wallet"}


def test_analyze_position_stores_insight(client, repo, hub):
    protocol = make_protocol(repo, "0x1", risk_score=80, risk_level="high")
    repo.create_position(WALLET, protocol.id, "Pool A", "10", "high")
    repo.create_position(WALLET, protocol.id, "Pool B", "5", "high")

    response = client.post("/api/analyze-position", json={"walletAddress": WALLET})

    assert response.status_code == 200
    insight = response.json()
    assert insight["insightType"] == "analysis"
    assert insight["title"] == "High-Risk Concentration Detected"
    assert insight["severity"] == "warning"
    assert insight["walletAddress"] == WALLET.lower()

    stored = client.get("/api/ai-insights", params={"wallet": WALLET}).json()
    assert [i["id"] for i in stored] == [insight["id"]]
    assert hub.of_type("new_insight") == [
        {"insightId": insight["id"], "walletAddress": WALLET.lower(), "severity": "warning"},
    ]


def test_analyze_protocol_validation(client):
    missing = client.post("/api/analyze-protocol", json={})
    assert missing.status_code == 400
    assert missing.json() == {"error": "Protocol ID required"}

    unknown = client.post("/api/analyze-protocol", json={"protocolId": "nope"})
    assert unknown.status_code == 404
    assert unknown.json() == {"error": "Protocol not found"}


def test_analyze_protocol_persists_verdict(client, repo, hub):
    protocol = make_protocol(repo, "0x1", risk_score=90, risk_level="high", tvl="500000.00")

    verdict = client.post("/api/analyze-protocol", json={"protocolId": protocol.id}).json()

    assert verdict["riskScore"] == 50
    assert verdict["riskLevel"] == "medium"
    stored = repo.get_protocol(protocol.id)
    assert stored.risk_score == 50
    assert stored.trust_index == 50
    assert hub.of_type("protocol_update")[-1]["riskScore"] == 50


def test_explain_risk(client, repo):
    protocol = make_protocol(repo, "0x1", risk_score=75, risk_level="high", tvl="500000.00", trust_index=25)

    explanation = client.post("/api/explain-risk", json={"protocolId": protocol.id}).json()

    assert set(explanation) == {"summary", "keyFactors", "technicalAnalysis", "recommendation"}
    assert [f["factor"] for f in explanation["keyFactors"]] == ["Trust Index", "TVL Analysis", "APY Sustainability"]
    assert client.post("/api/explain-risk", json={"protocolId": "nope"}).status_code == 404


# ----- rebalance -----

def test_rebalance_messages(client, repo):
    high = make_protocol(repo, "0x1", symbol="H-H", risk_score=80, risk_level="high")
    medium = make_protocol(repo, "0x2", symbol="M-M", risk_score=55, risk_level="medium")
    low = make_protocol(repo, "0x3", symbol="L-L", risk_score=20, risk_level="low")

    high_position = repo.create_position(WALLET, high.id, "H", "10", "high")
    medium_position = repo.create_position(WALLET, medium.id, "M", "10", "medium")
    low_position = repo.create_position(WALLET, low.id, "L", "10", "low")

    reduce = client.post("/api/rebalance-position", json={"positionId": high_position.id}).json()
    assert reduce == {
        "success": True,
        "message": "Reducing exposure in H-H Pool due to high risk. Consider moving 3.0000 tokens to lower-risk protocols.",
        "positionId": high_position.id,
        "action": "reduce",
    }

    optimize = client.post("/api/rebalance-position", json={"positionId": medium_position.id}).json()
    assert optimize["action"] == "maintain"
    assert optimize["message"].startswith("Optimizing position in M-M Pool.")

    maintain = client.post("/api/rebalance-position", json={"positionId": low_position.id}).json()
    assert maintain["message"] == (
        "Maintaining position in L-L Pool. Current allocation is optimal for low-risk strategy."
    )


def test_rebalance_not_found(client, repo):
    assert client.post("/api/rebalance-position", json={}).status_code == 400
    assert client.post("/api/rebalance-position", json={"positionId": "nope"}).json() == {
        "error": "Position not found"
    }

    orphan = repo.create_position(WALLET, "gone", "X", "1", "low")
    response = client.post("/api/rebalance-position", json={"positionId": orphan.id})
    assert response.status_code == 404
    assert response.json() == {"error": "Associated protocol not found"}


# ----- history -----

def test_record_transaction(client, hub):
    response = client.post("/api/record-transaction", json=transaction_body())

    assert response.status_code == 200
    record = response.json()
    assert record["walletAddress"] == WALLET.lower()
    assert record["transactionType"] == "deposit"
    assert record["status"] == "pending"
    assert record["blockNumber"] is None

    history = client.get("/api/transaction-history", params={"wallet": WALLET}).json()
    assert [t["transactionHash"] for t in history] == [record["transactionHash"]]

    change = hub.of_type("position_change")[0]
    assert change["walletAddress"] == WALLET.lower()
    assert change["transactionHash"] == record["transactionHash"]


def test_record_transaction_rejects_invalid_body(client):
    response = client.post("/api/record-transaction", json=transaction_body(transactionType="lend", amount="lots"))

    assert response.status_code == 400
    body = response.json()
    assert body["error"] == "Invalid transaction data"
    assert {tuple(d["loc"])[-1] for d in body["details"]} >= {"transactionType", "amount"}


def test_record_transaction_duplicate_hash(client):
    client.post("/api/record-transaction", json=transaction_body())
    response = client.post("/api/record-transaction", json=transaction_body(amount="1"))

    assert response.status_code == 409
    assert response.json()["error"] == "Transaction already recorded"


def test_portfolio_history(client, repo):
    repo.record_portfolio_snapshot(WALLET, "100.00", 40)

    history = client.get("/api/portfolio-history", params={"wallet": WALLET.lower(), "days": 7}).json()

    assert [h["totalValue"] for h in history] == ["100.00"]


# ----- misc -----

def test_health(client):
    body = client.get("/health").json()
    assert body["status"] == "healthy"
    assert body["components"]["rpc"] is True
    assert body["components"]["scheduler"] is False
    assert body["data_status"]["status"] == "no_data"


def test_unknown_route_uses_error_envelope(client):
    response = client.get("/api/does-not-exist")
    assert response.status_code == 404
    assert response.json() == {"error": "Not Found"}


# ----- startup -----

class _LoopAwareChain(FakeChainReader):
    def __init__(self):
        super().__init__()
        self.block_read_on_loop = None

    def get_current_block(self):
        try:
            asyncio.get_running_loop()
            self.block_read_on_loop = True
        except RuntimeError:
            self.block_read_on_loop = False
        return super().get_current_block()


def test_startup_block_read_runs_off_the_event_loop(repo, scorer, hub):
    chain = _LoopAwareChain()
    app = create_app(repository=repo, chain_reader=chain, scorer=scorer, hub=hub, scanner_enabled=True)

    with TestClient(app):
        assert app.state.scan_scheduler.running

    assert chain.block_read_on_loop is False
    assert not app.state.scan_scheduler.running
