"""Tests for the FastAPI application."""

import pytest
from fastapi.testclient import TestClient

from confirmd.api.app import app
from confirmd.config import PipelineConfig
from confirmd.infrastructure.dependencies import ServiceContainer, get_container

from conftest import ARTICLE_TEXT, FakeFeedReader, FakeFetcher, feed, raw_item


@pytest.fixture
def container() -> ServiceContainer:
    """Seeded container with offline collaborators."""
    reader = FakeFeedReader({feed().url: [
        raw_item("Solana validators ship mainnet upgrade", "The upgrade went live on mainnet today.",
                 "https://theblock.co/post/solana-upgrade"),
        raw_item("Exchange hacked overnight", "Hackers drained hot wallets.", "https://theblock.co/post/hack"),
    ]})
    return ServiceContainer(
        config=PipelineConfig(openai_api_key=None, search_provider="none", seed_data=True, feeds=[feed()]),
        feed_reader=reader,
        fetcher=FakeFetcher(default=ARTICLE_TEXT),
    )


@pytest.fixture
def client(container: ServiceContainer) -> TestClient:
    """Test client wired to the offline container."""

    async def override() -> ServiceContainer:
        await container.initialize()
        return container

    app.dependency_overrides[get_container] = override
    yield TestClient(app)
    app.dependency_overrides.clear()


def _claim_id(client: TestClient, text: str) -> str:
    claims = client.get("/claims").json()
    return next(c["claim"]["id"] for c in claims if text in c["claim"]["claim_text"])


def test_health_check(client: TestClient):
    """Health reports simulation mode without a model key."""
    response = client.get("/health")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "healthy"
    assert data["mode"] == "simulation"
    assert data["language_model"] is None
    assert data["search_provider"] is None
    assert data["pipeline_running"] is False


def test_stats_reflect_seed_data(client: TestClient):
    data = client.get("/pipeline/stats").json()
    assert data["total_sources"] >= 13
    assert data["total_claims"] >= 6
    assert data["total_stories"] == 5


def test_status_before_any_run(client: TestClient):
    data = client.get("/pipeline/status").json()
    assert data["is_running"] is False
    assert data["articles_processed"] == 0
    assert data["last_run_at"] is None


def test_claims_list_and_detail(client: TestClient):
    claims = client.get("/claims", params={"limit": 3}).json()
    assert len(claims) == 3
    assert all(c["verdict"] is not None for c in claims)

    claim_id = _claim_id(client, "Nexus Protocol")
    detail = client.get(f"/claims/{claim_id}").json()
    assert detail["source"]["display_name"] == "The Block"
    assert detail["verdict"]["verdict_label"] == "verified"
    assert detail["resolution"]["outcome"] == "true"
    assert detail["story"]["title"].startswith("Nexus Protocol Exploit")
    assert len(detail["evidence"]) >= 3


def test_unknown_claim_is_404(client: TestClient):
    assert client.get("/claims/does-not-exist").status_code == 404
    response = client.post("/claims/does-not-exist/evidence", json={"url": "https://example.com/a"})
    assert response.status_code == 404


def test_invalid_evidence_url_is_rejected_with_reason(client: TestClient):
    claim_id = _claim_id(client, "Nexus Protocol")
    response = client.post(f"/claims/{claim_id}/evidence", json={"url": "not-a-url"})

    assert response.status_code == 200
    assert response.json() == {"accepted": False, "reason": "Invalid URL", "evidence": None, "verdict": None}


def test_accepted_evidence_appends_verdict(client: TestClient):
    claim_id = _claim_id(client, "Nexus Protocol")
    before = client.get(f"/claims/{claim_id}").json()

    response = client.post(f"/claims/{claim_id}/evidence", json={
        "url": "https://www.reuters.com/technology/nexus-protocol-exploit",
        "notes": "Wire report",
    })

    data = response.json()
    assert data["accepted"] is True
    assert data["evidence"]["grade"] == "B"
    after = client.get(f"/claims/{claim_id}").json()
    assert len(after["evidence"]) == len(before["evidence"]) + 1
    assert len(after["verdict_history"]) == len(before["verdict_history"]) + 1
    assert after["evidence"][-1]["metadata"]["notes"] == "Wire report"


def test_story_feed_and_detail(client: TestClient):
    feed_items = client.get("/stories").json()
    assert len(feed_items) == 5
    for entry in feed_items:
        distribution = entry["credibility_distribution"]
        assert distribution["high"] + distribution["medium"] + distribution["low"] == entry["claim_count"]

    assert len(client.get("/stories", params={"limit": 2, "offset": 4}).json()) == 1

    etf = next(s for s in feed_items if s["title"].startswith("Ethereum ETF Decision"))
    detail = client.get(f"/stories/{etf['id']}").json()
    assert len(detail["claims"]) == 2
    assert all(c["verdict"] is not None for c in detail["claims"])
    assert client.get("/stories/missing").status_code == 404


def test_run_pipeline_and_wait(client: TestClient):
    response = client.post("/pipeline/run", params={"wait": True})

    data = response.json()
    assert data["started"] is True
    assert data["summary"]["articles_processed"] == 2
    assert data["status"]["is_running"] is False
    assert data["status"]["last_run_at"] is not None
    assert client.get("/pipeline/stats").json()["last_run_at"] is not None


def test_deep_verify_and_reverify_batches(client: TestClient):
    data = client.post("/pipeline/deep-verify", json={"max_claims": 1}).json()
    assert data["claims_processed"] == 1
    assert data["cancelled"] is False

    assert client.post("/pipeline/reverify").status_code == 200
    assert client.post("/pipeline/deep-verify", json={"max_claims": 0}).status_code == 422


def test_resolve_pass(client: TestClient):
    data = client.post("/pipeline/resolve").json()
    assert data["scores_updated"] >= 0
    for resolution in data["resolved"]:
        assert resolution["outcome"] in {"true", "false", "unresolved", "partially_true"}


def test_storage_outage_maps_to_503(client: TestClient, container: ServiceContainer):
    client.get("/health")
    container.get_storage().set_available(False)

    response = client.get("/pipeline/stats")

    assert response.status_code == 503
    assert "unavailable" in response.json()["detail"]


def test_deep_verify_requested_claims(client: TestClient):
    claim_id = _claim_id(client, "Arbitrum")

    data = client.post("/pipeline/deep-verify", json={"claim_ids": [claim_id, "does-not-exist"]}).json()

    assert data["claims_processed"] == 1
    detail = client.get(f"/claims/{claim_id}").json()
    assert detail["claim"]["metadata"]["deep_verification_count"] == 1
