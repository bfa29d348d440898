"""Tests for the HTTP application."""

from contextlib import asynccontextmanager
from datetime import timedelta

import pytest
from fastapi.testclient import TestClient

from trendpulse.api.v1 import get_ingest_buffer, get_trend_feed
from trendpulse.core.exceptions import TopicLockTimeoutError
from trendpulse.core.locks import TopicLock
from trendpulse.main import app
from trendpulse.services.engine.base import TrendEvent
from trendpulse.services.engine.windows import utcnow
from trendpulse.services.feed import TrendFeed
from trendpulse.services.ingest.buffer import IngestBuffer


@pytest.fixture
def client(ingest_buffer, store):
    app.dependency_overrides[get_ingest_buffer] = lambda: ingest_buffer
    app.dependency_overrides[get_trend_feed] = lambda: TrendFeed(store)
    yield TestClient(app)
    app.dependency_overrides.clear()


class BusyTopicLock(TopicLock):
    """Topic lock that is always held by another process."""

    @asynccontextmanager
    async def hold(self, key):
        raise TopicLockTimeoutError(key, wait_seconds=5.0)
        yield


def create_payload(observed_at, **overrides) -> dict:
    data = {
        "topic_key": "fed_raises_interest_rates",
        "label": "Fed raises interest rates",
        "source_id": "reuters",
        "source_type": "news",
        "source_tier": 1,
        "observed_at": observed_at.isoformat(),
        "dedup_key": "https://example.com/fed",
    }
    data.update(overrides)
    return data


class TestHealth:
    """Tests for the health endpoint."""

    def test_health(self):
        response = TestClient(app).get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "healthy"


class TestMentionsEndpoint:
    """Tests for POST /api/v1/mentions."""

    def test_accepted(self, client, store, hour_start):
        response = client.post("/api/v1/mentions", json=create_payload(hour_start))

        assert response.status_code == 201
        assert response.json()["accepted"] is True
        assert store.mention_count() == 1

    def test_duplicate_identity(self, client, hour_start):
        client.post("/api/v1/mentions", json=create_payload(hour_start))
        response = client.post("/api/v1/mentions", json=create_payload(hour_start))

        assert response.status_code == 200
        assert response.json()["duplicate"] is True

    def test_malformed(self, client, store, hour_start):
        response = client.post(
            "/api/v1/mentions", json=create_payload(hour_start, source_tier=9)
        )

        assert response.status_code == 422
        assert response.json()["reason"] == "invalid_source_tier"
        assert store.mention_count() == 0

    def test_busy_topic(self, store, tracker, hour_start):
        app.dependency_overrides[get_ingest_buffer] = lambda: IngestBuffer(
            store, tracker, BusyTopicLock()
        )
        try:
            response = TestClient(app).post("/api/v1/mentions", json=create_payload(hour_start))
        finally:
            app.dependency_overrides.clear()

        assert response.status_code == 503
        assert "fed_raises_interest_rates" in response.json()["detail"]
        assert store.mention_count() == 0


class TestTrendsEndpoint:
    """Tests for GET /api/v1/trends."""

    @pytest.mark.asyncio
    async def test_lists_trending(self, client, store):
        now = utcnow() - timedelta(minutes=5)
        await store.save_event(
            TrendEvent(
                event_key="fed_raises_rates",
                canonical_label="Fed raises rates",
                first_seen_at=now,
                last_seen_at=now,
                updated_at=now,
                is_trending=True,
                rank_score=55.0,
            ),
            0,
        )

        response = client.get("/api/v1/trends", params={"limit": 5})

        assert response.status_code == 200
        body = response.json()
        assert body["total"] == 1
        assert body["limit"] == 5
        assert body["items"][0]["canonical_label"] == "Fed raises rates"

    def test_rejects_bad_limit(self, client):
        assert client.get("/api/v1/trends", params={"limit": 0}).status_code == 422
