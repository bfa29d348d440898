"""Tests for scoring pass orchestration."""

import asyncio
from datetime import timedelta
from unittest.mock import AsyncMock

import pytest

from trendpulse.config import EngineConfig, PassConfig
from trendpulse.core.exceptions import StoreError
from trendpulse.services.engine.base import BatchWindow, PassStatus, TrendEvent
from trendpulse.services.engine.pipeline import TrendEngine, collect_evidence
from trendpulse.services.engine.windows import utcnow
from trendpulse.services.ingest.base import Mention, SourceType, StoredMention


async def ingest_burst(ingest_buffer, make_mention, start, n=12, **kwargs):
    """Submit ``n`` mentions one minute apart starting at ``start``."""
    for i in range(n):
        await ingest_buffer.submit(
            make_mention(start + timedelta(minutes=i), dedup_key=f"m{i}", **kwargs)
        )


def create_record(source_id: str, tier: int, source_type: SourceType, duplicate: bool = False):
    mention = Mention(
        topic_key="t",
        source_id=source_id,
        source_type=source_type,
        source_tier=tier,
        observed_at=utcnow(),
    )
    return StoredMention(mention=mention, is_duplicate=duplicate, accepted_at=utcnow())


@pytest.mark.unit
def test_collect_evidence_duplicates_count_as_sources_only():
    records = [
        create_record("reuters", 1, SourceType.NEWS),
        create_record("blog", 3, SourceType.SOCIAL),
        create_record("ap", 2, SourceType.RSS, duplicate=True),
    ]
    evidence = collect_evidence(records)

    assert (evidence.tier1, evidence.tier2, evidence.tier3) == (1, 0, 1)
    assert evidence.source_count == 3
    assert evidence.tier12_present is True
    assert evidence.news_source_count == 2
    assert evidence.social_source_count == 1


class TestScoringPass:
    """Tests for TrendEngine.run_scoring_pass()."""

    @pytest.mark.asyncio
    async def test_empty_pass_succeeds(self, trend_engine, store):
        stats = await trend_engine.run_scoring_pass()

        assert stats.status == PassStatus.SUCCEEDED
        assert stats.events_scored == 0
        assert stats.completed_at is not None
        assert store.job_runs[-1].status == PassStatus.SUCCEEDED

    @pytest.mark.asyncio
    async def test_creates_and_scores_event(self, trend_engine, ingest_buffer, make_mention, store, hour_start):
        await ingest_burst(ingest_buffer, make_mention, hour_start)
        now = hour_start + timedelta(minutes=30)

        stats = await trend_engine.run_scoring_pass(
            BatchWindow(start=hour_start - timedelta(minutes=1), end=now)
        )

        assert stats.status == PassStatus.SUCCEEDED
        assert stats.mentions_processed == 12
        assert stats.clusters_created == 1
        assert stats.events_scored == 1

        event = await store.get_event("fed_raises_interest_rates")
        assert event.version == 1
        assert event.current_1h == 12
        assert event.canonical_label == "Fed raises interest rates"
        assert event.updated_at == now

    @pytest.mark.asyncio
    async def test_replay_is_deterministic(self, trend_engine, ingest_buffer, make_mention, store, hour_start):
        """Test replaying a window recomputes the same metrics."""
        await ingest_burst(ingest_buffer, make_mention, hour_start)
        window = BatchWindow(start=hour_start - timedelta(minutes=1), end=hour_start + timedelta(minutes=30))

        first_stats = await trend_engine.run_scoring_pass(window)
        first = await store.get_event("fed_raises_interest_rates")
        second_stats = await trend_engine.run_scoring_pass(window)
        second = await store.get_event("fed_raises_interest_rates")

        assert second.version == first.version + 1
        assert second.rank_score == first.rank_score
        assert second.confidence_score == first.confidence_score
        assert second.trend_stage == first.trend_stage
        assert first.spike_detected is True
        assert second.spike_detected is True
        assert second.spike_detected_at == first.spike_detected_at
        assert first_stats.spikes_detected == second_stats.spikes_detected == 1

    @pytest.mark.asyncio
    async def test_recency_follows_last_mention(
        self, trend_engine, ingest_buffer, make_mention, store, hour_start
    ):
        """Test a story mentioned every hour for 30h keeps full recency."""
        now = hour_start + timedelta(minutes=30)
        last = now - timedelta(minutes=5)
        for i in range(30):
            await ingest_buffer.submit(
                make_mention(last - timedelta(hours=i), dedup_key=f"h{i}")
            )

        await trend_engine.run_scoring_pass(
            BatchWindow(start=now - timedelta(hours=31), end=now)
        )

        event = await store.get_event("fed_raises_interest_rates")
        assert event.first_seen_at == last - timedelta(hours=29)
        assert event.last_seen_at == last
        assert event.recency_decay == 1.0

    @pytest.mark.asyncio
    async def test_leased_cluster_is_skipped(self, trend_engine, ingest_buffer, make_mention, leases, store, hour_start):
        await ingest_burst(ingest_buffer, make_mention, hour_start)
        await leases.acquire("fed_raises_interest_rates")

        stats = await trend_engine.run_scoring_pass(
            BatchWindow(start=hour_start - timedelta(minutes=1), end=hour_start + timedelta(minutes=30))
        )

        assert stats.events_skipped == 1
        assert stats.events_scored == 0
        assert await store.get_event("fed_raises_interest_rates") is None

    @pytest.mark.asyncio
    async def test_failing_cluster_does_not_stop_others(
        self, trend_engine, ingest_buffer, make_mention, leases, store, hour_start
    ):
        await ingest_burst(ingest_buffer, make_mention, hour_start)
        await ingest_burst(
            ingest_buffer,
            make_mention,
            hour_start,
            topic_key="earthquake_hits_japan",
            label="Earthquake hits Japan",
        )
        original = store.save_event

        async def flaky_save(event, expected_version):
            if event.event_key == "earthquake_hits_japan":
                raise RuntimeError("boom")
            return await original(event, expected_version)

        store.save_event = flaky_save

        stats = await trend_engine.run_scoring_pass(
            BatchWindow(start=hour_start - timedelta(minutes=1), end=hour_start + timedelta(minutes=30))
        )

        assert stats.status == PassStatus.PARTIAL
        assert stats.events_failed == 1
        assert stats.events_scored == 1
        assert stats.errors == ["earthquake_hits_japan: boom"]
        assert leases.is_held("earthquake_hits_japan") is False
        assert await store.get_event("fed_raises_interest_rates") is not None

    @pytest.mark.asyncio
    async def test_store_failure_fails_pass(self, trend_engine, store):
        store.list_mentions_between = AsyncMock(
            side_effect=StoreError("database unavailable", operation="list_mentions_between")
        )

        stats = await trend_engine.run_scoring_pass()

        assert stats.status == PassStatus.FAILED
        failures = await store.list_job_failures("trend_scoring")
        assert len(failures) == 1
        assert failures[0].error == "database unavailable"
        assert failures[0].context == {"operation": "list_mentions_between"}
        assert store.job_runs[-1].status == PassStatus.FAILED

    @pytest.mark.asyncio
    async def test_timeout_abandons_pass(self, store, tracker, leases, engine_config):
        async def slow(*args, **kwargs):
            await asyncio.sleep(5)
            return []

        store.list_mentions_between = slow
        engine = TrendEngine(store, tracker, leases, engine_config, pass_timeout_seconds=0.05)

        stats = await engine.run_scoring_pass()

        assert stats.status == PassStatus.TIMED_OUT
        failures = await store.list_job_failures()
        assert failures[0].context["timeout_seconds"] == "0.05"

    @pytest.mark.asyncio
    async def test_cancellation_is_recorded(self, trend_engine, store):
        started = asyncio.Event()

        async def slow(*args, **kwargs):
            started.set()
            await asyncio.sleep(5)
            return []

        store.list_mentions_between = slow
        task = asyncio.create_task(trend_engine.run_scoring_pass())
        await started.wait()
        task.cancel()

        with pytest.raises(asyncio.CancelledError):
            await task
        assert store.job_runs[-1].status == PassStatus.CANCELLED

    @pytest.mark.asyncio
    async def test_duplicate_article_never_seeds_cluster(self, trend_engine, store, make_mention, hour_start):
        mention = make_mention(hour_start, topic_key="syndicated_copy", label="Syndicated copy")
        await store.add_mention(
            StoredMention(
                mention=mention,
                is_duplicate=True,
                duplicate_of="reuters|x",
                accepted_at=hour_start,
            )
        )

        stats = await trend_engine.run_scoring_pass(
            BatchWindow(start=hour_start - timedelta(minutes=1), end=hour_start + timedelta(minutes=5))
        )

        assert stats.mentions_processed == 1
        assert stats.clusters_created == 0
        assert await store.list_events(include_archived=True) == []


class TestDefaultWindow:
    """Tests for the window used when a pass is scheduled without one."""

    @pytest.mark.asyncio
    async def test_catches_up_after_outage(self, trend_engine, make_mention, store):
        last_end = utcnow() - timedelta(hours=1)
        await trend_engine.run_scoring_pass(
            BatchWindow(start=last_end - timedelta(minutes=15), end=last_end)
        )
        for i in range(15):
            observed = last_end + timedelta(minutes=i + 1)
            await store.add_mention(
                StoredMention(
                    mention=make_mention(observed, dedup_key=f"m{i}"),
                    accepted_at=observed,
                )
            )

        stats = await trend_engine.run_scoring_pass(now=last_end + timedelta(minutes=40))

        assert stats.window_start == last_end
        assert stats.mentions_processed == 15
        assert stats.clusters_created == 1
        assert await store.get_event("fed_raises_interest_rates") is not None

    @pytest.mark.asyncio
    async def test_catch_up_is_capped(self, store, tracker, leases):
        config = EngineConfig(scoring_pass=PassConfig(max_catchup_minutes=60))
        engine = TrendEngine(store, tracker, leases, config)
        last_end = utcnow() - timedelta(hours=4)
        await engine.run_scoring_pass(
            BatchWindow(start=last_end - timedelta(minutes=15), end=last_end)
        )
        now = last_end + timedelta(hours=3)

        stats = await engine.run_scoring_pass(now=now)

        assert stats.window_start == now - timedelta(minutes=60)

    @pytest.mark.asyncio
    async def test_recent_run_keeps_lookback(self, trend_engine):
        now = utcnow()
        await trend_engine.run_scoring_pass(
            BatchWindow(start=now - timedelta(minutes=20), end=now - timedelta(minutes=5))
        )

        window = await trend_engine.default_window(now)

        assert window.start == now - timedelta(minutes=15)
        assert window.end == now

    @pytest.mark.asyncio
    async def test_unavailable_history_falls_back(self, trend_engine, store):
        store.last_successful_run = AsyncMock(
            side_effect=StoreError("database unavailable", operation="last_successful_run")
        )
        now = utcnow()

        stats = await trend_engine.run_scoring_pass(now=now)

        assert stats.status == PassStatus.SUCCEEDED
        assert stats.window_start == now - timedelta(minutes=15)


class TestClusterLoading:
    """Tests for which stored events a pass loads into the clusterer."""

    @pytest.mark.asyncio
    async def test_unrelated_archived_events_not_loaded(
        self, trend_engine, ingest_buffer, make_mention, store, hour_start
    ):
        old = hour_start - timedelta(days=2)
        await store.save_event(
            TrendEvent(
                event_key="earthquake_hits_japan",
                canonical_label="Earthquake hits Japan",
                member_topic_keys=["earthquake_hits_japan"],
                first_seen_at=old,
                last_seen_at=old,
                updated_at=old,
                archived_at=old,
            ),
            0,
        )
        await ingest_burst(ingest_buffer, make_mention, hour_start)

        await trend_engine.run_scoring_pass(
            BatchWindow(start=hour_start - timedelta(minutes=1), end=hour_start + timedelta(minutes=30))
        )

        assert trend_engine.clusterer.get("earthquake_hits_japan") is None
        assert trend_engine.clusterer.get("fed_raises_interest_rates") is not None
        assert len(trend_engine.clusterer) == 1

    @pytest.mark.asyncio
    async def test_archived_event_with_batch_topic_is_loaded(
        self, trend_engine, ingest_buffer, make_mention, store, hour_start
    ):
        old = hour_start - timedelta(days=2)
        await store.save_event(
            TrendEvent(
                event_key="fed_raises_interest_rates",
                canonical_label="Fed raises interest rates",
                member_topic_keys=["fed_raises_interest_rates"],
                first_seen_at=old,
                last_seen_at=old,
                updated_at=old,
                archived_at=old,
            ),
            0,
        )
        await ingest_burst(ingest_buffer, make_mention, hour_start)

        stats = await trend_engine.run_scoring_pass(
            BatchWindow(start=hour_start - timedelta(minutes=1), end=hour_start + timedelta(minutes=30))
        )

        assert stats.clusters_created == 0
        event = await store.get_event("fed_raises_interest_rates")
        assert event.first_seen_at == old
        assert event.is_archived is False
