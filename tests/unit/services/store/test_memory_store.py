"""Tests for the in-memory trend store."""

from datetime import UTC, datetime, timedelta

import pytest

from trendpulse.core.exceptions import StaleEventError
from trendpulse.services.engine.base import JobFailure, PassStats, PassStatus, TrendEvent
from trendpulse.services.engine.baseline import BaselineState
from trendpulse.services.ingest.base import StoredMention
from trendpulse.services.store.memory import InMemoryTrendStore

T0 = datetime(2026, 10, 18, 9, 0, tzinfo=UTC)


def create_event(key: str, **overrides) -> TrendEvent:
    data = {
        "event_key": key,
        "canonical_label": key.replace("_", " "),
        "first_seen_at": T0,
        "last_seen_at": T0,
        "updated_at": T0,
    }
    data.update(overrides)
    return TrendEvent(**data)


class TestMentions:
    """Tests for mention storage."""

    @pytest.mark.asyncio
    async def test_identity_unique(self, make_mention):
        store = InMemoryTrendStore()
        record = StoredMention(mention=make_mention(T0), accepted_at=T0)

        assert await store.add_mention(record) is True
        assert await store.add_mention(record) is False
        assert store.mention_count() == 1

    @pytest.mark.asyncio
    async def test_list_windows(self, make_mention):
        store = InMemoryTrendStore()
        for i in range(5):
            await store.add_mention(
                StoredMention(
                    mention=make_mention(T0 + timedelta(minutes=i), dedup_key=str(i)),
                    accepted_at=T0 + timedelta(hours=1),
                )
            )

        found = await store.list_mentions(["fed_raises_interest_rates"], T0, T0 + timedelta(minutes=3))
        assert [m.mention.dedup_key for m in found] == ["1", "2", "3"]

        by_acceptance = await store.list_mentions_between(T0 + timedelta(minutes=30), T0 + timedelta(hours=1))
        assert len(by_acceptance) == 5

    @pytest.mark.asyncio
    async def test_latest_observation_ignores_duplicates(self, make_mention):
        store = InMemoryTrendStore()
        await store.add_mention(StoredMention(mention=make_mention(T0), accepted_at=T0))
        await store.add_mention(
            StoredMention(
                mention=make_mention(T0 + timedelta(hours=1), dedup_key="copy"),
                is_duplicate=True,
                accepted_at=T0,
            )
        )

        assert await store.latest_observation(["fed_raises_interest_rates"]) == T0
        assert await store.latest_observation(["unknown"]) is None

    @pytest.mark.asyncio
    async def test_delete_mention(self, make_mention):
        store = InMemoryTrendStore()
        record = StoredMention(mention=make_mention(T0), accepted_at=T0)
        await store.add_mention(record)

        assert await store.delete_mention(record.mention_key) is True
        assert await store.delete_mention(record.mention_key) is False
        assert store.mention_count() == 0
        assert await store.list_mentions(["fed_raises_interest_rates"], T0 - timedelta(hours=1), T0) == []
        assert await store.add_mention(record) is True


class TestBaselines:
    """Tests for baseline state storage."""

    @pytest.mark.asyncio
    async def test_states_are_copied(self):
        store = InMemoryTrendStore()
        state = BaselineState(topic_key="t", buckets={1: 1})
        await store.save_baseline_state(state)
        state.buckets[2] = 5

        stored = await store.get_baseline_state("t")
        assert stored.buckets == {1: 1}
        assert await store.get_baseline_states(["t", "missing"]) == {"t": stored}


class TestEvents:
    """Tests for versioned event writes."""

    @pytest.mark.asyncio
    async def test_versions_increment(self):
        store = InMemoryTrendStore()
        first = await store.save_event(create_event("a"), 0)
        second = await store.save_event(first, first.version)

        assert first.version == 1
        assert second.version == 2

    @pytest.mark.asyncio
    async def test_stale_write_rejected(self):
        store = InMemoryTrendStore()
        await store.save_event(create_event("a"), 0)
        await store.save_event(create_event("a", rank_score=10.0), 1)

        with pytest.raises(StaleEventError) as exc_info:
            await store.save_event(create_event("a", rank_score=99.0), 1)

        assert exc_info.value.actual_version == 2
        assert (await store.get_event("a")).rank_score == 10.0

    @pytest.mark.asyncio
    async def test_new_event_requires_version_zero(self):
        store = InMemoryTrendStore()
        with pytest.raises(StaleEventError):
            await store.save_event(create_event("a"), 3)

    @pytest.mark.asyncio
    async def test_archived_hidden_by_default(self):
        store = InMemoryTrendStore()
        await store.save_event(create_event("a", archived_at=T0), 0)
        await store.save_event(create_event("b"), 0)

        assert [e.event_key for e in await store.list_events()] == ["b"]
        assert len(await store.list_events(include_archived=True)) == 2

    @pytest.mark.asyncio
    async def test_trending_order_is_total(self):
        """Test breaking first, rank desc with nulls last, confidence desc, key."""
        store = InMemoryTrendStore()
        events = [
            create_event("low", is_trending=True, rank_score=30.0),
            create_event("high", is_trending=True, rank_score=80.0),
            create_event("breaking", is_trending=True, is_breaking=True, rank_score=25.0),
            create_event("unranked", is_trending=True, rank_score=None),
            create_event("tie_b", is_trending=True, rank_score=50.0, confidence_score=0.5),
            create_event("tie_a", is_trending=True, rank_score=50.0, confidence_score=0.5),
            create_event("tie_conf", is_trending=True, rank_score=50.0, confidence_score=0.9),
            create_event("quiet", is_trending=False, rank_score=99.0),
            create_event("stale", is_trending=True, rank_score=99.0, updated_at=T0 - timedelta(days=2)),
        ]
        for event in events:
            await store.save_event(event, 0)

        items, total = await store.list_trending(T0 - timedelta(hours=24), limit=10)

        assert total == 7
        assert [e.event_key for e in items] == [
            "breaking",
            "high",
            "tie_conf",
            "tie_a",
            "tie_b",
            "low",
            "unranked",
        ]

        page, _ = await store.list_trending(T0 - timedelta(hours=24), limit=2, offset=1)
        assert [e.event_key for e in page] == ["high", "tie_conf"]

    @pytest.mark.asyncio
    async def test_archived_events_by_topic(self):
        store = InMemoryTrendStore()
        await store.save_event(create_event("a", archived_at=T0, member_topic_keys=["x", "y"]), 0)
        await store.save_event(create_event("b", archived_at=T0, member_topic_keys=["z"]), 0)
        await store.save_event(create_event("c", member_topic_keys=["y"]), 0)

        found = await store.list_archived_events_for_topics(["y", "unknown"])

        assert [e.event_key for e in found] == ["a"]
        assert await store.list_archived_events_for_topics([]) == []


class TestJobs:
    """Tests for job records."""

    @pytest.mark.asyncio
    async def test_failures_newest_first(self):
        store = InMemoryTrendStore()
        for i in range(3):
            await store.record_job_failure(
                JobFailure(job_name="trend_scoring", error=f"e{i}", occurred_at=T0 + timedelta(minutes=i))
            )
        await store.record_job_failure(JobFailure(job_name="other", error="x", occurred_at=T0))

        failures = await store.list_job_failures("trend_scoring", limit=2)
        assert [f.error for f in failures] == ["e2", "e1"]

    @pytest.mark.asyncio
    async def test_last_successful_run(self):
        store = InMemoryTrendStore()
        assert await store.last_successful_run("trend_scoring") is None

        def run(minutes: int, status: PassStatus, job_name: str = "trend_scoring") -> PassStats:
            end = T0 + timedelta(minutes=minutes)
            return PassStats(
                job_name=job_name,
                window_start=end - timedelta(minutes=15),
                window_end=end,
                started_at=end,
                status=status,
            )

        await store.record_job_run(run(15, PassStatus.SUCCEEDED))
        await store.record_job_run(run(30, PassStatus.PARTIAL))
        await store.record_job_run(run(45, PassStatus.FAILED))
        await store.record_job_run(run(60, PassStatus.SUCCEEDED, job_name="other"))

        last = await store.last_successful_run("trend_scoring")

        assert last.window_end == T0 + timedelta(minutes=30)
        assert last.status == PassStatus.PARTIAL
