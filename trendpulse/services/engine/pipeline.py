"""Scoring pass orchestration.

A pass routes the batch window's mentions into clusters, then rescores
every affected cluster:

1. counts over 15m/1h/6h/24h (original mentions only)
2. baseline as of the start of the current hour window
3. velocity, stage and spike episode
4. corroboration from tier and source evidence
5. label quality, evergreen penalty and rank

Each cluster is scored under its own lease and written with one versioned
``save_event`` call. One cluster failing never stops the others.
"""

import asyncio
import time
from collections import Counter
from dataclasses import dataclass
from datetime import datetime, timedelta

from trendpulse.config import EngineConfig
from trendpulse.core.exceptions import PassTimeoutError, StoreError, TrendPulseError
from trendpulse.core.lease import LeaseManager
from trendpulse.core.logging import get_logger
from trendpulse.core.state_machine import create_trend_stage_machine
from trendpulse.services.engine.base import (
    BatchWindow,
    JobFailure,
    PassStats,
    PassStatus,
    TrendEvent,
    TrendStage,
)
from trendpulse.services.engine.baseline import BaselineTracker
from trendpulse.services.engine.clusterer import PhraseCluster, PhraseClusterer, normalize_label
from trendpulse.services.engine.corroboration import CorroborationScorer, EvidenceCounts
from trendpulse.services.engine.labels import (
    classify_label,
    evergreen_penalty,
    is_evergreen,
    quality_gate_failure,
)
from trendpulse.services.engine.ranker import RankComposer, RankInputs
from trendpulse.services.engine.velocity import SpikeDetector, compute_velocity, next_trend_stage
from trendpulse.services.engine.windows import (
    HOUR,
    WINDOW_24H,
    count_windows,
    hours_between,
    utcnow,
)
from trendpulse.services.ingest.base import StoredMention
from trendpulse.services.store.base import TrendStore

logger = get_logger(__name__)


@dataclass
class ScoreOutcome:
    """What happened to one cluster in a pass."""

    event: TrendEvent
    spike_detected: bool = False
    archived: bool = False


def collect_evidence(records: list[StoredMention]) -> EvidenceCounts:
    """Tier and source tallies; duplicates count toward sources only."""
    tiers = Counter(r.mention.source_tier for r in records if not r.is_duplicate)
    sources = {r.mention.source_id for r in records}
    news = {r.mention.source_id for r in records if r.mention.source_type.is_news}
    return EvidenceCounts(
        tier1=tiers[1],
        tier2=tiers[2],
        tier3=tiers[3],
        source_count=len(sources),
        tier12_present=any(r.mention.source_tier <= 2 for r in records),
        news_source_count=len(news),
        social_source_count=len(sources - news),
    )


class TrendEngine:
    """Runs scoring passes over stored mentions.

    Attributes:
        store: Trend store
        tracker: Baseline tracker
        leases: Per-cluster lease manager
        config: Engine configuration
        clusterer: Phrase clusterer (kept warm between passes)
        pass_timeout_seconds: Time budget for one pass

    Example:
        >>> engine = TrendEngine(store, tracker, InMemoryLeaseManager())
        >>> stats = await engine.run_scoring_pass()
        >>> stats.status
        <PassStatus.SUCCEEDED: 'succeeded'>
    """

    def __init__(
        self,
        store: TrendStore,
        tracker: BaselineTracker,
        leases: LeaseManager,
        config: EngineConfig | None = None,
        clusterer: PhraseClusterer | None = None,
        pass_timeout_seconds: float = 120.0,
    ):
        self.store = store
        self.tracker = tracker
        self.leases = leases
        self.config = config or EngineConfig()
        self.clusterer = clusterer or PhraseClusterer(self.config.clustering)
        self.pass_timeout_seconds = pass_timeout_seconds

        self.spike_detector = SpikeDetector(self.config.spike)
        self.scorer = CorroborationScorer(self.config.corroboration)
        self.composer = RankComposer(self.config.rank)

    @property
    def job_name(self) -> str:
        return self.config.scoring_pass.job_name

    # ============================================
    # Pass
    # ============================================

    async def run_scoring_pass(
        self,
        batch_window: BatchWindow | None = None,
        now: datetime | None = None,
    ) -> PassStats:
        """Run one scoring pass.

        Args:
            batch_window: Mentions observed or accepted in ``(start, end]``
                are routed into clusters. Defaults to ``default_window(now)``.
            now: Scoring time. Defaults to the window end when a window is
                given, so replaying a window yields the same result.

        Returns:
            PassStats. Timeouts and store failures are reported in the
            status and persisted as job failures, not raised.

        Raises:
            asyncio.CancelledError: After the cancellation is recorded
        """
        if now is None:
            now = batch_window.end if batch_window is not None else utcnow()
        if batch_window is None:
            batch_window = await self.default_window(now)

        stats = PassStats(
            job_name=self.job_name,
            window_start=batch_window.start,
            window_end=batch_window.end,
            started_at=utcnow(),
        )
        started = time.perf_counter()
        logger.info(
            "Scoring pass started",
            job_name=self.job_name,
            window_start=batch_window.start.isoformat(),
            window_end=batch_window.end.isoformat(),
        )

        failure: TrendPulseError | None = None
        try:
            async with asyncio.timeout(self.pass_timeout_seconds):
                await self._run(batch_window, now, stats)
        except TimeoutError:
            stats.status = PassStatus.TIMED_OUT
            failure = PassTimeoutError(self.pass_timeout_seconds, job_name=self.job_name)
        except StoreError as e:
            stats.status = PassStatus.FAILED
            failure = e
        except asyncio.CancelledError:
            stats.status = PassStatus.CANCELLED
            await self._finish(stats, started, TrendPulseError("Scoring pass cancelled"))
            raise

        if failure is None and stats.events_failed:
            stats.status = PassStatus.PARTIAL
        await self._finish(stats, started, failure)
        return stats

    async def default_window(self, now: datetime) -> BatchWindow:
        """Lookback window ending at ``now``, stretched back to the last completed run.

        After an outage the window starts where the last succeeded or partial
        run ended (at most ``max_catchup_minutes`` back), so mentions accepted
        while no pass ran still get routed.
        """
        cfg = self.config.scoring_pass
        window = BatchWindow.ending_at(now, cfg.lookback_minutes)
        try:
            last = await self.store.last_successful_run(self.job_name)
        except StoreError as e:
            logger.warning(
                "Last job run unavailable, using lookback window",
                job_name=self.job_name,
                error=str(e),
            )
            return window
        if last is None or last.window_end >= window.start:
            return window

        start = max(last.window_end, now - timedelta(minutes=cfg.max_catchup_minutes))
        logger.info(
            "Scoring window extended to catch up",
            job_name=self.job_name,
            last_window_end=last.window_end.isoformat(),
            window_start=start.isoformat(),
        )
        return BatchWindow(start=start, end=now)

    async def _run(self, window: BatchWindow, now: datetime, stats: PassStats) -> None:
        mentions = await self.store.list_mentions_between(window.start, window.end)
        stats.mentions_processed = len(mentions)

        # Active clusters plus archived ones this batch could reopen
        active = await self.store.list_events()
        archived = await self.store.list_archived_events_for_topics(
            {m.topic_key for m in mentions}
        )
        known = active + archived
        self.clusterer.retain(e.event_key for e in known)
        self.clusterer.load(known)

        affected = self._assign(mentions, stats)
        affected.update(e.event_key for e in active)

        for event_key in sorted(affected):
            lease = await self.leases.acquire(event_key, self.config.scoring_pass.lease_ttl_ms)
            if lease is None:
                stats.events_skipped += 1
                continue
            try:
                outcome = await self._score_event(event_key, now)
            except Exception as e:
                stats.events_failed += 1
                stats.errors.append(f"{event_key}: {e}")
                logger.error(
                    "Cluster scoring failed",
                    event_key=event_key,
                    error=str(e),
                    exc_info=True,
                )
                continue
            finally:
                await self.leases.release(lease)

            if outcome is None:
                continue
            stats.events_scored += 1
            stats.spikes_detected += int(outcome.spike_detected)
            stats.events_archived += int(outcome.archived)

    def _assign(self, mentions: list[StoredMention], stats: PassStats) -> set[str]:
        """Route mentions into clusters; originals first so duplicates never seed."""
        affected: set[str] = set()
        ordered = [m for m in mentions if not m.is_duplicate] + [
            m for m in mentions if m.is_duplicate
        ]
        for record in ordered:
            m = record.mention
            result = self.clusterer.assign(
                m.topic_key,
                m.display_label,
                m.observed_at,
                m.entity_refs,
                seed=not record.is_duplicate,
            )
            if result.event_key is None:
                logger.debug(
                    "Duplicate article matched no cluster",
                    mention_key=record.mention_key,
                    duplicate_of=record.duplicate_of,
                )
                continue
            stats.clusters_created += int(result.created)
            stats.clusters_merged += int(result.merged)
            affected.add(result.event_key)
        return affected

    async def _finish(
        self, stats: PassStats, started: float, failure: TrendPulseError | None
    ) -> None:
        stats.completed_at = utcnow()
        stats.duration_ms = round((time.perf_counter() - started) * 1000, 2)

        try:
            if failure is not None:
                stats.errors.append(str(failure))
                await self.store.record_job_failure(
                    JobFailure(
                        job_name=self.job_name,
                        error=str(failure),
                        occurred_at=stats.completed_at,
                        context={k: str(v) for k, v in failure.context.items()},
                    )
                )
            await self.store.record_job_run(stats)
        except StoreError as e:
            logger.error("Failed to record job run", job_name=self.job_name, error=str(e))

        log = logger.error if failure is not None else logger.info
        log(
            "Scoring pass finished",
            job_name=self.job_name,
            status=stats.status.value,
            mentions_processed=stats.mentions_processed,
            clusters_created=stats.clusters_created,
            clusters_merged=stats.clusters_merged,
            events_scored=stats.events_scored,
            events_failed=stats.events_failed,
            events_skipped=stats.events_skipped,
            events_archived=stats.events_archived,
            spikes_detected=stats.spikes_detected,
            duration_ms=stats.duration_ms,
        )

    # ============================================
    # Per-cluster scoring
    # ============================================

    async def _score_event(self, event_key: str, now: datetime) -> ScoreOutcome | None:
        """Rescore one cluster and persist it. Returns None if there is nothing to do."""
        cluster = self.clusterer.get(event_key)
        if cluster is None:
            return None
        previous = await self.store.get_event(event_key)

        topic_keys = sorted(cluster.topic_keys | set(previous.member_topic_keys if previous else ()))
        records = await self.store.list_mentions(topic_keys, now - WINDOW_24H, now)
        originals = [r for r in records if not r.is_duplicate]

        if previous is not None and previous.is_archived:
            latest_new = max((r.observed_at for r in originals), default=None)
            if latest_new is None or latest_new <= previous.archived_at:
                return None
            logger.info("Archived event reopened", event_key=event_key)

        counts = count_windows([r.observed_at for r in originals], now)
        baseline = await self.tracker.get_combined(topic_keys, as_of=now - HOUR)
        metrics = compute_velocity(counts, baseline, self.config.spike, self.config.baseline)

        last_seen_at = await self.store.latest_observation(topic_keys)
        previous_stage = previous.trend_stage if previous else None
        stage = next_trend_stage(previous_stage, metrics, self.config.spike, last_seen_at, now)
        machine = create_trend_stage_machine(previous_stage or TrendStage.STABLE)
        machine.transition(stage)

        decayed = (
            last_seen_at is not None
            and hours_between(last_seen_at, now) > self.config.spike.decay_window_hours
        )

        # Spike episode
        episode_was_active = previous.spike_episode_active if previous else False
        spike = self.spike_detector.evaluate(episode_was_active and not decayed, metrics)
        if spike.spike_detected:
            spike_detected_at, spike_magnitude = now, spike.magnitude
        elif spike.episode_active and previous is not None:
            spike_detected_at, spike_magnitude = previous.spike_detected_at, previous.spike_magnitude
        else:
            spike_detected_at = previous.spike_detected_at if previous else None
            spike_magnitude = None
        # Replaying the pass that started the episode reports the same spike
        spike_fired = spike.spike_detected or (
            spike.episode_active and spike_detected_at is not None and spike_detected_at == now
        )
        if spike.spike_detected:
            logger.info(
                "Spike episode started",
                event_key=event_key,
                z_score=metrics.z_score,
                magnitude=spike_magnitude,
            )

        evidence = collect_evidence(records)
        corroboration = self.scorer.score(evidence)

        canonical = self._canonical_label(event_key, originals)
        label_source = classify_label(canonical, self._label_hint(canonical, originals))
        evergreen_cfg = self.config.rank.evergreen
        evergreen = is_evergreen(canonical, topic_keys, baseline, evergreen_cfg)
        penalty = evergreen_penalty(evergreen, metrics.z_score, baseline.is_defined, evergreen_cfg)

        first_seen_at = self._first_seen(cluster, previous)
        seen_at = last_seen_at or (previous.last_seen_at if previous else first_seen_at)
        episode_started_at = (
            spike_detected_at if spike.episode_active and spike_detected_at else first_seen_at
        )
        gate_failure = quality_gate_failure(
            canonical, topic_keys, counts.count_24h, evidence, self.config.rank.quality
        )
        if gate_failure is not None:
            logger.debug("Quality gate failed", event_key=event_key, reason=gate_failure)
        rank = self.composer.compose(
            RankInputs(
                metrics=metrics,
                counts=counts,
                baseline_stable=baseline.is_stable,
                corroboration=corroboration,
                evidence=evidence,
                stage=machine.current,
                episode_started_at=episode_started_at,
                last_seen_at=seen_at,
                now=now,
                label_source=label_source,
                evergreen_penalty=penalty,
                quality_gate_failure=gate_failure,
            )
        )

        previous_peak = previous.peak_1h if previous else 0
        if counts.count_1h > previous_peak:
            peak_1h, peak_at = counts.count_1h, now
        else:
            peak_1h, peak_at = previous_peak, previous.peak_at if previous else None

        event = TrendEvent(
            event_key=event_key,
            canonical_label=canonical,
            alias_variants=cluster.ordered_aliases(),
            alias_displays=dict(cluster.aliases),
            alias_first_seen=dict(cluster.alias_first_seen),
            member_topic_keys=topic_keys,
            entity_refs=sorted(cluster.entity_refs),
            first_seen_at=first_seen_at,
            last_seen_at=seen_at,
            peak_at=peak_at,
            current_15m=counts.count_15m,
            current_1h=counts.count_1h,
            current_6h=counts.count_6h,
            current_24h=counts.count_24h,
            peak_1h=peak_1h,
            velocity_1h=metrics.velocity_1h,
            velocity_6h=metrics.velocity_6h,
            acceleration=metrics.acceleration,
            z_score=metrics.z_score,
            baseline_mean=baseline.avg_7d if baseline.is_defined else None,
            baseline_std=baseline.hourly_std_dev if baseline.is_defined else None,
            trend_stage=machine.current,
            is_trending=rank.is_trending,
            is_breaking=rank.is_breaking,
            breaking_path=rank.breaking_path,
            spike_detected=spike_fired,
            spike_magnitude=spike_magnitude,
            spike_detected_at=spike_detected_at,
            spike_episode_active=spike.episode_active,
            confidence_score=corroboration.confidence_score,
            confidence_factors=corroboration.factors,
            has_tier12_corroboration=corroboration.has_tier12_corroboration,
            is_tier3_only=corroboration.is_tier3_only,
            tier1_count=evidence.tier1,
            tier2_count=evidence.tier2,
            tier3_count=evidence.tier3,
            source_count=evidence.source_count,
            duplicate_count=len(records) - len(originals),
            rank_score=rank.rank_score,
            label_quality=rank.label_quality,
            label_source=label_source,
            evergreen_penalty=rank.evergreen_penalty,
            is_evergreen=evergreen,
            recency_decay=rank.recency_decay,
            archived_at=now if decayed else None,
            updated_at=now,
        )
        stored = await self.store.save_event(event, previous.version if previous else 0)

        if decayed:
            logger.info("Event archived", event_key=event_key, last_seen_at=str(last_seen_at))
        logger.debug(
            "Event scored",
            event_key=event_key,
            stage=stored.trend_stage.value,
            rank_score=stored.rank_score,
            confidence=stored.confidence_score,
            trending=stored.is_trending,
            version=stored.version,
        )
        return ScoreOutcome(event=stored, spike_detected=spike_fired, archived=decayed)

    def _canonical_label(self, event_key: str, originals: list[StoredMention]) -> str:
        alias_counts: Counter[str] = Counter()
        for r in originals:
            normalized = normalize_label(r.mention.display_label)
            if self.clusterer.owns_alias(event_key, normalized):
                alias_counts[normalized] += 1
        return self.clusterer.canonical_label(event_key, alias_counts)

    @staticmethod
    def _label_hint(canonical: str, originals: list[StoredMention]):
        target = normalize_label(canonical)
        for r in originals:
            hint = r.mention.label_hint
            if hint is not None and normalize_label(r.mention.display_label) == target:
                return hint
        return None

    @staticmethod
    def _first_seen(cluster: PhraseCluster, previous: TrendEvent | None) -> datetime:
        candidates = [t for t in (cluster.first_seen_at, previous and previous.first_seen_at) if t]
        return min(candidates)


__all__ = ["ScoreOutcome", "TrendEngine", "collect_evidence"]
