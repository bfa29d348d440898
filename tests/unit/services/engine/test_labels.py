"""Tests for label quality and evergreen heuristics."""

from datetime import UTC, datetime

import pytest

from trendpulse.config import EvergreenConfig, LabelModifiers, QualityGateConfig
from trendpulse.services.engine.base import LabelSource
from trendpulse.services.engine.baseline import Baseline
from trendpulse.services.engine.corroboration import EvidenceCounts
from trendpulse.services.engine.labels import (
    classify_label,
    evergreen_penalty,
    is_event_phrase,
    is_evergreen,
    label_quality,
    quality_gate_failure,
)

AS_OF = datetime(2026, 10, 18, 12, 0, tzinfo=UTC)


def create_baseline(avg_7d: float, avg_30d: float, rsd: float, defined: bool = True) -> Baseline:
    return Baseline(
        topic_keys=["t"],
        as_of=AS_OF,
        avg_7d=avg_7d,
        avg_30d=avg_30d,
        relative_std_dev=rsd,
        is_defined=defined,
    )


class TestClassifyLabel:
    """Tests for label provenance."""

    @pytest.mark.unit
    @pytest.mark.parametrize(
        "label",
        ["Fed raises interest rates", "Senate passes budget bill", "Earthquake in Chile"],
    )
    def test_event_phrases(self, label):
        assert is_event_phrase(label) is True
        assert classify_label(label) == LabelSource.EVENT_PHRASE

    @pytest.mark.unit
    def test_length_bounds(self):
        assert is_event_phrase("Strike") is False
        assert is_event_phrase("one two three four five six strike") is False

    @pytest.mark.unit
    def test_fallback_and_entity(self):
        assert classify_label("Taylor Swift") == LabelSource.FALLBACK_GENERATED
        assert classify_label("Fed") == LabelSource.ENTITY_ONLY

    @pytest.mark.unit
    def test_hint_wins(self):
        assert classify_label("Fed", LabelSource.EVENT_PHRASE) == LabelSource.EVENT_PHRASE

    @pytest.mark.unit
    def test_label_quality(self):
        modifiers = LabelModifiers()
        assert label_quality(LabelSource.EVENT_PHRASE, False) == modifiers.event_phrase
        assert label_quality(LabelSource.FALLBACK_GENERATED, False) == 0.85
        assert label_quality(LabelSource.ENTITY_ONLY, True) == 0.6
        assert label_quality(LabelSource.ENTITY_ONLY, False) == 0.4


class TestEvergreen:
    """Tests for evergreen detection and penalties."""

    @pytest.mark.unit
    def test_known_entity(self):
        undefined = create_baseline(0, 0, 0, defined=False)
        config = EvergreenConfig(entities=["Trump", "white house", "congress"])

        assert is_evergreen("Trump", [], undefined, config) is True
        assert is_evergreen("White House", [], undefined, config) is True
        assert is_evergreen("Something", ["congress"], undefined, config) is True
        assert is_evergreen("Something", [], undefined, config) is False

    @pytest.mark.unit
    def test_steady_volume(self):
        assert is_evergreen("Stock market", [], create_baseline(3.0, 3.0, 0.1)) is True
        assert is_evergreen("Stock market", [], create_baseline(3.0, 3.0, 0.6)) is False
        assert is_evergreen("Stock market", [], create_baseline(0.5, 0.5, 0.1)) is False

    @pytest.mark.unit
    def test_single_word_thresholds_looser(self):
        baseline = create_baseline(1.0, 1.2, 0.45)
        assert is_evergreen("Bitcoin", [], baseline) is True
        assert is_evergreen("Bitcoin price", [], baseline) is False

    @pytest.mark.unit
    @pytest.mark.parametrize(
        ("z", "defined", "expected"),
        [
            (9.0, True, 0.80),
            (6.5, True, 0.55),
            (5.5, True, 0.35),
            (4.5, True, 0.20),
            (4.0, True, 0.05),
            (None, True, 0.05),
            (None, False, 0.08),
        ],
    )
    def test_penalty_relief(self, z, defined, expected):
        assert evergreen_penalty(True, z, defined) == expected

    @pytest.mark.unit
    def test_no_penalty_for_regular_topics(self):
        assert evergreen_penalty(False, 0.0, True) == 1.0


def create_evidence(
    sources: int = 4, news: int = 3, tier1: int = 5, tier3: int = 5
) -> EvidenceCounts:
    return EvidenceCounts(
        tier1=tier1,
        tier3=tier3,
        source_count=sources,
        tier12_present=tier1 > 0,
        news_source_count=news,
        social_source_count=sources - news,
    )


class TestQualityGates:
    """Tests for the trending quality gates."""

    @pytest.mark.unit
    def test_multi_word_event_passes(self):
        assert (
            quality_gate_failure("Fed raises rates", ["fed_raises_rates"], 12, create_evidence())
            is None
        )

    @pytest.mark.unit
    @pytest.mark.parametrize(
        ("label", "keys", "reason"),
        [
            ("News", ["news"], "blocklisted_term"),
            ("Politics today", ["politics"], "blocklisted_term"),
            ("Breaking news", ["breaking_news"], "all_words_blocklisted"),
        ],
    )
    def test_generic_labels_never_trend(self, label, keys, reason):
        assert quality_gate_failure(label, keys, 100, create_evidence(sources=10)) == reason

    @pytest.mark.unit
    def test_known_single_word_entity(self):
        evidence = create_evidence(tier1=0, tier3=25)
        assert quality_gate_failure("NATO", ["nato"], 25, evidence) is None
        assert quality_gate_failure("Kyiv", ["kyiv"], 25, evidence) == "single_word_no_tier12"
        assert quality_gate_failure("Kyiv", ["kyiv"], 25, create_evidence()) is None

    @pytest.mark.unit
    @pytest.mark.parametrize(
        ("mentions", "evidence", "reason"),
        [
            (10, create_evidence(), "single_word_low_volume"),
            (25, create_evidence(sources=2, news=2), "single_word_low_sources"),
            (25, create_evidence(sources=4, news=1), "single_word_low_news"),
        ],
    )
    def test_single_word_needs_broad_coverage(self, mentions, evidence, reason):
        assert quality_gate_failure("Kyiv", ["kyiv"], mentions, evidence) == reason

    @pytest.mark.unit
    def test_low_volume(self):
        assert (
            quality_gate_failure("Fed raises rates", ["fed_raises_rates"], 2, create_evidence())
            == "low_volume"
        )

    @pytest.mark.unit
    def test_single_source_needs_news_and_volume(self):
        social = create_evidence(sources=1, news=0)
        news = create_evidence(sources=1, news=1)

        assert quality_gate_failure("Fed raises rates", ["f"], 10, social) == "low_source_diversity"
        assert quality_gate_failure("Fed raises rates", ["f"], 4, news) == "low_source_diversity"
        assert quality_gate_failure("Fed raises rates", ["f"], 5, news) is None

    @pytest.mark.unit
    def test_custom_blocklist(self):
        config = QualityGateConfig(blocklist=["Halloween"])

        assert (
            quality_gate_failure("Halloween", ["halloween"], 50, create_evidence(), config)
            == "blocklisted_term"
        )
        assert quality_gate_failure("News", ["news"], 50, create_evidence(), config) is None
