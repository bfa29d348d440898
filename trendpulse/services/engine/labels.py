"""Label quality and evergreen heuristics.

An event label that describes something happening ("Fed raises rates")
ranks above a bare entity name ("Fed"). Perennial topics that are always
in the news are damped unless they spike hard.
"""

from collections.abc import Iterable

from trendpulse.config import EvergreenConfig, LabelModifiers, QualityGateConfig
from trendpulse.services.engine.base import LabelSource
from trendpulse.services.engine.baseline import Baseline
from trendpulse.services.engine.clusterer import normalize_label, stem
from trendpulse.services.engine.corroboration import EvidenceCounts

ACTION_VERBS = (
    "announce", "approve", "arrest", "attack", "ban", "beat", "block", "charge",
    "collapse", "confirm", "crash", "cut", "debate", "declare", "defeat", "delay",
    "die", "drop", "elect", "end", "escalate", "face", "fall", "file", "fire",
    "halt", "hike", "hit", "impose", "indict", "invade", "kill", "launch", "lead",
    "lose", "meet", "merge", "pass", "plunge", "rally", "raise", "reach", "recall",
    "reject", "release", "resign", "reveal", "rise", "rule", "sign", "slash",
    "soar", "strike", "sue", "surge", "suspend", "sweep", "unveil", "veto",
    "vote", "warn", "win", "withdraw",
)

EVENT_NOUNS = (
    "agreement", "announcement", "arrest", "attack", "ban", "bill", "collapse",
    "crash", "crisis", "deal", "death", "debate", "decision", "earthquake",
    "election", "explosion", "fire", "flood", "hearing", "hurricane", "indictment",
    "investigation", "lawsuit", "layoffs", "merger", "outage", "protest", "recall",
    "resignation", "ruling", "sanctions", "scandal", "shooting", "shutdown",
    "storm", "strike", "summit", "tariffs", "trial", "verdict", "vote", "war",
    "wildfire",
)

_EVENT_STEMS = frozenset(stem(w) for w in ACTION_VERBS + EVENT_NOUNS)


def is_event_phrase(label: str) -> bool:
    """2-6 words containing an action verb or event noun."""
    words = normalize_label(label).split()
    if not 2 <= len(words) <= 6:
        return False
    return any(stem(w) in _EVENT_STEMS for w in words)


def classify_label(label: str, label_hint: LabelSource | None = None) -> LabelSource:
    """Determine label provenance; an upstream hint wins when present."""
    if label_hint is not None:
        return label_hint
    if is_event_phrase(label):
        return LabelSource.EVENT_PHRASE
    if len(normalize_label(label).split()) <= 1:
        return LabelSource.ENTITY_ONLY
    return LabelSource.FALLBACK_GENERATED


def label_quality(
    source: LabelSource,
    has_tier12_corroboration: bool,
    modifiers: LabelModifiers | None = None,
) -> float:
    """Rank multiplier for a label's provenance."""
    modifiers = modifiers or LabelModifiers()
    if source == LabelSource.EVENT_PHRASE:
        return modifiers.event_phrase
    if source == LabelSource.FALLBACK_GENERATED:
        return modifiers.fallback_generated
    if has_tier12_corroboration:
        return modifiers.entity_only_with_tier12
    return modifiers.entity_only


def is_evergreen(
    label: str,
    topic_keys: Iterable[str],
    baseline: Baseline,
    config: EvergreenConfig | None = None,
) -> bool:
    """Perennial entity, or steady high volume across both baseline windows."""
    config = config or EvergreenConfig()
    entities = set(config.entities)
    normalized = normalize_label(label)
    if normalized in entities:
        return True
    if any(normalize_label(key) in entities for key in topic_keys):
        return True

    if not baseline.is_defined:
        return False

    if len(normalized.split()) == 1:
        return (
            baseline.avg_30d >= config.single_word_min_avg_30d
            and baseline.avg_7d >= config.single_word_min_avg_7d
            and baseline.relative_std_dev < config.single_word_max_rsd
        )
    return (
        baseline.avg_30d >= config.min_avg_30d
        and baseline.avg_7d >= config.min_avg_7d
        and baseline.relative_std_dev < config.max_rsd
    )


def evergreen_penalty(
    evergreen: bool,
    z_score: float | None,
    baseline_defined: bool,
    config: EvergreenConfig | None = None,
) -> float:
    """Rank multiplier for evergreen topics; strong spikes earn partial relief."""
    if not evergreen:
        return 1.0
    config = config or EvergreenConfig()
    if z_score is not None:
        for step in config.relief:
            if z_score > step.min_z:
                return step.penalty
    return config.penalty_with_baseline if baseline_defined else config.penalty_without_baseline


def quality_gate_failure(
    label: str,
    topic_keys: Iterable[str],
    mentions_24h: int,
    evidence: EvidenceCounts,
    config: QualityGateConfig | None = None,
) -> str | None:
    """Why an event may not trend, or None when it passes every gate.

    Generic labels are rejected outright. Single-word labels need broad
    news coverage plus tier-1/2 evidence or a known entity name; everything
    else needs a little volume and more than one voice.
    """
    config = config or QualityGateConfig()
    blocked = set(config.blocklist)
    normalized = normalize_label(label)
    keys = [normalize_label(k) for k in topic_keys]

    if normalized in blocked or (keys and all(k in blocked for k in keys)):
        return "blocklisted_term"
    words = normalized.split()
    if len(words) > 1 and all(w in blocked for w in words):
        return "all_words_blocklisted"

    if len(words) == 1:
        if mentions_24h < config.single_word_min_mentions:
            return "single_word_low_volume"
        if evidence.source_count < config.single_word_min_sources:
            return "single_word_low_sources"
        if evidence.news_source_count < config.single_word_min_news_sources:
            return "single_word_low_news"
        known = normalized in config.single_word_entities or any(
            k in config.single_word_entities for k in keys
        )
        if evidence.tier1 + evidence.tier2 == 0 and not known:
            return "single_word_no_tier12"
        return None

    if mentions_24h < config.min_mentions:
        return "low_volume"
    diverse = evidence.source_count >= config.min_sources
    news_backed = (
        evidence.news_source_count >= 1 and mentions_24h >= config.single_source_min_mentions
    )
    if not diverse and not news_backed:
        return "low_source_diversity"
    return None


__all__ = [
    "ACTION_VERBS",
    "EVENT_NOUNS",
    "classify_label",
    "evergreen_penalty",
    "is_event_phrase",
    "is_evergreen",
    "label_quality",
    "quality_gate_failure",
]
