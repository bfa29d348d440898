"""Phrase clustering for trend events.

Merges near-identical labels ("Fed raises rates" / "fed raising rates")
into one trend event. Labels are normalized (case-folded, punctuation
stripped, whitespace collapsed) and compared with a weighted mix of
stemmed-token Jaccard and character-bigram Dice similarity.

Candidate clusters come from an inverted index on stemmed tokens, so a new
label is only compared against clusters it shares a token with. Ambiguous
decisions never merge:
- similarity inside the ambiguity band merges only when the labels share
  an entity reference
- an exact tie between two different clusters merges into neither
Both cases are logged for audit.
"""

import re
from collections import Counter
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import datetime

from trendpulse.config import ClusteringConfig
from trendpulse.core.logging import get_logger
from trendpulse.services.engine.base import TrendEvent

logger = get_logger(__name__)

_NON_WORD_RE = re.compile(r"[\W_]+", re.UNICODE)

STOPWORDS = frozenset(
    {"a", "an", "the", "of", "to", "in", "on", "for", "and", "at", "by", "with", "is", "as"}
)

_TIE_EPSILON = 1e-9


def normalize_label(label: str) -> str:
    """Case-fold, drop punctuation/underscores and collapse whitespace.

    Example:
        >>> normalize_label("  Fed  Raises_Rates!! ")
        'fed raises rates'
    """
    return " ".join(_NON_WORD_RE.sub(" ", label.casefold()).split())


def stem(token: str, min_length: int = 3) -> str:
    """Light suffix stemmer: enough to unify raise/raises/raising/raised."""

    def strip(word: str, suffix: str) -> str | None:
        if word.endswith(suffix) and len(word) - len(suffix) >= min_length:
            return word[: -len(suffix)]
        return None

    base = token
    if (s := strip(token, "ies")) is not None:
        base = s + "y"
    elif (s := strip(token, "es")) is not None and s.endswith(("s", "x", "z", "ch", "sh")):
        base = s
    elif (s := strip(token, "ing")) is not None:
        base = s
    elif (s := strip(token, "ed")) is not None:
        base = s
    elif not token.endswith("ss") and (s := strip(token, "s")) is not None:
        base = s

    if len(base) > min_length and base.endswith("e"):
        base = base[:-1]
    return base


def label_stems(normalized: str, min_length: int = 3) -> frozenset[str]:
    """Stemmed content tokens of a normalized label."""
    tokens = [t for t in normalized.split() if t not in STOPWORDS]
    return frozenset(stem(t, min_length) for t in tokens)


def _bigrams(text: str) -> Counter[str]:
    compact = text.replace(" ", "")
    return Counter(compact[i : i + 2] for i in range(len(compact) - 1))


def jaccard(a: frozenset[str], b: frozenset[str]) -> float:
    if not a or not b:
        return 0.0
    return len(a & b) / len(a | b)


def dice(a: str, b: str) -> float:
    grams_a, grams_b = _bigrams(a), _bigrams(b)
    total = sum(grams_a.values()) + sum(grams_b.values())
    if total == 0:
        return 1.0 if a == b else 0.0
    overlap = sum((grams_a & grams_b).values())
    return 2 * overlap / total


def make_event_key(normalized: str) -> str:
    return "_".join(normalized.split())


@dataclass
class PhraseCluster:
    """One cluster of label variants.

    Attributes:
        event_key: Unique key of the trend event
        aliases: Normalized alias -> first raw display label seen
        alias_first_seen: Normalized alias -> first observation time
        stems: Normalized alias -> stemmed token set
        topic_keys: Topic keys routed to this cluster
        entity_refs: Entity references seen on member mentions
        first_seen_at: Earliest observation in the cluster
    """

    event_key: str
    aliases: dict[str, str] = field(default_factory=dict)
    alias_first_seen: dict[str, datetime] = field(default_factory=dict)
    stems: dict[str, frozenset[str]] = field(default_factory=dict)
    topic_keys: set[str] = field(default_factory=set)
    entity_refs: set[str] = field(default_factory=set)
    first_seen_at: datetime | None = None

    def add_alias(self, normalized: str, display: str, seen_at: datetime, min_stem: int) -> None:
        if normalized not in self.aliases:
            self.aliases[normalized] = display
            self.stems[normalized] = label_stems(normalized, min_stem)
        first = self.alias_first_seen.get(normalized)
        if first is None or seen_at < first:
            self.alias_first_seen[normalized] = seen_at
        if self.first_seen_at is None or seen_at < self.first_seen_at:
            self.first_seen_at = seen_at

    def ordered_aliases(self) -> list[str]:
        return sorted(self.aliases, key=lambda a: (self.alias_first_seen[a], a))


@dataclass(frozen=True)
class AssignResult:
    """Outcome of routing one mention label to a cluster.

    Attributes:
        event_key: Cluster the label belongs to (None when not seeded)
        created: A new cluster was created
        merged: A new alias was merged into an existing cluster
        similarity: Best similarity considered (0.0 for exact/known matches)
    """

    event_key: str | None
    created: bool = False
    merged: bool = False
    similarity: float = 0.0


class PhraseClusterer:
    """Incremental label clusterer with an inverted token index.

    Every topic key and every normalized alias belongs to at most one
    cluster, so each mention contributes to exactly one trend event.
    Ownership is a flat index (alias -> event key, topic key -> event key);
    a label joins one existing cluster or starts a new one, and clusters
    are never merged with each other afterwards. A label that resembles two
    clusters therefore never bridges them, and persisted event keys stay
    stable.
    """

    def __init__(self, config: ClusteringConfig | None = None):
        self.config = config or ClusteringConfig()
        self._clusters: dict[str, PhraseCluster] = {}
        self._alias_owner: dict[str, str] = {}
        self._topic_owner: dict[str, str] = {}
        self._token_index: dict[str, set[str]] = {}

    # ------------------------------------------------------------------
    # Hydration
    # ------------------------------------------------------------------

    def load(self, events: Iterable[TrendEvent]) -> None:
        """Rebuild clusters from persisted events (in first-seen order)."""
        for event in sorted(events, key=lambda e: (e.first_seen_at, e.event_key)):
            if event.event_key in self._clusters:
                continue
            cluster = PhraseCluster(event_key=event.event_key)
            canonical = normalize_label(event.canonical_label)
            for alias in event.alias_variants or [canonical]:
                display = event.alias_displays.get(alias) or (
                    event.canonical_label if alias == canonical else alias
                )
                seen_at = event.alias_first_seen.get(alias, event.first_seen_at)
                self._attach_alias(cluster, alias, display, seen_at)
            for topic_key in event.member_topic_keys:
                cluster.topic_keys.add(topic_key)
                self._topic_owner.setdefault(topic_key, event.event_key)
            cluster.entity_refs.update(event.entity_refs)
            self._clusters[event.event_key] = cluster
        logger.debug("Clusters loaded", cluster_count=len(self._clusters))

    def retain(self, event_keys: Iterable[str]) -> int:
        """Drop every cluster not in ``event_keys``; returns how many were dropped."""
        keep = set(event_keys)
        dropped = [key for key in self._clusters if key not in keep]
        for key in dropped:
            cluster = self._clusters.pop(key)
            for alias, stems in cluster.stems.items():
                if self._alias_owner.get(alias) == key:
                    del self._alias_owner[alias]
                for s in stems:
                    owners = self._token_index.get(s)
                    if owners is not None:
                        owners.discard(key)
                        if not owners:
                            del self._token_index[s]
            for topic_key in cluster.topic_keys:
                if self._topic_owner.get(topic_key) == key:
                    del self._topic_owner[topic_key]
        if dropped:
            logger.debug("Clusters evicted", evicted=len(dropped), cluster_count=len(self._clusters))
        return len(dropped)

    # ------------------------------------------------------------------
    # Assignment
    # ------------------------------------------------------------------

    def assign(
        self,
        topic_key: str,
        label: str,
        observed_at: datetime,
        entity_refs: Iterable[str] = (),
        seed: bool = True,
    ) -> AssignResult:
        """Route a mention's label to a cluster.

        Args:
            topic_key: Normalized topic key of the mention
            label: Raw display label
            observed_at: Observation time (drives first-seen ordering)
            entity_refs: Entity references carried by the mention
            seed: Whether the mention may create a new cluster

        Returns:
            AssignResult; ``event_key`` is None only when ``seed`` is False and
            nothing matched
        """
        refs = set(entity_refs)
        normalized = normalize_label(label) or normalize_label(topic_key)
        if not normalized:
            return AssignResult(event_key=None)

        # Known topic key: keep it where it is, learn the alias if unowned
        owner = self._topic_owner.get(topic_key)
        if owner is not None:
            cluster = self._clusters[owner]
            if self._alias_owner.get(normalized, owner) == owner:
                self._attach_alias(cluster, normalized, label.strip(), observed_at)
            cluster.entity_refs.update(refs)
            return AssignResult(event_key=owner)

        # Known alias: exact match
        owner = self._alias_owner.get(normalized)
        if owner is not None:
            cluster = self._clusters[owner]
            self._attach_topic(cluster, topic_key, refs, normalized, label, observed_at)
            return AssignResult(event_key=owner)

        best, similarity = self._best_candidate(normalized, refs)
        if best is not None:
            cluster = self._clusters[best]
            self._attach_topic(cluster, topic_key, refs, normalized, label, observed_at)
            logger.debug(
                "Label merged into cluster",
                label=normalized,
                event_key=best,
                similarity=round(similarity, 4),
            )
            return AssignResult(event_key=best, merged=True, similarity=similarity)

        if not seed:
            return AssignResult(event_key=None, similarity=similarity)

        event_key = self._unique_event_key(make_event_key(normalized))
        cluster = PhraseCluster(event_key=event_key)
        self._clusters[event_key] = cluster
        self._attach_topic(cluster, topic_key, refs, normalized, label, observed_at)
        logger.debug("Cluster created", event_key=event_key, label=normalized)
        return AssignResult(event_key=event_key, created=True, similarity=similarity)

    def similarity(self, a: str, b: str) -> float:
        """Similarity of two normalized labels in [0, 1]."""
        min_stem = self.config.min_stem_length
        return self._score(a, label_stems(a, min_stem), b, label_stems(b, min_stem))

    def _score(self, a: str, a_stems: frozenset[str], b: str, b_stems: frozenset[str]) -> float:
        return (
            self.config.token_weight * jaccard(a_stems, b_stems)
            + self.config.char_weight * dice(a, b)
        )

    def _best_candidate(self, normalized: str, refs: set[str]) -> tuple[str | None, float]:
        stems = label_stems(normalized, self.config.min_stem_length)
        candidates: set[str] = set()
        for s in stems:
            candidates |= self._token_index.get(s, set())
        if not candidates:
            return None, 0.0

        scored: list[tuple[float, str]] = []
        for event_key in candidates:
            cluster = self._clusters[event_key]
            score = max(
                self._score(normalized, stems, alias, cluster.stems[alias])
                for alias in cluster.aliases
            )
            scored.append((score, event_key))
        scored.sort(key=lambda item: (-item[0], item[1]))

        top_score, top_key = scored[0]
        lower = self.config.similarity_threshold - self.config.ambiguity_margin
        upper = self.config.similarity_threshold + self.config.ambiguity_margin
        if top_score < lower:
            return None, top_score

        if len(scored) > 1 and abs(scored[1][0] - top_score) <= _TIE_EPSILON:
            logger.info(
                "Ambiguous label tie, not merging",
                label=normalized,
                candidates=[key for score, key in scored if abs(score - top_score) <= _TIE_EPSILON],
                similarity=round(top_score, 4),
            )
            return None, top_score

        if top_score >= upper:
            return top_key, top_score

        if refs & self._clusters[top_key].entity_refs:
            return top_key, top_score

        logger.info(
            "Ambiguous label similarity, not merging",
            label=normalized,
            candidate=top_key,
            similarity=round(top_score, 4),
        )
        return None, top_score

    def _attach_topic(
        self,
        cluster: PhraseCluster,
        topic_key: str,
        refs: set[str],
        normalized: str,
        label: str,
        observed_at: datetime,
    ) -> None:
        cluster.topic_keys.add(topic_key)
        cluster.entity_refs.update(refs)
        self._topic_owner[topic_key] = cluster.event_key
        self._attach_alias(cluster, normalized, label.strip(), observed_at)

    def _attach_alias(
        self, cluster: PhraseCluster, normalized: str, display: str, seen_at: datetime
    ) -> None:
        cluster.add_alias(normalized, display or normalized, seen_at, self.config.min_stem_length)
        self._alias_owner[normalized] = cluster.event_key
        for s in cluster.stems[normalized]:
            self._token_index.setdefault(s, set()).add(cluster.event_key)

    def _unique_event_key(self, base: str) -> str:
        key, n = base, 2
        while key in self._clusters:
            key = f"{base}_{n}"
            n += 1
        return key

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get(self, event_key: str) -> PhraseCluster | None:
        return self._clusters.get(event_key)

    def cluster_for_topic(self, topic_key: str) -> str | None:
        return self._topic_owner.get(topic_key)

    def owns_alias(self, event_key: str, normalized: str) -> bool:
        return self._alias_owner.get(normalized) == event_key

    def canonical_label(self, event_key: str, alias_counts: Counter[str] | None = None) -> str:
        """Pick the display label: most frequent alias, then earliest first-seen.

        Args:
            event_key: Cluster to label
            alias_counts: Normalized alias -> mention count in the scoring window;
                aliases owned by other clusters are ignored
        """
        cluster = self._clusters[event_key]
        counts = alias_counts or Counter()
        best = min(
            cluster.aliases,
            key=lambda a: (-counts.get(a, 0), cluster.alias_first_seen[a], a),
        )
        return cluster.aliases[best]

    def __len__(self) -> int:
        return len(self._clusters)


__all__ = [
    "AssignResult",
    "PhraseCluster",
    "PhraseClusterer",
    "STOPWORDS",
    "dice",
    "jaccard",
    "label_stems",
    "make_event_key",
    "normalize_label",
    "stem",
]
