"""Article-level duplicate detection.

Syndicated articles (wire copy republished by many outlets) should not
count as independent evidence. Each article body gets two signatures:

- an exact signature: SHA-256 of the normalized text
- a 64-bit SimHash over word shingles for near-duplicates

Signatures live in Redis with a TTL. Near-duplicate lookup splits the
SimHash into bands; signatures within ``max_hamming_distance`` bits
always share at least one identical band, so only same-band entries are
compared.

Duplicates are flagged and linked to the original, never dropped.
"""

import hashlib
import re
from collections import Counter
from datetime import timedelta
from enum import Enum

from pydantic import BaseModel
from redis.asyncio import Redis as AsyncRedis

from trendpulse.config import ArticleDedupConfig
from trendpulse.core.logging import get_logger

logger = get_logger(__name__)

_URL_RE = re.compile(r"https?://\S+")
_NON_WORD_RE = re.compile(r"[\W_]+", re.UNICODE)

SIMHASH_BITS = 64
SHINGLE_SIZE = 3


def normalize_article_text(text: str) -> str:
    """Case-fold, drop URLs and punctuation, collapse whitespace."""
    text = _URL_RE.sub(" ", text.casefold())
    return " ".join(_NON_WORD_RE.sub(" ", text).split())


def content_hash(text: str) -> str:
    """SHA-256 of the normalized text."""
    return hashlib.sha256(normalize_article_text(text).encode("utf-8")).hexdigest()


def _feature_hash(feature: str) -> int:
    return int.from_bytes(hashlib.blake2b(feature.encode("utf-8"), digest_size=8).digest(), "big")


def simhash64(text: str) -> int:
    """64-bit SimHash over word 3-shingles (single words for short texts)."""
    words = normalize_article_text(text).split()
    if not words:
        return 0
    if len(words) < SHINGLE_SIZE:
        features = Counter(words)
    else:
        features = Counter(
            " ".join(words[i : i + SHINGLE_SIZE]) for i in range(len(words) - SHINGLE_SIZE + 1)
        )

    vector = [0] * SIMHASH_BITS
    for feature, weight in features.items():
        h = _feature_hash(feature)
        for bit in range(SIMHASH_BITS):
            vector[bit] += weight if (h >> bit) & 1 else -weight

    result = 0
    for bit, value in enumerate(vector):
        if value > 0:
            result |= 1 << bit
    return result


def hamming_distance(a: int, b: int) -> int:
    return (a ^ b).bit_count()


def simhash_bands(value: int, bands: int) -> list[int]:
    """Split a 64-bit SimHash into ``bands`` equal-width integers."""
    width = SIMHASH_BITS // bands
    mask = (1 << width) - 1
    return [(value >> (i * width)) & mask for i in range(bands)]


class ArticleFingerprint(BaseModel):
    """Signatures of one article.

    ``simhash`` is absent when only an adapter-supplied signature is known;
    such articles match exact copies only.
    """

    content_hash: str
    simhash: int | None = None


class ArticleDedupReason(str, Enum):
    """Why an article was flagged."""

    EXACT_HASH = "exact_hash"
    NEAR_DUPLICATE = "near_duplicate"


class ArticleDedupResult(BaseModel):
    """Result of article duplicate detection.

    Attributes:
        is_duplicate: Whether the article repeats an earlier one
        duplicate_of: mention_key of the earliest matching article
        reason: Exact or near-duplicate match
        distance: Hamming distance of the match (0 for exact)
    """

    is_duplicate: bool
    duplicate_of: str | None = None
    reason: ArticleDedupReason | None = None
    distance: int | None = None


class ArticleDeduplicator:
    """Detects syndicated/near-identical articles across sources.

    Attributes:
        redis: Async Redis client (injected)
        config: Article dedup configuration
    """

    EXACT_KEY_PREFIX = "article:exact:"
    BAND_KEY_PREFIX = "article:band:"

    def __init__(self, redis: AsyncRedis, config: ArticleDedupConfig | None = None):
        self.redis = redis
        self.config = config or ArticleDedupConfig()

    @property
    def ttl_seconds(self) -> int:
        return int(timedelta(hours=self.config.signature_ttl_hours).total_seconds())

    def fingerprint(self, text: str) -> ArticleFingerprint:
        return ArticleFingerprint(content_hash=content_hash(text), simhash=simhash64(text))

    def signature_fingerprint(self, signature: str) -> ArticleFingerprint:
        """Fingerprint from an adapter-supplied signature (exact matching only)."""
        digest = hashlib.sha256(signature.strip().lower().encode("utf-8")).hexdigest()
        return ArticleFingerprint(content_hash=digest)

    def _exact_key(self, fingerprint: ArticleFingerprint) -> str:
        return f"{self.EXACT_KEY_PREFIX}{fingerprint.content_hash}"

    def _band_keys(self, simhash: int) -> list[str]:
        return [
            f"{self.BAND_KEY_PREFIX}{i}:{band:x}"
            for i, band in enumerate(simhash_bands(simhash, self.config.bands))
        ]

    async def check(self, fingerprint: ArticleFingerprint, mention_key: str) -> ArticleDedupResult:
        """Check an article against the signatures seen so far.

        The exact signature is claimed with ``SET NX`` before anything else,
        so when the same body arrives concurrently (for different topics)
        exactly one mention becomes the original.

        Args:
            fingerprint: Signatures of the new article
            mention_key: Identity of the mention carrying it (never matches itself)
        """
        exact_key = self._exact_key(fingerprint)
        claimed = await self.redis.set(exact_key, mention_key, ex=self.ttl_seconds, nx=True)
        if not claimed:
            existing = await self.redis.get(exact_key)
            if existing and existing != mention_key:
                logger.info(
                    "Duplicate article (hash match)",
                    mention_key=mention_key,
                    duplicate_of=existing,
                    hash=fingerprint.content_hash[:16],
                )
                return ArticleDedupResult(
                    is_duplicate=True,
                    duplicate_of=existing,
                    reason=ArticleDedupReason.EXACT_HASH,
                    distance=0,
                )

        if fingerprint.simhash is None:
            return ArticleDedupResult(is_duplicate=False)

        best: tuple[int, str] | None = None
        for band_key in self._band_keys(fingerprint.simhash):
            for member in await self.redis.smembers(band_key):
                hex_hash, _, other_key = member.partition("|")
                if not other_key or other_key == mention_key:
                    continue
                distance = hamming_distance(fingerprint.simhash, int(hex_hash, 16))
                if distance <= self.config.max_hamming_distance:
                    if best is None or (distance, other_key) < best:
                        best = (distance, other_key)

        if best is None:
            return ArticleDedupResult(is_duplicate=False)

        if claimed:
            # Later exact copies link to the original, not to this copy.
            await self.redis.set(exact_key, best[1], ex=self.ttl_seconds)

        logger.info(
            "Duplicate article (simhash)",
            mention_key=mention_key,
            duplicate_of=best[1],
            distance=best[0],
        )
        return ArticleDedupResult(
            is_duplicate=True,
            duplicate_of=best[1],
            reason=ArticleDedupReason.NEAR_DUPLICATE,
            distance=best[0],
        )

    async def remember(self, fingerprint: ArticleFingerprint, mention_key: str) -> None:
        """Index an original article so later copies are recognized."""
        ttl = self.ttl_seconds
        await self.redis.set(self._exact_key(fingerprint), mention_key, ex=ttl, nx=True)
        if fingerprint.simhash is not None:
            member = f"{fingerprint.simhash:016x}|{mention_key}"
            for band_key in self._band_keys(fingerprint.simhash):
                await self.redis.sadd(band_key, member)
                await self.redis.expire(band_key, ttl)

        logger.debug(
            "Article signature stored",
            mention_key=mention_key,
            hash=fingerprint.content_hash[:16],
            ttl_seconds=ttl,
        )

    async def forget(self, fingerprint: ArticleFingerprint, mention_key: str) -> None:
        """Release an exact-signature claim held by ``mention_key``.

        Used when the mention that claimed the signature was not stored.
        """
        exact_key = self._exact_key(fingerprint)
        if await self.redis.get(exact_key) == mention_key:
            await self.redis.delete(exact_key)


__all__ = [
    "ArticleDedupReason",
    "ArticleDedupResult",
    "ArticleDeduplicator",
    "ArticleFingerprint",
    "content_hash",
    "hamming_distance",
    "normalize_article_text",
    "simhash64",
    "simhash_bands",
]
