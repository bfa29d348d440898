"""Phrase clustering and article deduplication configuration models."""

from pydantic import BaseModel, Field, model_validator

from trendpulse.config.validators import validate_weights_sum


class ClusteringConfig(BaseModel):
    """Phrase clustering configuration.

    Labels whose similarity is at least ``similarity_threshold + ambiguity_margin``
    merge. Inside ``[threshold - margin, threshold + margin)`` they merge only
    when they share an entity reference.

    Attributes:
        similarity_threshold: Centre of the merge decision
        ambiguity_margin: Half-width of the ambiguity band
        token_weight: Weight of stemmed-token Jaccard similarity
        char_weight: Weight of character-bigram similarity
        min_stem_length: Shortest stem a suffix may be stripped down to
    """

    similarity_threshold: float = Field(default=0.6, gt=0, le=1)
    ambiguity_margin: float = Field(default=0.05, ge=0, le=0.5)
    token_weight: float = Field(default=0.6, ge=0, le=1)
    char_weight: float = Field(default=0.4, ge=0, le=1)
    min_stem_length: int = Field(default=3, ge=2)

    @model_validator(mode="after")
    def check_weights_sum(self) -> "ClusteringConfig":
        validate_weights_sum({"token_weight": self.token_weight, "char_weight": self.char_weight})
        return self


class ArticleDedupConfig(BaseModel):
    """Article-level duplicate detection configuration.

    A 64-bit SimHash is split into ``bands`` equal bands; any two signatures
    within ``max_hamming_distance`` share at least one identical band as long
    as the distance is smaller than the band count.

    Attributes:
        max_hamming_distance: Largest bit distance still considered a duplicate
        bands: Number of SimHash bands used for candidate lookup
        signature_ttl_hours: How long signatures stay in the index
    """

    max_hamming_distance: int = Field(default=3, ge=0, le=16)
    bands: int = Field(default=4, ge=1, le=16)
    signature_ttl_hours: int = Field(default=72, ge=1)

    @model_validator(mode="after")
    def check_bands(self) -> "ArticleDedupConfig":
        if 64 % self.bands != 0:
            raise ValueError("bands must divide 64")
        if self.max_hamming_distance >= self.bands:
            raise ValueError("max_hamming_distance must be smaller than bands")
        return self


__all__ = ["ArticleDedupConfig", "ClusteringConfig"]
