"""Mention ingest.

- base: Mention / StoredMention / IngestResult models
- buffer: IngestBuffer (validation, identity dedup, article dedup, baselines)
"""
