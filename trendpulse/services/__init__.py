"""Services layer for TrendPulse.

Organized by feature:
- ingest: Mention validation, identity dedup and baseline upkeep
- engine: Baselines, velocity/spikes, clustering, corroboration, ranking
- store: Persistence boundary (in-memory, PostgreSQL, access control)
- feed: Trending feed read view
"""
