"""Trend scoring engine.

The scoring pipeline for one cluster:
1. windows: sliding-window counts
2. baseline: rolling hourly baselines
3. velocity: velocity, z-score, stage and spike episodes
4. clusterer / article_dedup: phrase clustering and syndicated-article detection
5. corroboration: confidence from tier and source evidence
6. labels / ranker: label quality, evergreen penalty, rank and breaking flags
7. pipeline: TrendEngine scoring passes
"""
