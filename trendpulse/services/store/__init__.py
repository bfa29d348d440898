"""Trend store implementations.

- base: TrendStore interface
- memory: InMemoryTrendStore
- sql: SqlAlchemyTrendStore (PostgreSQL)
- access: AccessControlledStore (public read, engine write, admin override)
"""
