"""Dependency Injection Container.

This module provides a centralized DI container using dependency-injector.

Lifecycles:
- Singleton: Redis/DB clients, store, locks, leases, the warm engine
- Factory: stateless helpers

Usage:
    # In FastAPI
    from trendpulse.core.container import container

    buffer = container.ingest_buffer()

    # In Celery
    engine = container.trend_engine()
    stats = asyncio.run(engine.run_scoring_pass())

    # In tests
    with container.services.trend_store.override(InMemoryTrendStore()):
        ...
"""

from dependency_injector import containers, providers
from redis.asyncio import Redis as AsyncRedis
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from trendpulse.core.config import Config, get_config
from trendpulse.core.config_loader import load_engine_config
from trendpulse.services.store.access import Principal, Role


class InfrastructureContainer(containers.DeclarativeContainer):
    """Infrastructure layer dependencies (database, cache)."""

    global_config = providers.Dependency(instance_of=Config)

    # ============================================
    # Redis
    # ============================================

    redis_async_client = providers.Singleton(
        AsyncRedis.from_url,
        url=global_config.provided.redis_url,
        encoding="utf-8",
        decode_responses=True,
        socket_connect_timeout=5,
        socket_keepalive=True,
    )

    # ============================================
    # Database
    # ============================================

    db_engine = providers.Singleton(
        create_async_engine,
        url=global_config.provided.database_url,
        echo=global_config.provided.database_echo,
        pool_pre_ping=True,
        pool_size=global_config.provided.database_pool_size,
        max_overflow=global_config.provided.database_max_overflow,
    )

    db_session_factory = providers.Singleton(
        async_sessionmaker,
        bind=db_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


class ConfigContainer(containers.DeclarativeContainer):
    """Engine configuration models.

    The whole EngineConfig is loaded once from YAML; sections are exposed
    individually so services receive only what they use.
    """

    engine_config = providers.Singleton(load_engine_config)

    baseline_config = engine_config.provided.baseline
    spike_config = engine_config.provided.spike
    clustering_config = engine_config.provided.clustering
    article_dedup_config = engine_config.provided.article_dedup
    ingest_config = engine_config.provided.ingest
    feed_config = engine_config.provided.feed
    pass_config = engine_config.provided.scoring_pass


class ServiceContainer(containers.DeclarativeContainer):
    """Service layer dependencies."""

    global_config = providers.Dependency(instance_of=Config)
    infrastructure = providers.DependenciesContainer()
    configs = providers.DependenciesContainer()

    # ============================================
    # Persistence
    # ============================================

    trend_store = providers.Singleton(
        "trendpulse.services.store.sql.SqlAlchemyTrendStore",
        session_factory=infrastructure.db_session_factory,
    )

    engine_principal = providers.Singleton(
        Principal,
        name=global_config.provided.service_identity,
        role=Role.ENGINE,
    )

    public_principal = providers.Singleton(Principal, name="public", role=Role.PUBLIC)

    engine_store = providers.Singleton(
        "trendpulse.services.store.access.AccessControlledStore",
        inner=trend_store,
        principal=engine_principal,
    )

    public_store = providers.Singleton(
        "trendpulse.services.store.access.AccessControlledStore",
        inner=trend_store,
        principal=public_principal,
    )

    # ============================================
    # Concurrency
    # ============================================

    local_topic_locks = providers.Singleton(
        "trendpulse.core.locks.ShardedLock",
        shards=configs.ingest_config.provided.lock_shards,
    )

    topic_locks = providers.Singleton(
        "trendpulse.core.locks.RedisTopicLock",
        redis=infrastructure.redis_async_client,
        local=local_topic_locks,
        ttl_seconds=configs.ingest_config.provided.lock_ttl_seconds,
        wait_seconds=configs.ingest_config.provided.lock_wait_seconds,
    )

    lease_manager = providers.Singleton(
        "trendpulse.core.lease.RedisLeaseManager",
        redis=infrastructure.redis_async_client,
        ttl_ms=configs.pass_config.provided.lease_ttl_ms,
    )

    # ============================================
    # Engine
    # ============================================

    baseline_tracker = providers.Singleton(
        "trendpulse.services.engine.baseline.BaselineTracker",
        store=engine_store,
        config=configs.baseline_config,
    )

    article_deduplicator = providers.Factory(
        "trendpulse.services.engine.article_dedup.ArticleDeduplicator",
        redis=infrastructure.redis_async_client,
        config=configs.article_dedup_config,
    )

    ingest_buffer = providers.Singleton(
        "trendpulse.services.ingest.buffer.IngestBuffer",
        store=engine_store,
        tracker=baseline_tracker,
        locks=topic_locks,
        deduplicator=article_deduplicator,
        config=configs.ingest_config,
    )

    trend_engine = providers.Singleton(
        "trendpulse.services.engine.pipeline.TrendEngine",
        store=engine_store,
        tracker=baseline_tracker,
        leases=lease_manager,
        config=configs.engine_config,
        pass_timeout_seconds=global_config.provided.pass_timeout_seconds,
    )

    trend_feed = providers.Factory(
        "trendpulse.services.feed.TrendFeed",
        store=public_store,
        config=configs.feed_config,
    )


class ApplicationContainer(containers.DeclarativeContainer):
    """Root application container.

    Composes all sub-containers and provides the main entry point.
    """

    # Uses get_config() to ensure same instance across the app
    config = providers.Singleton(get_config)

    infrastructure = providers.Container(
        InfrastructureContainer,
        global_config=config,
    )

    configs = providers.Container(ConfigContainer)

    services = providers.Container(
        ServiceContainer,
        global_config=config,
        infrastructure=infrastructure,
        configs=configs,
    )

    # ============================================
    # Convenience accessors (shortcuts)
    # ============================================

    redis = providers.Singleton(
        lambda client: client,
        client=infrastructure.redis_async_client,
    )

    db_engine = providers.Singleton(
        lambda engine: engine,
        engine=infrastructure.db_engine,
    )

    ingest_buffer = providers.Factory(
        lambda svc: svc,
        svc=services.ingest_buffer,
    )

    trend_engine = providers.Factory(
        lambda svc: svc,
        svc=services.trend_engine,
    )

    trend_feed = providers.Factory(
        lambda svc: svc,
        svc=services.trend_feed,
    )


def create_container() -> ApplicationContainer:
    """Create and configure the application container."""
    return ApplicationContainer()


# Global container instance
container = create_container()


def get_container() -> ApplicationContainer:
    """Get the global container (for FastAPI Depends)."""
    return container


async def close_resources() -> None:
    """Close pooled connections held by singleton clients.

    Celery tasks run each pass in a fresh event loop, so clients bound to
    the previous loop must be closed and the singletons reset afterwards.
    """
    await container.redis().aclose()
    await container.db_engine().dispose()


__all__ = [
    "ApplicationContainer",
    "ConfigContainer",
    "InfrastructureContainer",
    "ServiceContainer",
    "close_resources",
    "container",
    "create_container",
    "get_config",
    "get_container",
]
