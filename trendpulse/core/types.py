"""Common type definitions shared across modules."""

from collections.abc import Callable

from sqlalchemy.ext.asyncio import AsyncSession

# Type alias for async session factory functions
SessionFactory = Callable[[], AsyncSession]

__all__ = [
    "SessionFactory",
]
