"""
Health probe functions for the storage dependency.

Each probe:
- Opens its own short-lived session, never a request's Unit of Work
- Returns bool (True = healthy) or raises, depending on the variant
- Applies a timeout so an unreachable database cannot hang the caller
"""

import asyncio

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker


async def probe_database(
    session_factory: async_sessionmaker[AsyncSession],
    timeout_seconds: float = 5.0,
) -> None:
    """
    Execute ``SELECT 1`` on a fresh session.

    Raises:
        TimeoutError: The database did not answer in time
        sqlalchemy.exc.SQLAlchemyError: Connection or query failure
    """
    async with asyncio.timeout(timeout_seconds):
        async with session_factory() as session:
            result = await session.execute(text("SELECT 1"))
            result.scalar()


async def check_database(
    session_factory: async_sessionmaker[AsyncSession],
    timeout_seconds: float = 2.0,
) -> bool:
    """
    Check database connectivity.

    Args:
        session_factory: Factory for short-lived sessions
        timeout_seconds: Maximum time to wait for a response

    Returns:
        True if the database is reachable, False otherwise

    Example:
        >>> healthy = await check_database(repo.session_factory)
    """
    try:
        await probe_database(session_factory, timeout_seconds)
        return True
    except asyncio.TimeoutError:
        return False
    except Exception:
        # Any other error (connection refused, auth failure, query error)
        return False
