import logging
from sqlalchemy.ext.asyncio import AsyncEngine

from app.db.base_class import Base
from app.models import Incident, Vote, Line, Stop, LineSubscription, AreaSubscription  # noqa: F401

logger = logging.getLogger("app.db")


async def init_db(engine: AsyncEngine) -> None:
    """Initialize database tables."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    logger.info("Database tables initialized")
