from fastapi import Header, HTTPException, status
from sqlalchemy.ext.asyncio import async_sessionmaker

from app.core.clock import Clock, system_clock
from app.db.session import AsyncSessionLocal


async def get_current_user_id(x_user_id: str = Header(None)) -> str:
    """
    Caller identity as supplied by the gateway in front of this service.
    """
    if not x_user_id or not x_user_id.strip():
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing X-User-Id header",
        )
    return x_user_id.strip()


def get_clock() -> Clock:
    return system_clock


def get_session_factory() -> async_sessionmaker:
    """Session factory for work outside a request, like route monitor polls."""
    return AsyncSessionLocal
