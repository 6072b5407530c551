"""Shared FastAPI dependencies."""
from typing import AsyncGenerator

from fastapi import HTTPException, Request
from sqlalchemy.ext.asyncio import AsyncSession

from ticketdesk.auth.api_key import API_ROLE
from ticketdesk.storage.db import get_session


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    async with get_session() as session:
        yield session


async def require_api_user(request: Request) -> str:
    """Principal set by ApiKeyMiddleware; 401 if the request never went through it."""
    principal = getattr(request.state, "principal", None)
    roles = getattr(request.state, "roles", [])
    if not principal or API_ROLE not in roles:
        raise HTTPException(status_code=401, detail="Invalid API Key")
    return principal
