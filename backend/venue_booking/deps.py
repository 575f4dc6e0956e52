from typing import AsyncIterator

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from .config import Settings, get_settings
from .database import async_session
from .domain.lifecycle import Actor, Role
from .utils.auth import decode_actor_claims, parse_bearer


async def get_session() -> AsyncIterator[AsyncSession]:
    async with async_session() as session:
        yield session


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


async def get_current_actor(
    authorization: str | None = Header(default=None),
    settings: Settings = Depends(get_settings),
) -> Actor:
    token = parse_bearer(authorization)
    if token is None:
        raise _unauthorized("bearer token required")
    try:
        actor_id, role = decode_actor_claims(token, secret=settings.auth_secret, algorithms=[settings.auth_algorithm])
        return Actor(actor_id=actor_id, role=Role(role))
    except ValueError as exc:
        raise _unauthorized("invalid or expired token") from exc


async def get_current_user_id(actor: Actor = Depends(get_current_actor)) -> int:
    return actor.actor_id
