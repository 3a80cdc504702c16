from typing import AsyncIterator

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from .config import get_settings
from .database import get_sessionmaker
from .infrastructure.repositories import SqlAlchemyUnitOfWork
from .utils.auth import Identity, decode_access_token


async def get_session() -> AsyncIterator[AsyncSession]:
    async with get_sessionmaker()() as session:
        yield session


async def get_uow(session: AsyncSession = Depends(get_session)) -> SqlAlchemyUnitOfWork:
    return SqlAlchemyUnitOfWork(session)


async def get_current_identity(authorization: str | None = Header(default=None)) -> Identity:
    if authorization is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Authorization header required")
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Bearer token required")
    settings = get_settings()
    try:
        return decode_access_token(token, secret=settings.auth_secret, algorithms=[settings.auth_algorithm])
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token") from exc


async def get_tenant_identity(identity: Identity = Depends(get_current_identity)) -> Identity:
    if identity.company_id is None:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="No company selected")
    return identity


async def require_admin(identity: Identity = Depends(get_tenant_identity)) -> Identity:
    if not identity.is_admin:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Admin role required")
    return identity
