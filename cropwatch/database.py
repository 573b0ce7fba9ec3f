"""Async SQLAlchemy database setup."""

from dataclasses import dataclass
from pathlib import Path
from typing import Any

from sqlalchemy import inspect
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from cropwatch.config import DATABASE_PATH


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""

    pass


@dataclass(frozen=True)
class AuthTokens:
    """Access/refresh token pair forwarded to the store untouched."""

    access_token: str
    refresh_token: str


def get_database_url() -> str:
    """Get the SQLite database URL, ensuring the data directory exists."""
    db_path = Path(DATABASE_PATH)
    db_path.parent.mkdir(parents=True, exist_ok=True)
    return f"sqlite+aiosqlite:///{db_path.resolve()}"


engine = create_async_engine(
    get_database_url(),
    echo=False,
)

async_session = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


async def get_db() -> AsyncSession:
    """Dependency for getting async database sessions."""
    async with async_session() as session:
        yield session


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """Dependency for code that needs several independent sessions at once."""
    return async_session


def get_session(tokens: AuthTokens | None = None) -> AsyncSession:
    """Context manager for getting async database sessions outside of FastAPI routes.

    Tokens, when given, ride along in ``session.info`` for whatever
    row-level authorization the store applies; nothing here reads them.
    """
    session = async_session()
    if tokens is not None:
        session.info["auth_tokens"] = tokens
    return session


def row_to_dict(obj: Any) -> dict[str, Any]:
    """Flatten a mapped instance into a plain column -> value dict."""
    return {attr.key: getattr(obj, attr.key) for attr in inspect(obj).mapper.column_attrs}
