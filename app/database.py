"""Database engine and table creation."""
from datetime import datetime, timezone

from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel, create_engine

from app.config import settings


def build_engine(url: str, echo: bool = False):
    """Create an engine; in-memory SQLite shares one connection across threads."""
    if url.startswith("sqlite"):
        kwargs = {"connect_args": {"check_same_thread": False}}
        if ":memory:" in url or url == "sqlite://":
            kwargs["poolclass"] = StaticPool
        return create_engine(url, echo=echo, **kwargs)
    return create_engine(url, echo=echo, pool_pre_ping=True)


engine = build_engine(settings.DATABASE_URL, settings.DATABASE_ECHO)


def utc_now() -> datetime:
    """Current time as an aware UTC datetime; every stored timestamp uses it."""
    return datetime.now(timezone.utc)


def init_db(bind=None) -> None:
    """Create all tables registered on SQLModel metadata."""
    # Register table models on the metadata
    from app.models import agent, conversation, document  # noqa: F401

    SQLModel.metadata.create_all(bind or engine)


def session_factory(bind=None):
    """Return a callable producing one new session per persistence call."""
    target = bind or engine

    def _factory() -> Session:
        return Session(target)

    return _factory
