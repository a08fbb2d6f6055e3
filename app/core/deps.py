"""FastAPI dependencies shared by the route modules."""
from typing import Generator, Optional

from fastapi import Request
from sqlmodel import Session

from app.config import settings
from app.database import engine


def get_db() -> Generator[Session, None, None]:
    """Yield a database session scoped to one request."""
    with Session(engine) as session:
        yield session


def get_current_user(request: Request) -> Optional[str]:
    """
    Return the authenticated user id, or None for anonymous callers.

    Session issuance lives in the authentication gateway, which forwards
    the caller id in a trusted header.
    """
    user_id = request.headers.get(settings.AUTH_USER_HEADER)
    if not user_id or not user_id.strip():
        return None
    return user_id.strip()
