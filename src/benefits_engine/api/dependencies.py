"""FastAPI dependencies for dependency injection."""

from collections.abc import AsyncGenerator
from typing import Annotated

from fastapi import Depends, Header
from sqlalchemy.ext.asyncio import AsyncSession

from benefits_engine.database import get_session_factory
from benefits_engine.errors import Unauthorized
from benefits_engine.services.notification_service import (
    DatabaseNotificationDispatcher,
    NotificationDispatcher,
)


async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    """Get database session dependency. Services own commit/rollback."""
    async with get_session_factory()() as session:
        try:
            yield session
        finally:
            await session.close()


async def get_current_employee(
    x_employee_id: Annotated[str | None, Header()] = None
) -> str:
    """Caller identity, as established by the calling layer."""
    if not x_employee_id or not x_employee_id.strip():
        raise Unauthorized("Unauthorized - Please log in")
    return x_employee_id.strip()


def get_dispatcher() -> NotificationDispatcher:
    """In-app notifications, written in their own session after commit."""
    return DatabaseNotificationDispatcher(get_session_factory())


# Type aliases for cleaner dependency injection
DbSession = Annotated[AsyncSession, Depends(get_db_session)]
CurrentEmployee = Annotated[str, Depends(get_current_employee)]
Dispatcher = Annotated[NotificationDispatcher, Depends(get_dispatcher)]
