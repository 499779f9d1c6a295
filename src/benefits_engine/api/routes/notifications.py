"""Employee notification inbox endpoints."""

from fastapi import APIRouter, Query

from benefits_engine.api.dependencies import CurrentEmployee, DbSession
from benefits_engine.api.schemas import (
    ErrorResponse,
    InboxResponse,
    MarkReadRequest,
    MarkReadResponse,
    NotificationResponse,
)
from benefits_engine.services.notification_service import INBOX_LIMIT, NotificationInbox

router = APIRouter(prefix="/notifications", tags=["notifications"])


@router.get(
    "",
    response_model=InboxResponse,
    responses={401: {"model": ErrorResponse}},
)
async def list_notifications(
    db: DbSession,
    employee_id: CurrentEmployee,
    limit: int = Query(default=INBOX_LIMIT, ge=1, le=200),
) -> InboxResponse:
    inbox = await NotificationInbox(db).list_for(employee_id, limit)
    return InboxResponse(
        notifications=[
            NotificationResponse.model_validate(n) for n in inbox.notifications
        ],
        unread_count=inbox.unread_count,
    )


@router.put(
    "",
    response_model=MarkReadResponse,
    responses={
        400: {"model": ErrorResponse},
        401: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
    },
)
async def mark_notifications_read(
    db: DbSession,
    employee_id: CurrentEmployee,
    payload: MarkReadRequest,
) -> MarkReadResponse:
    """Mark one notification, or every unread one, as read."""
    updated = await NotificationInbox(db).mark_read(
        employee_id,
        notification_id=payload.notification_id,
        mark_all=payload.mark_all_as_read,
    )
    return MarkReadResponse(updated_count=updated)
