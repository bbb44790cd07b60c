"""Notification endpoints — inbox, mark read, unread count, admin scans."""


import uuid
from datetime import date, datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, Path, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from dayflow.attendance.aggregator import local_date
from dayflow.auth.dependencies import require_permission
from dayflow.common.constants import NotificationType
from dayflow.common.exceptions import NotFoundException
from dayflow.common.pagination import PaginationParams
from dayflow.common.rate_limit import SCAN_LIMIT, limiter
from dayflow.core_hr.models import Employee
from dayflow.database import get_db
from dayflow.notifications.scans import SCANS
from dayflow.notifications.schemas import (
    NotificationListResponse,
    NotificationResponse,
    ScanResult,
)
from dayflow.notifications.service import NotificationService

router = APIRouter(prefix="", tags=["notifications"])


# ── GET / — list current user's notifications ───────────────────────

@router.get("", response_model=NotificationListResponse)
async def list_notifications(
    is_read: Optional[bool] = Query(default=None, description="Filter by read status"),
    type: Optional[NotificationType] = Query(default=None, description="Filter by type"),
    pagination: PaginationParams = Depends(),
    employee: Employee = Depends(require_permission("notification:read_own")),
    db: AsyncSession = Depends(get_db),
):
    return await NotificationService.get_notifications(
        db,
        employee.id,
        pagination,
        is_read=is_read,
        notification_type=type,
    )


# ── GET /unread-count ───────────────────────────────────────────────
# Static paths are registered before /{notification_id}/read.

@router.get("/unread-count")
async def unread_count(
    employee: Employee = Depends(require_permission("notification:read_own")),
    db: AsyncSession = Depends(get_db),
):
    count = await NotificationService.get_unread_count(db, employee.id)
    return {"data": {"count": count}}


@router.put("/read-all")
async def mark_all_read(
    employee: Employee = Depends(require_permission("notification:read_own")),
    db: AsyncSession = Depends(get_db),
):
    count = await NotificationService.mark_all_read(db, employee.id)
    return {"message": "All notifications marked as read", "data": {"count": count}}


# ── POST /scans/{scan} — admin trigger ──────────────────────────────

@router.post("/scans/{scan}", response_model=ScanResult)
@limiter.limit(SCAN_LIMIT)
async def run_scan(
    request: Request,
    scan: str = Path(..., description="missed_checkouts | birthdays | anniversaries"),
    day: Optional[date] = Query(None, description="Defaults to today"),
    employee: Employee = Depends(require_permission("notification:run_scan")),
    db: AsyncSession = Depends(get_db),
):
    """Run one scan for *day* and report how many notifications went out."""
    runner = SCANS.get(scan)
    if runner is None:
        raise NotFoundException("Scan", scan)
    return await runner(db, day or local_date(datetime.now(timezone.utc)))


# ── PUT /{notification_id}/read ─────────────────────────────────────

@router.put("/{notification_id}/read")
async def mark_read(
    notification_id: uuid.UUID,
    employee: Employee = Depends(require_permission("notification:read_own")),
    db: AsyncSession = Depends(get_db),
):
    notification = await NotificationService.mark_read(db, notification_id, employee.id)
    return {
        "message": "Notification marked as read",
        "data": NotificationResponse.model_validate(notification).model_dump(mode="json"),
    }
