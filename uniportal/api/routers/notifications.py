from typing import Optional

from fastapi import APIRouter, Depends, Response, status

from uniportal.access import CallerContext
from uniportal.api.deps import get_caller, get_gateway, get_idempotency_key
from uniportal.api.schemas import NotificationCreate
from uniportal.gateway import Gateway

router = APIRouter(tags=["notifications"])


@router.get("/students/{student_id}/notifications")
def list_notifications(
    student_id: str,
    caller: CallerContext = Depends(get_caller),
    gateway: Gateway = Depends(get_gateway),
):
    return gateway.notifications.list_by_student(caller, student_id)


@router.post("/notifications", status_code=status.HTTP_201_CREATED)
def create_notification(
    payload: NotificationCreate,
    caller: CallerContext = Depends(get_caller),
    gateway: Gateway = Depends(get_gateway),
    idempotency_key: Optional[str] = Depends(get_idempotency_key),
):
    return gateway.notifications.create(caller, payload.fields(), idempotency_key=idempotency_key)


@router.post("/notifications/{notification_id}/read")
def mark_notification_read(
    notification_id: str,
    caller: CallerContext = Depends(get_caller),
    gateway: Gateway = Depends(get_gateway),
):
    return gateway.notifications.mark_read(caller, notification_id)


@router.delete("/notifications/{notification_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_notification(
    notification_id: str,
    caller: CallerContext = Depends(get_caller),
    gateway: Gateway = Depends(get_gateway),
):
    gateway.notifications.delete(caller, notification_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
