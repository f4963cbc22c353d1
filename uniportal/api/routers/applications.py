from typing import Optional

from fastapi import APIRouter, Depends, Response, status

from uniportal.access import CallerContext
from uniportal.api.deps import get_caller, get_gateway, get_idempotency_key
from uniportal.api.schemas import ApplicationCreate, ApplicationUpdate
from uniportal.gateway import Gateway

router = APIRouter(tags=["applications"])


@router.get("/applications")
def list_applications(caller: CallerContext = Depends(get_caller), gateway: Gateway = Depends(get_gateway)):
    # Admins see every application, students their own.
    if caller.is_admin:
        return gateway.applications.list_all(caller)
    return gateway.applications.list_by_student(caller, caller.profile_id)


@router.get("/students/{student_id}/applications")
def list_student_applications(
    student_id: str,
    caller: CallerContext = Depends(get_caller),
    gateway: Gateway = Depends(get_gateway),
):
    return gateway.applications.list_by_student(caller, student_id)


@router.get("/applications/{application_id}")
def get_application(
    application_id: str,
    caller: CallerContext = Depends(get_caller),
    gateway: Gateway = Depends(get_gateway),
):
    return gateway.applications.get(caller, application_id)


@router.post("/applications", status_code=status.HTTP_201_CREATED)
def create_application(
    payload: ApplicationCreate,
    caller: CallerContext = Depends(get_caller),
    gateway: Gateway = Depends(get_gateway),
    idempotency_key: Optional[str] = Depends(get_idempotency_key),
):
    return gateway.applications.create(caller, payload.fields(), idempotency_key=idempotency_key)


@router.patch("/applications/{application_id}")
def update_application(
    application_id: str,
    payload: ApplicationUpdate,
    caller: CallerContext = Depends(get_caller),
    gateway: Gateway = Depends(get_gateway),
):
    return gateway.applications.update(caller, application_id, payload.fields())


@router.delete("/applications/{application_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_application(
    application_id: str,
    caller: CallerContext = Depends(get_caller),
    gateway: Gateway = Depends(get_gateway),
):
    gateway.applications.delete(caller, application_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
