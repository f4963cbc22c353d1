from typing import Optional

from fastapi import APIRouter, Depends, Response, status

from uniportal.access import CallerContext
from uniportal.api.deps import get_caller, get_gateway, get_idempotency_key
from uniportal.api.schemas import ProgramCreate, ProgramUpdate, UniversityCreate, UniversityUpdate
from uniportal.gateway import Gateway

router = APIRouter(tags=["catalog"])


@router.get("/universities")
def list_universities(caller: CallerContext = Depends(get_caller), gateway: Gateway = Depends(get_gateway)):
    return gateway.universities.list_all(caller)


@router.post("/universities", status_code=status.HTTP_201_CREATED)
def create_university(
    payload: UniversityCreate,
    caller: CallerContext = Depends(get_caller),
    gateway: Gateway = Depends(get_gateway),
    idempotency_key: Optional[str] = Depends(get_idempotency_key),
):
    return gateway.universities.create(caller, payload.fields(), idempotency_key=idempotency_key)


@router.patch("/universities/{university_id}")
def update_university(
    university_id: str,
    payload: UniversityUpdate,
    caller: CallerContext = Depends(get_caller),
    gateway: Gateway = Depends(get_gateway),
):
    return gateway.universities.update(caller, university_id, payload.fields())


@router.delete("/universities/{university_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_university(
    university_id: str,
    caller: CallerContext = Depends(get_caller),
    gateway: Gateway = Depends(get_gateway),
):
    gateway.universities.delete(caller, university_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/programs")
def list_programs(caller: CallerContext = Depends(get_caller), gateway: Gateway = Depends(get_gateway)):
    return gateway.programs.list_all(caller)


@router.post("/programs", status_code=status.HTTP_201_CREATED)
def create_program(
    payload: ProgramCreate,
    caller: CallerContext = Depends(get_caller),
    gateway: Gateway = Depends(get_gateway),
    idempotency_key: Optional[str] = Depends(get_idempotency_key),
):
    return gateway.programs.create(caller, payload.fields(), idempotency_key=idempotency_key)


@router.patch("/programs/{program_id}")
def update_program(
    program_id: str,
    payload: ProgramUpdate,
    caller: CallerContext = Depends(get_caller),
    gateway: Gateway = Depends(get_gateway),
):
    return gateway.programs.update(caller, program_id, payload.fields())


@router.delete("/programs/{program_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_program(
    program_id: str,
    caller: CallerContext = Depends(get_caller),
    gateway: Gateway = Depends(get_gateway),
):
    gateway.programs.delete(caller, program_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
