from fastapi import APIRouter, Depends

from uniportal.access import CallerContext
from uniportal.api.deps import get_caller, get_gateway
from uniportal.api.schemas import ProfileUpdate
from uniportal.gateway import Gateway

router = APIRouter(prefix="/profiles", tags=["profiles"])


@router.get("")
def list_profiles(caller: CallerContext = Depends(get_caller), gateway: Gateway = Depends(get_gateway)):
    return gateway.profiles.list(caller)


@router.get("/{profile_id}")
def get_profile(profile_id: str, caller: CallerContext = Depends(get_caller), gateway: Gateway = Depends(get_gateway)):
    return gateway.profiles.get(caller, profile_id)


@router.patch("/{profile_id}")
def update_profile(
    profile_id: str,
    payload: ProfileUpdate,
    caller: CallerContext = Depends(get_caller),
    gateway: Gateway = Depends(get_gateway),
):
    return gateway.profiles.update(caller, profile_id, payload.fields())
