from fastapi import APIRouter, Depends

from uniportal.access import CallerContext
from uniportal.api.deps import get_caller, get_gateway
from uniportal.gateway import Gateway

router = APIRouter(tags=["dashboard"])


@router.get("/dashboard")
def dashboard(caller: CallerContext = Depends(get_caller), gateway: Gateway = Depends(get_gateway)):
    if caller.is_admin:
        return gateway.dashboard.admin_summary(caller)
    return gateway.dashboard.student_summary(caller)
