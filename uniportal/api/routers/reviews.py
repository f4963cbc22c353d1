from typing import Optional

from fastapi import APIRouter, Depends, status

from uniportal.access import CallerContext
from uniportal.api.deps import get_caller, get_gateway, get_idempotency_key
from uniportal.api.schemas import ReviewCreate, ReviewUpdate
from uniportal.gateway import Gateway

router = APIRouter(tags=["reviews"])


@router.get("/reviews")
def list_reviews(caller: CallerContext = Depends(get_caller), gateway: Gateway = Depends(get_gateway)):
    return gateway.reviews.list_all(caller)


@router.get("/applications/{application_id}/reviews")
def list_application_reviews(
    application_id: str,
    caller: CallerContext = Depends(get_caller),
    gateway: Gateway = Depends(get_gateway),
):
    return gateway.reviews.list_by_application(caller, application_id)


@router.post("/reviews", status_code=status.HTTP_201_CREATED)
def create_review(
    payload: ReviewCreate,
    caller: CallerContext = Depends(get_caller),
    gateway: Gateway = Depends(get_gateway),
    idempotency_key: Optional[str] = Depends(get_idempotency_key),
):
    """Save a review; the application's status follows it in the same transaction."""
    return gateway.reviews.create(caller, payload.fields(), idempotency_key=idempotency_key)


@router.patch("/reviews/{review_id}")
def update_review(
    review_id: str,
    payload: ReviewUpdate,
    caller: CallerContext = Depends(get_caller),
    gateway: Gateway = Depends(get_gateway),
):
    return gateway.reviews.update(caller, review_id, payload.fields())
