from fastapi import APIRouter, Depends, status

from uniportal.api.deps import get_sessions, get_token
from uniportal.api.schemas import SessionOut, SignInIn, SignUpIn
from uniportal.auth import SessionProvider

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/signup", status_code=status.HTTP_201_CREATED)
def sign_up(payload: SignUpIn, sessions: SessionProvider = Depends(get_sessions)):
    caller = sessions.sign_up(payload.email, payload.password, payload.full_name, payload.phone)
    return {"profile_id": caller.profile_id, "role": caller.role}


@router.post("/signin", response_model=SessionOut)
def sign_in(payload: SignInIn, sessions: SessionProvider = Depends(get_sessions)):
    token, caller = sessions.sign_in(payload.email, payload.password)
    return SessionOut(access_token=token, profile_id=caller.profile_id, role=caller.role)


@router.post("/signout", status_code=status.HTTP_204_NO_CONTENT)
def sign_out(token: str | None = Depends(get_token), sessions: SessionProvider = Depends(get_sessions)):
    if token:
        sessions.sign_out(token)
