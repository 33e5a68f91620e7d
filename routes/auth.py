from fastapi import APIRouter, Depends, status

from schemas import SessionRead, ProfileRead
from services.auth import SessionContext, get_session, sign_out

router = APIRouter(prefix="/auth", tags=["Auth"])


@router.get("/session", response_model=SessionRead)
def read_session(session: SessionContext = Depends(get_session)):
    """The current session and its cached profile"""
    profile = ProfileRead.model_validate(session.profile) if session.profile is not None else None
    return SessionRead(user_id=session.user_id, email=session.email, profile=profile)


@router.post("/sign-out", status_code=status.HTTP_204_NO_CONTENT)
def sign_out_session(session: SessionContext = Depends(get_session)):
    sign_out(session)
