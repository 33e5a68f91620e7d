from fastapi import APIRouter, Depends, File, UploadFile, status
from sqlalchemy.orm import Session

from models.Profile import Profile
from schemas import ProfileRead, ProfileUpdate, PushTokenUpdate
from database import get_db
from services.auth import SessionContext, get_session, cache_profile
from services.exceptions import ProfileNotFoundError, ValidationError
from services.storage import upload_file, file_extension

router = APIRouter(prefix="/profiles", tags=["Profiles"])


def _own_profile(db: Session, session: SessionContext) -> Profile:
    profile = db.query(Profile).filter(Profile.id == session.user_id).first()
    if not profile:
        raise ProfileNotFoundError("Profile not found")
    return profile


@router.get("/me", response_model=ProfileRead)
def get_my_profile(session: SessionContext = Depends(get_session), db: Session = Depends(get_db)):
    return _own_profile(db, session)


@router.patch("/me", response_model=ProfileRead)
def update_my_profile(
    profile_update: ProfileUpdate,
    session: SessionContext = Depends(get_session),
    db: Session = Depends(get_db),
):
    """
    Update the session user's profile (partial).
    """
    profile = _own_profile(db, session)

    update_data = profile_update.model_dump(exclude_unset=True)
    username = update_data.get("username")
    if username and username != profile.username:
        taken = db.query(Profile).filter(Profile.username == username, Profile.id != profile.id).first()
        if taken:
            raise ValidationError("Username already taken")

    for key, value in update_data.items():
        setattr(profile, key, value)

    db.commit()
    db.refresh(profile)
    cache_profile(profile)
    return profile


@router.post("/me/avatar", response_model=ProfileRead)
async def upload_avatar(
    file: UploadFile = File(...),
    session: SessionContext = Depends(get_session),
    db: Session = Depends(get_db),
):
    """Replace the avatar image (one file per user, overwritten on upload)."""
    profile = _own_profile(db, session)

    content = await file.read()
    ext = file_extension(file.filename, file.content_type)
    profile.avatar_url = upload_file("avatars", f"{session.user_id}/avatar.{ext}", content, file.content_type)

    db.commit()
    db.refresh(profile)
    cache_profile(profile)
    return profile


@router.put("/me/push-token", status_code=status.HTTP_200_OK)
def update_push_token(
    payload: PushTokenUpdate,
    session: SessionContext = Depends(get_session),
    db: Session = Depends(get_db),
):
    """Store the device token used for push notifications"""
    profile = _own_profile(db, session)
    profile.fcm_token = payload.fcm_token
    db.commit()
    return {"message": "Push token updated"}


@router.get("/{profile_id}", response_model=ProfileRead)
def get_profile(profile_id: str, db: Session = Depends(get_db)):
    profile = db.query(Profile).filter(Profile.id == profile_id).first()
    if not profile:
        raise ProfileNotFoundError("Profile not found")
    return profile
