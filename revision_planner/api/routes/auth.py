from typing import List

from fastapi import APIRouter, Depends, Header, HTTPException, status
from pydantic import BaseModel, EmailStr, Field

from revision_planner.errors import PreconditionFailed
from revision_planner.services.user_store import UserStoreProtocol, get_user_store
from revision_planner.utils.planner_utils import is_active_subscriber, to_payload

router = APIRouter(prefix="/auth", tags=["auth"])


class SignupRequest(BaseModel):
    firstname: str = Field(..., min_length=2, max_length=80)
    lastname: str | None = Field(default=None, max_length=80)
    email: EmailStr
    password: str = Field(..., min_length=6, max_length=64)
    standard: int | None = Field(default=None, ge=1, le=12)
    subjects: List[str] = Field(default_factory=list)


class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=6, max_length=64)


def _parse_token(authorization: str | None = Header(default=None)) -> str:
    if not authorization:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing Authorization header.")
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid Authorization header.")
    return token


def _current_user(
    token: str = Depends(_parse_token),
    users: UserStoreProtocol = Depends(get_user_store),
):
    user = users.resolve_token(token)
    if not user:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Session expired. Please log in again.")
    return user, token


def _active_subscriber(context=Depends(_current_user)):
    user, _ = context
    if not is_active_subscriber(user):
        raise PreconditionFailed("Not subscribed", status_code=status.HTTP_403_FORBIDDEN)
    return user


@router.post("/signup")
def signup_user(payload: SignupRequest, users: UserStoreProtocol = Depends(get_user_store)):
    try:
        user = users.create_user(
            firstname=payload.firstname,
            lastname=payload.lastname,
            email=payload.email,
            password=payload.password,
            standard=payload.standard,
            subjects=payload.subjects,
        )
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc

    token = users.create_session(user_id=user["id"])
    return {"success": True, "token": token, "user": to_payload(users.public_view(user))}


@router.post("/login")
def login_user(payload: LoginRequest, users: UserStoreProtocol = Depends(get_user_store)):
    try:
        user = users.verify_credentials(email=payload.email, password=payload.password)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc

    token = users.create_session(user_id=user["id"])
    return {"success": True, "token": token, "user": to_payload(users.public_view(user))}


@router.get("/session")
def fetch_session(context=Depends(_current_user), users: UserStoreProtocol = Depends(get_user_store)):
    user, _ = context
    return {"success": True, "user": to_payload(users.public_view(user))}


@router.post("/logout")
def logout_user(context=Depends(_current_user), users: UserStoreProtocol = Depends(get_user_store)):
    _, token = context
    users.drop_session(token)
    return {"success": True, "message": "Logged out."}
