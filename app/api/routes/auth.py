from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.security import OAuth2PasswordRequestForm
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app import models
from app.api.deps import get_current_user, request_context
from app.database import get_db, unit_of_work
from app.schemas import RegisterRequest, Token, UserRead
from app.services import users as user_service
from app.services.audit import audit_event
from app.services.auth import create_access_token

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/token", response_model=Token)
def login_for_access_token(
    request: Request,
    form_data: OAuth2PasswordRequestForm = Depends(),  # noqa: B008
    db: Session = Depends(get_db),  # noqa: B008
):
    try:
        user = user_service.authenticate(db, form_data.username, form_data.password)
    except SQLAlchemyError:
        audit_event("auth.login_db_error", None, {"email": form_data.username}, **request_context(request))
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Database unavailable. Please try again shortly.",
        )
    if not user:
        audit_event("auth.login_failed", None, {"email": form_data.username}, **request_context(request))
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED, detail="Incorrect email or password"
        )
    if not user.active:
        audit_event(
            "auth.login_inactive",
            user.id,
            {"email": user.email, "status": user.status.value},
            **request_context(request),
        )
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Account not approved")

    access_token = create_access_token(user.email, role=user.role.value)
    with unit_of_work(db):
        audit_event(
            "auth.login_success", user.id, {"email": user.email}, db=db, **request_context(request)
        )
    return Token(access_token=access_token)


@router.get("/me", response_model=UserRead)
def read_current_user(current_user: models.User = Depends(get_current_user)):  # noqa: B008
    return current_user


@router.post("/register", response_model=UserRead, status_code=status.HTTP_201_CREATED)
def register(
    payload: RegisterRequest,
    db: Session = Depends(get_db),  # noqa: B008
):
    # Public sign-up never grants a role; accounts wait for admin review.
    with unit_of_work(db):
        user = user_service.register_user(
            db,
            email=payload.email,
            name=payload.name,
            password=payload.password,
            wants_vip=payload.wants_vip,
            account_type=payload.account_type,
            language=payload.language,
        )
    return user
