from fastapi import APIRouter, Depends, HTTPException, Request
import logging
import os
import secrets
from sqlalchemy.orm import Session
from datetime import timedelta
from ..database import get_db
from .. import models, schemas, notify, audit
from ..auth import get_password_hash, verify_password, token_for_user, get_current_user
from ..services import organizations
from slowapi import Limiter
from slowapi.util import get_remote_address

logger = logging.getLogger(__name__)

limiter = Limiter(key_func=get_remote_address)
testing = os.getenv("TESTING") == "1"

RESET_TOKEN_TTL = timedelta(hours=1)


def rate_limit(limit: str):
    if testing:
        def wrapper(func):
            return func
        return wrapper
    return limiter.limit(limit)

router = APIRouter(prefix="/api/auth", tags=["auth"])


@router.post("/register", response_model=schemas.Token)
@rate_limit("5/minute")
async def register(request: Request, data: schemas.RegisterRequest, db: Session = Depends(get_db)):
    existing = db.query(models.User).filter(models.User.email == data.email).first()
    if existing:
        raise HTTPException(status_code=400, detail="Email already registered")
    workspace = models.Workspace(
        name=data.company_name,
        slug=organizations.generate_slug(data.company_name),
        type=data.workspace_type,
        email_domain=data.email.split("@", 1)[1].lower(),
    )
    db.add(workspace)
    db.flush()
    db.add(
        models.Organization(
            workspace_id=workspace.id,
            name=data.company_name,
            slug=organizations.generate_slug(data.company_name),
            type="client",
            contact_info={"email": data.email},
        )
    )
    db_user = models.User(
        workspace_id=workspace.id,
        email=data.email,
        hashed_password=get_password_hash(data.password),
        full_name=data.full_name,
        role="admin",
    )
    db.add(db_user)
    db.flush()
    audit.log_action(
        db, db_user, "register", "workspace", workspace.id,
        {"email": db_user.email}, request=request,
    )
    logger.info("Workspace %s registered", workspace.id)
    return schemas.Token(access_token=token_for_user(db_user))


@router.post("/login", response_model=schemas.Token)
@rate_limit("10/minute")
async def login(request: Request, data: schemas.LoginRequest, db: Session = Depends(get_db)):
    db_user = db.query(models.User).filter(models.User.email == data.email).first()
    if (
        not db_user
        or not verify_password(data.password, db_user.hashed_password)
        or not db_user.is_active
        or db_user.deleted_at is not None
    ):
        raise HTTPException(status_code=401, detail="Invalid credentials")
    audit.log_action(db, db_user, "login", "user", db_user.id, request=request)
    return schemas.Token(access_token=token_for_user(db_user))


@router.post("/change-password")
async def change_password(
    request: Request,
    data: schemas.ChangePasswordRequest,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    if not verify_password(data.current_password, current_user.hashed_password):
        raise HTTPException(status_code=400, detail="Current password is incorrect")
    current_user.hashed_password = get_password_hash(data.new_password)
    audit.log_action(db, current_user, "change_password", "user", current_user.id, request=request)
    return {"status": "password updated"}


@router.post("/request-password-reset")
async def request_password_reset(data: schemas.PasswordResetRequest, db: Session = Depends(get_db)):
    user = (
        db.query(models.User)
        .filter(models.User.email == data.email, models.User.deleted_at.is_(None))
        .first()
    )
    if user and user.is_active:
        token = secrets.token_urlsafe(32)
        db_token = models.PasswordResetToken(
            user_id=user.id,
            token=token,
            expires_at=models.utcnow() + RESET_TOKEN_TTL,
        )
        db.add(db_token)
        db.commit()
        notify.send_email(user.email, "Password Reset", f"Use this code to reset: {token}")
    return {"status": "sent"}


@router.post("/reset-password")
async def reset_password(data: schemas.PasswordResetConfirm, db: Session = Depends(get_db)):
    record = (
        db.query(models.PasswordResetToken)
        .filter(
            models.PasswordResetToken.token == data.token,
            models.PasswordResetToken.used.is_(False),
            models.PasswordResetToken.expires_at > models.utcnow(),
        )
        .first()
    )
    if not record:
        raise HTTPException(status_code=400, detail="Invalid or expired token")
    user = db.get(models.User, record.user_id)
    if not user or user.deleted_at is not None:
        raise HTTPException(status_code=400, detail="Invalid or expired token")
    user.hashed_password = get_password_hash(data.new_password)
    record.used = True
    audit.log_action(db, user, "reset_password", "user", user.id)
    return {"status": "password updated"}
