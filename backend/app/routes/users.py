from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.orm import Session

from ..database import get_db
from ..pagination import PageParams, page_params, paginate
from ..rbac import get_workspace_user, require_admin
from .. import models, schemas, auth, audit

router = APIRouter(prefix="/api/users", tags=["users"])


@router.get("/me", response_model=schemas.UserOut)
async def read_profile(current_user: models.User = Depends(auth.get_current_user)):
    return current_user


@router.put("/me", response_model=schemas.UserOut)
async def update_profile(
    request: Request,
    update: schemas.UserUpdate,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(auth.get_current_user),
):
    if update.full_name is not None:
        current_user.full_name = update.full_name
    db.add(current_user)
    audit.log_action(db, current_user, "update_profile", "user", current_user.id, request=request)
    db.refresh(current_user)
    return current_user


@router.get("", response_model=schemas.UserPage)
async def list_users(
    page: PageParams = Depends(page_params),
    db: Session = Depends(get_db),
    current_user: models.User = Depends(auth.get_current_user),
):
    query = db.query(models.User).filter(
        models.User.workspace_id == current_user.workspace_id,
        models.User.deleted_at.is_(None),
        models.User.is_active.is_(True),
    )
    return paginate(query, page, models.User.created_at.desc(), models.User.id.desc())


@router.post("", response_model=schemas.UserOut, status_code=201)
async def create_user(
    request: Request,
    data: schemas.UserCreate,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(auth.get_current_user),
):
    require_admin(current_user)
    if db.query(models.User).filter(models.User.email == data.email).first():
        raise HTTPException(status_code=400, detail="Email already registered")
    user = models.User(
        workspace_id=current_user.workspace_id,
        email=data.email,
        hashed_password=auth.get_password_hash(data.password),
        full_name=data.full_name,
        role=data.role,
    )
    db.add(user)
    db.flush()
    audit.log_action(
        db, current_user, "create_user", "user", user.id, {"role": user.role}, request=request
    )
    db.refresh(user)
    return user


@router.patch("/{user_id}/role", response_model=schemas.UserOut)
async def update_role(
    user_id: UUID,
    request: Request,
    data: schemas.UserRoleUpdate,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(auth.get_current_user),
):
    require_admin(current_user)
    user = get_workspace_user(db, current_user, user_id)
    previous = user.role
    user.role = data.role
    audit.log_action(
        db, current_user, "update_user_role", "user", user.id,
        {"from": previous, "to": data.role}, request=request,
    )
    db.refresh(user)
    return user


@router.delete("/{user_id}", status_code=204)
async def delete_user(
    user_id: UUID,
    request: Request,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(auth.get_current_user),
):
    require_admin(current_user)
    if user_id == current_user.id:
        raise HTTPException(status_code=400, detail="Cannot delete your own account")
    user = get_workspace_user(db, current_user, user_id)
    user.deleted_at = models.utcnow()
    user.is_active = False
    audit.log_action(db, current_user, "delete_user", "user", user.id, request=request)
