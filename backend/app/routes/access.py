from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy.orm import Session

from ..database import get_db
from ..auth import get_current_user
from ..rbac import MANAGE_ROLES, check_workspace_role
from ..services import access
from .. import models, schemas, audit

# purpose: grant, inspect and revoke per-user access to individual workspace objects
# status: active
# depends_on: backend.app.services.access

router = APIRouter(prefix="/api/access", tags=["access"])


def _not_found(exc: access.AccessNotFound) -> HTTPException:
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))


def _visible_object(db: Session, user: models.User, object_type: str, object_id: UUID) -> None:
    try:
        access.ensure_object(db, user.workspace_id, object_type, object_id)
    except access.AccessNotFound as exc:
        raise _not_found(exc) from exc


def _load_grant(
    db: Session, user: models.User, object_type: str, object_id: UUID, user_id: UUID
) -> models.ObjectAccess:
    try:
        return access.get_grant(db, user.workspace_id, object_type, object_id, user_id)
    except access.AccessNotFound as exc:
        raise _not_found(exc) from exc


@router.post("/grant", response_model=schemas.AccessGrantOut, status_code=201)
async def grant_access(
    request: Request,
    data: schemas.AccessGrantCreate,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    check_workspace_role(current_user, MANAGE_ROLES)
    try:
        grant = access.grant_access(db, current_user, data)
    except access.AccessNotFound as exc:
        db.rollback()
        raise _not_found(exc) from exc
    except access.AccessAlreadyExists as exc:
        db.rollback()
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
    audit.log_action(
        db, current_user, "grant_access", data.object_type, data.object_id,
        {"user_id": str(data.user_id), "access_level": data.access_level}, request=request,
    )
    db.refresh(grant)
    return grant


@router.get("/{object_type}/{object_id}", response_model=list[schemas.AccessGrantOut])
async def list_grants(
    object_type: schemas.ObjectType,
    object_id: UUID,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    _visible_object(db, current_user, object_type, object_id)
    return access.list_grants(db, current_user.workspace_id, object_type, object_id)


@router.get("/{object_type}/{object_id}/me", response_model=schemas.AccessLookupOut)
async def my_access(
    object_type: schemas.ObjectType,
    object_id: UUID,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    _visible_object(db, current_user, object_type, object_id)
    return {
        "object_type": object_type,
        "object_id": object_id,
        "access_level": access.access_level_for(db, current_user, object_type, object_id),
    }


@router.patch("/{object_type}/{object_id}/{user_id}", response_model=schemas.AccessGrantOut)
async def update_grant(
    object_type: schemas.ObjectType,
    object_id: UUID,
    user_id: UUID,
    request: Request,
    data: schemas.AccessGrantUpdate,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    check_workspace_role(current_user, MANAGE_ROLES)
    grant = _load_grant(db, current_user, object_type, object_id, user_id)
    grant.access_level = data.access_level
    audit.log_action(
        db, current_user, "update_access", object_type, object_id,
        {"user_id": str(user_id), "access_level": data.access_level}, request=request,
    )
    db.refresh(grant)
    return grant


@router.delete("/{object_type}/{object_id}/{user_id}", status_code=204)
async def revoke_access(
    object_type: schemas.ObjectType,
    object_id: UUID,
    user_id: UUID,
    request: Request,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    check_workspace_role(current_user, MANAGE_ROLES)
    grant = _load_grant(db, current_user, object_type, object_id, user_id)
    access.revoke_access(db, grant)
    audit.log_action(
        db, current_user, "revoke_access", object_type, object_id,
        {"user_id": str(user_id)}, request=request,
    )
