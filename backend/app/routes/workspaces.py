from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.orm import Session

from ..database import get_db
from ..auth import get_current_user
from ..rbac import require_admin
from .. import models, schemas, audit

# purpose: expose the caller's workspace profile and usage counts
# status: active

router = APIRouter(prefix="/api/workspaces", tags=["workspaces"])


def _summary(db: Session, workspace: models.Workspace) -> dict:
    def live(model, column):
        return (
            db.query(model)
            .filter(column == workspace.id, model.deleted_at.is_(None))
            .count()
        )

    data = schemas.WorkspaceOut.model_validate(workspace).model_dump()
    data.update(
        user_count=live(models.User, models.User.workspace_id),
        project_count=live(models.Project, models.Project.workspace_id),
        sample_count=live(models.Sample, models.Sample.workspace_id),
        organization_count=live(models.Organization, models.Organization.workspace_id),
    )
    return data


def _load(db: Session, workspace_id: UUID) -> models.Workspace:
    workspace = (
        db.query(models.Workspace)
        .filter(models.Workspace.id == workspace_id, models.Workspace.deleted_at.is_(None))
        .first()
    )
    if not workspace:
        raise HTTPException(status_code=404, detail="Workspace not found")
    return workspace


@router.get("/current", response_model=schemas.WorkspaceSummary)
async def current_workspace(
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    return _summary(db, _load(db, current_user.workspace_id))


@router.patch("/current", response_model=schemas.WorkspaceSummary)
async def update_current_workspace(
    request: Request,
    data: schemas.WorkspaceUpdate,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    require_admin(current_user)
    workspace = _load(db, current_user.workspace_id)
    changes = data.model_dump(exclude_unset=True)
    for key, value in changes.items():
        if value is None and key in ("name", "type"):
            continue
        setattr(workspace, key, value)
    audit.log_action(
        db, current_user, "update_workspace", "workspace", workspace.id,
        {"fields": sorted(changes)}, request=request,
    )
    db.refresh(workspace)
    return _summary(db, workspace)


@router.get("/{workspace_id}", response_model=schemas.WorkspaceSummary)
async def get_workspace(
    workspace_id: UUID,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    if workspace_id != current_user.workspace_id:
        raise HTTPException(status_code=404, detail="Workspace not found")
    return _summary(db, _load(db, workspace_id))
