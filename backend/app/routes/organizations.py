from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy.orm import Session

from ..database import get_db
from ..auth import get_current_user
from ..pagination import PageParams, page_params, paginate
from ..rbac import MANAGE_ROLES, check_workspace_role
from ..services import organizations
from .. import models, schemas, audit

# purpose: workspace organization registry (clients, CROs, analyzers, vendors)
# status: active
# depends_on: backend.app.services.organizations

router = APIRouter(prefix="/api/organizations", tags=["organizations"])


def _get_or_404(db: Session, user: models.User, org_id: UUID) -> models.Organization:
    try:
        return organizations.get_organization(db, user.workspace_id, org_id)
    except organizations.OrganizationNotFound as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc


@router.get("", response_model=schemas.OrganizationPage)
async def list_organizations(
    type: str | None = None,
    page: PageParams = Depends(page_params),
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    query = organizations.live_organizations(db, current_user.workspace_id)
    if type:
        query = query.filter(models.Organization.type == type)
    return paginate(query, page, models.Organization.name.asc(), models.Organization.id.asc())


@router.get("/{org_id}", response_model=schemas.OrganizationOut)
async def get_organization(
    org_id: UUID,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    return _get_or_404(db, current_user, org_id)


@router.post("", response_model=schemas.OrganizationOut, status_code=201)
async def create_organization(
    request: Request,
    data: schemas.OrganizationCreate,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    check_workspace_role(current_user, MANAGE_ROLES)
    org = organizations.create_organization(db, current_user.workspace_id, data)
    audit.log_action(
        db, current_user, "create_organization", "organization", org.id,
        {"name": org.name, "type": org.type}, request=request,
    )
    db.refresh(org)
    return org


@router.patch("/{org_id}", response_model=schemas.OrganizationOut)
async def update_organization(
    org_id: UUID,
    request: Request,
    data: schemas.OrganizationUpdate,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    check_workspace_role(current_user, MANAGE_ROLES)
    org = _get_or_404(db, current_user, org_id)
    organizations.update_organization(org, data)
    audit.log_action(
        db, current_user, "update_organization", "organization", org.id,
        {"fields": sorted(data.model_fields_set)}, request=request,
    )
    db.refresh(org)
    return org


@router.delete("/{org_id}", status_code=204)
async def delete_organization(
    org_id: UUID,
    request: Request,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    check_workspace_role(current_user, MANAGE_ROLES)
    org = _get_or_404(db, current_user, org_id)
    try:
        organizations.delete_organization(db, org)
    except organizations.OrganizationInUse as exc:
        db.rollback()
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
    audit.log_action(db, current_user, "delete_organization", "organization", org.id, request=request)
