from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from sqlalchemy.orm import Session

from ..database import get_db
from ..auth import get_current_user
from ..pagination import PageParams, page_params, paginate
from ..rbac import ensure_can_write
from ..services import batches
from .. import models, schemas, audit

# purpose: assemble derived samples into batches sent to executing labs
# status: active
# depends_on: backend.app.services.batches

router = APIRouter(prefix="/api/batches", tags=["batches"])


def _load_batch(db: Session, user: models.User, batch_id: UUID) -> models.Batch:
    try:
        return batches.get_batch(db, user.workspace_id, batch_id)
    except batches.BatchNotFound as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc


@router.get("", response_model=schemas.BatchPage)
async def list_batches(
    status_filter: str | None = Query(default=None, alias="status"),
    page: PageParams = Depends(page_params),
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    query = batches.visible_batches(db, current_user.workspace_id)
    if status_filter:
        query = query.filter(models.Batch.status == status_filter)
    return paginate(query, page, models.Batch.created_at.desc(), models.Batch.id.desc())


@router.post("", response_model=schemas.BatchOut, status_code=201)
async def create_batch(
    request: Request,
    data: schemas.BatchCreate,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    ensure_can_write(current_user)
    try:
        batch = batches.create_batch(db, current_user, data)
    except batches.InvalidBatch as exc:
        db.rollback()
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    audit.log_action(
        db, current_user, "create_batch", "batch", batch.id,
        {"batch_id": batch.batch_id, "sample_count": batch.sample_count}, request=request,
    )
    db.refresh(batch)
    return batch


@router.get("/{batch_id}", response_model=schemas.BatchOut)
async def get_batch(
    batch_id: UUID,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    return _load_batch(db, current_user, batch_id)


@router.patch("/{batch_id}", response_model=schemas.BatchOut)
async def update_batch(
    batch_id: UUID,
    request: Request,
    data: schemas.BatchUpdate,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    ensure_can_write(current_user)
    batch = _load_batch(db, current_user, batch_id)
    try:
        batches.update_batch(db, batch, data)
    except batches.InvalidBatch as exc:
        db.rollback()
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    audit.log_action(
        db, current_user, "update_batch", "batch", batch.id,
        {"fields": sorted(data.model_fields_set), "status": batch.status}, request=request,
    )
    db.refresh(batch)
    return batch


@router.delete("/{batch_id}", status_code=204)
async def delete_batch(
    batch_id: UUID,
    request: Request,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    ensure_can_write(current_user)
    batch = _load_batch(db, current_user, batch_id)
    batches.delete_batch(batch)
    audit.log_action(db, current_user, "delete_batch", "batch", batch.id, request=request)


@router.get("/{batch_id}/items", response_model=list[schemas.BatchItemOut])
async def list_batch_items(
    batch_id: UUID,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    return _load_batch(db, current_user, batch_id).items


@router.post("/{batch_id}/items", response_model=list[schemas.BatchItemOut], status_code=201)
async def add_batch_items(
    batch_id: UUID,
    request: Request,
    data: schemas.BatchItemsAdd,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    ensure_can_write(current_user)
    batch = _load_batch(db, current_user, batch_id)
    try:
        items = batches.add_items(db, batch, data.sample_ids)
    except batches.BatchItemConflict as exc:
        db.rollback()
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
    except batches.InvalidBatch as exc:
        db.rollback()
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    audit.log_action(
        db, current_user, "add_batch_items", "batch", batch.id,
        {"derived_ids": [str(i) for i in data.sample_ids]}, request=request,
    )
    for item in items:
        db.refresh(item)
    return items


@router.delete("/{batch_id}/items/{derived_id}", status_code=204)
async def remove_batch_item(
    batch_id: UUID,
    derived_id: UUID,
    request: Request,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    ensure_can_write(current_user)
    batch = _load_batch(db, current_user, batch_id)
    try:
        batches.remove_item(db, batch, derived_id)
    except batches.BatchNotFound as exc:
        db.rollback()
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    audit.log_action(
        db, current_user, "remove_batch_item", "batch", batch.id,
        {"derived_id": str(derived_id)}, request=request,
    )
