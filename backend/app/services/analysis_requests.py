"""Analysis requests exchanged between lab workspaces.

A requesting workspace asks a CRO or analyzer workspace to run an analysis on
one of its samples. The receiving lab accepts or rejects the request and then
reports progress; both sides are notified as the request moves along.
"""

from __future__ import annotations

import logging
from uuid import UUID

import sqlalchemy as sa
from sqlalchemy.orm import Session

from .. import models, schemas
from ..rbac import MANAGE_ROLES
from . import notifications, samples

# purpose: route analysis work from sample owners to external lab workspaces
# status: active
# depends_on: backend.app.models.AnalysisRequest, backend.app.services.notifications

logger = logging.getLogger(__name__)

LAB_WORKSPACE_TYPES = ("cro", "analyzer")
STATUS_TRANSITIONS = {
    "in_progress": {"accepted"},
    "completed": {"accepted", "in_progress"},
}


class AnalysisRequestError(RuntimeError):
    """Base error for cross-lab analysis requests."""


class AnalysisRequestNotFound(AnalysisRequestError):
    """Raised when a request, target lab or referenced row is not visible."""


class InvalidAnalysisRequest(AnalysisRequestError):
    """Raised when a request payload or state transition is not allowed."""


class AnalysisRequestForbidden(AnalysisRequestError):
    """Raised when the caller's side or role may not perform the action."""


def _involving(db: Session, workspace_id: UUID):
    return db.query(models.AnalysisRequest).filter(
        sa.or_(
            models.AnalysisRequest.from_workspace_id == workspace_id,
            models.AnalysisRequest.to_workspace_id == workspace_id,
        )
    )


def incoming(db: Session, workspace_id: UUID):
    return db.query(models.AnalysisRequest).filter(
        models.AnalysisRequest.to_workspace_id == workspace_id
    )


def outgoing(db: Session, workspace_id: UUID):
    return db.query(models.AnalysisRequest).filter(
        models.AnalysisRequest.from_workspace_id == workspace_id
    )


def get_request(db: Session, workspace_id: UUID, request_id: UUID) -> models.AnalysisRequest:
    row = _involving(db, workspace_id).filter(models.AnalysisRequest.id == request_id).first()
    if not row:
        raise AnalysisRequestNotFound("Analysis request not found")
    return row


def _lab_workspace(db: Session, workspace_id: UUID) -> models.Workspace:
    workspace = (
        db.query(models.Workspace)
        .filter(
            models.Workspace.id == workspace_id,
            models.Workspace.is_active.is_(True),
            models.Workspace.deleted_at.is_(None),
        )
        .first()
    )
    if not workspace:
        raise AnalysisRequestNotFound("Target lab not found")
    if workspace.type not in LAB_WORKSPACE_TYPES:
        raise InvalidAnalysisRequest("Target workspace must be a CRO or analyzer lab")
    return workspace


def _lab_managers(db: Session, workspace_id: UUID) -> list[models.User]:
    return (
        db.query(models.User)
        .filter(
            models.User.workspace_id == workspace_id,
            models.User.role.in_(MANAGE_ROLES),
            models.User.is_active.is_(True),
            models.User.deleted_at.is_(None),
        )
        .all()
    )


def _requester(db: Session, request: models.AnalysisRequest) -> models.User | None:
    return (
        db.query(models.User)
        .filter(models.User.id == request.created_by, models.User.deleted_at.is_(None))
        .first()
    )


def _tell_requester(
    db: Session, request: models.AnalysisRequest, actor: models.User, title: str, message: str
) -> None:
    requester = _requester(db, request)
    if requester is not None:
        notifications.deliver(
            db,
            requester,
            actor,
            type_="analysis",
            title=title,
            message=message,
            metadata={"analysis_request_id": str(request.id)},
        )


def create_request(
    db: Session, user: models.User, payload: schemas.AnalysisRequestCreate
) -> models.AnalysisRequest:
    if payload.to_workspace_id == user.workspace_id:
        raise InvalidAnalysisRequest("Cannot send an analysis request to your own workspace")
    lab = _lab_workspace(db, payload.to_workspace_id)
    try:
        sample = samples.get_sample(db, user.workspace_id, payload.sample_id)
    except samples.SampleNotFound as exc:
        raise AnalysisRequestNotFound("Sample not found") from exc
    analysis_type = (
        db.query(models.AnalysisType)
        .filter(
            models.AnalysisType.id == payload.analysis_type_id,
            models.AnalysisType.is_active.is_(True),
        )
        .first()
    )
    if not analysis_type:
        raise AnalysisRequestNotFound("Analysis type not found or inactive")

    request = models.AnalysisRequest(
        from_workspace_id=user.workspace_id,
        to_workspace_id=lab.id,
        sample_id=sample.id,
        analysis_type_id=analysis_type.id,
        description=payload.description,
        methodology_requirements=payload.methodology_requirements,
        parameters=payload.parameters,
        priority=payload.priority,
        due_date=payload.due_date,
        estimated_duration=payload.estimated_duration,
        notes=payload.notes,
        created_by=user.id,
    )
    db.add(request)
    db.flush()
    for manager in _lab_managers(db, lab.id):
        notifications.deliver(
            db,
            manager,
            user,
            type_="analysis",
            title="New analysis request",
            message=f"{analysis_type.name} requested for sample {sample.sample_id}",
            priority=payload.priority,
            metadata={"analysis_request_id": str(request.id)},
        )
    db.flush()
    logger.info("Analysis request %s sent from %s to %s", request.id, user.workspace_id, lab.id)
    return request


def _require_receiving_manager(user: models.User, request: models.AnalysisRequest) -> None:
    if request.to_workspace_id != user.workspace_id:
        raise AnalysisRequestForbidden("Only the receiving lab can act on this request")
    if user.role not in MANAGE_ROLES:
        raise AnalysisRequestForbidden("Manager or admin role required")


def accept_request(
    db: Session,
    user: models.User,
    request: models.AnalysisRequest,
    payload: schemas.AnalysisRequestAccept,
) -> models.AnalysisRequest:
    _require_receiving_manager(user, request)
    if request.status != "pending":
        raise InvalidAnalysisRequest(f"Cannot accept request with status: {request.status}")
    if payload.assigned_to is not None:
        assignee = (
            db.query(models.User)
            .filter(
                models.User.id == payload.assigned_to,
                models.User.workspace_id == user.workspace_id,
                models.User.deleted_at.is_(None),
            )
            .first()
        )
        if not assignee:
            raise AnalysisRequestNotFound("Assigned user not found in workspace")
    request.status = "accepted"
    request.assigned_to = payload.assigned_to
    request.accepted_at = models.utcnow()
    # the sample now travels to another lab
    if request.sample.status == "created":
        request.sample.status = "shared"
    _tell_requester(
        db, request, user, "Analysis request accepted",
        f"{request.to_workspace_name} accepted your request for sample {request.sample_identifier}",
    )
    db.flush()
    logger.info("Analysis request %s accepted", request.id)
    return request


def reject_request(
    db: Session,
    user: models.User,
    request: models.AnalysisRequest,
    payload: schemas.AnalysisRequestReject,
) -> models.AnalysisRequest:
    _require_receiving_manager(user, request)
    if request.status != "pending":
        raise InvalidAnalysisRequest(f"Cannot reject request with status: {request.status}")
    request.status = "rejected"
    if payload.notes:
        request.notes = payload.notes
    _tell_requester(
        db, request, user, "Analysis request rejected",
        f"{request.to_workspace_name} rejected your request for sample {request.sample_identifier}",
    )
    db.flush()
    logger.info("Analysis request %s rejected", request.id)
    return request


def update_status(
    db: Session,
    user: models.User,
    request: models.AnalysisRequest,
    payload: schemas.AnalysisRequestStatusUpdate,
) -> models.AnalysisRequest:
    if request.to_workspace_id != user.workspace_id:
        raise AnalysisRequestForbidden("Only the receiving lab can act on this request")
    if request.assigned_to != user.id and user.role not in MANAGE_ROLES:
        raise AnalysisRequestForbidden("Only the assignee or a manager can update this request")
    if request.status not in STATUS_TRANSITIONS[payload.status]:
        raise InvalidAnalysisRequest(
            f"Cannot move request from {request.status} to {payload.status}"
        )
    request.status = payload.status
    if payload.notes:
        request.notes = payload.notes
    if payload.status == "completed":
        request.completed_at = models.utcnow()
        _tell_requester(
            db, request, user, "Analysis request completed",
            f"{request.to_workspace_name} completed the analysis of sample {request.sample_identifier}",
        )
    db.flush()
    return request


def cancel_request(
    db: Session, user: models.User, request: models.AnalysisRequest
) -> models.AnalysisRequest:
    if request.from_workspace_id != user.workspace_id:
        raise AnalysisRequestForbidden("Only the requesting workspace can cancel this request")
    if request.status != "pending":
        raise InvalidAnalysisRequest(f"Cannot cancel request with status: {request.status}")
    request.status = "cancelled"
    db.flush()
    return request
