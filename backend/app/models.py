import uuid
import sqlalchemy as sa
from sqlalchemy import (
    Column,
    String,
    Boolean,
    DateTime,
    ForeignKey,
    JSON,
    Integer,
    BigInteger,
    Text,
    event,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship
from datetime import datetime, timezone

from .database import Base


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Workspace(Base):
    __tablename__ = "workspaces"
    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name = Column(String(255), nullable=False)
    slug = Column(String(64), unique=True, nullable=False)
    type = Column(String, default="research", nullable=False)  # research, cro, analyzer, pharma
    email_domain = Column(String(255))
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)
    deleted_at = Column(DateTime, nullable=True)

    users = relationship("User", back_populates="workspace")


class Organization(Base):
    __tablename__ = "organizations"
    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    workspace_id = Column(UUID(as_uuid=True), ForeignKey("workspaces.id"), index=True)
    name = Column(String, nullable=False)
    slug = Column(String(64), unique=True, nullable=False)
    type = Column(String, nullable=False)  # client, cro, analyzer, vendor, pharma
    is_platform_workspace = Column(Boolean, default=False, nullable=False)
    contact_info = Column(JSON, default=dict)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)
    deleted_at = Column(DateTime, nullable=True)


class User(Base):
    __tablename__ = "users"
    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    workspace_id = Column(UUID(as_uuid=True), ForeignKey("workspaces.id"), nullable=False, index=True)
    email = Column(String, unique=True, nullable=False)
    hashed_password = Column(String, nullable=False)
    full_name = Column(String)
    role = Column(String, default="scientist", nullable=False)  # admin, manager, scientist, viewer
    is_active = Column(Boolean, default=True, nullable=False)
    last_digest = Column(DateTime, default=utcnow)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)
    deleted_at = Column(DateTime, nullable=True)

    workspace = relationship("Workspace", back_populates="users")
    notifications = relationship(
        "Notification",
        back_populates="user",
        cascade="all, delete-orphan",
        foreign_keys="Notification.user_id",
    )
    notification_preference = relationship(
        "NotificationPreference", back_populates="user", uselist=False
    )

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"


class PasswordResetToken(Base):
    __tablename__ = "password_reset_tokens"
    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(UUID(as_uuid=True), ForeignKey("users.id"))
    token = Column(String, unique=True, nullable=False, index=True)
    expires_at = Column(DateTime, nullable=False)
    used = Column(Boolean, default=False)
    created_at = Column(DateTime, default=utcnow)


class Project(Base):
    __tablename__ = "projects"
    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    workspace_id = Column(UUID(as_uuid=True), ForeignKey("workspaces.id"), nullable=False, index=True)
    client_org_id = Column(UUID(as_uuid=True), ForeignKey("organizations.id"), nullable=False)
    executing_org_id = Column(UUID(as_uuid=True), ForeignKey("organizations.id"), nullable=False)
    name = Column(String(255), nullable=False)
    description = Column(Text)
    status = Column(String, default="active", nullable=False)  # active, completed, archived
    workflow_mode = Column(String, default="trial_first", nullable=False)  # trial_first, analysis_first
    created_by = Column(UUID(as_uuid=True), ForeignKey("users.id"))
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)
    deleted_at = Column(DateTime, nullable=True)

    client_org = relationship("Organization", foreign_keys=[client_org_id])
    executing_org = relationship("Organization", foreign_keys=[executing_org_id])

    @property
    def client_org_name(self) -> str | None:
        return self.client_org.name if self.client_org else None

    @property
    def executing_org_name(self) -> str | None:
        return self.executing_org.name if self.executing_org else None


class ProjectStage(Base):
    __tablename__ = "project_stages"
    __table_args__ = (
        sa.UniqueConstraint("project_id", "order_index"),
    )
    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    project_id = Column(UUID(as_uuid=True), ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True)
    owner_workspace_id = Column(UUID(as_uuid=True), ForeignKey("workspaces.id"), nullable=False)
    name = Column(String(255), nullable=False)
    order_index = Column(Integer, nullable=False)
    status = Column(String, default="planned", nullable=False)  # planned, active, completed, archived
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)


class Trial(Base):
    __tablename__ = "trials"
    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    project_id = Column(UUID(as_uuid=True), ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True)
    workspace_id = Column(UUID(as_uuid=True), ForeignKey("workspaces.id"), nullable=False)
    name = Column(String(255), nullable=False)
    objective = Column(Text)
    parameters = Column(Text)
    measurements = Column("parameters_json", JSON)
    equipment = Column(Text)
    notes = Column(Text)
    status = Column(String, default="planned", nullable=False)  # planned, running, completed
    performed_at = Column(DateTime)
    created_by = Column(UUID(as_uuid=True), ForeignKey("users.id"))
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)
    deleted_at = Column(DateTime, nullable=True)


class TrialParameterTemplate(Base):
    __tablename__ = "trial_parameter_templates"
    __table_args__ = (
        sa.UniqueConstraint("project_id", "workspace_id"),
    )
    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    project_id = Column(UUID(as_uuid=True), ForeignKey("projects.id", ondelete="CASCADE"), nullable=False)
    workspace_id = Column(UUID(as_uuid=True), ForeignKey("workspaces.id"), nullable=False)
    columns = Column(JSON, default=list)
    created_by = Column(UUID(as_uuid=True), ForeignKey("users.id"))
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)


class Sample(Base):
    __tablename__ = "samples"
    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    workspace_id = Column(UUID(as_uuid=True), ForeignKey("workspaces.id"), nullable=False, index=True)
    project_id = Column(UUID(as_uuid=True), ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True)
    trial_id = Column(UUID(as_uuid=True), ForeignKey("trials.id"), nullable=True)
    stage_id = Column(UUID(as_uuid=True), ForeignKey("project_stages.id"), nullable=True)
    sample_id = Column(String(100), nullable=False)
    type = Column(String(50))
    description = Column(Text)
    meta = Column("metadata", JSON, default=dict)
    status = Column(String, default="created", nullable=False)  # created, shared, processing, analyzed, completed
    created_by = Column(UUID(as_uuid=True), ForeignKey("users.id"))
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)
    deleted_at = Column(DateTime, nullable=True)

    project = relationship("Project")

    @property
    def project_name(self) -> str | None:
        return self.project.name if self.project else None


class DerivedSample(Base):
    __tablename__ = "derived_samples"
    __table_args__ = (
        sa.CheckConstraint("depth >= 0 AND depth <= 2", name="ck_derived_samples_depth"),
    )
    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    owner_workspace_id = Column(UUID(as_uuid=True), ForeignKey("workspaces.id"), nullable=False, index=True)
    root_sample_id = Column(UUID(as_uuid=True), ForeignKey("samples.id", ondelete="CASCADE"), nullable=False, index=True)
    parent_id = Column(UUID(as_uuid=True), ForeignKey("derived_samples.id", ondelete="CASCADE"), nullable=True, index=True)
    stage_id = Column(UUID(as_uuid=True), ForeignKey("project_stages.id"), nullable=True)
    derived_id = Column(String(100), nullable=False)
    process_notes = Column(Text)
    meta = Column("metadata", JSON, default=dict)
    depth = Column(Integer, nullable=False, default=0)
    status = Column(String, default="created", nullable=False)
    execution_mode = Column(String, default="platform", nullable=False)  # platform, external
    executed_by_org_id = Column(UUID(as_uuid=True), ForeignKey("organizations.id"), nullable=False)
    external_reference = Column(Text)
    performed_at = Column(DateTime)
    created_by = Column(UUID(as_uuid=True), ForeignKey("users.id"))
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)
    deleted_at = Column(DateTime, nullable=True)

    parent = relationship("DerivedSample", remote_side=[id])

    @property
    def derivation_method(self) -> str | None:
        return (self.meta or {}).get("derivation_method")


class Batch(Base):
    __tablename__ = "batches"
    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    workspace_id = Column(UUID(as_uuid=True), ForeignKey("workspaces.id"), nullable=False, index=True)
    original_workspace_id = Column(UUID(as_uuid=True), ForeignKey("workspaces.id"))
    batch_id = Column(String(100), nullable=False)
    description = Column(Text)
    parameters = Column(JSON, default=dict)
    status = Column(String, default="created", nullable=False)  # created, ready, sent, in_progress, completed
    execution_mode = Column(String, default="platform", nullable=False)
    executed_by_org_id = Column(UUID(as_uuid=True), ForeignKey("organizations.id"), nullable=False)
    external_reference = Column(Text)
    performed_at = Column(DateTime)
    created_by = Column(UUID(as_uuid=True), ForeignKey("users.id"))
    sent_at = Column(DateTime)
    completed_at = Column(DateTime)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)
    deleted_at = Column(DateTime, nullable=True)

    items = relationship(
        "BatchItem",
        back_populates="batch",
        cascade="all, delete-orphan",
        order_by="BatchItem.sequence",
    )

    @property
    def sample_count(self) -> int:
        return len(self.items)


class BatchItem(Base):
    __tablename__ = "batch_items"
    __table_args__ = (
        sa.UniqueConstraint("batch_id", "derived_id"),
    )
    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    batch_id = Column(UUID(as_uuid=True), ForeignKey("batches.id", ondelete="CASCADE"), nullable=False, index=True)
    derived_id = Column(UUID(as_uuid=True), ForeignKey("derived_samples.id", ondelete="CASCADE"), nullable=False)
    sequence = Column(Integer, nullable=False)
    created_at = Column(DateTime, default=utcnow)

    batch = relationship("Batch", back_populates="items")
    derived_sample = relationship("DerivedSample")


class AnalysisType(Base):
    __tablename__ = "analysis_types"
    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name = Column(String(100), unique=True, nullable=False)
    description = Column(Text)
    category = Column(String(50))
    methods = Column(JSON, default=list)
    typical_duration = Column(String)
    equipment_required = Column(JSON, default=list)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)


class Analysis(Base):
    __tablename__ = "analyses"
    __table_args__ = (
        # one live authoritative analysis per batch
        sa.Index(
            "uq_analyses_batch_authoritative",
            "batch_id",
            unique=True,
            postgresql_where=sa.text("is_authoritative AND deleted_at IS NULL"),
            sqlite_where=sa.text("is_authoritative = 1 AND deleted_at IS NULL"),
        ),
    )
    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    workspace_id = Column(UUID(as_uuid=True), ForeignKey("workspaces.id"), nullable=False, index=True)
    batch_id = Column(UUID(as_uuid=True), ForeignKey("batches.id", ondelete="CASCADE"), nullable=False, index=True)
    analysis_type_id = Column(UUID(as_uuid=True), ForeignKey("analysis_types.id"), nullable=False)
    status = Column(String, default="pending", nullable=False)  # pending, in_progress, completed, failed
    results = Column(JSON, default=dict)
    file_path = Column(String(500))
    file_checksum = Column(String(64))
    file_size_bytes = Column(BigInteger)
    execution_mode = Column(String, default="platform", nullable=False)
    executed_by_org_id = Column(UUID(as_uuid=True), ForeignKey("organizations.id"), nullable=False)
    source_org_id = Column(UUID(as_uuid=True), ForeignKey("organizations.id"), nullable=False)
    external_reference = Column(Text)
    performed_at = Column(DateTime)
    uploaded_by = Column(UUID(as_uuid=True), ForeignKey("users.id"), nullable=False)
    uploaded_at = Column(DateTime, default=utcnow)
    is_authoritative = Column(Boolean, default=False, nullable=False)
    supersedes_id = Column(UUID(as_uuid=True), ForeignKey("analyses.id"), nullable=True, index=True)
    revision_reason = Column(Text)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)
    deleted_at = Column(DateTime, nullable=True)

    analysis_type = relationship("AnalysisType")

    @property
    def analysis_type_name(self) -> str | None:
        return self.analysis_type.name if self.analysis_type else None


class Notification(Base):
    __tablename__ = "notifications"
    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    workspace_id = Column(UUID(as_uuid=True), ForeignKey("workspaces.id"), nullable=False, index=True)
    user_id = Column(UUID(as_uuid=True), ForeignKey("users.id"), index=True)
    type = Column(String, default="info", nullable=False)  # info, system, project, sample, analysis, payment
    title = Column(String, nullable=False)
    message = Column(Text, nullable=False)
    priority = Column(String, default="medium", nullable=False)  # low, medium, high, urgent
    action_url = Column(String)
    action_label = Column(String)
    is_read = Column(Boolean, default=False, nullable=False)
    read_at = Column(DateTime)
    expires_at = Column(DateTime, nullable=True)
    meta = Column("metadata", JSON, default=dict)
    created_by = Column(UUID(as_uuid=True), ForeignKey("users.id"))
    created_at = Column(DateTime, default=utcnow)

    user = relationship("User", back_populates="notifications", foreign_keys=[user_id])


class NotificationPreference(Base):
    __tablename__ = "notification_preferences"
    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(UUID(as_uuid=True), ForeignKey("users.id"), unique=True, nullable=False)
    email_payment_reminders = Column(Boolean, default=True, nullable=False)
    email_project_updates = Column(Boolean, default=True, nullable=False)
    email_sample_notifications = Column(Boolean, default=True, nullable=False)
    email_system_announcements = Column(Boolean, default=True, nullable=False)
    in_app_notifications = Column(Boolean, default=True, nullable=False)
    quiet_hours_start = Column(sa.Time, nullable=True)
    quiet_hours_end = Column(sa.Time, nullable=True)
    quiet_hours_timezone = Column(String, nullable=True)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    user = relationship("User", back_populates="notification_preference")


class AnalysisRequest(Base):
    __tablename__ = "analysis_requests"
    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    from_workspace_id = Column(UUID(as_uuid=True), ForeignKey("workspaces.id"), nullable=False, index=True)
    to_workspace_id = Column(UUID(as_uuid=True), ForeignKey("workspaces.id"), nullable=False, index=True)
    sample_id = Column(UUID(as_uuid=True), ForeignKey("samples.id"), nullable=False)
    analysis_type_id = Column(UUID(as_uuid=True), ForeignKey("analysis_types.id"), nullable=False)
    description = Column(Text, nullable=False)
    methodology_requirements = Column(Text)
    parameters = Column(JSON, default=dict)
    priority = Column(String, default="medium", nullable=False)  # low, medium, high, urgent
    due_date = Column(sa.Date)
    estimated_duration = Column(String)
    notes = Column(Text)
    status = Column(String, default="pending", nullable=False)  # pending, accepted, rejected, in_progress, completed, cancelled
    assigned_to = Column(UUID(as_uuid=True), ForeignKey("users.id"))
    accepted_at = Column(DateTime)
    completed_at = Column(DateTime)
    created_by = Column(UUID(as_uuid=True), ForeignKey("users.id"), nullable=False)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    from_workspace = relationship("Workspace", foreign_keys=[from_workspace_id])
    to_workspace = relationship("Workspace", foreign_keys=[to_workspace_id])
    sample = relationship("Sample")
    analysis_type = relationship("AnalysisType")

    @property
    def from_workspace_name(self) -> str | None:
        return self.from_workspace.name if self.from_workspace else None

    @property
    def to_workspace_name(self) -> str | None:
        return self.to_workspace.name if self.to_workspace else None

    @property
    def sample_identifier(self) -> str | None:
        return self.sample.sample_id if self.sample else None

    @property
    def analysis_type_name(self) -> str | None:
        return self.analysis_type.name if self.analysis_type else None


class ObjectAccess(Base):
    __tablename__ = "object_access"
    __table_args__ = (
        sa.UniqueConstraint("user_id", "object_type", "object_id"),
    )
    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    workspace_id = Column(UUID(as_uuid=True), ForeignKey("workspaces.id"), nullable=False, index=True)
    user_id = Column(UUID(as_uuid=True), ForeignKey("users.id"), nullable=False, index=True)
    object_type = Column(String(50), nullable=False)  # project, sample, derived_sample, batch, analysis
    object_id = Column(UUID(as_uuid=True), nullable=False)
    access_level = Column(String(20), default="read", nullable=False)  # read, write, admin
    granted_by = Column(UUID(as_uuid=True), ForeignKey("users.id"))
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)


class AuditLog(Base):
    __tablename__ = "audit_logs"
    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    workspace_id = Column(UUID(as_uuid=True), ForeignKey("workspaces.id"), index=True)
    user_id = Column(UUID(as_uuid=True), ForeignKey("users.id"), index=True)
    action = Column(String, nullable=False)
    target_type = Column(String)
    target_id = Column(UUID(as_uuid=True))
    details = Column(JSON, default=dict)
    ip_address = Column(String(45))
    user_agent = Column(String(500))
    created_at = Column(DateTime, default=utcnow)


class AuditLogImmutableError(RuntimeError):
    """Raised when code attempts to rewrite or remove an audit entry."""


@event.listens_for(AuditLog, "before_update")
def _block_audit_update(mapper, connection, target):
    raise AuditLogImmutableError("audit log entries are append-only")


@event.listens_for(AuditLog, "before_delete")
def _block_audit_delete(mapper, connection, target):
    raise AuditLogImmutableError("audit log entries are append-only")
