"""Pydantic schemas consolidating backend API contracts."""

# purpose: aggregate request and response schemas for FastAPI surfaces and services
# status: active

from datetime import datetime, time
from typing import Optional, Any, Dict, Literal, List
from pydantic import BaseModel, EmailStr, ConfigDict, Field
from uuid import UUID

from .common import PageMeta, PartialUpdate, Priority, UTCDateTime
from .lineage import (
    BatchCreate,
    BatchItemOut,
    BatchItemsAdd,
    BatchOut,
    BatchPage,
    BatchUpdate,
    DerivedSampleCreate,
    DerivedSampleOut,
    DerivedSamplePage,
    LineageOut,
)
from .analyses import (
    AnalysisAuthorityUpdate,
    AnalysisCreate,
    AnalysisOut,
    AnalysisPage,
    AnalysisRevise,
    AnalysisTypeCreate,
    AnalysisTypeOut,
    AnalysisTypeUpdate,
    AnalysisUpdate,
)
from .collaboration import (
    AccessGrantCreate,
    AccessGrantOut,
    AccessGrantUpdate,
    AccessLookupOut,
    AnalysisRequestAccept,
    AnalysisRequestCreate,
    AnalysisRequestOut,
    AnalysisRequestPage,
    AnalysisRequestReject,
    AnalysisRequestStatusUpdate,
    ObjectType,
)

Role = Literal["admin", "manager", "scientist", "viewer"]
WorkspaceType = Literal["research", "cro", "analyzer", "pharma"]
OrganizationType = Literal["client", "cro", "analyzer", "vendor", "pharma"]


class RegisterRequest(BaseModel):
    email: EmailStr
    password: str = Field(min_length=8)
    full_name: Optional[str] = None
    company_name: str = Field(min_length=1, max_length=255)
    workspace_type: WorkspaceType = "research"


class LoginRequest(BaseModel):
    email: EmailStr
    password: str


class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"


class PasswordResetRequest(BaseModel):
    email: EmailStr


class PasswordResetConfirm(BaseModel):
    token: str
    new_password: str = Field(min_length=8)


class ChangePasswordRequest(BaseModel):
    current_password: str
    new_password: str = Field(min_length=8)


class UserCreate(BaseModel):
    email: EmailStr
    password: str = Field(min_length=8)
    full_name: Optional[str] = None
    role: Role = "scientist"


class UserUpdate(BaseModel):
    full_name: Optional[str] = None


class UserRoleUpdate(BaseModel):
    role: Role


class UserOut(BaseModel):
    id: UUID
    workspace_id: UUID
    email: EmailStr
    full_name: Optional[str] = None
    role: str
    is_active: bool
    created_at: datetime
    model_config = ConfigDict(from_attributes=True)


class UserPage(PageMeta):
    items: List[UserOut]


class WorkspaceOut(BaseModel):
    id: UUID
    name: str
    slug: str
    type: str
    email_domain: Optional[str] = None
    is_active: bool
    created_at: datetime
    updated_at: Optional[datetime] = None
    model_config = ConfigDict(from_attributes=True)


class WorkspaceSummary(WorkspaceOut):
    user_count: int = 0
    project_count: int = 0
    sample_count: int = 0
    organization_count: int = 0


class WorkspaceUpdate(PartialUpdate):
    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    type: Optional[WorkspaceType] = None
    email_domain: Optional[str] = None


class OrganizationCreate(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    type: OrganizationType
    is_platform_workspace: bool = False
    contact_info: Dict[str, Any] = Field(default_factory=dict)


class OrganizationUpdate(PartialUpdate):
    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    type: Optional[OrganizationType] = None
    is_platform_workspace: Optional[bool] = None
    contact_info: Optional[Dict[str, Any]] = None
    is_active: Optional[bool] = None


class OrganizationOut(BaseModel):
    id: UUID
    workspace_id: Optional[UUID] = None
    name: str
    slug: str
    type: str
    is_platform_workspace: bool
    contact_info: Dict[str, Any] = Field(default_factory=dict)
    is_active: bool
    created_at: datetime
    updated_at: Optional[datetime] = None
    model_config = ConfigDict(from_attributes=True)


class OrganizationPage(PageMeta):
    items: List[OrganizationOut]


class ProjectCreate(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    description: Optional[str] = None
    client_org_id: UUID
    executing_org_id: UUID
    workflow_mode: Literal["trial_first", "analysis_first"] = "trial_first"


class ProjectUpdate(PartialUpdate):
    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    description: Optional[str] = None
    status: Optional[Literal["active", "completed", "archived"]] = None
    workflow_mode: Optional[Literal["trial_first", "analysis_first"]] = None
    client_org_id: Optional[UUID] = None
    executing_org_id: Optional[UUID] = None


class ProjectOut(BaseModel):
    id: UUID
    workspace_id: UUID
    name: str
    description: Optional[str] = None
    status: str
    workflow_mode: str
    client_org_id: UUID
    executing_org_id: UUID
    client_org_name: Optional[str] = None
    executing_org_name: Optional[str] = None
    created_by: Optional[UUID] = None
    created_at: datetime
    updated_at: Optional[datetime] = None
    model_config = ConfigDict(from_attributes=True)


class ProjectPage(PageMeta):
    items: List[ProjectOut]


class StageCreate(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    order_index: int = Field(ge=0)


class StageUpdate(PartialUpdate):
    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    order_index: Optional[int] = Field(default=None, ge=0)
    status: Optional[Literal["planned", "active", "completed", "archived"]] = None


class StageOut(BaseModel):
    id: UUID
    project_id: UUID
    owner_workspace_id: UUID
    name: str
    order_index: int
    status: str
    created_at: datetime
    updated_at: Optional[datetime] = None
    model_config = ConfigDict(from_attributes=True)


class TrialCreate(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    objective: Optional[str] = None
    parameters: Optional[str] = None
    measurements: Optional[Any] = None
    equipment: Optional[str] = None
    notes: Optional[str] = None
    status: Literal["planned", "running", "completed"] = "planned"
    performed_at: Optional[UTCDateTime] = None


class TrialUpdate(PartialUpdate):
    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    objective: Optional[str] = None
    parameters: Optional[str] = None
    measurements: Optional[Any] = None
    equipment: Optional[str] = None
    notes: Optional[str] = None
    status: Optional[Literal["planned", "running", "completed"]] = None
    performed_at: Optional[UTCDateTime] = None


class TrialBulkCreate(BaseModel):
    trials: List[TrialCreate] = Field(min_length=1, max_length=500)


class TrialOut(BaseModel):
    id: UUID
    project_id: UUID
    workspace_id: UUID
    name: str
    objective: Optional[str] = None
    parameters: Optional[str] = None
    measurements: Optional[Any] = None
    equipment: Optional[str] = None
    notes: Optional[str] = None
    status: str
    performed_at: Optional[datetime] = None
    created_by: Optional[UUID] = None
    created_at: datetime
    updated_at: Optional[datetime] = None
    model_config = ConfigDict(from_attributes=True)


class ParameterTemplateIn(BaseModel):
    columns: List[str] = Field(default_factory=list)


class ParameterTemplateOut(BaseModel):
    project_id: UUID
    columns: List[str] = Field(default_factory=list)
    updated_at: Optional[datetime] = None
    model_config = ConfigDict(from_attributes=True)


class SampleCreate(BaseModel):
    project_id: UUID
    sample_id: str = Field(min_length=1, max_length=100)
    description: Optional[str] = Field(default=None, max_length=2000)
    type: Optional[str] = Field(default=None, max_length=50)
    trial_id: Optional[UUID] = None
    stage_id: Optional[UUID] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)


class SampleUpdate(PartialUpdate):
    sample_id: Optional[str] = Field(default=None, min_length=1, max_length=100)
    description: Optional[str] = Field(default=None, max_length=2000)
    type: Optional[str] = Field(default=None, max_length=50)
    status: Optional[Literal["created", "shared", "processing", "analyzed", "completed"]] = None
    trial_id: Optional[UUID] = None
    stage_id: Optional[UUID] = None
    metadata: Optional[Dict[str, Any]] = None


class SampleOut(BaseModel):
    id: UUID
    workspace_id: UUID
    project_id: UUID
    project_name: Optional[str] = None
    trial_id: Optional[UUID] = None
    stage_id: Optional[UUID] = None
    sample_id: str
    type: Optional[str] = None
    description: Optional[str] = None
    metadata: Dict[str, Any] = Field(default_factory=dict, validation_alias="meta")
    status: str
    created_by: Optional[UUID] = None
    created_at: datetime
    updated_at: Optional[datetime] = None
    model_config = ConfigDict(from_attributes=True)


class SamplePage(PageMeta):
    items: List[SampleOut]


class NotificationCreate(BaseModel):
    user_id: Optional[UUID] = None
    type: str = "info"
    title: str = Field(min_length=1, max_length=255)
    message: str = Field(min_length=1)
    priority: Priority = "medium"
    action_url: Optional[str] = None
    action_label: Optional[str] = None
    expires_at: Optional[UTCDateTime] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)


class SystemNotificationCreate(BaseModel):
    title: str = Field(min_length=1, max_length=255)
    message: str = Field(min_length=1)
    priority: Priority = "medium"
    action_url: Optional[str] = None
    action_label: Optional[str] = None
    expires_at: Optional[UTCDateTime] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)


class NotificationOut(BaseModel):
    id: UUID
    user_id: UUID
    type: str
    title: str
    message: str
    priority: str = "medium"
    action_url: Optional[str] = None
    action_label: Optional[str] = None
    is_read: bool
    read_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None
    metadata: Dict[str, Any] = Field(default_factory=dict, validation_alias="meta")
    created_by: Optional[UUID] = None
    created_at: datetime
    model_config = ConfigDict(from_attributes=True)


class NotificationPage(PageMeta):
    items: List[NotificationOut]
    unread_count: int


class NotificationStats(BaseModel):
    total: int
    unread: int
    by_type: Dict[str, int] = Field(default_factory=dict)
    by_priority: Dict[str, int] = Field(default_factory=dict)


class NotificationPreferenceUpdate(BaseModel):
    email_payment_reminders: Optional[bool] = None
    email_project_updates: Optional[bool] = None
    email_sample_notifications: Optional[bool] = None
    email_system_announcements: Optional[bool] = None
    in_app_notifications: Optional[bool] = None
    quiet_hours_start: Optional[time] = None
    quiet_hours_end: Optional[time] = None
    quiet_hours_timezone: Optional[str] = None


class NotificationPreferenceOut(BaseModel):
    user_id: UUID
    email_payment_reminders: bool = True
    email_project_updates: bool = True
    email_sample_notifications: bool = True
    email_system_announcements: bool = True
    in_app_notifications: bool = True
    quiet_hours_start: Optional[time] = None
    quiet_hours_end: Optional[time] = None
    quiet_hours_timezone: Optional[str] = None
    is_default: bool = False
    model_config = ConfigDict(from_attributes=True)


class AuditLogOut(BaseModel):
    id: UUID
    workspace_id: Optional[UUID] = None
    user_id: Optional[UUID] = None
    action: str
    target_type: Optional[str] = None
    target_id: Optional[UUID] = None
    details: Dict[str, Any] = Field(default_factory=dict)
    ip_address: Optional[str] = None
    created_at: datetime
    model_config = ConfigDict(from_attributes=True)


class AuditLogPage(PageMeta):
    items: List[AuditLogOut]


class AuditReportItem(BaseModel):
    action: str
    count: int
