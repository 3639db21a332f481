from __future__ import annotations

from datetime import UTC, date, datetime
from enum import StrEnum
from typing import Annotated, Any, Generic, TypeVar
from uuid import uuid4

from pydantic import BaseModel, BeforeValidator, ConfigDict
from pydantic import Field as PydanticField
from pydantic.alias_generators import to_camel
from sqlalchemy import JSON, Column, Index
from sqlmodel import Field, SQLModel


def now_utc() -> datetime:
    return datetime.now(UTC)


def parse_date_value(value: Any) -> Any:
    """Coerce date values from request bodies into aware UTC datetimes.

    Accepts ISO dates (``2024-01-15``), ISO datetimes with or without an
    offset or ``Z`` suffix, and plain ``date`` objects. Values without an
    offset are taken as UTC. Empty strings become ``None``.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return _as_utc(value)
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day, tzinfo=UTC)
    if isinstance(value, str):
        raw = value.strip()
        if not raw:
            return None
        if raw.endswith("Z"):
            raw = f"{raw[:-1]}+00:00"
        try:
            parsed = datetime.fromisoformat(raw)
        except ValueError as exc:
            raise ValueError(f"invalid date value: {value!r}") from exc
        return _as_utc(parsed)
    return value


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


DateValue = Annotated[datetime | None, BeforeValidator(parse_date_value)]


class UserRole(StrEnum):
    USER = "USER"
    ADMIN = "ADMIN"


class AssetStatus(StrEnum):
    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"
    UNDER_MAINTENANCE = "UNDER_MAINTENANCE"


class Criticality(StrEnum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"


class WorkOrderStatus(StrEnum):
    OPEN = "OPEN"
    IN_PROGRESS = "IN_PROGRESS"
    ON_HOLD = "ON_HOLD"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


class WorkOrderPriority(StrEnum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    URGENT = "URGENT"


PREVENTIVE_MAINTENANCE_TYPE = "Preventive Maintenance"


# --- tables -----------------------------------------------------------------


class Organization(SQLModel, table=True):
    __tablename__ = "organizations"

    id: str = Field(default_factory=lambda: str(uuid4()), primary_key=True)
    name: str = Field(index=True)
    description: str | None = None
    industry: str | None = None
    address: str | None = None
    phone: str | None = None
    email: str | None = None
    website: str | None = None
    logo_url: str | None = None
    timezone: str = Field(default="UTC")
    settings: dict[str, Any] | None = Field(default=None, sa_column=Column(JSON, nullable=True))
    created_at: datetime = Field(default_factory=now_utc, index=True)
    updated_at: datetime = Field(default_factory=now_utc)


class User(SQLModel, table=True):
    __tablename__ = "users"

    id: str = Field(default_factory=lambda: str(uuid4()), primary_key=True)
    email: str = Field(index=True, unique=True)
    name: str | None = None
    given_name: str | None = None
    family_name: str | None = None
    picture: str | None = None
    locale: str | None = None
    google_id: str | None = Field(default=None, index=True)
    role: UserRole = Field(default=UserRole.USER)
    is_active: bool = Field(default=True, index=True)
    organization_id: str | None = Field(default=None, foreign_key="organizations.id", index=True)
    last_login_at: datetime | None = None
    created_at: datetime = Field(default_factory=now_utc, index=True)
    updated_at: datetime = Field(default_factory=now_utc)


class Asset(SQLModel, table=True):
    __tablename__ = "assets"
    __table_args__ = (Index("ix_assets_org_status", "organization_id", "status"),)

    id: str = Field(default_factory=lambda: str(uuid4()), primary_key=True)
    name: str = Field(index=True)
    description: str | None = None
    type: str
    category: str | None = None
    location: str
    status: AssetStatus = Field(default=AssetStatus.ACTIVE)
    criticality: Criticality = Field(default=Criticality.MEDIUM)
    manufacturer: str | None = None
    model: str | None = None
    serial_number: str | None = None
    purchase_date: datetime | None = None
    warranty_expiry: datetime | None = None
    installation_date: datetime | None = None
    last_maintenance: datetime | None = None
    next_maintenance: datetime | None = None
    maintenance_interval: int | None = None
    purchase_price: float | None = None
    current_value: float | None = None
    depreciation_rate: float | None = None
    specifications: dict[str, Any] | None = Field(default=None, sa_column=Column(JSON, nullable=True))
    documents: dict[str, Any] | None = Field(default=None, sa_column=Column(JSON, nullable=True))
    notes: str | None = None
    image_urls: list[str] = Field(default_factory=list, sa_column=Column(JSON, nullable=False))
    file_urls: list[str] = Field(default_factory=list, sa_column=Column(JSON, nullable=False))
    organization_id: str = Field(foreign_key="organizations.id", index=True)
    created_by_id: str = Field(foreign_key="users.id", index=True)
    created_at: datetime = Field(default_factory=now_utc, index=True)
    updated_at: datetime = Field(default_factory=now_utc)


class WorkOrder(SQLModel, table=True):
    __tablename__ = "work_orders"
    __table_args__ = (Index("ix_work_orders_org_status", "organization_id", "status"),)

    id: str = Field(default_factory=lambda: str(uuid4()), primary_key=True)
    # Not unique: numbers are derived from a per-organization count.
    work_order_number: str = Field(index=True)
    title: str
    description: str | None = None
    status: WorkOrderStatus = Field(default=WorkOrderStatus.OPEN)
    priority: WorkOrderPriority = Field(default=WorkOrderPriority.MEDIUM)
    type: str | None = None
    due_date: datetime | None = None
    scheduled_date: datetime | None = None
    completed_at: datetime | None = None
    estimated_hours: float | None = None
    instructions: str | None = None
    parts: str | None = None
    tools: str | None = None
    safety_notes: str | None = None
    notes: str | None = None
    organization_id: str = Field(foreign_key="organizations.id", index=True)
    asset_id: str | None = Field(default=None, foreign_key="assets.id", index=True)
    assigned_to_id: str | None = Field(default=None, foreign_key="users.id", index=True)
    created_by_id: str = Field(foreign_key="users.id", index=True)
    created_at: datetime = Field(default_factory=now_utc, index=True)
    updated_at: datetime = Field(default_factory=now_utc)


class Comment(SQLModel, table=True):
    __tablename__ = "comments"

    id: str = Field(default_factory=lambda: str(uuid4()), primary_key=True)
    work_order_id: str = Field(foreign_key="work_orders.id", index=True)
    author_id: str = Field(foreign_key="users.id", index=True)
    content: str
    type: str = Field(default="COMMENT")
    created_at: datetime = Field(default_factory=now_utc, index=True)


class ActivityLog(SQLModel, table=True):
    __tablename__ = "activity_logs"

    id: str = Field(default_factory=lambda: str(uuid4()), primary_key=True)
    action: str = Field(index=True)
    entity_type: str = Field(index=True)
    entity_id: str = Field(index=True)
    description: str | None = None
    old_values: dict[str, Any] | None = Field(default=None, sa_column=Column(JSON, nullable=True))
    new_values: dict[str, Any] | None = Field(default=None, sa_column=Column(JSON, nullable=True))
    organization_id: str = Field(index=True)
    user_id: str | None = Field(default=None, index=True)
    created_at: datetime = Field(default_factory=now_utc, index=True)


# --- wire schemas -----------------------------------------------------------


class APIModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ORMReadModel(APIModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


DataT = TypeVar("DataT")


class Pagination(APIModel):
    total: int
    offset: int
    limit: int


class ApiResponse(APIModel, Generic[DataT]):
    success: bool = True
    data: DataT | None = None
    message: str | None = None


class PaginatedResponse(ApiResponse[DataT], Generic[DataT]):
    pagination: Pagination


class OrganizationRef(ORMReadModel):
    id: str
    name: str


class UserRef(ORMReadModel):
    id: str
    name: str | None = None
    email: str


class AssetRef(ORMReadModel):
    id: str
    name: str
    location: str
    type: str


# organizations


class OrganizationCreate(APIModel):
    name: str = PydanticField(min_length=1)
    description: str | None = None
    industry: str | None = None
    address: str | None = None
    phone: str | None = None
    email: str | None = None
    website: str | None = None
    logo_url: str | None = None
    timezone: str | None = None
    settings: dict[str, Any] | None = None


class OrganizationUpdate(APIModel):
    name: str | None = PydanticField(default=None, min_length=1)
    description: str | None = None
    industry: str | None = None
    address: str | None = None
    phone: str | None = None
    email: str | None = None
    website: str | None = None
    logo_url: str | None = None
    timezone: str | None = None
    settings: dict[str, Any] | None = None


class OrganizationRead(ORMReadModel):
    id: str
    name: str
    description: str | None
    industry: str | None
    address: str | None
    phone: str | None
    email: str | None
    website: str | None
    logo_url: str | None
    timezone: str
    settings: dict[str, Any] | None
    created_at: datetime
    updated_at: datetime


class OrganizationCounts(APIModel):
    users: int
    assets: int
    work_orders: int


class OrganizationListItem(OrganizationRead):
    counts: OrganizationCounts


class OrganizationUserSummary(ORMReadModel):
    id: str
    email: str
    name: str | None
    role: UserRole
    is_active: bool
    last_login_at: datetime | None


class OrganizationAssetSummary(ORMReadModel):
    id: str
    name: str
    type: str
    status: AssetStatus
    criticality: Criticality
    location: str


class WorkOrderSummary(ORMReadModel):
    id: str
    work_order_number: str
    title: str
    status: WorkOrderStatus
    priority: WorkOrderPriority
    due_date: datetime | None
    created_at: datetime


class OrganizationDetail(OrganizationRead):
    users: list[OrganizationUserSummary]
    assets: list[OrganizationAssetSummary]
    work_orders: list[WorkOrderSummary]
    counts: OrganizationCounts


class UserStats(APIModel):
    total: int
    active: int
    inactive: int


class AssetStats(APIModel):
    total: int
    active: int
    offline: int
    under_maintenance: int


class WorkOrderStats(APIModel):
    total: int
    open: int
    overdue: int
    completed: int
    completion_rate: float


class OrganizationStats(APIModel):
    users: UserStats
    assets: AssetStats
    work_orders: WorkOrderStats


# users


class UserCreate(APIModel):
    email: str = PydanticField(min_length=3)
    name: str | None = None
    given_name: str | None = None
    family_name: str | None = None
    picture: str | None = None
    locale: str | None = None
    google_id: str | None = None
    role: UserRole = UserRole.USER
    organization_id: str | None = None


class UserUpdate(APIModel):
    name: str | None = None
    given_name: str | None = None
    family_name: str | None = None
    picture: str | None = None
    locale: str | None = None
    role: UserRole | None = None
    is_active: bool | None = None
    organization_id: str | None = None


class UserLoginRequest(APIModel):
    email: str = PydanticField(min_length=3)
    name: str | None = None
    given_name: str | None = None
    family_name: str | None = None
    picture: str | None = None
    locale: str | None = None
    google_id: str | None = None


class UserRead(ORMReadModel):
    id: str
    email: str
    name: str | None
    given_name: str | None
    family_name: str | None
    picture: str | None
    locale: str | None
    role: UserRole
    is_active: bool
    organization_id: str | None
    organization: OrganizationRef | None = None
    last_login_at: datetime | None
    created_at: datetime
    updated_at: datetime


class UserCounts(APIModel):
    created_assets: int
    assigned_work_orders: int
    created_work_orders: int
    comments: int


class UserListItem(UserRead):
    counts: UserCounts


class UserAssetSummary(ORMReadModel):
    id: str
    name: str
    type: str
    status: AssetStatus
    location: str
    created_at: datetime


class UserDetail(UserRead):
    created_assets: list[UserAssetSummary]
    assigned_work_orders: list[WorkOrderSummary]
    created_work_orders: list[WorkOrderSummary]
    counts: UserCounts


class UserLoginRead(UserRead):
    access_token: str
    token_type: str = "bearer"


# assets


class AssetCreate(APIModel):
    name: str = PydanticField(min_length=1)
    description: str | None = None
    type: str = PydanticField(min_length=1)
    category: str | None = None
    location: str = PydanticField(min_length=1)
    status: AssetStatus = AssetStatus.ACTIVE
    criticality: Criticality = Criticality.MEDIUM
    manufacturer: str | None = None
    model: str | None = None
    serial_number: str | None = None
    purchase_date: DateValue = None
    warranty_expiry: DateValue = None
    installation_date: DateValue = None
    last_maintenance: DateValue = None
    next_maintenance: DateValue = None
    maintenance_interval: int | None = None
    purchase_price: float | None = None
    current_value: float | None = None
    depreciation_rate: float | None = None
    specifications: dict[str, Any] | None = None
    documents: dict[str, Any] | None = None
    notes: str | None = None
    organization_id: str = PydanticField(min_length=1)
    created_by_id: str = PydanticField(min_length=1)


class AssetUpdate(APIModel):
    name: str | None = PydanticField(default=None, min_length=1)
    description: str | None = None
    type: str | None = PydanticField(default=None, min_length=1)
    category: str | None = None
    location: str | None = PydanticField(default=None, min_length=1)
    status: AssetStatus | None = None
    criticality: Criticality | None = None
    manufacturer: str | None = None
    model: str | None = None
    serial_number: str | None = None
    purchase_date: DateValue = None
    warranty_expiry: DateValue = None
    installation_date: DateValue = None
    last_maintenance: DateValue = None
    next_maintenance: DateValue = None
    maintenance_interval: int | None = None
    purchase_price: float | None = None
    current_value: float | None = None
    depreciation_rate: float | None = None
    specifications: dict[str, Any] | None = None
    documents: dict[str, Any] | None = None
    notes: str | None = None
    updated_by_id: str | None = None


class AssetDeleteRequest(APIModel):
    deleted_by_id: str | None = None


class AssetRecordRead(ORMReadModel):
    id: str
    name: str
    description: str | None
    type: str
    category: str | None
    location: str
    status: AssetStatus
    criticality: Criticality
    manufacturer: str | None
    model: str | None
    serial_number: str | None
    purchase_date: datetime | None
    warranty_expiry: datetime | None
    installation_date: datetime | None
    last_maintenance: datetime | None
    next_maintenance: datetime | None
    maintenance_interval: int | None
    purchase_price: float | None
    current_value: float | None
    depreciation_rate: float | None
    specifications: dict[str, Any] | None
    documents: dict[str, Any] | None
    notes: str | None
    image_urls: list[str]
    file_urls: list[str]
    organization_id: str
    created_by_id: str
    created_at: datetime
    updated_at: datetime


class AssetRead(AssetRecordRead):
    organization: OrganizationRef | None = None
    created_by: UserRef | None = None
    work_order_count: int = 0


class MaintenanceScheduleRequest(APIModel):
    title: str | None = None
    description: str | None = None
    priority: WorkOrderPriority = WorkOrderPriority.MEDIUM
    due_date: DateValue = None
    scheduled_date: DateValue = None
    estimated_hours: float | None = None
    instructions: str | None = None
    parts: str | None = None
    tools: str | None = None
    safety_notes: str | None = None
    notes: str | None = None
    assigned_to_id: str | None = None
    created_by_id: str = PydanticField(min_length=1)


# work orders


class WorkOrderCreate(APIModel):
    title: str = PydanticField(min_length=1)
    description: str | None = None
    status: WorkOrderStatus = WorkOrderStatus.OPEN
    priority: WorkOrderPriority = WorkOrderPriority.MEDIUM
    type: str | None = None
    due_date: DateValue = None
    scheduled_date: DateValue = None
    estimated_hours: float | None = None
    instructions: str | None = None
    parts: str | None = None
    tools: str | None = None
    safety_notes: str | None = None
    notes: str | None = None
    organization_id: str = PydanticField(min_length=1)
    asset_id: str | None = None
    assigned_to_id: str | None = None
    created_by_id: str = PydanticField(min_length=1)


class WorkOrderUpdate(APIModel):
    title: str | None = PydanticField(default=None, min_length=1)
    description: str | None = None
    status: WorkOrderStatus | None = None
    priority: WorkOrderPriority | None = None
    type: str | None = None
    due_date: DateValue = None
    scheduled_date: DateValue = None
    estimated_hours: float | None = None
    instructions: str | None = None
    parts: str | None = None
    tools: str | None = None
    safety_notes: str | None = None
    notes: str | None = None
    asset_id: str | None = None
    assigned_to_id: str | None = None
    updated_by_id: str | None = None


class WorkOrderRecordRead(ORMReadModel):
    id: str
    work_order_number: str
    title: str
    description: str | None
    status: WorkOrderStatus
    priority: WorkOrderPriority
    type: str | None
    due_date: datetime | None
    scheduled_date: datetime | None
    completed_at: datetime | None
    estimated_hours: float | None
    instructions: str | None
    parts: str | None
    tools: str | None
    safety_notes: str | None
    notes: str | None
    organization_id: str
    asset_id: str | None
    assigned_to_id: str | None
    created_by_id: str
    created_at: datetime
    updated_at: datetime


class WorkOrderRead(WorkOrderRecordRead):
    organization: OrganizationRef | None = None
    asset: AssetRef | None = None
    assigned_to: UserRef | None = None
    created_by: UserRef | None = None
    comment_count: int = 0


class CommentCreate(APIModel):
    content: str = PydanticField(min_length=1)
    author_id: str = PydanticField(min_length=1)
    type: str = "COMMENT"


class CommentRead(ORMReadModel):
    id: str
    work_order_id: str
    author_id: str
    author: UserRef | None = None
    content: str
    type: str
    created_at: datetime


class WorkOrderDetail(WorkOrderRead):
    comments: list[CommentRead] = PydanticField(default_factory=list)


class AssetDetail(AssetRead):
    work_orders: list[WorkOrderRead] = PydanticField(default_factory=list)


# uploads


class UploadedFileRead(APIModel):
    original_name: str
    file_name: str
    url: str
    size: int
    formatted_size: str
    mime_type: str
    key: str
    is_image: bool


class UploadSummaryRead(APIModel):
    total_files: int
    images: int
    documents: int
    total_size: int


class UploadResultRead(APIModel):
    files: list[UploadedFileRead]
    summary: UploadSummaryRead
    asset: AssetRead | None = None


class PresignedUrlRequest(APIModel):
    file_name: str = PydanticField(min_length=1)
    mime_type: str = PydanticField(min_length=1)
    organization_id: str = PydanticField(min_length=1)


class PresignedUrlRead(APIModel):
    upload_url: str
    file_url: str
    key: str
    is_image: bool
    expires_in: int


class FileDeleteRequest(APIModel):
    file_url: str = PydanticField(min_length=1)
    deleted_by: str | None = None


class FileDeleteRead(APIModel):
    deleted_file_url: str
    asset: AssetRead


class DownloadUrlRead(APIModel):
    download_url: str
    expires_in: int


class StorageHealthRead(APIModel):
    storage_connected: bool
    bucket_name: str
    region: str
    max_file_size: str
    allowed_image_types: list[str]
    allowed_file_types: list[str]


class StoredObjectRead(APIModel):
    key: str
    size: int
    etag: str
