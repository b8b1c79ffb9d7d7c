from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Annotated, Any, List, Literal, Optional, Union
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


def _now() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """Naive datetimes are taken to be UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class UsageType(str, Enum):
    internal = "internal"
    broadcast = "broadcast"
    digital = "digital"
    theatrical = "theatrical"
    print = "print"
    social_media = "social_media"
    archive = "archive"


class RightsStatus(str, Enum):
    valid = "valid"
    expired = "expired"
    pending = "pending"
    restricted = "restricted"
    unknown = "unknown"


class CheckStatus(str, Enum):
    passed = "passed"
    failed = "failed"
    warning = "warning"


def _normalise_codes(codes: List[str]) -> List[str]:
    return [c.strip().upper() for c in codes if c and c.strip()]


class RightsHolder(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    contact_email: str
    contract_id: Optional[str] = None


class Worldwide(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["worldwide"] = "worldwide"


class TerritoryList(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["explicit"] = "explicit"
    codes: List[str] = Field(default_factory=list)

    @field_validator("codes")
    @classmethod
    def _upper(cls, value: List[str]) -> List[str]:
        return _normalise_codes(value)


TerritoryGrant = Annotated[Union[Worldwide, TerritoryList], Field(discriminator="kind")]


class AssetRights(BaseModel):
    """Licensing terms governing one asset."""

    asset_id: str
    rights_holder: RightsHolder
    valid_from: Optional[datetime] = None
    valid_until: Optional[datetime] = None  # None = perpetual
    allowed_usage_types: List[UsageType] = Field(default_factory=list)
    restricted_usage_types: List[UsageType] = Field(default_factory=list)
    allowed_territories: TerritoryGrant = Field(default_factory=Worldwide)
    restricted_territories: List[str] = Field(default_factory=list)
    max_downloads: Optional[int] = Field(default=None, ge=0)  # None = unlimited
    current_downloads: int = Field(default=0, ge=0)
    requires_watermark: bool = False
    watermark_text: Optional[str] = None
    requires_approval: bool = False
    approver_roles: List[str] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=_now)
    updated_at: datetime = Field(default_factory=_now)
    created_by: Optional[str] = None

    @field_validator("allowed_territories", mode="before")
    @classmethod
    def _coerce_grant(cls, value: Any) -> Any:
        # Accept the stored shapes: "worldwide" or a bare list of codes.
        if isinstance(value, (Worldwide, TerritoryList)):
            return value.model_dump()
        if isinstance(value, str):
            if value.lower() == "worldwide":
                return {"kind": "worldwide"}
            return {"kind": "explicit", "codes": [value]}
        if isinstance(value, (list, tuple, set)):
            return {"kind": "explicit", "codes": list(value)}
        return value

    @field_validator("restricted_territories")
    @classmethod
    def _upper_restricted(cls, value: List[str]) -> List[str]:
        return _normalise_codes(value)

    @field_validator("valid_from", "valid_until", "created_at", "updated_at")
    @classmethod
    def _utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        return as_utc(value) if value is not None else None

    @model_validator(mode="after")
    def validate_window(self):
        if self.valid_from and self.valid_until and self.valid_from > self.valid_until:
            raise ValueError("valid_from must be <= valid_until")
        return self

    def territories_snapshot(self) -> Union[Literal["worldwide"], List[str]]:
        if isinstance(self.allowed_territories, Worldwide):
            return "worldwide"
        return list(self.allowed_territories.codes)


class DownloadRequest(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: f"req-{uuid4().hex}")
    asset_id: str
    requested_by: str
    requested_at: datetime = Field(default_factory=_now)
    intended_usage: UsageType
    territory: str
    project_id: Optional[str] = None
    notes: Optional[str] = None

    @field_validator("territory")
    @classmethod
    def _upper(cls, value: str) -> str:
        return value.strip().upper()

    @field_validator("requested_at")
    @classmethod
    def _utc(cls, value: datetime) -> datetime:
        return as_utc(value)


class ValidationCheck(BaseModel):
    name: str
    status: CheckStatus
    message: str


class DownloadValidationResult(BaseModel):
    allowed: bool
    checks: List[ValidationCheck] = Field(default_factory=list)
    blockers: List[str] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list)
    suggestions: List[str] = Field(default_factory=list)
    evaluated_at: datetime


class RightsSnapshot(BaseModel):
    """Terms frozen at download time."""

    model_config = ConfigDict(frozen=True)

    valid_until: Optional[datetime] = None
    allowed_usages: List[UsageType] = Field(default_factory=list)
    territories: Union[Literal["worldwide"], List[str]] = "worldwide"

    @classmethod
    def from_rights(cls, rights: AssetRights) -> "RightsSnapshot":
        return cls(
            valid_until=rights.valid_until,
            allowed_usages=list(rights.allowed_usage_types),
            territories=rights.territories_snapshot(),
        )


class DownloadAuditLog(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: f"dl-{uuid4().hex}")
    asset_id: str
    asset_name: Optional[str] = None
    downloaded_by: str
    downloaded_at: datetime = Field(default_factory=_now)
    usage_type: UsageType
    territory: str
    project_id: Optional[str] = None
    file_size: Optional[int] = Field(default=None, ge=0)
    format: Optional[str] = None
    resolution: Optional[str] = None
    rights_snapshot: RightsSnapshot
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None

    @field_validator("downloaded_at")
    @classmethod
    def _utc(cls, value: datetime) -> datetime:
        return as_utc(value)


class DownloadRecordCreate(BaseModel):
    """A fulfilled download, submitted by the delivery workflow."""

    request: DownloadRequest
    asset_name: Optional[str] = None
    file_size: Optional[int] = Field(default=None, ge=0)
    format: Optional[str] = None
    resolution: Optional[str] = None
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None


class AssetNameUpdate(BaseModel):
    name: str


class AssetRightsView(BaseModel):
    rights: AssetRights
    status: RightsStatus
    days_until_expiry: Optional[int] = None


class RightsReportSummary(BaseModel):
    total_assets: int = 0
    assets_with_valid_rights: int = 0
    assets_with_expiring_rights: int = 0
    assets_with_expired_rights: int = 0
    assets_with_no_rights: int = 0


class RightsReportEntry(BaseModel):
    asset_id: str
    asset_name: str
    rights_status: RightsStatus
    issues: List[str] = Field(default_factory=list)
    total_downloads: int = 0
    last_download: Optional[datetime] = None


class RightsReport(BaseModel):
    generated_at: datetime
    expiry_window_days: int
    summary: RightsReportSummary
    assets: List[RightsReportEntry] = Field(default_factory=list)
