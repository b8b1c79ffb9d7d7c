"""Rights enforcement and download validation."""
from engines.rights.engine import (
    days_until_expiry,
    find_rights,
    generate_rights_report,
    get_expiring_rights,
    get_rights_status,
    validate_download_request,
)
from engines.rights.models import (
    AssetRights,
    CheckStatus,
    DownloadAuditLog,
    DownloadRequest,
    DownloadValidationResult,
    RightsHolder,
    RightsReport,
    RightsSnapshot,
    RightsStatus,
    TerritoryList,
    UsageType,
    ValidationCheck,
    Worldwide,
)

__all__ = [
    "AssetRights",
    "CheckStatus",
    "DownloadAuditLog",
    "DownloadRequest",
    "DownloadValidationResult",
    "RightsHolder",
    "RightsReport",
    "RightsSnapshot",
    "RightsStatus",
    "TerritoryList",
    "UsageType",
    "ValidationCheck",
    "Worldwide",
    "days_until_expiry",
    "find_rights",
    "generate_rights_report",
    "get_expiring_rights",
    "get_rights_status",
    "validate_download_request",
]
