"""Download rules for the rights engine.

Each rule is a pure function of the request, the rights record and the
evaluation time. Rules return a ``CheckOutcome`` and never raise; ``combine``
folds the outcomes into a ``DownloadValidationResult``.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Iterable, List, Optional

from engines.rights.models import (
    AssetRights,
    CheckStatus,
    DownloadRequest,
    DownloadValidationResult,
    RightsStatus,
    TerritoryList,
    ValidationCheck,
)

CHECK_RIGHTS_ON_FILE = "Rights on file"
CHECK_VALIDITY = "Validity period"
CHECK_USAGE = "Usage type"
CHECK_TERRITORY = "Territory"
CHECK_QUOTA = "Download quota"
CHECK_APPROVAL = "Approval"
CHECK_WATERMARK = "Watermark"

DEFAULT_QUOTA_WARNING_RATIO = 0.9

RIGHTS_TEAM_SUGGESTION = "Contact the rights-management team to register licensing terms for this asset"


@dataclass(frozen=True)
class CheckOutcome:
    check: ValidationCheck
    blockers: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    suggestions: List[str] = field(default_factory=list)

    @property
    def failed(self) -> bool:
        return self.check.status == CheckStatus.failed


def _passed(name: str, message: str) -> CheckOutcome:
    return CheckOutcome(check=ValidationCheck(name=name, status=CheckStatus.passed, message=message))


def _failed(name: str, message: str, suggestions: Optional[List[str]] = None) -> CheckOutcome:
    return CheckOutcome(
        check=ValidationCheck(name=name, status=CheckStatus.failed, message=message),
        blockers=[message],
        suggestions=suggestions or [],
    )


def _warning(name: str, message: str, suggestions: Optional[List[str]] = None) -> CheckOutcome:
    return CheckOutcome(
        check=ValidationCheck(name=name, status=CheckStatus.warning, message=message),
        warnings=[message],
        suggestions=suggestions or [],
    )


def _fmt_date(value: datetime) -> str:
    return value.date().isoformat()


def effective_territories(rights: AssetRights) -> Optional[set[str]]:
    """Allowed minus restricted territory codes; ``None`` for a worldwide grant."""
    if isinstance(rights.allowed_territories, TerritoryList):
        return set(rights.allowed_territories.codes) - set(rights.restricted_territories)
    return None


def classify(rights: AssetRights, now: datetime) -> RightsStatus:
    if rights.valid_until is not None and rights.valid_until < now:
        return RightsStatus.expired
    if rights.valid_from is not None and rights.valid_from > now:
        return RightsStatus.pending
    remaining = effective_territories(rights)
    if remaining is not None and not remaining:
        return RightsStatus.restricted
    return RightsStatus.valid


def check_rights_on_file(rights: Optional[AssetRights]) -> CheckOutcome:
    if rights is None:
        return _failed(
            CHECK_RIGHTS_ON_FILE,
            "No rights information on file for this asset",
            [RIGHTS_TEAM_SUGGESTION],
        )
    return _passed(CHECK_RIGHTS_ON_FILE, f"Rights held by {rights.rights_holder.name}")


def check_validity(rights: AssetRights, now: datetime) -> CheckOutcome:
    # Territory neutralisation is reported by check_territory, not here.
    status = classify(rights, now)
    if status == RightsStatus.expired:
        return _failed(
            CHECK_VALIDITY,
            f"Rights expired on {_fmt_date(rights.valid_until)}",
            [f"Contact {rights.rights_holder.name} ({rights.rights_holder.contact_email}) to renew the licence"],
        )
    if status == RightsStatus.pending:
        return _failed(
            CHECK_VALIDITY,
            f"Rights not yet active until {_fmt_date(rights.valid_from)}",
            [f"Wait until {_fmt_date(rights.valid_from)} or request early access from {rights.rights_holder.name}"],
        )
    if rights.valid_until is None:
        return _passed(CHECK_VALIDITY, "Rights are perpetual")
    return _passed(CHECK_VALIDITY, f"Rights valid until {_fmt_date(rights.valid_until)}")


def check_usage(request: DownloadRequest, rights: AssetRights) -> CheckOutcome:
    usage = request.intended_usage.value
    if request.intended_usage in rights.restricted_usage_types:
        return _failed(
            CHECK_USAGE,
            f"Usage type '{usage}' is restricted for this asset",
            [f"Contact rights holder to negotiate {usage} usage"],
        )
    if request.intended_usage not in rights.allowed_usage_types:
        permitted = ", ".join(u.value for u in rights.allowed_usage_types) or "none"
        return _failed(
            CHECK_USAGE,
            f"Usage type not explicitly permitted: {usage}",
            [f"Permitted usage types: {permitted}"],
        )
    return _passed(CHECK_USAGE, f"Usage type '{usage}' is permitted")


def check_territory(request: DownloadRequest, rights: AssetRights) -> CheckOutcome:
    territory = request.territory
    extension = "Contact rights holder to request territory extension"
    if territory in rights.restricted_territories:
        return _failed(CHECK_TERRITORY, f"Territory {territory} is restricted for this asset", [extension])
    if isinstance(rights.allowed_territories, TerritoryList):
        codes = rights.allowed_territories.codes
        if territory not in codes:
            return _failed(
                CHECK_TERRITORY,
                f"Territory {territory} is not in the allowed list ({', '.join(codes) or 'none'})",
                [extension],
            )
        return _passed(CHECK_TERRITORY, f"Territory {territory} is licensed")
    return _passed(CHECK_TERRITORY, f"Territory {territory} is covered by a worldwide grant")


def check_quota(rights: AssetRights, warning_ratio: float = DEFAULT_QUOTA_WARNING_RATIO) -> CheckOutcome:
    if rights.max_downloads is None:
        return _passed(CHECK_QUOTA, "No download limit")
    used = f"{rights.current_downloads}/{rights.max_downloads}"
    if rights.current_downloads >= rights.max_downloads:
        return _failed(
            CHECK_QUOTA,
            f"Download quota exhausted ({used})",
            ["Contact rights holder to extend the download quota"],
        )
    if rights.current_downloads >= rights.max_downloads * warning_ratio:
        return _warning(
            CHECK_QUOTA,
            f"Approaching download quota ({used})",
            ["Reuse previously downloaded files where possible"],
        )
    return _passed(CHECK_QUOTA, f"{used} downloads used")


def check_approval(rights: AssetRights) -> CheckOutcome:
    if not rights.requires_approval:
        return _passed(CHECK_APPROVAL, "No approval required")
    if rights.approver_roles:
        roles = ", ".join(rights.approver_roles)
        return _warning(
            CHECK_APPROVAL,
            f"This download requires approval from: {roles}",
            [f"Submit for approval to: {roles}"],
        )
    return _warning(
        CHECK_APPROVAL,
        "This download requires approval",
        ["Submit for approval to the rights-management team"],
    )


def check_watermark(rights: AssetRights) -> CheckOutcome:
    if not rights.requires_watermark:
        return _passed(CHECK_WATERMARK, "No watermark required")
    if rights.watermark_text:
        return _warning(
            CHECK_WATERMARK,
            f'Delivered file must carry the watermark "{rights.watermark_text}"',
            [f'Apply watermark text "{rights.watermark_text}" before delivery'],
        )
    return _warning(
        CHECK_WATERMARK,
        "Delivered file must be watermarked",
        ["Apply the rights holder's standard watermark before delivery"],
    )


def combine(outcomes: Iterable[CheckOutcome], evaluated_at: datetime) -> DownloadValidationResult:
    checks: List[ValidationCheck] = []
    blockers: List[str] = []
    warnings: List[str] = []
    suggestions: List[str] = []
    allowed = True
    for outcome in outcomes:
        checks.append(outcome.check)
        blockers.extend(outcome.blockers)
        warnings.extend(outcome.warnings)
        suggestions.extend(outcome.suggestions)
        if outcome.failed:
            allowed = False
    return DownloadValidationResult(
        allowed=allowed,
        checks=checks,
        blockers=blockers,
        warnings=warnings,
        suggestions=suggestions,
        evaluated_at=evaluated_at,
    )
