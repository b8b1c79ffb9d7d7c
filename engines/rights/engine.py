"""Rights validation engine.

Pure functions over rights records and download history. Nothing here does
I/O or reads the system clock except as the default for ``now``; callers
that need reproducible output pass ``now`` explicitly.
"""
from __future__ import annotations

import math
from datetime import datetime, timedelta, timezone
from typing import Dict, Iterable, List, Mapping, Optional

from engines.rights import checks
from engines.rights.models import (
    AssetRights,
    DownloadAuditLog,
    DownloadRequest,
    DownloadValidationResult,
    RightsReport,
    RightsReportEntry,
    RightsReportSummary,
    RightsStatus,
    as_utc,
)

DEFAULT_EXPIRY_WINDOW_DAYS = 30

_STATUS_ISSUES = {
    RightsStatus.expired: "Rights expired",
    RightsStatus.pending: "Rights not yet active",
    RightsStatus.restricted: "All licensed territories are restricted",
    RightsStatus.unknown: "No rights on file",
}


def _resolve_now(now: Optional[datetime]) -> datetime:
    return as_utc(now) if now is not None else datetime.now(timezone.utc)


def find_rights(rights: Iterable[AssetRights], asset_id: str) -> Optional[AssetRights]:
    for record in rights:
        if record.asset_id == asset_id:
            return record
    return None


def get_rights_status(rights: AssetRights, now: Optional[datetime] = None) -> RightsStatus:
    return checks.classify(rights, _resolve_now(now))


def days_until_expiry(rights: AssetRights, now: Optional[datetime] = None) -> Optional[int]:
    """Whole days left before ``valid_until``, rounded up; None when perpetual."""
    if rights.valid_until is None:
        return None
    remaining = rights.valid_until - _resolve_now(now)
    return math.ceil(remaining.total_seconds() / 86400)


def get_expiring_rights(
    rights: Iterable[AssetRights],
    window_days: int = DEFAULT_EXPIRY_WINDOW_DAYS,
    now: Optional[datetime] = None,
) -> List[AssetRights]:
    current = _resolve_now(now)
    horizon = current + timedelta(days=window_days)
    expiring = [
        r for r in rights
        if r.valid_until is not None and current <= r.valid_until <= horizon
    ]
    return sorted(expiring, key=lambda r: (r.valid_until, r.asset_id))


def validate_download_request(
    request: DownloadRequest,
    rights: Optional[AssetRights],
    now: Optional[datetime] = None,
    quota_warning_ratio: float = checks.DEFAULT_QUOTA_WARNING_RATIO,
) -> DownloadValidationResult:
    current = _resolve_now(now)
    if rights is None:
        return checks.combine([checks.check_rights_on_file(None)], current)
    outcomes = [
        checks.check_rights_on_file(rights),
        checks.check_validity(rights, current),
        checks.check_usage(request, rights),
        checks.check_territory(request, rights),
        checks.check_quota(rights, quota_warning_ratio),
        checks.check_approval(rights),
        checks.check_watermark(rights),
    ]
    return checks.combine(outcomes, current)


def _rights_issues(
    record: AssetRights,
    status: RightsStatus,
    now: datetime,
    expiry_window_days: int,
    quota_warning_ratio: float,
) -> List[str]:
    issues: List[str] = []
    if status in _STATUS_ISSUES:
        issues.append(_STATUS_ISSUES[status])
    if status == RightsStatus.valid and record.valid_until is not None:
        days = days_until_expiry(record, now)
        if days is not None and days <= expiry_window_days:
            issues.append(f"Rights expire in {days} days")
    quota = checks.check_quota(record, quota_warning_ratio)
    issues.extend(quota.blockers)
    issues.extend(quota.warnings)
    return issues


def _history_issues(logs: List[DownloadAuditLog]) -> List[str]:
    issues: List[str] = []
    late = [
        log for log in logs
        if log.rights_snapshot.valid_until is not None and log.downloaded_at > log.rights_snapshot.valid_until
    ]
    if late:
        issues.append(f"{len(late)} download(s) recorded after rights expiry")
    off_licence = [log for log in logs if log.usage_type not in log.rights_snapshot.allowed_usages]
    if off_licence:
        issues.append(f"{len(off_licence)} download(s) outside licensed usage")
    return issues


def generate_rights_report(
    rights: Iterable[AssetRights],
    asset_names: Mapping[str, str],
    download_logs: Iterable[DownloadAuditLog],
    now: Optional[datetime] = None,
    expiry_window_days: int = DEFAULT_EXPIRY_WINDOW_DAYS,
    quota_warning_ratio: float = checks.DEFAULT_QUOTA_WARNING_RATIO,
) -> RightsReport:
    current = _resolve_now(now)
    records: Dict[str, AssetRights] = {}
    for record in rights:
        # One active record per asset; a later entry replaces an earlier one.
        records[record.asset_id] = record
    logs_by_asset: Dict[str, List[DownloadAuditLog]] = {}
    for log in download_logs:
        logs_by_asset.setdefault(log.asset_id, []).append(log)

    statuses = {asset_id: checks.classify(r, current) for asset_id, r in records.items()}
    expiring = get_expiring_rights(records.values(), expiry_window_days, current)

    summary = RightsReportSummary(
        total_assets=len(records),
        assets_with_valid_rights=sum(1 for s in statuses.values() if s == RightsStatus.valid),
        assets_with_expiring_rights=len(expiring),
        assets_with_expired_rights=sum(1 for s in statuses.values() if s == RightsStatus.expired),
        assets_with_no_rights=sum(1 for asset_id in asset_names if asset_id not in records),
    )

    asset_ids: List[str] = list(records)
    for asset_id in list(asset_names) + list(logs_by_asset):
        if asset_id not in asset_ids:
            asset_ids.append(asset_id)

    entries: List[RightsReportEntry] = []
    for asset_id in asset_ids:
        logs = logs_by_asset.get(asset_id, [])
        record = records.get(asset_id)
        status = statuses.get(asset_id, RightsStatus.unknown)
        if record is not None:
            issues = _rights_issues(record, status, current, expiry_window_days, quota_warning_ratio)
        else:
            issues = [_STATUS_ISSUES[RightsStatus.unknown]]
        issues.extend(_history_issues(logs))
        name = asset_names.get(asset_id) or next((log.asset_name for log in logs if log.asset_name), None)
        entries.append(
            RightsReportEntry(
                asset_id=asset_id,
                asset_name=name or asset_id,
                rights_status=status,
                issues=issues,
                total_downloads=len(logs),
                last_download=max((log.downloaded_at for log in logs), default=None),
            )
        )

    return RightsReport(
        generated_at=current,
        expiry_window_days=expiry_window_days,
        summary=summary,
        assets=entries,
    )
