"""Tenant-scoped service over the rights engine."""
from __future__ import annotations

import logging
import threading
from datetime import datetime, timezone
from typing import Callable, Dict, List, Mapping, Optional, Tuple

from engines.common.identity import RequestContext
from engines.config import runtime_config
from engines.logging.audit import emit_audit_event
from engines.rights import engine
from engines.rights.models import (
    AssetRights,
    AssetRightsView,
    DownloadAuditLog,
    DownloadRecordCreate,
    DownloadRequest,
    DownloadValidationResult,
    RightsReport,
    RightsSnapshot,
    RightsStatus,
)
from engines.rights.repository import RightsRepository, rights_repo_from_env

logger = logging.getLogger(__name__)


class RightsError(Exception):
    """Base rights service error."""


class RightsNotFound(RightsError):
    """Raised when an asset has no rights record for the tenant/env."""


class DownloadDenied(RightsError):
    """Raised when a download is recorded that the rights do not allow."""

    def __init__(self, result: DownloadValidationResult) -> None:
        super().__init__("; ".join(result.blockers) or "download not allowed")
        self.result = result


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class RightsService:
    def __init__(
        self,
        repo: Optional[RightsRepository] = None,
        clock: Optional[Callable[[], datetime]] = None,
        expiry_window_days: Optional[int] = None,
        quota_warning_ratio: Optional[float] = None,
    ) -> None:
        self.repo = repo or rights_repo_from_env()
        self._clock = clock or _utc_now
        self.expiry_window_days = (
            expiry_window_days if expiry_window_days is not None else runtime_config.get_expiry_window_days()
        )
        self.quota_warning_ratio = (
            quota_warning_ratio if quota_warning_ratio is not None else runtime_config.get_quota_warning_ratio()
        )
        self._asset_locks: Dict[Tuple[str, str, str], threading.Lock] = {}
        self._asset_locks_guard = threading.Lock()

    def _asset_lock(self, ctx: RequestContext, asset_id: str) -> threading.Lock:
        key = (ctx.tenant_id, ctx.env, asset_id)
        with self._asset_locks_guard:
            return self._asset_locks.setdefault(key, threading.Lock())

    # Rights records

    def upsert_rights(self, ctx: RequestContext, rights: AssetRights) -> AssetRights:
        now = self._clock()
        existing = self.repo.get_rights(ctx.tenant_id, ctx.env, rights.asset_id)
        if existing:
            # Audit fields other than updated_at are fixed at creation.
            rights = rights.model_copy(
                update={
                    "created_at": existing.created_at,
                    "created_by": existing.created_by,
                    "updated_at": now,
                }
            )
        else:
            rights = rights.model_copy(
                update={"created_at": now, "updated_at": now, "created_by": rights.created_by or ctx.user_id}
            )
        stored = self.repo.upsert_rights(ctx.tenant_id, ctx.env, rights)
        emit_audit_event(
            ctx,
            action="rights:upsert",
            surface="rights",
            metadata={"asset_id": stored.asset_id, "created": existing is None},
        )
        return stored

    def get_rights(self, ctx: RequestContext, asset_id: str) -> AssetRights:
        rights = self.repo.get_rights(ctx.tenant_id, ctx.env, asset_id)
        if not rights:
            raise RightsNotFound(f"no rights on file for asset {asset_id}")
        return rights

    def _view(self, rights: AssetRights, now: datetime) -> AssetRightsView:
        return AssetRightsView(
            rights=rights,
            status=engine.get_rights_status(rights, now),
            days_until_expiry=engine.days_until_expiry(rights, now),
        )

    def list_rights(self, ctx: RequestContext, status: Optional[RightsStatus] = None) -> List[AssetRightsView]:
        now = self._clock()
        views = [self._view(r, now) for r in self.repo.list_rights(ctx.tenant_id, ctx.env)]
        if status:
            views = [v for v in views if v.status == status]
        return sorted(views, key=lambda v: v.rights.asset_id)

    def rights_status(self, ctx: RequestContext, asset_id: str) -> RightsStatus:
        rights = self.repo.get_rights(ctx.tenant_id, ctx.env, asset_id)
        if rights is None:
            return RightsStatus.unknown
        return engine.get_rights_status(rights, self._clock())

    def expiring(self, ctx: RequestContext, window_days: Optional[int] = None) -> List[AssetRightsView]:
        now = self._clock()
        window = window_days if window_days is not None else self.expiry_window_days
        expiring = engine.get_expiring_rights(self.repo.list_rights(ctx.tenant_id, ctx.env), window, now)
        return [self._view(r, now) for r in expiring]

    def set_asset_name(self, ctx: RequestContext, asset_id: str, name: str) -> None:
        self.repo.set_asset_name(ctx.tenant_id, ctx.env, asset_id, name)

    # Downloads

    def validate(self, ctx: RequestContext, request: DownloadRequest) -> DownloadValidationResult:
        rights = self.repo.get_rights(ctx.tenant_id, ctx.env, request.asset_id)
        result = engine.validate_download_request(
            request,
            rights,
            now=self._clock(),
            quota_warning_ratio=self.quota_warning_ratio,
        )
        if result.allowed:
            logger.debug("download %s allowed for asset %s", request.id, request.asset_id)
        else:
            logger.info(
                "download %s blocked for asset %s: %s",
                request.id,
                request.asset_id,
                "; ".join(result.blockers),
            )
        return result

    def record_download(self, ctx: RequestContext, payload: DownloadRecordCreate) -> DownloadAuditLog:
        """Log a fulfilled download and consume one unit of quota.

        The request is validated again against the current terms, so a
        download cannot be logged against rights that have lapsed since the
        caller last checked. Validation and the counter update hold the
        asset's lock, so two concurrent records cannot both pass the quota
        check on the same count.
        """
        request = payload.request
        with self._asset_lock(ctx, request.asset_id):
            result = self.validate(ctx, request)
            if not result.allowed:
                emit_audit_event(
                    ctx,
                    action="rights:download_denied",
                    surface="rights",
                    metadata={"asset_id": request.asset_id, "request_id": request.id, "blockers": result.blockers},
                )
                raise DownloadDenied(result)

            rights = self.get_rights(ctx, request.asset_id)
            names = self.repo.asset_names(ctx.tenant_id, ctx.env)
            log = DownloadAuditLog(
                asset_id=request.asset_id,
                asset_name=payload.asset_name or names.get(request.asset_id),
                downloaded_by=request.requested_by,
                downloaded_at=self._clock(),
                usage_type=request.intended_usage,
                territory=request.territory,
                project_id=request.project_id,
                file_size=payload.file_size,
                format=payload.format,
                resolution=payload.resolution,
                rights_snapshot=RightsSnapshot.from_rights(rights),
                ip_address=payload.ip_address,
                user_agent=payload.user_agent,
            )
            self.repo.append_download(ctx.tenant_id, ctx.env, log)
            self.repo.increment_downloads(ctx.tenant_id, ctx.env, request.asset_id, log.downloaded_at)
        emit_audit_event(
            ctx,
            action="rights:download_recorded",
            surface="rights",
            metadata={"asset_id": log.asset_id, "download_id": log.id, "usage_type": log.usage_type.value},
        )
        return log

    def list_downloads(self, ctx: RequestContext, asset_id: Optional[str] = None) -> List[DownloadAuditLog]:
        logs = self.repo.list_downloads(ctx.tenant_id, ctx.env, asset_id=asset_id)
        return sorted(logs, key=lambda log: log.downloaded_at, reverse=True)

    # Reporting

    def report(self, ctx: RequestContext, asset_names: Optional[Mapping[str, str]] = None) -> RightsReport:
        names: Dict[str, str] = self.repo.asset_names(ctx.tenant_id, ctx.env)
        if asset_names:
            names.update(asset_names)
        return engine.generate_rights_report(
            self.repo.list_rights(ctx.tenant_id, ctx.env),
            names,
            self.repo.list_downloads(ctx.tenant_id, ctx.env),
            now=self._clock(),
            expiry_window_days=self.expiry_window_days,
            quota_warning_ratio=self.quota_warning_ratio,
        )


_default_service: Optional[RightsService] = None


def get_rights_service() -> RightsService:
    global _default_service
    if _default_service is None:
        _default_service = RightsService()
    return _default_service


def set_rights_service(service: RightsService) -> None:
    global _default_service
    _default_service = service
