from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, Query

from engines.common.error_envelope import error_response, not_found_error
from engines.common.identity import RequestContext, get_request_context
from engines.rights.models import (
    AssetNameUpdate,
    AssetRights,
    AssetRightsView,
    DownloadAuditLog,
    DownloadRecordCreate,
    DownloadRequest,
    DownloadValidationResult,
    RightsReport,
    RightsStatus,
)
from engines.rights.service import DownloadDenied, RightsNotFound, RightsService, get_rights_service

router = APIRouter(prefix="/rights", tags=["rights"])


@router.put("/assets/{asset_id}", response_model=AssetRights)
def put_rights(
    asset_id: str,
    payload: AssetRights,
    context: RequestContext = Depends(get_request_context),
    service: RightsService = Depends(get_rights_service),
) -> AssetRights:
    if payload.asset_id != asset_id:
        error_response(
            code="rights.asset_mismatch",
            message="asset_id in body does not match path",
            status_code=400,
            resource_kind="asset_rights",
            details={"path": asset_id, "body": payload.asset_id},
        )
    return service.upsert_rights(context, payload)


@router.get("/assets", response_model=List[AssetRightsView])
def list_rights(
    status: Optional[RightsStatus] = Query(default=None),
    context: RequestContext = Depends(get_request_context),
    service: RightsService = Depends(get_rights_service),
) -> List[AssetRightsView]:
    return service.list_rights(context, status=status)


@router.get("/assets/{asset_id}", response_model=AssetRights)
def get_rights(
    asset_id: str,
    context: RequestContext = Depends(get_request_context),
    service: RightsService = Depends(get_rights_service),
) -> AssetRights:
    try:
        return service.get_rights(context, asset_id)
    except RightsNotFound:
        not_found_error("asset_rights", asset_id)


@router.get("/assets/{asset_id}/status")
def get_status(
    asset_id: str,
    context: RequestContext = Depends(get_request_context),
    service: RightsService = Depends(get_rights_service),
) -> dict:
    return {"asset_id": asset_id, "status": service.rights_status(context, asset_id)}


@router.put("/assets/{asset_id}/name")
def put_asset_name(
    asset_id: str,
    payload: AssetNameUpdate,
    context: RequestContext = Depends(get_request_context),
    service: RightsService = Depends(get_rights_service),
) -> dict:
    service.set_asset_name(context, asset_id, payload.name)
    return {"asset_id": asset_id, "name": payload.name}


@router.get("/expiring", response_model=List[AssetRightsView])
def list_expiring(
    days: Optional[int] = Query(default=None, ge=0, le=3650),
    context: RequestContext = Depends(get_request_context),
    service: RightsService = Depends(get_rights_service),
) -> List[AssetRightsView]:
    return service.expiring(context, window_days=days)


@router.post("/validate", response_model=DownloadValidationResult)
def validate_download(
    payload: DownloadRequest,
    context: RequestContext = Depends(get_request_context),
    service: RightsService = Depends(get_rights_service),
) -> DownloadValidationResult:
    return service.validate(context, payload)


@router.post("/downloads", response_model=DownloadAuditLog)
def record_download(
    payload: DownloadRecordCreate,
    context: RequestContext = Depends(get_request_context),
    service: RightsService = Depends(get_rights_service),
) -> DownloadAuditLog:
    try:
        return service.record_download(context, payload)
    except DownloadDenied as exc:
        error_response(
            code="rights.download_denied",
            message=str(exc),
            status_code=403,
            gate="rights",
            resource_kind="download",
            details=exc.result.model_dump(mode="json"),
        )


@router.get("/downloads", response_model=List[DownloadAuditLog])
def list_downloads(
    asset_id: Optional[str] = Query(default=None),
    context: RequestContext = Depends(get_request_context),
    service: RightsService = Depends(get_rights_service),
) -> List[DownloadAuditLog]:
    return service.list_downloads(context, asset_id=asset_id)


@router.get("/reports", response_model=RightsReport)
def get_report(
    context: RequestContext = Depends(get_request_context),
    service: RightsService = Depends(get_rights_service),
) -> RightsReport:
    return service.report(context)
