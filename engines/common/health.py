"""Health probes."""
from fastapi import APIRouter
from pydantic import BaseModel

from engines.config import runtime_config

router = APIRouter(tags=["system"])


class HealthStatus(BaseModel):
    status: str
    version: str = "0.1.0"
    backend: str = "memory"


@router.get("/health", response_model=HealthStatus)
def health_check():
    return HealthStatus(status="ok", backend=runtime_config.get_rights_backend())


@router.get("/ready", response_model=HealthStatus)
def readiness_check():
    return HealthStatus(status="ok", backend=runtime_config.get_rights_backend())
