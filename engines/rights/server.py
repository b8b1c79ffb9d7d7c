"""Aggregate app for the rights engine."""
from __future__ import annotations

from fastapi import FastAPI

from engines.common.health import router as health_router
from engines.rights.routes import router as rights_router


def create_app() -> FastAPI:
    app = FastAPI(title="Rights Engine")
    app.include_router(health_router)
    app.include_router(rights_router)
    return app


app = create_app()
