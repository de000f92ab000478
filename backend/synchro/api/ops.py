"""Liveness and Prometheus endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from synchro.settings import settings

router = APIRouter()


@router.get("/health/live")
async def live() -> dict:
	return {"status": "ok", "service": settings.service_name}


@router.get("/metrics")
async def metrics() -> Response:
	return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)
