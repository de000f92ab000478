"""Presence ingestion and nearby browsing."""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query

from synchro.api.schemas import SamplePayload
from synchro.container import Services, get_services
from synchro.domain.presence.models import DeviceSample
from synchro.infra.auth import AuthenticatedUser, get_current_user

router = APIRouter()


@router.post("/presence/sample")
async def ingest_sample(
	payload: SamplePayload,
	auth_user: AuthenticatedUser = Depends(get_current_user),
	services: Services = Depends(get_services),
) -> dict:
	"""Record presence unconditionally, then classify the sample right away."""
	sample = DeviceSample(
		latitude=payload.latitude,
		longitude=payload.longitude,
		accuracy=payload.accuracy,
		speed=payload.speed,
		timestamp=payload.timestamp,
	)
	await services.tracker.record_sample(auth_user.id, sample)
	observation = await services.activities.detect_and_log(
		auth_user.id,
		sample,
		location_name=payload.location_name,
	)
	return {
		"user_id": auth_user.id,
		"activity": observation.to_dict() if observation else None,
	}


@router.post("/presence/offline")
async def go_offline(
	auth_user: AuthenticatedUser = Depends(get_current_user),
	services: Services = Depends(get_services),
) -> dict:
	await services.presence.go_offline(auth_user.id)
	return {"user_id": auth_user.id, "online": False}


@router.get("/proximity/nearby")
async def nearby(
	lat: float = Query(..., ge=-90, le=90),
	lon: float = Query(..., ge=-180, le=180),
	radius_m: Optional[float] = Query(default=None, gt=0, le=50000),
	auth_user: AuthenticatedUser = Depends(get_current_user),
	services: Services = Depends(get_services),
) -> dict:
	users = await services.proximity.find_nearby_users(auth_user.id, lat, lon, radius_m)
	return {
		"items": [
			{
				"user_id": user.user_id,
				"distance_meters": round(user.distance_meters, 1),
				"activity_type": user.activity_type.value,
				"location_name": user.location_name,
				"detected_at": user.detected_at,
			}
			for user in users
		]
	}
