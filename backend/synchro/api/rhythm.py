"""Rhythm profiles and mirror matches."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, status

from synchro.container import Services, get_services
from synchro.infra.auth import AuthenticatedUser, get_current_user

router = APIRouter()


@router.post("/rhythm/analyze")
async def analyze(
	auth_user: AuthenticatedUser = Depends(get_current_user),
	services: Services = Depends(get_services),
) -> dict:
	rhythm = await services.rhythm.analyze_user_rhythm(auth_user.id)
	return {"rhythm": rhythm.to_dict() if rhythm else None}


@router.get("/rhythm")
async def get_rhythm(
	auth_user: AuthenticatedUser = Depends(get_current_user),
	services: Services = Depends(get_services),
) -> dict:
	rhythm = await services.rhythm.get_user_rhythm(auth_user.id)
	if rhythm is None:
		raise HTTPException(status.HTTP_404_NOT_FOUND, detail="rhythm_not_found")
	return rhythm.to_dict()


@router.get("/rhythm/mirror-matches")
async def mirror_matches(
	auth_user: AuthenticatedUser = Depends(get_current_user),
	services: Services = Depends(get_services),
) -> dict:
	matches = await services.rhythm.find_mirror_matches(auth_user.id)
	return {"items": [match.to_dict() for match in matches]}
