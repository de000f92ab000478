"""Synchronicities, scanning control and auto lobbies."""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status

from synchro.api.errors import map_error
from synchro.api.schemas import ScanningToggle, ToggleResponse
from synchro.container import Services, get_services
from synchro.domain.lobbies.exceptions import LobbyError
from synchro.infra.auth import AuthenticatedUser, get_current_user

router = APIRouter()


@router.get("/synchronicities")
async def list_synchronicities(
	auth_user: AuthenticatedUser = Depends(get_current_user),
	services: Services = Depends(get_services),
) -> dict:
	syncs = await services.synchronicity.get_synchronicities_for_user(auth_user.id)
	return {"items": [sync.to_dict() for sync in syncs]}


@router.post("/synchronicities/scan")
async def scan_now(
	auth_user: AuthenticatedUser = Depends(get_current_user),
	services: Services = Depends(get_services),
) -> dict:
	result = await services.scanner.run_pipeline_once(auth_user.id)
	return {
		"synchronicities": [sync.to_dict() for sync in result.synchronicities],
		"lobbies": [lobby.to_dict() for lobby in result.lobbies],
	}


@router.post("/synchronicities/scanning", response_model=ToggleResponse)
async def toggle_scanning(
	payload: ScanningToggle,
	auth_user: AuthenticatedUser = Depends(get_current_user),
	services: Services = Depends(get_services),
) -> ToggleResponse:
	if payload.enabled:
		changed = await services.scanner.start_scanning(auth_user.id, payload.interval_seconds)
		state = "started" if changed else "unchanged"
	else:
		changed = await services.scanner.stop_scanning(auth_user.id)
		state = "stopped" if changed else "unchanged"
	return ToggleResponse(user_id=auth_user.id, scanning=services.scanner.is_scanning(auth_user.id), state=state)


@router.post("/synchronicities/{sync_id}/lobby")
async def create_lobby(
	sync_id: str,
	auth_user: AuthenticatedUser = Depends(get_current_user),
	services: Services = Depends(get_services),
) -> dict:
	sync = await services.synchronicity.get(sync_id)
	if sync is None or auth_user.id not in sync.user_ids:
		raise HTTPException(status.HTTP_404_NOT_FOUND, detail="synchronicity_not_found")
	if sync.lobby_created and sync.lobby_id:
		lobby = await services.lobbies.get_lobby(sync.lobby_id)
		if lobby is not None:
			return {"created": False, "lobby": lobby.to_dict()}
	lobby = await services.lobbies.create_auto_lobby(sync)
	if lobby is None:
		raise HTTPException(status.HTTP_409_CONFLICT, detail="lobby_not_eligible")
	return {"created": True, "lobby": lobby.to_dict()}


@router.get("/lobbies/auto/nearby")
async def lobbies_nearby(
	lat: float = Query(..., ge=-90, le=90),
	lon: float = Query(..., ge=-180, le=180),
	radius_km: Optional[float] = Query(default=None, gt=0, le=50),
	auth_user: AuthenticatedUser = Depends(get_current_user),
	services: Services = Depends(get_services),
) -> dict:
	lobbies = await services.lobbies.get_auto_lobbies_nearby(lat, lon, radius_km)
	return {"items": [lobby.to_dict() for lobby in lobbies]}


@router.get("/lobbies/{lobby_id}")
async def get_lobby(
	lobby_id: str,
	auth_user: AuthenticatedUser = Depends(get_current_user),
	services: Services = Depends(get_services),
) -> dict:
	lobby = await services.lobbies.get_lobby(lobby_id)
	if lobby is None:
		raise HTTPException(status.HTTP_404_NOT_FOUND, detail="lobby_not_found")
	return lobby.to_dict()


@router.post("/lobbies/{lobby_id}/join")
async def join_lobby(
	lobby_id: str,
	auth_user: AuthenticatedUser = Depends(get_current_user),
	services: Services = Depends(get_services),
) -> dict:
	try:
		lobby = await services.lobbies.join_lobby(lobby_id, auth_user.id)
	except LobbyError as exc:
		raise map_error(exc) from None
	return lobby.to_dict()
