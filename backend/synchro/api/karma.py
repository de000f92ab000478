"""Karma balances, history and help exchanges."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query, status

from synchro.api.schemas import HelpAskRequest, HelpRequest
from synchro.container import Services, get_services
from synchro.infra.auth import AuthenticatedUser, get_current_user

router = APIRouter()


@router.get("/karma/balance")
async def balance(
	auth_user: AuthenticatedUser = Depends(get_current_user),
	services: Services = Depends(get_services),
) -> dict:
	result = await services.karma.get_balance(auth_user.id)
	return result.to_dict()


@router.get("/karma/history")
async def history(
	limit: int = Query(default=50, ge=1, le=200),
	auth_user: AuthenticatedUser = Depends(get_current_user),
	services: Services = Depends(get_services),
) -> dict:
	transactions = await services.karma.get_transaction_history(auth_user.id, limit)
	return {"items": [tx.to_dict() for tx in transactions]}


@router.get("/karma/leaderboard")
async def leaderboard(
	limit: int = Query(default=10, ge=1, le=100),
	auth_user: AuthenticatedUser = Depends(get_current_user),
	services: Services = Depends(get_services),
) -> dict:
	entries = await services.karma.get_leaderboard(limit)
	return {"items": [entry.to_dict() for entry in entries]}


@router.post("/karma/help")
async def record_help(
	payload: HelpRequest,
	auth_user: AuthenticatedUser = Depends(get_current_user),
	services: Services = Depends(get_services),
) -> dict:
	if payload.helped_user_id == auth_user.id:
		raise HTTPException(status.HTTP_409_CONFLICT, detail="self_help")
	if payload.emergency:
		ok = await services.karma.emergency_help(auth_user.id, payload.helped_user_id, payload.task)
	else:
		ok = await services.karma.help_neighbor(
			auth_user.id,
			payload.helped_user_id,
			payload.task,
			payload.difficulty,
		)
	if not ok:
		raise HTTPException(status.HTTP_503_SERVICE_UNAVAILABLE, detail="karma_unavailable")
	current = await services.karma.get_balance(auth_user.id)
	return {"ok": True, "balance": current.to_dict()}


@router.post("/karma/request")
async def request_help(
	payload: HelpAskRequest,
	auth_user: AuthenticatedUser = Depends(get_current_user),
	services: Services = Depends(get_services),
) -> dict:
	ok = await services.karma.request_help(auth_user.id, payload.task, payload.karma_cost)
	if not ok:
		raise HTTPException(status.HTTP_409_CONFLICT, detail="insufficient_karma")
	current = await services.karma.get_balance(auth_user.id)
	return {"ok": True, "balance": current.to_dict()}
