"""Out-of-band sweeps: settle due auto lobbies and expire stale pings."""

from __future__ import annotations

import logging
from typing import Dict

from synchro.domain.lobbies.service import AutoLobbyCreator
from synchro.domain.pings.service import PingService
from synchro.infra.scheduler import MaintenanceScheduler
from synchro.obs import metrics as obs_metrics
from synchro.settings import settings

logger = logging.getLogger(__name__)

SWEEP_JOB_ID = "synchro-maintenance-sweeps"


async def run_sweeps_once(lobbies: AutoLobbyCreator, pings: PingService) -> Dict[str, int]:
	"""Run each sweep once; a failing sweep is logged and does not stop the other."""
	result = {"started": 0, "cancelled": 0, "expired_pings": 0}
	try:
		counts = await lobbies.check_and_start_lobbies()
		result["started"] = counts["started"]
		result["cancelled"] = counts["cancelled"]
		obs_metrics.inc_maintenance_run("lobbies", "ok")
	except Exception:
		logger.exception("lobby sweep failed")
		obs_metrics.inc_maintenance_run("lobbies", "error")
	try:
		result["expired_pings"] = await pings.expire_old_pings()
		obs_metrics.inc_maintenance_run("pings", "ok")
	except Exception:
		logger.exception("ping expiry sweep failed")
		obs_metrics.inc_maintenance_run("pings", "error")
	if any(result.values()):
		logger.info("maintenance sweep", extra=result)
	return result


def schedule_sweeps(
	scheduler: MaintenanceScheduler,
	lobbies: AutoLobbyCreator,
	pings: PingService,
	*,
	interval_seconds: int | None = None,
) -> None:
	async def _job() -> None:
		await run_sweeps_once(lobbies, pings)

	scheduler.schedule_every(
		SWEEP_JOB_ID,
		_job,
		seconds=interval_seconds if interval_seconds is not None else settings.maintenance_interval_seconds,
	)
