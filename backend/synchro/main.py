"""FastAPI application entrypoint."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

import socketio
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from synchro.api import karma, ops, pings, presence, rhythm, synchronicity
from synchro.api.errors import install_error_handlers
from synchro.container import build_services
from synchro.domain.common.sockets import SynchroNamespace, set_namespace
from synchro.infra import postgres
from synchro.infra.redis import redis_client
from synchro.infra.scheduler import MaintenanceScheduler
from synchro.infra.schema import ensure_schema
from synchro.maintenance.sweeps import schedule_sweeps
from synchro.obs import init as obs_init
from synchro.settings import settings

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
	pool = await postgres.pool_or_none()
	if pool is None:
		logger.warning("postgres unavailable, repositories use the in-memory store")
	await ensure_schema(pool)
	services = build_services()
	app.state.services = services
	scheduler: MaintenanceScheduler | None = None
	if settings.maintenance_enabled:
		scheduler = MaintenanceScheduler()
		scheduler.start()
		schedule_sweeps(scheduler, services.lobbies, services.pings)
		app.state.maintenance_scheduler = scheduler
	try:
		yield
	finally:
		if scheduler is not None:
			scheduler.shutdown()
		await services.shutdown()
		await postgres.close_pool()
		await redis_client.close()


app = FastAPI(title="Synchro Pipeline", lifespan=lifespan)
install_error_handlers(app)

allow_origins = list(settings.cors_allow_origins)
if not allow_origins:
	allow_origins = ["http://localhost:8081"] if settings.is_dev() else []

app.add_middleware(
	CORSMiddleware,
	allow_origins=allow_origins,
	allow_credentials=True,
	allow_methods=["*"],
	allow_headers=["*"],
)

sio = socketio.AsyncServer(async_mode="asgi", cors_allowed_origins=allow_origins)
synchro_namespace = SynchroNamespace()
sio.register_namespace(synchro_namespace)
set_namespace(synchro_namespace)
socket_app = socketio.ASGIApp(sio, other_asgi_app=app)
obs_init(app)

app.include_router(presence.router, tags=["presence"])
app.include_router(synchronicity.router, tags=["synchronicity"])
app.include_router(rhythm.router, tags=["rhythm"])
app.include_router(pings.router, tags=["pings"])
app.include_router(karma.router, tags=["karma"])
app.include_router(ops.router, tags=["ops"])
