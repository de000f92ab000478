import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from fakeredis.aioredis import FakeRedis

# Ensure backend package is importable when tests run from repo root
BACKEND_ROOT = Path(__file__).resolve().parents[1]
if str(BACKEND_ROOT) not in sys.path:
	sys.path.insert(0, str(BACKEND_ROOT))

from synchro.container import build_services
from synchro.infra import postgres
from synchro.infra.memory import reset_memory_state
from synchro.main import app
from synchro.settings import settings


class FrozenClock:
	"""Callable clock the tests can move forward by hand."""

	def __init__(self, now: datetime) -> None:
		self.now = now

	def __call__(self) -> datetime:
		return self.now

	def advance(self, **kwargs) -> datetime:
		self.now = self.now + timedelta(**kwargs)
		return self.now


@pytest_asyncio.fixture(autouse=True)
async def fake_redis():
	from synchro.infra.redis import redis_client, set_redis_client
	original = redis_client.client
	client = FakeRedis(decode_responses=True)
	set_redis_client(client)
	try:
		yield client
	finally:
		set_redis_client(original)
		await client.flushall()


@pytest.fixture(autouse=True)
def patch_postgres(monkeypatch):
	async def _noop():
		return None

	monkeypatch.setattr(postgres, "init_pool", _noop)
	monkeypatch.setattr(postgres, "close_pool", _noop)
	postgres.set_pool(None)


@pytest.fixture(autouse=True)
def memory_state():
	reset_memory_state()
	yield
	reset_memory_state()


@pytest.fixture(autouse=True)
def force_test_settings():
	"""Header auth (X-User-Id) is only accepted in dev mode."""
	original_env = settings.environment
	original_tz = settings.local_timezone
	settings.environment = "dev"
	settings.local_timezone = "Europe/Copenhagen"
	try:
		yield
	finally:
		settings.environment = original_env
		settings.local_timezone = original_tz


@pytest.fixture
def clock():
	# Wednesday 4 June 2025, 09:05 in Copenhagen (CEST)
	return FrozenClock(datetime(2025, 6, 4, 7, 5, tzinfo=timezone.utc))


@pytest_asyncio.fixture
async def services(clock):
	container = build_services(clock=clock)
	try:
		yield container
	finally:
		await container.shutdown()


@pytest_asyncio.fixture
async def api_client(services):
	app.state.services = services
	transport = ASGITransport(app=app)
	try:
		async with AsyncClient(transport=transport, base_url="http://testserver") as client:
			yield client
	finally:
		app.state.services = None
