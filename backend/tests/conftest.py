import sys
from pathlib import Path

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from fakeredis.aioredis import FakeRedis

# Ensure backend package is importable when tests run from repo root
BACKEND_ROOT = Path(__file__).resolve().parents[1]
if str(BACKEND_ROOT) not in sys.path:
	sys.path.insert(0, str(BACKEND_ROOT))

from geomart.domain.marketplace.service import reset_memory_state
from geomart.infra import postgres
from geomart.main import app
from geomart.settings import settings


@pytest_asyncio.fixture(autouse=True)
async def fake_redis():
	from geomart.infra.redis import redis_client, set_redis_client
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


@pytest.fixture(autouse=True)
def force_test_settings():
	"""Pin the in-process store and default paging for every test."""
	original_store = settings.marketplace_store
	original_default = settings.marketplace_default_page_size
	original_max = settings.marketplace_max_page_size
	original_public = settings.obs_metrics_public
	original_environment = settings.environment
	settings.marketplace_store = "memory"
	settings.marketplace_default_page_size = 20
	settings.marketplace_max_page_size = 100
	try:
		yield
	finally:
		settings.marketplace_store = original_store
		settings.marketplace_default_page_size = original_default
		settings.marketplace_max_page_size = original_max
		settings.obs_metrics_public = original_public
		settings.environment = original_environment


@pytest_asyncio.fixture(autouse=True)
async def clear_marketplace_memory():
	await reset_memory_state()
	yield
	await reset_memory_state()


@pytest_asyncio.fixture
async def api_client():
	transport = ASGITransport(app=app)
	async with AsyncClient(transport=transport, base_url="http://testserver") as client:
		yield client
