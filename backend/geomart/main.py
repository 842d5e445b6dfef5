"""FastAPI application entrypoint."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

import asyncpg
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from geomart.api import marketplace, ops
from geomart.api.errors import install_error_handlers
from geomart.api.middleware_request_id import RequestIdMiddleware
from geomart.infra import postgres
from geomart.obs import init as obs_init
from geomart.settings import settings

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
	if settings.marketplace_store != "memory":
		try:
			await postgres.init_pool()
		except (OSError, asyncpg.PostgresError, asyncpg.InterfaceError) as exc:
			if settings.marketplace_store == "postgres":
				raise
			logger.warning("postgres pool unavailable at startup: %s", exc)
	try:
		yield
	finally:
		await postgres.close_pool()


app = FastAPI(title="GeoMart Marketplace", lifespan=lifespan)
install_error_handlers(app)

allow_origins = list(settings.cors_allow_origins)
if not allow_origins:
	allow_origins = ["http://localhost:3000"] if settings.is_dev() else []

# Starlette disallows wildcard '*' with allow_credentials=True
if "*" in allow_origins:
	allow_origins = ["http://localhost:3000", "http://127.0.0.1:3000"] if settings.is_dev() else []

app.add_middleware(
	CORSMiddleware,
	allow_origins=allow_origins,
	allow_credentials=True,
	allow_methods=["GET"],
	allow_headers=["*"],
)

obs_init(app)

# Ensure every request carries an X-Request-Id and make it available on request.state
app.add_middleware(RequestIdMiddleware)

app.include_router(marketplace.router, tags=["marketplace"])
app.include_router(ops.router, tags=["ops"])
