"""Seller verification lookups consumed by the verified-only filter.

The marketplace never joins against the user table directly. It asks a
lookup which of a page's owners are currently verified, so the user store
can sit behind Postgres, a cache, or a test double.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Iterable, Mapping, Protocol

import asyncpg
from redis.exceptions import RedisError

from geomart.domain.marketplace import models
from geomart.infra.redis import RedisProxy, redis_client
from geomart.obs import metrics as obs_metrics
from geomart.settings import settings

logger = logging.getLogger(__name__)

_CACHE_PREFIX = "mkt:verified:"


class VerificationLookup(Protocol):
	async def verified_usernames(self, usernames: Iterable[str], *, now: datetime) -> set[str]:
		...


async def is_currently_verified(lookup: VerificationLookup, username: str, *, now: datetime) -> bool:
	return username in await lookup.verified_usernames([username], now=now)


class MemoryVerificationLookup:
	"""Resolves verification against an in-process mapping of user rows."""

	def __init__(self, users: Mapping[str, models.UserVerification]) -> None:
		self._users = users

	async def verified_usernames(self, usernames: Iterable[str], *, now: datetime) -> set[str]:
		verified: set[str] = set()
		for username in set(usernames):
			user = self._users.get(username)
			if user is not None and user.is_currently_verified(now):
				verified.add(username)
		return verified


class PostgresVerificationLookup:
	def __init__(self, pool: asyncpg.Pool) -> None:
		self._pool = pool

	async def verified_usernames(self, usernames: Iterable[str], *, now: datetime) -> set[str]:
		names = sorted({name for name in usernames if name})
		if not names:
			return set()
		async with self._pool.acquire() as conn:
			rows = await conn.fetch(
				"""
				SELECT u.username
				FROM users u
				WHERE u.username = ANY($1::text[])
					AND u.verification_status = 'verified'
					AND (u.expires_at IS NULL OR u.expires_at > $2)
				""",
				names,
				now,
			)
		return {str(row["username"]) for row in rows}


class CachedVerificationLookup:
	"""Redis read-through cache in front of another lookup.

	Entries hold "1" or "0" per username and expire after the configured TTL,
	so a verification change becomes visible within one TTL window.
	"""

	def __init__(
		self,
		inner: VerificationLookup,
		*,
		redis: RedisProxy | None = None,
		ttl_seconds: int | None = None,
	) -> None:
		self._inner = inner
		self._redis = redis or redis_client
		self._ttl = ttl_seconds if ttl_seconds is not None else settings.marketplace_verification_cache_ttl_seconds

	@staticmethod
	def _key(username: str) -> str:
		return f"{_CACHE_PREFIX}{username}"

	async def verified_usernames(self, usernames: Iterable[str], *, now: datetime) -> set[str]:
		names = sorted({name for name in usernames if name})
		if not names:
			return set()
		try:
			cached = await self._redis.mget([self._key(name) for name in names])
		except (RedisError, OSError):
			logger.warning("verification cache read failed; using backing lookup", exc_info=True)
			return await self._inner.verified_usernames(names, now=now)

		verified: set[str] = set()
		misses: list[str] = []
		for name, raw in zip(names, cached):
			if raw is None:
				misses.append(name)
			elif str(raw) == "1":
				verified.add(name)
		if not misses:
			obs_metrics.inc_verification_cache("hit")
			return verified
		obs_metrics.inc_verification_cache("miss")

		fresh = await self._inner.verified_usernames(misses, now=now)
		verified.update(fresh)
		try:
			async with self._redis.pipeline(transaction=False) as pipe:
				for name in misses:
					pipe.set(self._key(name), "1" if name in fresh else "0", ex=self._ttl)
				await pipe.execute()
		except (RedisError, OSError):
			logger.warning("verification cache write failed", exc_info=True)
		return verified
