from datetime import datetime, timedelta, timezone

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from geomart.domain.marketplace import models, verification

NOW = datetime(2026, 5, 1, 12, 0, tzinfo=timezone.utc)


class _CountingLookup:
	def __init__(self, verified: set[str]) -> None:
		self.verified = verified
		self.calls: list[list[str]] = []

	async def verified_usernames(self, usernames, *, now):
		names = sorted(usernames)
		self.calls.append(names)
		return {name for name in names if name in self.verified}


class _BrokenRedis:
	async def mget(self, keys):
		raise RedisConnectionError("down")


def _users() -> dict[str, models.UserVerification]:
	rows = [
		models.UserVerification("asha", "verified", None),
		models.UserVerification("ravi", "verified", NOW - timedelta(days=1)),
		models.UserVerification("meera", "not_verified", None),
		models.UserVerification("kiran", "verified", NOW + timedelta(days=30)),
	]
	return {row.username: row for row in rows}


@pytest.mark.asyncio
async def test_memory_lookup_honours_status_and_expiry():
	lookup = verification.MemoryVerificationLookup(_users())
	result = await lookup.verified_usernames(["asha", "ravi", "meera", "kiran", "ghost"], now=NOW)
	assert result == {"asha", "kiran"}
	assert await verification.is_currently_verified(lookup, "asha", now=NOW)
	assert not await verification.is_currently_verified(lookup, "ravi", now=NOW)


@pytest.mark.asyncio
async def test_cached_lookup_reads_through_and_then_hits(fake_redis):
	inner = _CountingLookup({"asha"})
	cached = verification.CachedVerificationLookup(inner, ttl_seconds=30)

	assert await cached.verified_usernames(["asha", "meera"], now=NOW) == {"asha"}
	assert inner.calls == [["asha", "meera"]]
	assert await fake_redis.get("mkt:verified:asha") == "1"
	assert await fake_redis.get("mkt:verified:meera") == "0"
	assert 0 < await fake_redis.ttl("mkt:verified:asha") <= 30

	assert await cached.verified_usernames(["meera", "asha"], now=NOW) == {"asha"}
	assert inner.calls == [["asha", "meera"]]


@pytest.mark.asyncio
async def test_cached_lookup_only_asks_for_misses(fake_redis):
	inner = _CountingLookup({"kiran"})
	cached = verification.CachedVerificationLookup(inner, ttl_seconds=30)
	await fake_redis.set("mkt:verified:asha", "1")

	assert await cached.verified_usernames(["asha", "kiran"], now=NOW) == {"asha", "kiran"}
	assert inner.calls == [["kiran"]]


@pytest.mark.asyncio
async def test_cached_lookup_falls_back_when_redis_is_down():
	inner = _CountingLookup({"asha"})
	cached = verification.CachedVerificationLookup(inner, redis=_BrokenRedis(), ttl_seconds=30)
	assert await cached.verified_usernames(["asha", "ravi"], now=NOW) == {"asha"}
	assert inner.calls == [["asha", "ravi"]]


@pytest.mark.asyncio
async def test_empty_name_list_skips_lookups():
	inner = _CountingLookup({"asha"})
	cached = verification.CachedVerificationLookup(inner, ttl_seconds=30)
	assert await cached.verified_usernames([], now=NOW) == set()
	assert inner.calls == []
