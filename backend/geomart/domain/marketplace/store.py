"""Backing stores that supply listing and request rows to the search flow.

Stores may push row-local predicates down to narrow the candidate set, but
the filter pipeline always re-applies the exact predicates, so a store is
free to over-return.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Iterable, Optional, Protocol

import asyncpg

from geomart.domain.marketplace import filters as filter_pipeline
from geomart.domain.marketplace import geo, models, verification


@dataclass(frozen=True, slots=True)
class CreatedBound:
	"""Inclusive created_at bound derived from a date-sorted keyset cursor."""

	created_at: datetime
	before: bool

	def admits(self, created_at: datetime) -> bool:
		if self.before:
			return created_at <= self.created_at
		return created_at >= self.created_at


class MarketplaceStore(Protocol):
	name: str

	async def fetch_candidates(
		self,
		filters: filter_pipeline.FilterSet,
		*,
		created_bound: Optional[CreatedBound] = None,
	) -> list[models.SourceRecord]:
		...

	def verification_lookup(self) -> verification.VerificationLookup:
		...


class MemoryMarketplaceStore:
	name = "memory"

	def __init__(self) -> None:
		self._lock = asyncio.Lock()
		self.listings: dict[str, models.ListingRecord] = {}
		self.requests: dict[str, models.RequestRecord] = {}
		self.users: dict[str, models.UserVerification] = {}

	async def reset(self) -> None:
		async with self._lock:
			self.listings.clear()
			self.requests.clear()
			self.users.clear()

	async def seed(
		self,
		*,
		listings: Iterable[models.ListingRecord] | None = None,
		requests: Iterable[models.RequestRecord] | None = None,
		users: Iterable[models.UserVerification] | None = None,
	) -> None:
		async with self._lock:
			self.listings = {str(row.id): row for row in listings or []}
			self.requests = {str(row.id): row for row in requests or []}
			self.users = {user.username: user for user in users or []}

	async def fetch_candidates(
		self,
		filters: filter_pipeline.FilterSet,
		*,
		created_bound: Optional[CreatedBound] = None,
	) -> list[models.SourceRecord]:
		async with self._lock:
			rows: list[models.SourceRecord] = []
			if filters.wants("listing"):
				rows.extend(self.listings.values())
			if filters.wants("request"):
				rows.extend(self.requests.values())
		if created_bound is None:
			return rows
		return [row for row in rows if created_bound.admits(row.created_at)]

	def verification_lookup(self) -> verification.VerificationLookup:
		return verification.MemoryVerificationLookup(self.users)


_LISTING_SELECT = """
	SELECT
		'listing'::text AS kind,
		l.id,
		l.username,
		NULL::text AS requester_username,
		l.title,
		l.description,
		l.category,
		l.price,
		NULL::numeric AS budget_min,
		NULL::numeric AS budget_max,
		l.price_unit,
		l.thumbnail_images,
		l.preview_images,
		l.pickup_available,
		l.delivery_available,
		l.latitude,
		l.longitude,
		l.view_count,
		l.ping_count,
		l.expires_at,
		l.created_at
	FROM listings l
"""

_REQUEST_SELECT = """
	SELECT
		'request'::text AS kind,
		r.id,
		r.username,
		r.requester_username,
		r.title,
		r.description,
		r.category,
		r.price,
		r.budget_min,
		r.budget_max,
		r.price_unit,
		r.thumbnail_images,
		r.preview_images,
		r.pickup_available,
		r.delivery_available,
		r.latitude,
		r.longitude,
		r.view_count,
		r.ping_count,
		r.expires_at,
		r.created_at
	FROM requests r
"""


def _escape_like(token: str) -> str:
	return token.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


class _Params:
	def __init__(self) -> None:
		self.values: list[Any] = []

	def add(self, value: Any) -> str:
		self.values.append(value)
		return f"${len(self.values)}"


def _where_clauses(
	alias: str,
	price_expr: str,
	filters: filter_pipeline.FilterSet,
	params: _Params,
	now_ref: str,
	created_bound: Optional[CreatedBound],
) -> list[str]:
	clauses = [f"({alias}.expires_at IS NULL OR {alias}.expires_at > {now_ref})"]
	if filters.category is not None:
		clauses.append(f"{alias}.category = {params.add(filters.category)}")
	if filters.min_price is not None:
		clauses.append(f"{price_expr} >= {params.add(filters.min_price)}")
	if filters.max_price is not None:
		clauses.append(f"{price_expr} <= {params.add(filters.max_price)}")
	for token in filters.tokens:
		ref = params.add(f"%{_escape_like(token)}%")
		clauses.append(
			f"(coalesce({alias}.title, '') || ' ' || coalesce({alias}.description, '')) ILIKE {ref}"
		)
	if filters.radius_active:
		assert filters.origin is not None and filters.max_distance_km is not None
		min_lat, max_lat, min_lng, max_lng = geo.bounding_box(filters.origin, filters.max_distance_km)
		clauses.append(f"{alias}.latitude BETWEEN {params.add(min_lat)} AND {params.add(max_lat)}")
		clauses.append(f"{alias}.longitude BETWEEN {params.add(min_lng)} AND {params.add(max_lng)}")
	if created_bound is not None:
		op = "<=" if created_bound.before else ">="
		clauses.append(f"{alias}.created_at {op} {params.add(created_bound.created_at)}")
	return clauses


def build_candidate_query(
	filters: filter_pipeline.FilterSet,
	*,
	created_bound: Optional[CreatedBound] = None,
) -> tuple[str, list[Any]]:
	"""Compose the single UNION ALL statement for the wanted item types."""

	params = _Params()
	now_ref = params.add(filters.now)
	parts: list[str] = []
	if filters.wants("listing"):
		where = _where_clauses("l", "l.price", filters, params, now_ref, created_bound)
		parts.append(_LISTING_SELECT + "\tWHERE " + "\n\t\tAND ".join(where))
	if filters.wants("request"):
		where = _where_clauses(
			"r",
			"coalesce(r.price, r.budget_min, 0)",
			filters,
			params,
			now_ref,
			created_bound,
		)
		parts.append(_REQUEST_SELECT + "\tWHERE " + "\n\t\tAND ".join(where))
	return "\nUNION ALL\n".join(parts), params.values


def _listing_from_row(row: Any) -> models.ListingRecord:
	return models.ListingRecord(
		id=str(row["id"]),
		username=row["username"],
		title=row["title"],
		description=row["description"],
		category=row["category"],
		price=row["price"],
		price_unit=row["price_unit"],
		thumbnail_images=list(row["thumbnail_images"] or []),
		preview_images=list(row["preview_images"] or []),
		pickup_available=row["pickup_available"],
		delivery_available=row["delivery_available"],
		latitude=row["latitude"],
		longitude=row["longitude"],
		view_count=row["view_count"],
		ping_count=row["ping_count"],
		expires_at=row["expires_at"],
		created_at=row["created_at"],
	)


def _request_from_row(row: Any) -> models.RequestRecord:
	return models.RequestRecord(
		id=str(row["id"]),
		username=row["username"],
		requester_username=row["requester_username"],
		title=row["title"],
		description=row["description"],
		category=row["category"],
		price=row["price"],
		budget_min=row["budget_min"],
		budget_max=row["budget_max"],
		price_unit=row["price_unit"],
		thumbnail_images=list(row["thumbnail_images"] or []),
		preview_images=list(row["preview_images"] or []),
		pickup_available=row["pickup_available"],
		delivery_available=row["delivery_available"],
		latitude=row["latitude"],
		longitude=row["longitude"],
		view_count=row["view_count"],
		ping_count=row["ping_count"],
		expires_at=row["expires_at"],
		created_at=row["created_at"],
	)


def record_from_row(row: Any) -> models.SourceRecord:
	if row["kind"] == "request":
		return _request_from_row(row)
	return _listing_from_row(row)


class PostgresMarketplaceStore:
	name = "postgres"

	def __init__(self, pool: asyncpg.Pool, *, lookup: verification.VerificationLookup | None = None) -> None:
		self._pool = pool
		self._lookup = lookup or verification.CachedVerificationLookup(verification.PostgresVerificationLookup(pool))

	async def fetch_candidates(
		self,
		filters: filter_pipeline.FilterSet,
		*,
		created_bound: Optional[CreatedBound] = None,
	) -> list[models.SourceRecord]:
		if not filters.wants("listing") and not filters.wants("request"):
			return []
		sql, params = build_candidate_query(filters, created_bound=created_bound)
		async with self._pool.acquire() as conn:
			rows = await conn.fetch(sql, *params)
		return [record_from_row(row) for row in rows]

	def verification_lookup(self) -> verification.VerificationLookup:
		return self._lookup
