"""Service layer for marketplace search."""

from __future__ import annotations

import dataclasses
import logging
import time
from datetime import datetime, timezone
from typing import Iterable, Optional

import asyncpg

from geomart.domain.marketplace import (
	filters as filter_pipeline,
	geo,
	models,
	pagination,
	policy,
	projection,
	ranking,
	schemas,
	store as stores,
)
from geomart.infra.postgres import get_pool
from geomart.obs import metrics as obs_metrics
from geomart.settings import settings

logger = logging.getLogger(__name__)

_STORE_ERRORS = (asyncpg.PostgresError, asyncpg.InterfaceError, OSError)

_MEMORY = stores.MemoryMarketplaceStore()


def _opaque_cursor(query: schemas.MarketplaceQuery) -> Optional[pagination.KeysetCursor]:
	if query.cursor is not None:
		return pagination.decode_cursor(query.cursor)
	if (query.cursor_created_at is None) != (query.cursor_id is None):
		raise policy.MarketplaceQueryError("incomplete_cursor")
	return None


def _as_utc(value: datetime) -> datetime:
	if value.tzinfo is None:
		return value.replace(tzinfo=timezone.utc)
	return value


def _created_bound(
	query: schemas.MarketplaceQuery,
	cursor: Optional[pagination.KeysetCursor],
	sort_by: str,
	sort_order: str,
) -> Optional[stores.CreatedBound]:
	"""Coarse created_at bound a store may push down for date-sorted seeks."""

	if sort_by != "date":
		return None
	if cursor is not None:
		if (cursor.sort_by, cursor.sort_order) != (sort_by, sort_order):
			return None
		anchor = cursor.created_at
	elif query.cursor_created_at is not None:
		anchor = _as_utc(query.cursor_created_at)
	else:
		return None
	return stores.CreatedBound(created_at=anchor, before=sort_order == "desc")


def _build_page(
	page: pagination.PageSlice,
	*,
	sort_by: str,
	sort_order: str,
) -> schemas.MarketplacePage:
	items = [schemas.MarketplaceItemOut.from_item(item) for item in page.items]
	if not page.items:
		return schemas.MarketplacePage(items=items, has_more=page.has_more)
	last = page.items[-1]
	next_cursor = None
	if page.has_more:
		next_cursor = pagination.encode_cursor(pagination.cursor_for(last, sort_by, sort_order))
	return schemas.MarketplacePage(
		items=items,
		next_cursor=next_cursor,
		last_created_at=last.created_at,
		last_id=last.id,
		has_more=page.has_more,
	)


class MarketplaceService:
	def __init__(self, *, store: Optional[stores.MarketplaceStore] = None) -> None:
		self._store_override = store
		self._pool: Optional[asyncpg.Pool] = None
		self._postgres_store: Optional[stores.PostgresMarketplaceStore] = None

	async def _pool_or_none(self) -> Optional[asyncpg.Pool]:
		"""Return the shared pool, or None when Postgres is down in a dev environment.

		Only a successful bootstrap is cached, so a later call retries.
		"""

		if self._pool is not None:
			return self._pool
		try:
			pool = await get_pool()
		except _STORE_ERRORS as exc:
			if settings.is_dev():
				logger.info("marketplace.store postgres unavailable; using memory store")
				return None
			logger.warning("marketplace.store postgres pool bootstrap failed", exc_info=True)
			raise policy.MarketplaceUnavailableError() from exc
		self._pool = pool
		return pool

	def _postgres(self, pool: asyncpg.Pool) -> stores.PostgresMarketplaceStore:
		if self._postgres_store is None:
			self._postgres_store = stores.PostgresMarketplaceStore(pool)
		return self._postgres_store

	async def _resolve_store(self) -> stores.MarketplaceStore:
		if self._store_override is not None:
			return self._store_override
		mode = settings.marketplace_store
		if mode == "memory":
			return _MEMORY
		if mode == "postgres":
			try:
				pool = await get_pool()
			except _STORE_ERRORS as exc:
				logger.warning("marketplace.store postgres pool bootstrap failed", exc_info=True)
				raise policy.MarketplaceUnavailableError() from exc
			return self._postgres(pool)
		pool = await self._pool_or_none()
		if pool is None:
			return _MEMORY
		return self._postgres(pool)

	async def _candidates(
		self,
		store: stores.MarketplaceStore,
		filters: filter_pipeline.FilterSet,
		*,
		created_bound: Optional[stores.CreatedBound],
	) -> list[models.SourceRecord]:
		row_filters = dataclasses.replace(filters, verified_only=False)
		try:
			records = await store.fetch_candidates(filters, created_bound=created_bound)
			survivors = list(filter_pipeline.apply(records, row_filters))
			if not filters.verified_only:
				return survivors
			owners = {record.owner_username for record in survivors}
			verified = await store.verification_lookup().verified_usernames(owners, now=filters.now)
		except _STORE_ERRORS as exc:
			logger.warning("marketplace.search store=%s failed", store.name, exc_info=True)
			raise policy.MarketplaceUnavailableError() from exc
		return [record for record in survivors if filter_pipeline.match_verified(record, filters, verified)]

	async def search(
		self,
		query: schemas.MarketplaceQuery,
		*,
		now: Optional[datetime] = None,
	) -> schemas.MarketplacePage:
		"""Run one marketplace query and return a single page.

		Candidates come from the active store, pass through the filter
		pipeline, get projected with caller distance, and are ranked before
		the keyset/offset window is cut.
		"""

		start = time.perf_counter()
		now = _as_utc(now or datetime.now(timezone.utc))
		store_name = "unknown"
		try:
			sort_by, sort_order = policy.ensure_sort(query.sort_by, query.sort_order)
			item_type = policy.ensure_item_type(query.item_type)
			radius = policy.ensure_radius(query.max_distance_km)
			origin = geo.resolve_origin(query.lat, query.lng)
			limit = policy.clamp_limit(query.limit)
			offset = policy.clamp_offset(query.offset)
			cursor = _opaque_cursor(query)

			filters = filter_pipeline.FilterSet(
				now=now,
				item_type=item_type,
				category=query.category,
				min_price=query.min_price,
				max_price=query.max_price,
				search_query=query.q,
				verified_only=query.verified_only,
				max_distance_km=radius,
				origin=origin,
			)
			store = await self._resolve_store()
			store_name = store.name
			records = await self._candidates(
				store,
				filters,
				created_bound=_created_bound(query, cursor, sort_by, sort_order),
			)
			ranked = ranking.sort_items(
				(projection.project(record, origin) for record in records),
				sort_by,
				sort_order,
			)
			if cursor is None and query.cursor_created_at is not None and query.cursor_id is not None:
				cursor = pagination.cursor_from_pair(
					_as_utc(query.cursor_created_at),
					query.cursor_id,
					sort_by=sort_by,
					sort_order=sort_order,
					ranked=ranked,
				)
			window = pagination.paginate(
				ranked,
				sort_by=sort_by,
				sort_order=sort_order,
				limit=limit,
				offset=offset,
				cursor=cursor,
			)
		except policy.MarketplaceQueryError as exc:
			obs_metrics.inc_marketplace_error(exc.detail)
			raise
		finally:
			obs_metrics.observe_marketplace_latency(store_name, time.perf_counter() - start)

		page = _build_page(window, sort_by=sort_by, sort_order=sort_order)
		obs_metrics.inc_marketplace_query(sort_by, item_type)
		obs_metrics.set_marketplace_results(item_type, len(page.items))
		logger.info(
			"marketplace.search store=%s sort=%s:%s item_type=%s candidates=%d results=%d has_more=%s",
			store_name,
			sort_by,
			sort_order,
			item_type or "all",
			len(ranked),
			len(page.items),
			page.has_more,
		)
		return page


async def seed_memory_store(
	*,
	listings: Iterable[models.ListingRecord] | None = None,
	requests: Iterable[models.RequestRecord] | None = None,
	users: Iterable[models.UserVerification] | None = None,
) -> None:
	await _MEMORY.seed(listings=listings, requests=requests, users=users)


async def reset_memory_state() -> None:
	await _MEMORY.reset()
