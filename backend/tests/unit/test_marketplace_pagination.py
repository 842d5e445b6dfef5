import base64
import json
from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from geomart.domain.marketplace import models, pagination, policy, ranking

BASE = datetime(2026, 4, 1, tzinfo=timezone.utc)


def _item(index: int, *, price: int, distance: float | None, age_minutes: int) -> models.MarketplaceItem:
	return models.MarketplaceItem(
		id=f"00000000-0000-0000-0000-{index:012d}",
		item_type="listing" if index % 2 else "request",
		owner_username="seller",
		title=f"item {index}",
		description="",
		category=None,
		price=Decimal(price),
		price_unit=None,
		created_at=BASE - timedelta(minutes=age_minutes),
		distance_km=distance,
	)


def _catalogue() -> list[models.MarketplaceItem]:
	items = []
	for index in range(23):
		# repeated prices, distances and timestamps force tie-breaks
		distance = None if index % 7 == 0 else float(index % 5)
		items.append(_item(index, price=index % 4 * 10, distance=distance, age_minutes=index // 3))
	return items


def _walk(ranked, sort_by, sort_order, limit):
	seen = []
	cursor = None
	while True:
		page = pagination.paginate(ranked, sort_by=sort_by, sort_order=sort_order, limit=limit, cursor=cursor)
		seen.append([item.id for item in page.items])
		if not page.has_more:
			return seen
		cursor = pagination.decode_cursor(
			pagination.encode_cursor(pagination.cursor_for(page.items[-1], sort_by, sort_order))
		)


@pytest.mark.parametrize("sort_by", ["date", "price", "distance"])
@pytest.mark.parametrize("sort_order", ["asc", "desc"])
def test_keyset_pages_partition_the_stream(sort_by, sort_order):
	ranked = ranking.sort_items(_catalogue(), sort_by, sort_order)
	pages = _walk(ranked, sort_by, sort_order, limit=4)
	flattened = [item_id for page in pages for item_id in page]
	assert flattened == [item.id for item in ranked]
	assert len(flattened) == len(set(flattened))
	assert all(len(page) == 4 for page in pages[:-1])


def test_offset_mode_skips_then_takes():
	ranked = ranking.sort_items(_catalogue(), "date", "desc")
	page = pagination.paginate(ranked, sort_by="date", sort_order="desc", limit=5, offset=10)
	assert [item.id for item in page.items] == [item.id for item in ranked[10:15]]
	assert page.has_more
	tail = pagination.paginate(ranked, sort_by="date", sort_order="desc", limit=5, offset=20)
	assert len(tail.items) == 3
	assert not tail.has_more


def test_cursor_and_offset_compose():
	ranked = ranking.sort_items(_catalogue(), "price", "asc")
	cursor = pagination.cursor_for(ranked[2], "price", "asc")
	page = pagination.paginate(ranked, sort_by="price", sort_order="asc", limit=3, offset=2, cursor=cursor)
	assert [item.id for item in page.items] == [item.id for item in ranked[5:8]]


def test_cursor_for_other_sort_is_rejected():
	ranked = ranking.sort_items(_catalogue(), "date", "desc")
	cursor = pagination.cursor_for(ranked[0], "price", "asc")
	with pytest.raises(policy.MarketplaceQueryError) as exc:
		pagination.paginate(ranked, sort_by="date", sort_order="desc", limit=3, cursor=cursor)
	assert exc.value.detail == "cursor_sort_mismatch"


@pytest.mark.parametrize("token", ["not-base64!!", "e30=", "eyJzIjoiYm9ndXMiLCJvIjoiYXNjIn0="])
def test_decode_rejects_malformed_tokens(token):
	with pytest.raises(policy.MarketplaceQueryError) as exc:
		pagination.decode_cursor(token)
	assert exc.value.detail == "bad_cursor"


def _token(**payload) -> str:
	return base64.urlsafe_b64encode(json.dumps(payload).encode("utf-8")).decode("ascii")


@pytest.mark.parametrize(
	"sort_by,value",
	[
		("price", "NaN"),
		("price", "sNaN"),
		("price", "Infinity"),
		("price", "-Infinity"),
		("distance", float("inf")),
		("distance", float("nan")),
	],
)
def test_decode_rejects_non_finite_values(sort_by, value):
	token = _token(s=sort_by, o="asc", v=value, t=BASE.isoformat(), id="x")
	with pytest.raises(policy.MarketplaceQueryError) as exc:
		pagination.decode_cursor(token)
	assert exc.value.detail == "bad_cursor"


def test_naive_cursor_datetimes_are_read_as_utc():
	ranked = ranking.sort_items(_catalogue(), "date", "desc")
	anchor = ranked[3]
	naive = anchor.created_at.replace(tzinfo=None).isoformat()
	cursor = pagination.decode_cursor(_token(s="date", o="desc", v=naive, t=naive, id=anchor.id))
	assert cursor.value == anchor.created_at
	assert cursor.created_at.tzinfo is not None

	page = pagination.paginate(ranked, sort_by="date", sort_order="desc", limit=3, cursor=cursor)
	assert [item.id for item in page.items] == [item.id for item in ranked[4:7]]


def test_cursor_from_pair_for_date_sort_needs_no_anchor():
	created = BASE - timedelta(minutes=3)
	cursor = pagination.cursor_from_pair(created, "some-id", sort_by="date", sort_order="desc", ranked=[])
	assert cursor.value == created
	assert cursor.entity_id == "some-id"


def test_cursor_from_pair_locates_anchor_for_value_sorts():
	ranked = ranking.sort_items(_catalogue(), "distance", "asc")
	anchor = ranked[4]
	cursor = pagination.cursor_from_pair(anchor.created_at, anchor.id, sort_by="distance", sort_order="asc", ranked=ranked)
	page = pagination.paginate(ranked, sort_by="distance", sort_order="asc", limit=2, cursor=cursor)
	assert [item.id for item in page.items] == [item.id for item in ranked[5:7]]
	with pytest.raises(policy.MarketplaceQueryError) as exc:
		pagination.cursor_from_pair(anchor.created_at, "gone", sort_by="distance", sort_order="asc", ranked=ranked)
	assert exc.value.detail == "stale_cursor"


def test_cursor_survives_deleted_anchor():
	ranked = ranking.sort_items(_catalogue(), "date", "desc")
	cursor = pagination.cursor_for(ranked[5], "date", "desc")
	shrunk = [item for item in ranked if item.id != ranked[5].id]
	page = pagination.paginate(shrunk, sort_by="date", sort_order="desc", limit=3, cursor=cursor)
	assert [item.id for item in page.items] == [item.id for item in ranked[6:9]]
