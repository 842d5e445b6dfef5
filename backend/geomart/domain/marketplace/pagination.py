"""Offset and keyset pagination over a ranked marketplace stream."""

from __future__ import annotations

import base64
import bisect
import json
import math
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any, Optional, Sequence

from geomart.domain.marketplace import models, policy, ranking


@dataclass(slots=True)
class KeysetCursor:
	"""Immutable anchor for the next page: the last item's sort value and id."""

	sort_by: str
	sort_order: str
	value: Any
	created_at: datetime
	entity_id: str

	def key(self) -> ranking.SortKey:
		return ranking.make_key(self.sort_order, self.value, self.entity_id)


@dataclass(slots=True)
class PageSlice:
	items: list[models.MarketplaceItem]
	has_more: bool


def _dump_value(sort_by: str, value: Any) -> Any:
	if value is None:
		return None
	if sort_by == "date":
		return value.isoformat()
	if sort_by == "price":
		return str(value)
	return float(value)


def _load_datetime(raw: Any) -> datetime:
	value = datetime.fromisoformat(raw)
	if value.tzinfo is None:
		return value.replace(tzinfo=timezone.utc)
	return value


def _load_value(sort_by: str, raw: Any) -> Any:
	if raw is None:
		return None
	if sort_by == "date":
		return _load_datetime(raw)
	if sort_by == "price":
		price = Decimal(str(raw))
		if not price.is_finite():
			raise ValueError("non-finite price in cursor")
		return price
	distance = float(raw)
	if not math.isfinite(distance):
		raise ValueError("non-finite distance in cursor")
	return distance


def encode_cursor(cursor: KeysetCursor) -> str:
	payload = {
		"s": cursor.sort_by,
		"o": cursor.sort_order,
		"v": _dump_value(cursor.sort_by, cursor.value),
		"t": cursor.created_at.isoformat(),
		"id": cursor.entity_id,
	}
	blob = json.dumps(payload, separators=(",", ":"))
	return base64.urlsafe_b64encode(blob.encode("utf-8")).decode("ascii")


def decode_cursor(value: str) -> KeysetCursor:
	try:
		decoded = base64.urlsafe_b64decode(value.encode("ascii")).decode("utf-8")
		data = json.loads(decoded)
		sort_by = str(data["s"])
		sort_order = str(data["o"])
		policy.ensure_sort(sort_by, sort_order)
		return KeysetCursor(
			sort_by=sort_by,
			sort_order=sort_order,
			value=_load_value(sort_by, data.get("v")),
			created_at=_load_datetime(data["t"]),
			entity_id=str(data["id"]),
		)
	except (ValueError, KeyError, TypeError, InvalidOperation, policy.MarketplaceQueryError) as exc:
		raise policy.MarketplaceQueryError("bad_cursor") from exc


def cursor_for(item: models.MarketplaceItem, sort_by: str, sort_order: str) -> KeysetCursor:
	return KeysetCursor(
		sort_by=sort_by,
		sort_order=sort_order,
		value=ranking.primary_value(item, sort_by),
		created_at=item.created_at,
		entity_id=item.id,
	)


def cursor_from_pair(
	created_at: datetime,
	entity_id: str,
	*,
	sort_by: str,
	sort_order: str,
	ranked: Sequence[models.MarketplaceItem],
) -> KeysetCursor:
	"""Build a cursor from a raw ``(created_at, id)`` pair.

	For date sorts the pair is the whole key. Other sorts need the anchor's
	current sort value, so the anchor must still be part of the result set.
	"""

	if sort_by == "date":
		return KeysetCursor(sort_by, sort_order, created_at, created_at, entity_id)
	for item in ranked:
		if item.id == entity_id:
			return cursor_for(item, sort_by, sort_order)
	raise policy.MarketplaceQueryError("stale_cursor")


def paginate(
	ranked: Sequence[models.MarketplaceItem],
	*,
	sort_by: str,
	sort_order: str,
	limit: int,
	offset: int = 0,
	cursor: Optional[KeysetCursor] = None,
) -> PageSlice:
	"""Seek past the cursor, skip ``offset``, then take ``limit`` items.

	``ranked`` must already be ordered by ``(sort_by, sort_order)``.
	"""

	start = 0
	if cursor is not None:
		if (cursor.sort_by, cursor.sort_order) != (sort_by, sort_order):
			raise policy.MarketplaceQueryError("cursor_sort_mismatch")
		start = bisect.bisect_right(
			ranked,
			cursor.key(),
			key=lambda item: ranking.sort_key(item, sort_by, sort_order),
		)
	start += offset
	window = list(ranked[start : start + limit + 1])
	return PageSlice(items=window[:limit], has_more=len(window) > limit)
