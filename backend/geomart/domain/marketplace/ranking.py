# Ordering for the merged listing/request stream
"""Sort helpers shared by the marketplace search flow.

Every ordering is total: the requested field first (missing values last in
either direction), then ``id`` descending.
"""

from __future__ import annotations

import functools
from typing import Any, Iterable, Optional

from geomart.domain.marketplace import models


@functools.total_ordering
class _Descending:
	__slots__ = ("value",)

	def __init__(self, value: Any) -> None:
		self.value = value

	def __eq__(self, other: object) -> bool:
		if not isinstance(other, _Descending):
			return NotImplemented
		return self.value == other.value

	def __lt__(self, other: "_Descending") -> bool:
		return other.value < self.value

	def __hash__(self) -> int:
		return hash(self.value)

	def __repr__(self) -> str:  # pragma: no cover - debugging aid
		return f"_Descending({self.value!r})"


SortKey = tuple[bool, Any, _Descending]


def primary_value(item: models.MarketplaceItem, sort_by: str) -> Any:
	if sort_by == "distance":
		return item.distance_km
	if sort_by == "price":
		return item.price
	return item.created_at


def make_key(sort_order: str, value: Optional[Any], item_id: str) -> SortKey:
	"""Build the comparable key for a (value, id) pair under the given direction."""

	if value is None:
		return (True, None, _Descending(item_id))
	directed = _Descending(value) if sort_order == "desc" else value
	return (False, directed, _Descending(item_id))


def sort_key(item: models.MarketplaceItem, sort_by: str, sort_order: str) -> SortKey:
	return make_key(sort_order, primary_value(item, sort_by), item.id)


def sort_items(
	items: Iterable[models.MarketplaceItem],
	sort_by: str,
	sort_order: str,
) -> list[models.MarketplaceItem]:
	"""Return a new list ordered by ``(sort_by, sort_order)`` with the id tie-break."""

	return sorted(items, key=lambda item: sort_key(item, sort_by, sort_order))
