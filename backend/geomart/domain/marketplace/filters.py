"""Row predicates applied to listing and request records before projection."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import AbstractSet, Iterable, Iterator, Optional

from geomart.domain.marketplace import geo, models, projection

_TOKEN_RE = re.compile(r"\w+", re.UNICODE)


def tokenize(query: Optional[str]) -> tuple[str, ...]:
	"""Split free text into lower-cased word tokens, dropping duplicates."""

	if not query:
		return ()
	seen: list[str] = []
	for token in _TOKEN_RE.findall(query.lower()):
		if token not in seen:
			seen.append(token)
	return tuple(seen)


@dataclass(frozen=True, slots=True)
class FilterSet:
	now: datetime
	item_type: Optional[str] = None
	category: Optional[str] = None
	min_price: Optional[Decimal] = None
	max_price: Optional[Decimal] = None
	search_query: Optional[str] = None
	verified_only: bool = False
	max_distance_km: Optional[float] = None
	origin: Optional[geo.Point] = None
	tokens: tuple[str, ...] = field(init=False, default=())

	def __post_init__(self) -> None:
		object.__setattr__(self, "tokens", tokenize(self.search_query))

	@property
	def radius_active(self) -> bool:
		return self.max_distance_km is not None and self.origin is not None

	def wants(self, item_type: str) -> bool:
		return self.item_type is None or self.item_type == item_type


def match_item_type(record: models.SourceRecord, filters: FilterSet) -> bool:
	return filters.wants(projection.item_type_of(record))


def match_category(record: models.SourceRecord, filters: FilterSet) -> bool:
	if filters.category is None:
		return True
	return record.category == filters.category


def match_price(record: models.SourceRecord, filters: FilterSet) -> bool:
	if filters.min_price is None and filters.max_price is None:
		return True
	# an unpriced listing never satisfies a price bound
	if isinstance(record, models.ListingRecord) and record.price is None:
		return False
	price = projection.derived_price(record)
	if filters.min_price is not None and price < filters.min_price:
		return False
	if filters.max_price is not None and price > filters.max_price:
		return False
	return True


def match_expiration(record: models.SourceRecord, filters: FilterSet) -> bool:
	return record.expires_at is None or record.expires_at > filters.now


def match_text(record: models.SourceRecord, filters: FilterSet) -> bool:
	tokens = filters.tokens
	if not tokens:
		return True
	haystack = f"{record.title or ''} {record.description or ''}".lower()
	return all(token in haystack for token in tokens)


def match_verified(record: models.SourceRecord, filters: FilterSet, verified_owners: Optional[AbstractSet[str]]) -> bool:
	if not filters.verified_only:
		return True
	if verified_owners is None:
		return False
	return record.owner_username in verified_owners


def match_radius(record: models.SourceRecord, filters: FilterSet) -> bool:
	if not filters.radius_active:
		return True
	if record.latitude is None or record.longitude is None:
		return False
	distance = geo.distance_km(filters.origin, (float(record.latitude), float(record.longitude)))
	assert filters.max_distance_km is not None
	return distance is not None and distance <= filters.max_distance_km


def matches(
	record: models.SourceRecord,
	filters: FilterSet,
	*,
	verified_owners: Optional[AbstractSet[str]] = None,
) -> bool:
	"""True when the record survives every active predicate."""

	return (
		match_item_type(record, filters)
		and match_expiration(record, filters)
		and match_category(record, filters)
		and match_price(record, filters)
		and match_text(record, filters)
		and match_verified(record, filters, verified_owners)
		and match_radius(record, filters)
	)


def apply(
	records: Iterable[models.SourceRecord],
	filters: FilterSet,
	*,
	verified_owners: Optional[AbstractSet[str]] = None,
) -> Iterator[models.SourceRecord]:
	for record in records:
		if matches(record, filters, verified_owners=verified_owners):
			yield record
