"""Map listing and request rows onto the shared MarketplaceItem shape."""

from __future__ import annotations

from decimal import Decimal
from typing import Optional

from geomart.domain.marketplace import geo, models

_ZERO = Decimal("0")


def _as_decimal(value: object) -> Optional[Decimal]:
	if value is None:
		return None
	if isinstance(value, Decimal):
		return value
	return Decimal(str(value))


def _location(record: models.SourceRecord) -> Optional[geo.Point]:
	if record.latitude is None or record.longitude is None:
		return None
	return (float(record.latitude), float(record.longitude))


def request_price(record: models.RequestRecord) -> Decimal:
	"""Comparable price of a request: explicit price, then budget_min, then 0."""

	for candidate in (record.price, record.budget_min):
		value = _as_decimal(candidate)
		if value is not None:
			return value
	return _ZERO


def listing_price(record: models.ListingRecord) -> Decimal:
	value = _as_decimal(record.price)
	return value if value is not None else _ZERO


def derived_price(record: models.SourceRecord) -> Decimal:
	if isinstance(record, models.RequestRecord):
		return request_price(record)
	return listing_price(record)


def item_type_of(record: models.SourceRecord) -> models.ItemType:
	return "request" if isinstance(record, models.RequestRecord) else "listing"


def project_listing(record: models.ListingRecord, origin: Optional[geo.Point] = None) -> models.MarketplaceItem:
	location = _location(record)
	return models.MarketplaceItem(
		id=str(record.id),
		item_type="listing",
		owner_username=record.owner_username,
		title=record.title or "",
		description=record.description or "",
		category=record.category,
		price=listing_price(record),
		price_unit=record.price_unit,
		created_at=record.created_at,
		thumbnail_images=list(record.thumbnail_images or []),
		preview_images=list(record.preview_images or []),
		pickup_available=bool(record.pickup_available),
		delivery_available=bool(record.delivery_available),
		latitude=location[0] if location else None,
		longitude=location[1] if location else None,
		distance_km=geo.distance_km(origin, location),
		view_count=int(record.view_count or 0),
		ping_count=int(record.ping_count or 0),
		expires_at=record.expires_at,
	)


def project_request(record: models.RequestRecord, origin: Optional[geo.Point] = None) -> models.MarketplaceItem:
	location = _location(record)
	return models.MarketplaceItem(
		id=str(record.id),
		item_type="request",
		owner_username=record.owner_username,
		title=record.title or "",
		description=record.description or "",
		category=record.category,
		price=request_price(record),
		price_unit=record.price_unit or models.REQUEST_PRICE_UNIT,
		created_at=record.created_at,
		thumbnail_images=list(record.thumbnail_images or []),
		preview_images=list(record.preview_images or []),
		pickup_available=bool(record.pickup_available),
		delivery_available=bool(record.delivery_available),
		latitude=location[0] if location else None,
		longitude=location[1] if location else None,
		distance_km=geo.distance_km(origin, location),
		view_count=int(record.view_count or 0),
		ping_count=int(record.ping_count or 0),
		expires_at=record.expires_at,
	)


def project(record: models.SourceRecord, origin: Optional[geo.Point] = None) -> models.MarketplaceItem:
	if isinstance(record, models.RequestRecord):
		return project_request(record, origin)
	return project_listing(record, origin)
