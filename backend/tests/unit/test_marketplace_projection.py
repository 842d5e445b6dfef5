from datetime import datetime, timezone
from decimal import Decimal

from geomart.domain.marketplace import models, projection

CREATED = datetime(2026, 3, 1, 9, 0, tzinfo=timezone.utc)


def _listing(**overrides) -> models.ListingRecord:
	payload = dict(id="l-1", username="asha", title="Alphonso mangoes", created_at=CREATED)
	payload.update(overrides)
	return models.ListingRecord(**payload)


def _request(**overrides) -> models.RequestRecord:
	payload = dict(id="r-1", username="ravi", title="Need a ladder", created_at=CREATED)
	payload.update(overrides)
	return models.RequestRecord(**payload)


def test_listing_projection_defaults():
	item = projection.project(_listing(price=None, price_unit="kg"))
	assert item.item_type == "listing"
	assert item.owner_username == "asha"
	assert item.price == Decimal("0")
	assert item.price_unit == "kg"
	assert item.thumbnail_images == []
	assert item.preview_images == []
	assert item.view_count == 0
	assert item.ping_count == 0
	assert item.description == ""
	assert item.pickup_available is False
	assert item.delivery_available is False
	assert item.distance_km is None


def test_request_price_prefers_explicit_price_then_budget_min():
	assert projection.project(_request(budget_min=Decimal("40"), budget_max=Decimal("90"))).price == Decimal("40")
	assert projection.project(_request(price=Decimal("55"), budget_min=Decimal("40"))).price == Decimal("55")
	assert projection.project(_request()).price == Decimal("0")


def test_request_unit_and_owner_fallbacks():
	item = projection.project(_request(requester_username="ravi_k"))
	assert item.item_type == "request"
	assert item.price_unit == models.REQUEST_PRICE_UNIT
	assert item.owner_username == "ravi_k"
	assert projection.project(_request(price_unit="month")).price_unit == "month"
	assert projection.project(_request()).owner_username == "ravi"


def test_projection_attaches_distance_only_with_both_locations():
	located = _listing(latitude=12.98, longitude=77.60, view_count=3, thumbnail_images=["a.jpg"])
	with_origin = projection.project(located, (12.97, 77.59))
	assert with_origin.distance_km is not None
	assert 0 < with_origin.distance_km < 2
	assert with_origin.view_count == 3
	assert with_origin.thumbnail_images == ["a.jpg"]

	assert projection.project(located).distance_km is None
	assert projection.project(_listing(), (12.97, 77.59)).distance_km is None


def test_projected_lists_are_copies():
	images = ["a.jpg"]
	item = projection.project(_listing(preview_images=images))
	item.preview_images.append("b.jpg")
	assert images == ["a.jpg"]
