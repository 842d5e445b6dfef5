from datetime import datetime, timedelta, timezone
from decimal import Decimal

from geomart.domain.marketplace import filters, models

NOW = datetime(2026, 5, 1, 12, 0, tzinfo=timezone.utc)
ORIGIN = (12.97, 77.59)


def _listing(**overrides) -> models.ListingRecord:
	payload = dict(
		id="l-1",
		username="asha",
		title="Organic Mangoes",
		description="Fresh from the farm",
		category="fruits",
		price=Decimal("120"),
		created_at=NOW - timedelta(days=1),
	)
	payload.update(overrides)
	return models.ListingRecord(**payload)


def _request(**overrides) -> models.RequestRecord:
	payload = dict(
		id="r-1",
		username="ravi",
		title="Looking for mango saplings",
		category="plants",
		budget_min=Decimal("50"),
		budget_max=Decimal("150"),
		created_at=NOW - timedelta(days=2),
	)
	payload.update(overrides)
	return models.RequestRecord(**payload)


def test_tokenize_lowercases_and_dedupes():
	assert filters.tokenize("  Organic  MANGOES organic ") == ("organic", "mangoes")
	assert filters.tokenize("") == ()
	assert filters.tokenize(None) == ()


def test_empty_filter_set_admits_everything_live():
	fs = filters.FilterSet(now=NOW)
	assert filters.matches(_listing(), fs)
	assert filters.matches(_request(), fs)


def test_item_type_filter():
	fs = filters.FilterSet(now=NOW, item_type="request")
	assert not filters.matches(_listing(), fs)
	assert filters.matches(_request(), fs)


def test_price_bounds_use_derived_price():
	fs = filters.FilterSet(now=NOW, min_price=Decimal("60"), max_price=Decimal("130"))
	assert filters.matches(_listing(), fs)
	# request compares on budget_min (50)
	assert not filters.matches(_request(), fs)
	assert filters.matches(_request(price=Decimal("100")), fs)
	inclusive = filters.FilterSet(now=NOW, min_price=Decimal("120"), max_price=Decimal("120"))
	assert filters.matches(_listing(), inclusive)


def test_unpriced_listing_fails_any_price_bound():
	unpriced = _listing(price=None)
	assert filters.matches(unpriced, filters.FilterSet(now=NOW))
	assert not filters.matches(unpriced, filters.FilterSet(now=NOW, min_price=Decimal("0")))
	assert not filters.matches(unpriced, filters.FilterSet(now=NOW, max_price=Decimal("500")))
	# requests without price or budget still compare as 0
	assert filters.matches(_request(budget_min=None), filters.FilterSet(now=NOW, min_price=Decimal("0")))


def test_expired_items_are_excluded():
	fs = filters.FilterSet(now=NOW)
	assert not filters.matches(_listing(expires_at=NOW), fs)
	assert not filters.matches(_listing(expires_at=NOW - timedelta(seconds=1)), fs)
	assert filters.matches(_listing(expires_at=NOW + timedelta(seconds=1)), fs)


def test_text_requires_every_token():
	assert filters.matches(_listing(), filters.FilterSet(now=NOW, search_query="mango"))
	assert filters.matches(_listing(), filters.FilterSet(now=NOW, search_query="FARM organic"))
	assert not filters.matches(_listing(), filters.FilterSet(now=NOW, search_query="mango papaya"))
	assert filters.matches(_listing(description=None), filters.FilterSet(now=NOW, search_query="   "))


def test_category_filter_is_exact():
	fs = filters.FilterSet(now=NOW, category="fruits")
	assert filters.matches(_listing(), fs)
	assert not filters.matches(_listing(category="Fruits"), fs)


def test_verified_only_uses_resolved_owner_set():
	fs = filters.FilterSet(now=NOW, verified_only=True)
	assert filters.matches(_listing(), fs, verified_owners={"asha"})
	assert not filters.matches(_listing(), fs, verified_owners=set())
	assert not filters.matches(_listing(), fs)
	requested = _request(requester_username="ravi_k")
	assert filters.matches(requested, fs, verified_owners={"ravi_k"})
	assert not filters.matches(requested, fs, verified_owners={"ravi"})


def test_radius_is_fail_closed_for_unlocated_items():
	fs = filters.FilterSet(now=NOW, max_distance_km=10, origin=ORIGIN)
	assert filters.matches(_listing(latitude=12.99, longitude=77.60), fs)
	assert not filters.matches(_listing(latitude=13.30, longitude=77.60), fs)
	assert not filters.matches(_listing(), fs)


def test_radius_without_origin_is_ignored():
	fs = filters.FilterSet(now=NOW, max_distance_km=10)
	assert not fs.radius_active
	assert filters.matches(_listing(), fs)


def test_apply_is_lazy_and_preserves_order():
	fs = filters.FilterSet(now=NOW, category="fruits")
	rows = [_listing(id="a"), _request(), _listing(id="b")]
	assert [row.id for row in filters.apply(rows, fs)] == ["a", "b"]
