"""Validation guards and limits for marketplace search."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from geomart.domain.marketplace import models
from geomart.settings import settings

MIN_PAGE_SIZE = 1


@dataclass(slots=True)
class MarketplaceQueryError(Exception):
	detail: str
	status_code: int = 400

	def __str__(self) -> str:  # pragma: no cover - debugging aid
		return self.detail


class MarketplaceUnavailableError(MarketplaceQueryError):
	def __init__(self) -> None:
		super().__init__(detail="unavailable", status_code=503)


def clamp_limit(limit: Optional[int]) -> int:
	if limit is None:
		limit = settings.marketplace_default_page_size
	upper = max(MIN_PAGE_SIZE, settings.marketplace_max_page_size)
	return max(MIN_PAGE_SIZE, min(int(limit), upper))


def clamp_offset(offset: Optional[int]) -> int:
	return max(0, int(offset or 0))


def ensure_item_type(value: Optional[str]) -> Optional[str]:
	if value is None:
		return None
	if value not in models.ITEM_TYPES:
		raise MarketplaceQueryError("invalid_item_type")
	return value


def ensure_sort(sort_by: str, sort_order: str) -> tuple[str, str]:
	if sort_by not in models.SORT_FIELDS:
		raise MarketplaceQueryError("invalid_sort_by")
	if sort_order not in models.SORT_ORDERS:
		raise MarketplaceQueryError("invalid_sort_order")
	return sort_by, sort_order


def ensure_radius(max_distance_km: Optional[float]) -> Optional[float]:
	if max_distance_km is None:
		return None
	if max_distance_km < 0:
		raise MarketplaceQueryError("invalid_max_distance")
	return float(max_distance_km)
