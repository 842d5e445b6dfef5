"""Domain models backing marketplace search results."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Literal, Optional, Union

ItemType = Literal["listing", "request"]
SortBy = Literal["distance", "price", "date"]
SortOrder = Literal["asc", "desc"]

ITEM_TYPES: tuple[str, ...] = ("listing", "request")
SORT_FIELDS: tuple[str, ...] = ("distance", "price", "date")
SORT_ORDERS: tuple[str, ...] = ("asc", "desc")

REQUEST_PRICE_UNIT = "budget"


@dataclass(slots=True)
class ListingRecord:
	"""Sell-side row as stored in the listings table."""

	id: str
	username: str
	title: str
	created_at: datetime
	description: Optional[str] = None
	category: Optional[str] = None
	price: Optional[Decimal] = None
	price_unit: Optional[str] = None
	thumbnail_images: Optional[list[str]] = None
	preview_images: Optional[list[str]] = None
	pickup_available: Optional[bool] = None
	delivery_available: Optional[bool] = None
	latitude: Optional[float] = None
	longitude: Optional[float] = None
	view_count: Optional[int] = None
	ping_count: Optional[int] = None
	expires_at: Optional[datetime] = None

	@property
	def owner_username(self) -> str:
		return self.username


@dataclass(slots=True)
class RequestRecord:
	"""Buy-side row as stored in the requests table.

	Requests carry a budget range instead of a price. Older rows may also
	carry an explicit price/unit and a ``requester_username`` that supersedes
	``username``.
	"""

	id: str
	username: str
	title: str
	created_at: datetime
	requester_username: Optional[str] = None
	description: Optional[str] = None
	category: Optional[str] = None
	budget_min: Optional[Decimal] = None
	budget_max: Optional[Decimal] = None
	price: Optional[Decimal] = None
	price_unit: Optional[str] = None
	thumbnail_images: Optional[list[str]] = None
	preview_images: Optional[list[str]] = None
	pickup_available: Optional[bool] = None
	delivery_available: Optional[bool] = None
	latitude: Optional[float] = None
	longitude: Optional[float] = None
	view_count: Optional[int] = None
	ping_count: Optional[int] = None
	expires_at: Optional[datetime] = None

	@property
	def owner_username(self) -> str:
		return self.requester_username or self.username


SourceRecord = Union[ListingRecord, RequestRecord]


@dataclass(slots=True)
class UserVerification:
	"""Read-only verification subset of a user row."""

	username: str
	verification_status: str = "not_verified"
	expires_at: Optional[datetime] = None

	def is_currently_verified(self, now: datetime) -> bool:
		if self.verification_status != "verified":
			return False
		return self.expires_at is None or self.expires_at > now


@dataclass(slots=True)
class MarketplaceItem:
	"""Type-erased projection of a listing or request."""

	id: str
	item_type: ItemType
	owner_username: str
	title: str
	description: str
	category: Optional[str]
	price: Decimal
	price_unit: Optional[str]
	created_at: datetime
	thumbnail_images: list[str] = field(default_factory=list)
	preview_images: list[str] = field(default_factory=list)
	pickup_available: bool = False
	delivery_available: bool = False
	latitude: Optional[float] = None
	longitude: Optional[float] = None
	distance_km: Optional[float] = None
	view_count: int = 0
	ping_count: int = 0
	expires_at: Optional[datetime] = None
