"""Pydantic schemas for the marketplace search API."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Literal, Optional

from pydantic import BaseModel, Field, field_serializer, field_validator

from geomart.domain.marketplace import models


class MarketplaceQuery(BaseModel):
	lat: Optional[float] = Field(default=None, description="Caller latitude")
	lng: Optional[float] = Field(default=None, description="Caller longitude")
	max_distance_km: Optional[float] = Field(default=None, description="Radius around the caller point")
	item_type: Optional[Literal["listing", "request"]] = Field(default=None, description="Unset means both")
	category: Optional[str] = None
	verified_only: bool = False
	min_price: Optional[Decimal] = None
	max_price: Optional[Decimal] = None
	q: Optional[str] = Field(default=None, description="Free text matched against title and description")
	sort_by: Literal["distance", "price", "date"] = "date"
	sort_order: Literal["asc", "desc"] = "desc"
	# clamped by the service rather than rejected
	limit: Optional[int] = None
	offset: int = 0
	cursor_created_at: Optional[datetime] = None
	cursor_id: Optional[str] = None
	cursor: Optional[str] = Field(default=None, description="Opaque cursor from a previous page")

	@field_validator("category", "q", "cursor_id", "cursor", mode="before")
	@classmethod
	def _blank_is_unset(cls, value):
		if isinstance(value, str) and not value.strip():
			return None
		return value


class MarketplaceItemOut(BaseModel):
	id: str
	item_type: Literal["listing", "request"]
	owner_username: str
	title: str
	description: str
	category: Optional[str] = None
	price: Decimal
	price_unit: Optional[str] = None
	thumbnail_images: list[str] = Field(default_factory=list)
	preview_images: list[str] = Field(default_factory=list)
	pickup_available: bool = False
	delivery_available: bool = False
	latitude: Optional[float] = None
	longitude: Optional[float] = None
	distance_km: Optional[float] = None
	view_count: int = 0
	ping_count: int = 0
	expires_at: Optional[datetime] = None
	created_at: datetime

	@field_serializer("price")
	def _price_as_number(self, value: Decimal) -> float:
		return float(value)

	@classmethod
	def from_item(cls, item: models.MarketplaceItem) -> "MarketplaceItemOut":
		return cls(
			id=item.id,
			item_type=item.item_type,
			owner_username=item.owner_username,
			title=item.title,
			description=item.description,
			category=item.category,
			price=item.price,
			price_unit=item.price_unit,
			thumbnail_images=list(item.thumbnail_images),
			preview_images=list(item.preview_images),
			pickup_available=item.pickup_available,
			delivery_available=item.delivery_available,
			latitude=item.latitude,
			longitude=item.longitude,
			distance_km=item.distance_km,
			view_count=item.view_count,
			ping_count=item.ping_count,
			expires_at=item.expires_at,
			created_at=item.created_at,
		)


class MarketplacePage(BaseModel):
	items: list[MarketplaceItemOut]
	next_cursor: Optional[str] = None
	last_created_at: Optional[datetime] = None
	last_id: Optional[str] = None
	has_more: bool = False
