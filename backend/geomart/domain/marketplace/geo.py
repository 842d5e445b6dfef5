"""Great-circle distance helpers."""

from __future__ import annotations

import math
from typing import Optional, Tuple

from geomart.domain.marketplace import policy

# Mean Earth radius (IUGG), kilometers
EARTH_RADIUS_KM = 6371.0088

Point = Tuple[float, float]


def haversine_km(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
	phi1, phi2 = math.radians(lat1), math.radians(lat2)
	dphi = math.radians(lat2 - lat1)
	dlambda = math.radians(lng2 - lng1)
	a = math.sin(dphi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(dlambda / 2) ** 2
	# rounding can push a marginally past 1.0 for antipodal points
	a = min(1.0, max(0.0, a))
	return 2 * EARTH_RADIUS_KM * math.asin(math.sqrt(a))


def distance_km(origin: Optional[Point], target: Optional[Point]) -> Optional[float]:
	"""Distance between two optional points, or None when either is missing.

	Ranges are not checked here; callers validate at the boundary.
	"""

	if origin is None or target is None:
		return None
	return haversine_km(origin[0], origin[1], target[0], target[1])


def validate_coordinates(lat: float, lng: float) -> None:
	if not math.isfinite(lat) or not math.isfinite(lng):
		raise policy.MarketplaceQueryError("invalid_coordinates")
	if not -90.0 <= lat <= 90.0 or not -180.0 <= lng <= 180.0:
		raise policy.MarketplaceQueryError("invalid_coordinates")


def resolve_origin(lat: Optional[float], lng: Optional[float]) -> Optional[Point]:
	"""Return the caller point when both halves are present and in range.

	A single half is treated as no location at all.
	"""

	if lat is None or lng is None:
		return None
	validate_coordinates(lat, lng)
	return (float(lat), float(lng))


def bounding_box(origin: Point, radius_km: float) -> tuple[float, float, float, float]:
	"""Return (min_lat, max_lat, min_lng, max_lng) enclosing the radius.

	Used as a coarse prefilter only; the exact radius check uses haversine.
	Near the poles or across the antimeridian the longitude span widens to the
	full range.
	"""

	lat, lng = origin
	angular = radius_km / EARTH_RADIUS_KM
	dlat = math.degrees(angular)
	min_lat = max(-90.0, lat - dlat)
	max_lat = min(90.0, lat + dlat)
	cos_lat = math.cos(math.radians(lat))
	if min_lat <= -90.0 or max_lat >= 90.0 or math.sin(angular) >= cos_lat:
		return (min_lat, max_lat, -180.0, 180.0)
	dlng = math.degrees(math.asin(math.sin(angular) / cos_lat))
	if lng - dlng < -180.0 or lng + dlng > 180.0:
		return (min_lat, max_lat, -180.0, 180.0)
	return (min_lat, max_lat, lng - dlng, lng + dlng)
