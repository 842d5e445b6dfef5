"""REST endpoint for marketplace search."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException

from geomart.domain.marketplace import policy, schemas
from geomart.domain.marketplace.service import MarketplaceService

router = APIRouter(tags=["marketplace"])

_service = MarketplaceService()


def _as_http_error(exc: policy.MarketplaceQueryError) -> HTTPException:
	return HTTPException(status_code=exc.status_code, detail=exc.detail)


@router.get("/marketplace/items", response_model=schemas.MarketplacePage)
async def search_marketplace_endpoint(
	query: schemas.MarketplaceQuery = Depends(),
) -> schemas.MarketplacePage:
	try:
		return await _service.search(query)
	except policy.MarketplaceQueryError as exc:
		raise _as_http_error(exc) from exc
