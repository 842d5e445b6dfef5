"""Marketplace search domain exports."""

from .service import MarketplaceService, reset_memory_state, seed_memory_store

__all__ = [
	"MarketplaceService",
	"seed_memory_store",
	"reset_memory_state",
]
