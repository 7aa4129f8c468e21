"""In-memory search provider serving pre-fetched candidates."""

from source_taster.adapters.static.static_search_provider import StaticSearchProvider

__all__ = ["StaticSearchProvider"]
