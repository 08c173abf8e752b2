"""Persistence layer: SQLite tiers plus a diskcache TTL tier."""

from .database import AnalysisDB
from .listing import ListingCache
from .store import CachePolicy, CacheStore

__all__ = ["AnalysisDB", "ListingCache", "CachePolicy", "CacheStore"]
