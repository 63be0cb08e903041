"""SQLAlchemy models: import all models here so metadata.create_all sees them."""

from rewind.models.base import Base
from rewind.models.cache_entry import ResponseCacheEntry

__all__ = [
    "Base",
    "ResponseCacheEntry",
]
