"""Persistent storage for papers and per-user collections."""

from paperscout.storage.library_db import LibraryDB
from paperscout.storage.paper_cache import PaperCache

__all__ = ["LibraryDB", "PaperCache"]
