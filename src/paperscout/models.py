"""Core data models for paperscout."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Optional

SOURCE_ARXIV = "arxiv"
SOURCE_SEMANTIC_SCHOLAR = "semantic_scholar"


def parse_date(value: Any) -> Optional[date]:
    """Parse an ISO date or datetime string ("2023-01-05", "2023-01-05T18:00:00Z").

    Returns None for empty or unparseable input.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = str(value).strip()
    try:
        return date.fromisoformat(text[:10])
    except ValueError:
        return None


def dedupe_preserving_order(items: list[str]) -> list[str]:
    """Drop repeated entries, keeping the first occurrence of each."""
    seen: set[str] = set()
    result = []
    for item in items:
        if item in seen:
            continue
        seen.add(item)
        result.append(item)
    return result


@dataclass
class Paper:
    """A paper in canonical, provider-agnostic form.

    ``id`` is either a native arXiv identifier or a Semantic Scholar paper ID,
    depending on which provider the record came from. The other provider's
    identifier, when known, lives in ``arxiv_id`` / ``provider_id``.
    """

    id: str
    title: str
    authors: list[str] = field(default_factory=list)
    abstract: Optional[str] = None
    categories: list[str] = field(default_factory=list)
    published_date: Optional[date] = None
    external_url: Optional[str] = None
    citation_count: int = 0
    arxiv_id: Optional[str] = None
    provider_id: Optional[str] = None
    source: str = SOURCE_ARXIV

    def __post_init__(self):
        if not self.id:
            raise ValueError("Paper must have an id")
        if not self.title:
            raise ValueError("Paper must have a title")
        if self.citation_count is None:
            self.citation_count = 0
        if self.citation_count < 0:
            raise ValueError("Paper citation_count must be non-negative")

    @property
    def year(self) -> Optional[int]:
        return self.published_date.year if self.published_date else None

    @property
    def primary_category(self) -> Optional[str]:
        return self.categories[0] if self.categories else None

    def to_dict(self) -> dict[str, Any]:
        """Serialize for JSON responses and storage."""
        return {
            "id": self.id,
            "arxiv_id": self.arxiv_id,
            "provider_id": self.provider_id,
            "title": self.title,
            "authors": list(self.authors),
            "abstract": self.abstract,
            "categories": list(self.categories),
            "published_date": self.published_date.isoformat() if self.published_date else None,
            "external_url": self.external_url,
            "citation_count": self.citation_count,
            "source": self.source,
        }

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> Paper:
        return cls(
            id=d["id"],
            title=d["title"],
            authors=d.get("authors") or [],
            abstract=d.get("abstract"),
            categories=d.get("categories") or [],
            published_date=parse_date(d.get("published_date")),
            external_url=d.get("external_url"),
            citation_count=d.get("citation_count") or 0,
            arxiv_id=d.get("arxiv_id"),
            provider_id=d.get("provider_id"),
            source=d.get("source") or SOURCE_ARXIV,
        )


@dataclass
class Citation:
    """A lightweight reference to a citing or cited paper."""

    title: str
    paper_id: Optional[str] = None
    authors: list[str] = field(default_factory=list)
    year: Optional[int] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "paper_id": self.paper_id,
            "title": self.title,
            "authors": list(self.authors),
            "year": self.year,
        }


@dataclass
class Favorite:
    """A (user, paper) bookmark with a mutable tag list."""

    user_id: str
    paper_id: str
    tags: list[str] = field(default_factory=list)
    created_at: Optional[datetime] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "user_id": self.user_id,
            "paper_id": self.paper_id,
            "tags": list(self.tags),
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }


@dataclass
class Rating:
    """A like (1) or dislike (-1) of a paper by a user."""

    user_id: str
    paper_id: str
    rating: int
    created_at: Optional[datetime] = None

    def __post_init__(self):
        if self.rating not in (-1, 1):
            raise ValueError(f"Rating must be -1 or 1, got {self.rating}")

    @property
    def is_positive(self) -> bool:
        return self.rating > 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "user_id": self.user_id,
            "paper_id": self.paper_id,
            "rating": self.rating,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }


@dataclass
class HistoryEntry:
    """One paper view."""

    user_id: str
    paper_id: str
    category: Optional[str] = None
    viewed_at: Optional[datetime] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "user_id": self.user_id,
            "paper_id": self.paper_id,
            "category": self.category,
            "viewed_at": self.viewed_at.isoformat() if self.viewed_at else None,
        }


@dataclass
class ResearchProposal:
    """An LLM-drafted research theme derived from a set of papers."""

    id: str
    user_id: str
    title: str
    description: str
    source_paper_ids: list[str] = field(default_factory=list)
    open_problems: list[str] = field(default_factory=list)
    created_at: Optional[datetime] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "title": self.title,
            "description": self.description,
            "source_paper_ids": list(self.source_paper_ids),
            "open_problems": list(self.open_problems),
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }


@dataclass
class RecommendationResult:
    """Recommendations for one request, deduplicated by paper id.

    ``status`` separates a user with no interests ("empty") from a fan-out in
    which some ("degraded") or all ("failed") source papers errored. The
    ``papers`` list alone cannot make that distinction.
    """

    papers: list[Paper] = field(default_factory=list)
    source_ids: list[str] = field(default_factory=list)
    failed_sources: list[str] = field(default_factory=list)
    status: str = "ok"

    @property
    def degraded(self) -> bool:
        return self.status in ("degraded", "failed")

    def to_dict(self) -> dict[str, Any]:
        return {
            "papers": [p.to_dict() for p in self.papers],
            "source_ids": list(self.source_ids),
            "failed_sources": list(self.failed_sources),
            "status": self.status,
        }
