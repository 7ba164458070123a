"""Recommendation aggregation over a user's favorites and liked papers.

Pipeline: interest set -> capped source papers -> per-source Semantic Scholar
recommendations (sequential, rate limited) -> first-wins dedup -> truncate.
"""

from __future__ import annotations

import logging
import math
from typing import TYPE_CHECKING, Callable, Optional

from paperscout.errors import ProviderResult
from paperscout.models import Favorite, Paper, Rating, RecommendationResult
from paperscout.scheduler import RateLimitedScheduler

if TYPE_CHECKING:
    from paperscout.identifiers import IdentifierResolver
    from paperscout.providers.semantic_scholar import SemanticScholarClient
    from paperscout.storage.library_db import LibraryDB
    from paperscout.storage.paper_cache import PaperCache

logger = logging.getLogger(__name__)

# Type for the progress callback: (stage, current, total, message)
ProgressCallback = Callable[[str, int, int, str], None]


def build_interest_set(favorites: list[Favorite], ratings: list[Rating]) -> list[str]:
    """Favorite paper IDs followed by positively rated ones, without duplicates.

    Order matters: only the first few IDs are used as recommendation seeds,
    so callers pass both lists oldest first.
    """
    interest: list[str] = []
    seen: set[str] = set()
    candidates = [f.paper_id for f in favorites] + [r.paper_id for r in ratings if r.is_positive]
    for paper_id in candidates:
        if paper_id in seen:
            continue
        seen.add(paper_id)
        interest.append(paper_id)
    return interest


def merge_unique(papers: list[Paper], limit: int) -> list[Paper]:
    """Keep the first occurrence of each paper id, then truncate to ``limit``."""
    merged: list[Paper] = []
    seen: set[str] = set()
    for paper in papers:
        if paper.id in seen:
            continue
        seen.add(paper.id)
        merged.append(paper)
        if len(merged) >= limit:
            break
    return merged


class RecommendationAggregator:
    """Fan out recommendation requests across a user's source papers."""

    def __init__(
        self,
        storage: LibraryDB,
        s2_client: SemanticScholarClient,
        resolver: IdentifierResolver,
        scheduler: Optional[RateLimitedScheduler] = None,
        paper_cache: Optional[PaperCache] = None,
        progress_callback: Optional[ProgressCallback] = None,
    ):
        self.storage = storage
        self.s2 = s2_client
        self.resolver = resolver
        self.scheduler = scheduler or RateLimitedScheduler()
        self.cache = paper_cache
        self._progress = progress_callback or (lambda *_: None)

    def recommend(self, user_id: str, limit: int = 10) -> RecommendationResult:
        """Build recommendations for ``user_id``.

        Storage errors propagate (StorageUnavailableError); provider errors
        for individual source papers are absorbed and reported through
        ``failed_sources`` and ``status``.
        """
        # Storage lists newest first; seeds follow the order papers were added
        favorites = list(reversed(self.storage.get_favorites(user_id)))
        ratings = list(reversed(self.storage.get_ratings(user_id)))
        interest = build_interest_set(favorites, ratings)

        if not interest or limit <= 0:
            logger.info("No recommendation seeds for user %s", user_id)
            return RecommendationResult(status="empty")

        sources = self.scheduler.cap(interest)
        per_source = math.ceil(limit / len(sources))
        logger.info(
            "Recommending for user %s: %d interests, %d sources, %d per source",
            user_id,
            len(interest),
            len(sources),
            per_source,
        )

        operations = [
            self._make_operation(i, source_id, len(sources), per_source)
            for i, source_id in enumerate(sources)
        ]
        outcome = self.scheduler.schedule(operations)

        papers = merge_unique(outcome.items, limit)
        failed = [sources[i] for i in sorted(outcome.failures)]

        if outcome.all_failed:
            status = "failed"
        elif failed:
            status = "degraded"
        else:
            status = "ok"

        if self.cache is not None:
            self.cache.upsert_many(papers)

        self._progress("done", len(papers), limit, f"Found {len(papers)} recommendations")
        logger.info(
            "Recommendations for user %s: %d papers, %d/%d sources failed",
            user_id,
            len(papers),
            len(failed),
            len(sources),
        )
        return RecommendationResult(
            papers=papers,
            source_ids=sources,
            failed_sources=failed,
            status=status,
        )

    def get_recommendations(self, user_id: str, limit: int = 10) -> list[Paper]:
        """Deduplicated recommendations, at most ``limit`` long."""
        return self.recommend(user_id, limit).papers

    def _make_operation(self, index: int, source_id: str, total: int, per_source: int):
        def operation() -> ProviderResult:
            self._progress("recommendations", index + 1, total, f"Source paper {source_id}")
            resolved = self.resolver.resolve_result(source_id)
            if not resolved.ok:
                logger.warning("Skipping source %s: %s", source_id, resolved.error)
                return resolved
            return self.s2.get_recommendations_result(resolved.value, limit=per_source)

        return operation
