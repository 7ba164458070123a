"""Application service: the operations exposed to the API server and CLI."""

from __future__ import annotations

import logging
import uuid
from datetime import datetime
from typing import TYPE_CHECKING, Optional

from paperscout.errors import LLMError, PaperNotFoundError
from paperscout.identifiers import IdentifierResolver
from paperscout.llm import (
    PROPOSAL_SYSTEM_PROMPT,
    TAG_SYSTEM_PROMPT,
    build_proposal_prompt,
    build_tag_prompt,
    parse_proposal,
    parse_tags,
)
from paperscout.models import (
    Citation,
    Favorite,
    HistoryEntry,
    Paper,
    Rating,
    RecommendationResult,
    ResearchProposal,
)
from paperscout.providers.arxiv import ArxivClient
from paperscout.providers.semantic_scholar import SemanticScholarClient
from paperscout.recommend import RecommendationAggregator
from paperscout.scheduler import RateLimitedScheduler
from paperscout.storage.library_db import LibraryDB
from paperscout.storage.paper_cache import PaperCache

if TYPE_CHECKING:
    from paperscout.config import Settings
    from paperscout.llm import TextCompleter

logger = logging.getLogger(__name__)

SEARCH_SOURCES = ("arxiv", "semantic_scholar", "provider", "both")


class PaperService:
    """Search, collections, recommendations and AI-assisted features for one storage."""

    def __init__(
        self,
        storage: LibraryDB,
        arxiv_client: ArxivClient,
        s2_client: SemanticScholarClient,
        scheduler: Optional[RateLimitedScheduler] = None,
        completer: Optional[TextCompleter] = None,
    ):
        self.storage = storage
        self.arxiv = arxiv_client
        self.s2 = s2_client
        self.resolver = IdentifierResolver(s2_client)
        self.cache = PaperCache(storage, arxiv_client, s2_client)
        self.aggregator = RecommendationAggregator(
            storage,
            s2_client,
            self.resolver,
            scheduler=scheduler or RateLimitedScheduler(),
            paper_cache=self.cache,
        )
        self.completer = completer

    @classmethod
    def from_settings(
        cls, settings: Settings, completer: Optional[TextCompleter] = None
    ) -> PaperService:
        """Wire storage, clients and scheduler from Settings."""
        storage = LibraryDB(settings.db_path)
        arxiv = ArxivClient(delay=settings.arxiv_delay, timeout=settings.request_timeout)
        s2 = SemanticScholarClient(
            api_key=settings.semantic_scholar_api_key,
            delay=settings.request_delay,
            timeout=settings.request_timeout,
        )
        scheduler = RateLimitedScheduler(
            delay=settings.request_delay,
            max_sources=settings.max_sources,
            deadline=settings.request_deadline,
        )
        return cls(storage, arxiv, s2, scheduler=scheduler, completer=completer)

    def close(self) -> None:
        self.storage.close()

    # ------------------------------------------------------------------
    # Search and lookup
    # ------------------------------------------------------------------

    def search(
        self,
        query: str,
        source: str = "both",
        limit: int = 20,
        category: Optional[str] = None,
    ) -> list[Paper]:
        """Search arXiv, Semantic Scholar, or both.

        With ``source="both"`` arXiv results come first, followed by
        Semantic Scholar results; each keeps its native ID, so the same work
        may appear once per provider. Every result is cached.
        """
        if source not in SEARCH_SOURCES:
            raise ValueError(f"Unknown source {source!r}; expected one of {SEARCH_SOURCES}")

        results: list[Paper] = []
        if source in ("arxiv", "both"):
            results.extend(self.arxiv.search(query, limit=limit, category=category))
        if source in ("semantic_scholar", "provider", "both") and query.strip():
            results.extend(self.s2.search(query, limit=limit))

        self.cache.upsert_many(results)
        logger.info("Search %r (source=%s): %d results", query, source, len(results))
        return results

    def get_paper(self, paper_id: str) -> Paper:
        """Paper from the cache, fetched from a provider on a miss.

        Raises:
            PaperNotFoundError: if no provider knows the paper
        """
        paper = self.cache.get(paper_id)
        if paper is None:
            raise PaperNotFoundError(f"Paper {paper_id} not found")
        return paper

    def search_citations_and_references(self, paper_id: str) -> dict[str, list[Citation]]:
        """Citing and cited papers. Both lists are empty if the ID cannot be resolved."""
        resolved = self.resolver.resolve(paper_id)
        if resolved is None:
            return {"citations": [], "references": []}
        return {
            "citations": self.s2.get_citations(resolved),
            "references": self.s2.get_references(resolved),
        }

    # ------------------------------------------------------------------
    # Recommendations
    # ------------------------------------------------------------------

    def recommend(self, user_id: str, limit: int = 10) -> RecommendationResult:
        return self.aggregator.recommend(user_id, limit)

    def get_recommendations(self, user_id: str, limit: int = 10) -> list[Paper]:
        return self.aggregator.get_recommendations(user_id, limit)

    # ------------------------------------------------------------------
    # Favorites, ratings, history
    # ------------------------------------------------------------------

    def add_favorite(self, user_id: str, paper_id: str, tags: Optional[list[str]] = None) -> bool:
        return self.storage.add_favorite(user_id, paper_id, tags)

    def remove_favorite(self, user_id: str, paper_id: str) -> bool:
        return self.storage.remove_favorite(user_id, paper_id)

    def toggle_favorite(
        self, user_id: str, paper_id: str, tags: Optional[list[str]] = None
    ) -> bool:
        return self.storage.toggle_favorite(user_id, paper_id, tags)

    def is_favorite(self, user_id: str, paper_id: str) -> bool:
        return self.storage.is_favorite(user_id, paper_id)

    def update_tags(self, user_id: str, paper_id: str, tags: list[str]) -> bool:
        return self.storage.update_favorite_tags(user_id, paper_id, tags)

    def list_favorites(self, user_id: str, tag: Optional[str] = None) -> list[Favorite]:
        return self.storage.get_favorites(user_id, tag=tag)

    def rate(self, user_id: str, paper_id: str, rating: int) -> None:
        self.storage.add_rating(user_id, paper_id, rating)

    def list_ratings(self, user_id: str) -> list[Rating]:
        return self.storage.get_ratings(user_id)

    def record_view(self, user_id: str, paper_id: str, category: Optional[str] = None) -> None:
        """Add a history entry; the category defaults to the cached paper's primary one."""
        if category is None:
            paper = self.storage.get_paper(paper_id)
            category = paper.primary_category if paper else None
        self.storage.add_history(user_id, paper_id, category)

    def list_history(
        self, user_id: str, category: Optional[str] = None, limit: int = 50
    ) -> list[HistoryEntry]:
        return self.storage.get_history(user_id, category=category, limit=limit)

    # ------------------------------------------------------------------
    # AI-assisted features
    # ------------------------------------------------------------------

    def _require_completer(self) -> TextCompleter:
        if self.completer is None:
            raise LLMError("No text completer configured (set ANTHROPIC_API_KEY)")
        return self.completer

    def generate_tags(self, user_id: str, paper_id: str) -> list[str]:
        """Ask the LLM for tags and store them on the user's favorite.

        Raises:
            PaperNotFoundError: if the paper is unknown
            LLMError: if completion fails or yields no tags
        """
        completer = self._require_completer()
        paper = self.get_paper(paper_id)

        reply = completer.complete(TAG_SYSTEM_PROMPT, build_tag_prompt(paper))
        tags = parse_tags(reply)
        if not tags:
            raise LLMError(f"No tags could be parsed from reply: {reply!r}")

        if not self.storage.update_favorite_tags(user_id, paper_id, tags):
            logger.info("Generated tags for %s, which is not a favorite of %s", paper_id, user_id)
        return tags

    def generate_proposal(self, user_id: str, paper_ids: list[str]) -> ResearchProposal:
        """Draft a research theme from the given papers and store it.

        Raises:
            ValueError: if ``paper_ids`` is empty
            PaperNotFoundError: if any paper is unknown
            LLMError: if completion fails or the reply cannot be parsed
        """
        if not paper_ids:
            raise ValueError("At least one paper is required to generate a proposal")
        completer = self._require_completer()
        papers = [self.get_paper(pid) for pid in paper_ids]

        reply = completer.complete(PROPOSAL_SYSTEM_PROMPT, build_proposal_prompt(papers))
        parsed = parse_proposal(reply)

        proposal = ResearchProposal(
            id=uuid.uuid4().hex,
            user_id=user_id,
            title=parsed["title"],
            description=parsed["description"],
            source_paper_ids=list(paper_ids),
            open_problems=parsed["open_problems"],
            created_at=datetime.now(),
        )
        self.storage.add_proposal(proposal)
        logger.info("Stored proposal %s for user %s", proposal.id, user_id)
        return proposal

    def list_proposals(self, user_id: str) -> list[ResearchProposal]:
        return self.storage.get_proposals(user_id)

    def delete_proposal(self, user_id: str, proposal_id: str) -> bool:
        return self.storage.delete_proposal(user_id, proposal_id)
