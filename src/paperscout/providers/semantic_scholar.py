"""Semantic Scholar API client: search, lookup, citation graph and recommendations."""

import logging
import threading
import time
from typing import Any, Optional

import requests

from paperscout.errors import (
    NotFoundError,
    ParseError,
    ProviderError,
    ProviderResult,
    RateLimitError,
)
from paperscout.models import SOURCE_SEMANTIC_SCHOLAR, Citation, Paper, parse_date
from paperscout.providers._http import decode_json, send

logger = logging.getLogger(__name__)

PROVIDER = "semantic_scholar"

DEFAULT_FIELDS = ",".join(
    [
        "paperId",
        "title",
        "abstract",
        "year",
        "authors",
        "citationCount",
        "referenceCount",
        "url",
        "venue",
        "publicationDate",
        "externalIds",
    ]
)
CITATION_FIELDS = "paperId,title,authors,year"


class SemanticScholarClient:
    """Client for the Semantic Scholar Graph and Recommendations APIs.

    Rate limits: 100 requests/5 min without API key, 1 request/sec with key.
    The recommendations endpoint throttles hardest and answers HTTP 429 when
    called in bursts.

    Public methods are fail-soft: they log and return ``[]``/``None`` on error.
    The ``*_result`` variants return a ProviderResult carrying the error instead.
    """

    BASE_URL = "https://api.semanticscholar.org/graph/v1"
    RECOMMENDATIONS_URL = "https://api.semanticscholar.org/recommendations/v1/papers/forpaper"

    def __init__(
        self,
        api_key: Optional[str] = None,
        delay: float = 1.0,
        timeout: float = 30.0,
        session: Any = None,
    ):
        """Initialize client.

        Args:
            api_key: Optional API key for higher rate limits
            delay: Minimum spacing between requests in seconds
            timeout: Per-request timeout in seconds
            session: ``requests.Session`` (defaults to the ``requests`` module)
        """
        self.api_key = api_key
        self.delay = delay
        self.timeout = timeout
        self.session = session or requests
        self._last_request = 0.0
        self._lock = threading.Lock()

    def _rate_limit(self):
        """Enforce rate limiting. Serialized so threads sharing the client stay spaced."""
        with self._lock:
            elapsed = time.time() - self._last_request
            if elapsed < self.delay:
                time.sleep(self.delay - elapsed)
            self._last_request = time.time()

    def _headers(self) -> dict:
        """Get request headers."""
        headers = {}
        if self.api_key:
            headers["x-api-key"] = self.api_key
        return headers

    def _get_json(self, url: str, params: dict) -> dict:
        self._rate_limit()
        response = send(
            self.session,
            "get",
            url,
            provider=PROVIDER,
            timeout=self.timeout,
            params=params,
            headers=self._headers(),
        )
        data = decode_json(response, PROVIDER)
        if not isinstance(data, dict):
            raise ParseError(f"Unexpected response shape from {url}", provider=PROVIDER)
        return data

    @staticmethod
    def _log_failure(action: str, target: str, error: ProviderError) -> None:
        if isinstance(error, RateLimitError):
            logger.warning("Semantic Scholar rate limit exceeded while %s %s", action, target)
        else:
            logger.warning("Error %s %s on Semantic Scholar: %s", action, target, error)

    # ------------------------------------------------------------------
    # Search and lookup
    # ------------------------------------------------------------------

    def search_result(self, query: str, limit: int = 20, offset: int = 0) -> ProviderResult:
        """Keyword search.

        Args:
            query: Free-text query
            limit: Maximum number of results (max 100 per request)
            offset: Pagination offset

        Returns:
            ProviderResult wrapping a list of Paper objects
        """
        params = {
            "query": query,
            "limit": min(limit, 100),
            "offset": offset,
            "fields": DEFAULT_FIELDS,
        }
        try:
            data = self._get_json(f"{self.BASE_URL}/paper/search", params)
            papers = [p for p in map(to_paper, _records(data, "data")) if p]
        except ProviderError as e:
            self._log_failure("searching", repr(query), e)
            return ProviderResult.failure(e)

        return ProviderResult.success(papers[:limit])

    def search(self, query: str, limit: int = 20, offset: int = 0) -> list[Paper]:
        return self.search_result(query, limit=limit, offset=offset).unwrap_or([])

    def get_paper_result(self, paper_id: str) -> ProviderResult:
        """Fetch a single paper by Semantic Scholar ID, ``ARXIV:<id>`` or ``DOI:<doi>``."""
        try:
            data = self._get_json(f"{self.BASE_URL}/paper/{paper_id}", {"fields": DEFAULT_FIELDS})
        except ProviderError as e:
            self._log_failure("fetching paper", paper_id, e)
            return ProviderResult.failure(e)

        paper = to_paper(data)
        if paper is None:
            error = ParseError(f"Record for {paper_id} lacks paperId or title", provider=PROVIDER)
            self._log_failure("fetching paper", paper_id, error)
            return ProviderResult.failure(error)
        return ProviderResult.success(paper)

    def get_paper(self, paper_id: str) -> Optional[Paper]:
        return self.get_paper_result(paper_id).unwrap_or(None)

    def resolve_arxiv_id_result(self, arxiv_id: str) -> ProviderResult:
        """Map an (unversioned) arXiv ID to its Semantic Scholar paper ID."""
        try:
            data = self._get_json(f"{self.BASE_URL}/paper/ARXIV:{arxiv_id}", {"fields": "paperId"})
        except ProviderError as e:
            self._log_failure("resolving arXiv ID", arxiv_id, e)
            return ProviderResult.failure(e)

        paper_id = data.get("paperId")
        if not paper_id:
            error = NotFoundError(
                f"Could not find Semantic Scholar ID for arXiv:{arxiv_id}", provider=PROVIDER
            )
            self._log_failure("resolving arXiv ID", arxiv_id, error)
            return ProviderResult.failure(error)
        return ProviderResult.success(paper_id)

    def resolve_arxiv_id(self, arxiv_id: str) -> Optional[str]:
        return self.resolve_arxiv_id_result(arxiv_id).unwrap_or(None)

    # ------------------------------------------------------------------
    # Citation graph
    # ------------------------------------------------------------------

    def _edges_result(self, paper_id: str, edge: str, key: str, limit: int) -> ProviderResult:
        params = {"fields": CITATION_FIELDS, "limit": limit}
        try:
            data = self._get_json(f"{self.BASE_URL}/paper/{paper_id}/{edge}", params)
            edges = _records(data, "data")
        except ProviderError as e:
            self._log_failure(f"fetching {edge} for", paper_id, e)
            return ProviderResult.failure(e)

        citations = []
        for item in edges:
            citation = to_citation(item.get(key) if isinstance(item, dict) else None)
            if citation is not None:
                citations.append(citation)
        return ProviderResult.success(citations)

    def get_citations_result(self, paper_id: str, limit: int = 100) -> ProviderResult:
        """Papers that cite ``paper_id``."""
        return self._edges_result(paper_id, "citations", "citingPaper", limit)

    def get_citations(self, paper_id: str, limit: int = 100) -> list[Citation]:
        return self.get_citations_result(paper_id, limit=limit).unwrap_or([])

    def get_references_result(self, paper_id: str, limit: int = 100) -> ProviderResult:
        """Papers cited by ``paper_id``."""
        return self._edges_result(paper_id, "references", "citedPaper", limit)

    def get_references(self, paper_id: str, limit: int = 100) -> list[Citation]:
        return self.get_references_result(paper_id, limit=limit).unwrap_or([])

    # ------------------------------------------------------------------
    # Recommendations
    # ------------------------------------------------------------------

    def get_recommendations_result(self, paper_id: str, limit: int = 10) -> ProviderResult:
        """Semantically similar papers via the S2 Recommendations API.

        Args:
            paper_id: Semantic Scholar paper ID (arXiv IDs must be resolved first)
            limit: Maximum number of recommendations

        Returns:
            ProviderResult wrapping a list of recommended Paper objects
        """
        params = {"fields": DEFAULT_FIELDS, "limit": limit}
        try:
            data = self._get_json(f"{self.RECOMMENDATIONS_URL}/{paper_id}", params)
            papers = [p for p in map(to_paper, _records(data, "recommendedPapers")) if p]
        except ProviderError as e:
            self._log_failure("fetching recommendations for", paper_id, e)
            return ProviderResult.failure(e)

        return ProviderResult.success(papers[:limit])

    def get_recommendations(self, paper_id: str, limit: int = 10) -> list[Paper]:
        return self.get_recommendations_result(paper_id, limit=limit).unwrap_or([])


def _records(data: dict, key: str) -> list:
    """The list stored under ``key``; a non-list value is a malformed response."""
    records = data.get(key)
    if records is None:
        return []
    if not isinstance(records, list):
        raise ParseError(
            f"Expected a list under {key!r}, got {type(records).__name__}", provider=PROVIDER
        )
    return records


def _text(value: Any) -> Optional[str]:
    if not isinstance(value, str):
        return None
    return value.strip() or None


def _author_names(authors: Any) -> list[str]:
    if not isinstance(authors, list):
        return []
    return [name for name in (_text(a.get("name")) for a in authors if isinstance(a, dict)) if name]


def _count(value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        return 0
    return max(value, 0)


def to_paper(item: Any) -> Optional[Paper]:
    """Normalize a Semantic Scholar paper record. Returns None if unusable."""
    if not isinstance(item, dict):
        return None
    paper_id = _text(item.get("paperId"))
    title = _text(item.get("title"))
    if not paper_id or not title:
        return None

    external_ids = item.get("externalIds")
    if not isinstance(external_ids, dict):
        external_ids = {}
    venue = _text(item.get("venue"))
    return Paper(
        id=paper_id,
        title=title,
        authors=_author_names(item.get("authors")),
        abstract=_text(item.get("abstract")),
        categories=[venue] if venue else [],
        published_date=parse_date(_text(item.get("publicationDate"))),
        external_url=_text(item.get("url")),
        citation_count=_count(item.get("citationCount")),
        arxiv_id=_text(external_ids.get("ArXiv")),
        provider_id=paper_id,
        source=SOURCE_SEMANTIC_SCHOLAR,
    )


def to_citation(item: Any) -> Optional[Citation]:
    """Normalize a citing/cited paper stub. Returns None if it has no title."""
    if not isinstance(item, dict):
        return None
    title = _text(item.get("title"))
    if not title:
        return None
    year = item.get("year")
    return Citation(
        paper_id=_text(item.get("paperId")),
        title=title,
        authors=_author_names(item.get("authors")),
        year=year if isinstance(year, int) and not isinstance(year, bool) else None,
    )
