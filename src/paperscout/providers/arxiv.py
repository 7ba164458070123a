"""arXiv export API client.

Queries http://export.arxiv.org/api/query and parses the Atom feed it returns.

Rate limit: ~3 seconds between requests (arXiv policy).
"""

import logging
import re
import threading
import time
from typing import Any, Optional
from xml.etree import ElementTree as ET

import requests

from paperscout.errors import ParseError, ProviderError, ProviderResult, RateLimitError
from paperscout.models import SOURCE_ARXIV, Paper, parse_date
from paperscout.providers._http import send

logger = logging.getLogger(__name__)

PROVIDER = "arxiv"
ARXIV_API_URL = "http://export.arxiv.org/api/query"
REQUEST_DELAY = 3.0  # seconds between requests (arXiv rate limit)

ATOM_NS = {"atom": "http://www.w3.org/2005/Atom"}

_WHITESPACE = re.compile(r"\s+")


def build_query(
    title: Optional[str] = None,
    author: Optional[str] = None,
    abstract: Optional[str] = None,
    category: Optional[str] = None,
    all: Optional[str] = None,  # noqa: A002
) -> str:
    """Compose an arXiv ``search_query`` from field clauses joined by AND.

    Omitted (None or empty) clauses are not emitted.

    >>> build_query(all="transformers", category="cs.CL")
    'cat:cs.CL AND all:transformers'
    """
    clauses = [
        ("ti", title),
        ("au", author),
        ("abs", abstract),
        ("cat", category),
        ("all", all),
    ]
    return " AND ".join(f"{prefix}:{value}" for prefix, value in clauses if value)


def _clean(text: Optional[str]) -> str:
    return _WHITESPACE.sub(" ", text or "").strip()


def parse_entry(entry: ET.Element) -> Optional[Paper]:
    """Convert one Atom ``<entry>`` into a Paper. Returns None if it has no arXiv ID or title."""
    raw_id = entry.findtext("atom:id", default="", namespaces=ATOM_NS).strip()
    if "/abs/" not in raw_id:
        return None
    arxiv_id = raw_id.split("/abs/", 1)[1]

    title = _clean(entry.findtext("atom:title", default="", namespaces=ATOM_NS))
    if not arxiv_id or not title:
        return None

    authors = [
        _clean(author.findtext("atom:name", default="", namespaces=ATOM_NS))
        for author in entry.findall("atom:author", ATOM_NS)
    ]
    categories = [
        c.get("term") for c in entry.findall("atom:category", ATOM_NS) if c.get("term")
    ]

    pdf_url = None
    for link in entry.findall("atom:link", ATOM_NS):
        if link.get("type") == "application/pdf" or link.get("title") == "pdf":
            pdf_url = link.get("href")
            break

    return Paper(
        id=arxiv_id,
        title=title,
        authors=[a for a in authors if a],
        abstract=_clean(entry.findtext("atom:summary", default="", namespaces=ATOM_NS)) or None,
        categories=categories,
        published_date=parse_date(entry.findtext("atom:published", namespaces=ATOM_NS)),
        external_url=pdf_url or f"http://arxiv.org/pdf/{arxiv_id}.pdf",
        arxiv_id=arxiv_id,
        source=SOURCE_ARXIV,
    )


def parse_feed(xml_text: str) -> list[Paper]:
    """Parse an arXiv Atom feed into Papers.

    Raises:
        ParseError: if the body is not well-formed XML
    """
    try:
        root = ET.fromstring(xml_text)
    except ET.ParseError as e:
        raise ParseError(f"arXiv returned malformed XML: {e}", provider=PROVIDER) from e

    papers = []
    for entry in root.findall("atom:entry", ATOM_NS):
        paper = parse_entry(entry)
        if paper is not None:
            papers.append(paper)
    return papers


class ArxivClient:
    """Client for the arXiv export API.

    Public methods are fail-soft: they log and return ``[]``/``None`` on error.
    The ``*_result`` variants return a ProviderResult carrying the error instead.
    """

    def __init__(self, delay: float = REQUEST_DELAY, timeout: float = 30.0, session: Any = None):
        """Initialize client.

        Args:
            delay: Minimum spacing between requests in seconds
            timeout: Per-request timeout in seconds
            session: ``requests.Session`` (defaults to the ``requests`` module)
        """
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

    def _query(self, params: dict) -> list[Paper]:
        self._rate_limit()
        response = send(self.session, "get", ARXIV_API_URL, PROVIDER, self.timeout, params=params)
        return parse_feed(response.text)

    @staticmethod
    def _log_failure(action: str, target: str, error: ProviderError) -> None:
        if isinstance(error, RateLimitError):
            logger.warning("arXiv rate limit exceeded while %s %s", action, target)
        else:
            logger.warning("Error %s %s on arXiv: %s", action, target, error)

    def search_result(
        self,
        query: str,
        limit: int = 20,
        offset: int = 0,
        category: Optional[str] = None,
    ) -> ProviderResult:
        """Relevance-ranked full-text search, optionally restricted to a category.

        Args:
            query: Free-text query (may be empty when ``category`` is given)
            limit: Maximum number of results
            offset: Pagination offset
            category: arXiv category such as "cs.LG"

        Returns:
            ProviderResult wrapping a list of Paper objects
        """
        search_query = build_query(all=query.strip() or None, category=category)
        if not search_query:
            logger.debug("Skipping arXiv search with neither query nor category")
            return ProviderResult.success([])

        params = {
            "search_query": search_query,
            "start": offset,
            "max_results": limit,
            "sortBy": "relevance",
            "sortOrder": "descending",
        }
        try:
            papers = self._query(params)
        except ProviderError as e:
            self._log_failure("searching", repr(search_query), e)
            return ProviderResult.failure(e)
        return ProviderResult.success(papers[:limit])

    def search(
        self,
        query: str,
        limit: int = 20,
        offset: int = 0,
        category: Optional[str] = None,
    ) -> list[Paper]:
        return self.search_result(query, limit=limit, offset=offset, category=category).unwrap_or(
            []
        )

    def get_by_id_result(self, arxiv_id: str) -> ProviderResult:
        """Fetch one paper by arXiv ID (versioned or not)."""
        try:
            papers = self._query({"id_list": arxiv_id})
        except ProviderError as e:
            self._log_failure("fetching paper", arxiv_id, e)
            return ProviderResult.failure(e)
        return ProviderResult.success(papers[0] if papers else None)

    def get_by_id(self, arxiv_id: str) -> Optional[Paper]:
        return self.get_by_id_result(arxiv_id).unwrap_or(None)
