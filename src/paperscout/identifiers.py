"""arXiv / Semantic Scholar identifier handling.

The recommendations endpoint only accepts Semantic Scholar paper IDs, while
papers found through arXiv search are stored under their versioned arXiv ID
(e.g. ``2301.01234v2``). The resolver bridges the two.
"""

import logging
import re
from typing import Optional

from paperscout.errors import NotFoundError, ProviderResult

logger = logging.getLogger(__name__)

# New-style arXiv IDs: YYMM.NNNNN (YYMM.NNNN before 2015), optional version suffix
ARXIV_ID_PATTERN = re.compile(r"^(?P<base>\d{4}\.\d{4,5})(?P<version>v\d+)?$")


def is_arxiv_id(paper_id: str) -> bool:
    """True if ``paper_id`` looks like a (possibly versioned) arXiv identifier."""
    return bool(ARXIV_ID_PATTERN.match(paper_id.strip()))


def strip_version(paper_id: str) -> str:
    """Remove a trailing ``vN`` from an arXiv ID; other IDs are returned unchanged."""
    match = ARXIV_ID_PATTERN.match(paper_id.strip())
    if match is None:
        return paper_id
    return match.group("base")


class IdentifierResolver:
    """Turn any stored paper ID into a Semantic Scholar paper ID.

    Non-arXiv IDs pass through untouched. Successful lookups are memoised for
    the lifetime of the resolver; failures are not, so a later request can retry.
    """

    def __init__(self, s2_client):
        self.s2 = s2_client
        self._cache: dict[str, str] = {}

    def resolve_result(self, paper_id: str) -> ProviderResult:
        """Resolve ``paper_id`` to a Semantic Scholar ID.

        Returns:
            ProviderResult wrapping the ID, or an error when an arXiv ID
            has no Semantic Scholar counterpart or the lookup failed.
        """
        if not is_arxiv_id(paper_id):
            return ProviderResult.success(paper_id)

        arxiv_id = strip_version(paper_id)
        if arxiv_id in self._cache:
            return ProviderResult.success(self._cache[arxiv_id])

        result = self.s2.resolve_arxiv_id_result(arxiv_id)
        if not result.ok:
            return result
        if not result.value:
            return ProviderResult.failure(
                NotFoundError(
                    f"No Semantic Scholar ID for arXiv:{arxiv_id}", provider="semantic_scholar"
                )
            )

        logger.debug("Resolved arXiv:%s -> %s", arxiv_id, result.value)
        self._cache[arxiv_id] = result.value
        return result

    def resolve(self, paper_id: str) -> Optional[str]:
        """Fail-soft variant of :meth:`resolve_result`."""
        return self.resolve_result(paper_id).unwrap_or(None)
