"""Read-through cache of canonical Paper records.

Papers fetched from either provider are persisted so that repeated lookups
(detail views, tag and proposal generation) skip the external call.
"""

import logging
from typing import Optional

from paperscout.errors import StorageUnavailableError
from paperscout.identifiers import is_arxiv_id, strip_version
from paperscout.models import Paper

logger = logging.getLogger(__name__)


class PaperCache:
    """Storage-first paper lookup with provider fallback."""

    def __init__(self, storage, arxiv_client=None, s2_client=None):
        self.storage = storage
        self.arxiv = arxiv_client
        self.s2 = s2_client

    def upsert(self, paper: Paper) -> None:
        """Persist one paper (insert or refresh)."""
        self.storage.upsert_paper(paper)

    def upsert_many(self, papers: list[Paper]) -> int:
        """Persist papers encountered along the way; best effort.

        Returns the number of papers written (0 when storage failed).
        """
        if not papers:
            return 0
        try:
            self.storage.upsert_papers(papers)
        except StorageUnavailableError as e:
            logger.warning("Could not cache %d papers: %s", len(papers), e)
            return 0
        return len(papers)

    def get(self, paper_id: str) -> Optional[Paper]:
        """Return a paper from storage, fetching and caching it on a miss.

        arXiv-style IDs are fetched from arXiv, everything else from
        Semantic Scholar. Returns None when neither storage nor the
        provider knows the paper.
        """
        paper = self.storage.get_paper(paper_id)
        if paper is not None:
            return paper

        paper = self._fetch(paper_id)
        if paper is None:
            logger.info("Paper %s not found in storage or providers", paper_id)
            return None

        self.upsert(paper)
        return paper

    def _fetch(self, paper_id: str) -> Optional[Paper]:
        if is_arxiv_id(paper_id):
            if self.arxiv is not None:
                paper = self.arxiv.get_by_id(paper_id)
                if paper is not None:
                    return paper
            if self.s2 is not None:
                return self.s2.get_paper(f"ARXIV:{strip_version(paper_id)}")
            return None
        if self.s2 is not None:
            return self.s2.get_paper(paper_id)
        return None
