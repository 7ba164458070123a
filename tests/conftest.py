"""Shared pytest configuration and fixtures."""

from datetime import date
from unittest.mock import MagicMock

import pytest

from paperscout.errors import ProviderResult
from paperscout.models import SOURCE_SEMANTIC_SCHOLAR, Paper
from paperscout.scheduler import RateLimitedScheduler
from paperscout.storage.library_db import LibraryDB

ARXIV_FEED = """<?xml version="1.0" encoding="UTF-8"?>
<feed xmlns="http://www.w3.org/2005/Atom">
  <title>ArXiv Query</title>
  <entry>
    <id>http://arxiv.org/abs/2301.01234v2</id>
    <published>2023-01-03T18:00:00Z</published>
    <title>Attention Is Still
      All You Need</title>
    <summary>  We revisit attention.
      It is still all you need.  </summary>
    <author><name>Ada Lovelace</name></author>
    <author><name>Alan Turing</name></author>
    <link href="http://arxiv.org/abs/2301.01234v2" rel="alternate" type="text/html"/>
    <link title="pdf" href="http://arxiv.org/pdf/2301.01234v2" rel="related" type="application/pdf"/>
    <category term="cs.CL" scheme="http://arxiv.org/schemas/atom"/>
    <category term="cs.LG" scheme="http://arxiv.org/schemas/atom"/>
  </entry>
  <entry>
    <id>http://arxiv.org/abs/2302.05678v1</id>
    <published>2023-02-10T09:30:00Z</published>
    <title>Graph Networks for Molecules</title>
    <summary>Molecules as graphs.</summary>
    <author><name>Rosalind Franklin</name></author>
    <category term="q-bio.BM" scheme="http://arxiv.org/schemas/atom"/>
  </entry>
</feed>
"""


def make_paper(paper_id: str, title=None, **kwargs) -> Paper:
    """Build a Paper with sensible defaults."""
    return Paper(id=paper_id, title=title or f"Paper {paper_id}", **kwargs)


def make_s2_paper(paper_id: str, title=None, **kwargs) -> Paper:
    kwargs.setdefault("source", SOURCE_SEMANTIC_SCHOLAR)
    kwargs.setdefault("provider_id", paper_id)
    return make_paper(paper_id, title, **kwargs)


def s2_record(paper_id: str, title=None, **extra) -> dict:
    """A Semantic Scholar paper record as returned by the Graph API."""
    record = {
        "paperId": paper_id,
        "title": title or f"Paper {paper_id}",
        "abstract": "Abstract text.",
        "year": 2023,
        "authors": [{"authorId": "1", "name": "Grace Hopper"}],
        "citationCount": 12,
        "url": f"https://www.semanticscholar.org/paper/{paper_id}",
        "venue": "NeurIPS",
        "publicationDate": "2023-05-01",
        "externalIds": {},
    }
    record.update(extra)
    return record


def mock_response(json_data=None, status_code=200, text=""):
    """MagicMock standing in for a ``requests.Response``."""
    resp = MagicMock()
    resp.status_code = status_code
    resp.text = text
    resp.json.return_value = json_data
    resp.raise_for_status.return_value = None
    return resp


@pytest.fixture
def db(tmp_path):
    """Fresh LibraryDB in a temp directory."""
    storage = LibraryDB(tmp_path / "library.db")
    yield storage
    storage.close()


@pytest.fixture
def sample_paper():
    return make_paper(
        "2301.01234v2",
        title="Attention Is Still All You Need",
        authors=["Ada Lovelace", "Alan Turing"],
        abstract="We revisit attention.",
        categories=["cs.CL", "cs.LG"],
        published_date=date(2023, 1, 3),
        arxiv_id="2301.01234v2",
    )


@pytest.fixture
def sleeps():
    """Record of sleep calls made by a scheduler built with ``scheduler``."""
    return []


@pytest.fixture
def scheduler(sleeps):
    """Scheduler with a 1 s delay whose sleeps are recorded instead of slept."""
    return RateLimitedScheduler(delay=1.0, max_sources=3, sleep=sleeps.append)


@pytest.fixture
def s2_client():
    """MagicMock SemanticScholarClient with empty, successful defaults."""
    client = MagicMock()
    client.resolve_arxiv_id_result.return_value = ProviderResult.success("S2_DEFAULT")
    client.get_recommendations_result.return_value = ProviderResult.success([])
    client.search.return_value = []
    client.get_paper.return_value = None
    client.get_citations.return_value = []
    client.get_references.return_value = []
    return client


@pytest.fixture
def arxiv_client():
    client = MagicMock()
    client.search.return_value = []
    client.get_by_id.return_value = None
    return client
