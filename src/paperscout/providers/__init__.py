"""Clients for external bibliographic providers."""

from paperscout.providers.arxiv import ArxivClient, build_query
from paperscout.providers.semantic_scholar import SemanticScholarClient

__all__ = ["ArxivClient", "SemanticScholarClient", "build_query"]
