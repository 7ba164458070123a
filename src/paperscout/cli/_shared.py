"""Helpers shared across CLI command modules."""

import sys
from pathlib import Path

from paperscout.config import load_settings
from paperscout.errors import PaperscoutError
from paperscout.models import Paper


def build_service(args):
    """PaperService from settings, honoring the global --db flag."""
    from paperscout.llm import completer_from_settings
    from paperscout.service import PaperService

    try:
        settings = load_settings()
    except ValueError as e:
        print(f"Error: {e}")
        sys.exit(1)
    if getattr(args, "db", None):
        settings.db_path = Path(args.db)
    return PaperService.from_settings(settings, completer=completer_from_settings(settings))


def run(args, fn):
    """Call ``fn(service)`` and turn paperscout errors into a clean exit."""
    service = build_service(args)
    try:
        return fn(service)
    except (PaperscoutError, ValueError) as e:
        print(f"Error: {e}")
        sys.exit(1)
    finally:
        service.close()


def print_paper(paper: Paper, index=None) -> None:
    prefix = f"{index:2d}. " if index is not None else ""
    authors = ", ".join(paper.authors[:3])
    if len(paper.authors) > 3:
        authors += " et al."
    year = f" ({paper.year})" if paper.year else ""
    print(f"{prefix}{paper.title}{year}")
    if authors:
        print(f"    {authors}")
    print(f"    id: {paper.id}  source: {paper.source}  citations: {paper.citation_count}")
