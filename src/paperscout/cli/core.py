"""Discovery commands: search, paper, citations, recommend."""

import json

from paperscout.cli._shared import print_paper, run
from paperscout.service import SEARCH_SOURCES


def register(subparsers):
    """Register discovery commands."""
    _register_search(subparsers)
    _register_paper(subparsers)
    _register_citations(subparsers)
    _register_recommend(subparsers)


def _register_search(subparsers):
    p = subparsers.add_parser("search", help="Search arXiv and Semantic Scholar")
    p.add_argument("query", type=str, help="Free-text query")
    p.add_argument(
        "--source",
        type=str,
        choices=SEARCH_SOURCES,
        default="both",
        help="Provider(s) to search (default: both)",
    )
    p.add_argument("--limit", "-n", type=int, default=10, help="Results per provider")
    p.add_argument("--category", type=str, default=None, help="arXiv category, e.g. cs.LG")
    p.add_argument("--json", action="store_true", help="Print results as JSON")
    p.set_defaults(func=cmd_search)


def _register_paper(subparsers):
    p = subparsers.add_parser("paper", help="Show one paper by arXiv or provider ID")
    p.add_argument("paper_id", type=str)
    p.add_argument("--json", action="store_true", help="Print as JSON")
    p.set_defaults(func=cmd_paper)


def _register_citations(subparsers):
    p = subparsers.add_parser("citations", help="List papers citing and cited by a paper")
    p.add_argument("paper_id", type=str)
    p.set_defaults(func=cmd_citations)


def _register_recommend(subparsers):
    p = subparsers.add_parser("recommend", help="Recommend papers from a user's favorites")
    p.add_argument("--user", "-u", type=str, default="default", help="User ID")
    p.add_argument("--limit", "-n", type=int, default=10, help="Number of recommendations")
    p.add_argument("--json", action="store_true", help="Print the full result as JSON")
    p.set_defaults(func=cmd_recommend)


# --- Command handlers ---


def cmd_search(args):
    """Search providers and print results."""

    def _search(service):
        papers = service.search(
            args.query, source=args.source, limit=args.limit, category=args.category
        )
        if args.json:
            print(json.dumps([p.to_dict() for p in papers], indent=2))
            return
        if not papers:
            print("No results.")
            return
        for i, paper in enumerate(papers, 1):
            print_paper(paper, i)

    run(args, _search)


def cmd_paper(args):
    """Print one paper's details."""

    def _paper(service):
        paper = service.get_paper(args.paper_id)
        if args.json:
            print(json.dumps(paper.to_dict(), indent=2))
            return
        print_paper(paper)
        if paper.categories:
            print(f"    categories: {', '.join(paper.categories)}")
        if paper.external_url:
            print(f"    {paper.external_url}")
        if paper.abstract:
            print()
            print(paper.abstract)

    run(args, _paper)


def cmd_citations(args):
    """Print citing and cited papers."""

    def _citations(service):
        graph = service.search_citations_and_references(args.paper_id)
        for label, key in (("Cited by", "citations"), ("References", "references")):
            entries = graph[key]
            print(f"{label} ({len(entries)}):")
            for c in entries:
                year = f" ({c.year})" if c.year else ""
                print(f"  - {c.title}{year}")
            print()

    run(args, _citations)


def cmd_recommend(args):
    """Print recommendations for a user."""

    def _recommend(service):
        result = service.recommend(args.user, args.limit)
        if args.json:
            print(json.dumps(result.to_dict(), indent=2))
            return
        if result.status == "empty":
            print("No favorites or liked papers yet; add some with `paperscout favorite add`.")
            return
        if result.status == "failed":
            print("Recommendation provider unavailable; try again later.")
            return
        if result.degraded:
            print(f"Warning: {len(result.failed_sources)} source paper(s) could not be used.\n")
        for i, paper in enumerate(result.papers, 1):
            print_paper(paper, i)

    run(args, _recommend)
