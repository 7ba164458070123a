"""Personal library commands: favorite, rate, history, propose."""

from paperscout.cli._shared import run


def register(subparsers):
    """Register library commands."""
    _register_favorite(subparsers)
    _register_rate(subparsers)
    _register_history(subparsers)
    _register_propose(subparsers)


def _add_user(p):
    p.add_argument("--user", "-u", type=str, default="default", help="User ID")


def _register_favorite(subparsers):
    p = subparsers.add_parser("favorite", help="Manage favorite papers")
    sub = p.add_subparsers(dest="favorite_command")

    add = sub.add_parser("add", help="Add a paper to favorites")
    add.add_argument("paper_id", type=str)
    add.add_argument("--tag", "-t", action="append", default=None, help="Tag (repeatable)")
    _add_user(add)
    add.set_defaults(func=cmd_favorite_add)

    remove = sub.add_parser("remove", help="Remove a paper from favorites")
    remove.add_argument("paper_id", type=str)
    _add_user(remove)
    remove.set_defaults(func=cmd_favorite_remove)

    ls = sub.add_parser("list", help="List favorites")
    ls.add_argument("--tag", "-t", type=str, default=None, help="Only favorites with this tag")
    _add_user(ls)
    ls.set_defaults(func=cmd_favorite_list)

    tag = sub.add_parser("tag", help="Replace a favorite's tags, or generate them with --auto")
    tag.add_argument("paper_id", type=str)
    tag.add_argument("tags", nargs="*", help="New tags")
    tag.add_argument("--auto", action="store_true", help="Generate tags with the LLM")
    _add_user(tag)
    tag.set_defaults(func=cmd_favorite_tag)


def _register_rate(subparsers):
    p = subparsers.add_parser("rate", help="Like (+1) or dislike (-1) a paper")
    p.add_argument("paper_id", type=str)
    p.add_argument("rating", type=int, choices=[-1, 1])
    _add_user(p)
    p.set_defaults(func=cmd_rate)


def _register_history(subparsers):
    p = subparsers.add_parser("history", help="Show recently viewed papers")
    p.add_argument("--category", type=str, default=None)
    p.add_argument("--limit", "-n", type=int, default=50)
    _add_user(p)
    p.set_defaults(func=cmd_history)


def _register_propose(subparsers):
    p = subparsers.add_parser("propose", help="Draft a research theme from several papers")
    p.add_argument("paper_ids", nargs="+")
    _add_user(p)
    p.set_defaults(func=cmd_propose)


# --- Command handlers ---


def cmd_favorite_add(args):
    def _add(service):
        if service.add_favorite(args.user, args.paper_id, args.tag):
            print(f"Added {args.paper_id} to favorites.")
        else:
            print(f"{args.paper_id} is already a favorite.")

    run(args, _add)


def cmd_favorite_remove(args):
    def _remove(service):
        if service.remove_favorite(args.user, args.paper_id):
            print(f"Removed {args.paper_id} from favorites.")
        else:
            print(f"{args.paper_id} was not a favorite.")

    run(args, _remove)


def cmd_favorite_list(args):
    def _list(service):
        favorites = service.list_favorites(args.user, tag=args.tag)
        if not favorites:
            print("No favorites.")
            return
        for fav in favorites:
            paper = service.storage.get_paper(fav.paper_id)
            title = paper.title if paper else "(not cached)"
            tags = f"  [{', '.join(fav.tags)}]" if fav.tags else ""
            print(f"{fav.paper_id}  {title}{tags}")

    run(args, _list)


def cmd_favorite_tag(args):
    def _tag(service):
        if args.auto:
            tags = service.generate_tags(args.user, args.paper_id)
            print(f"Tags: {', '.join(tags)}")
        elif service.update_tags(args.user, args.paper_id, args.tags):
            print(f"Tags: {', '.join(args.tags)}")
        else:
            print(f"{args.paper_id} is not a favorite.")

    run(args, _tag)


def cmd_rate(args):
    run(args, lambda service: service.rate(args.user, args.paper_id, args.rating))
    print(f"Rated {args.paper_id}: {args.rating:+d}")


def cmd_history(args):
    def _history(service):
        for entry in service.list_history(args.user, category=args.category, limit=args.limit):
            when = entry.viewed_at.strftime("%Y-%m-%d %H:%M") if entry.viewed_at else ""
            print(f"{when}  {entry.paper_id}  {entry.category or ''}")

    run(args, _history)


def cmd_propose(args):
    def _propose(service):
        proposal = service.generate_proposal(args.user, args.paper_ids)
        print(proposal.title)
        print()
        print(proposal.description)
        if proposal.open_problems:
            print("\nOpen problems:")
            for problem in proposal.open_problems:
                print(f"  - {problem}")
        print(f"\n(saved as {proposal.id})")

    run(args, _propose)
