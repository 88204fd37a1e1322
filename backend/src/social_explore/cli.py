"""CLI for Social Explore."""
import argparse
import json
import logging
import sys
from dataclasses import asdict

from .database import init_db, SessionLocal
from .demo_data import seed_demo_graph
from .explore import ExploreRanker
from .graph_store import GraphStore
from .suggestions import SuggestionRanker


def cmd_init(args):
    """Initialize the database."""
    print("Initializing database...")
    init_db()
    print("Database initialized successfully")


def cmd_seed(args):
    """Seed the deterministic demo graph."""
    init_db()
    db = SessionLocal()

    try:
        created = seed_demo_graph(db, seed=args.seed)
        print("Demo graph seeded")
        for kind, count in created.items():
            print(f"  {kind}: +{count}")
    finally:
        db.close()


def cmd_stats(args):
    """Show database statistics."""
    init_db()
    db = SessionLocal()

    try:
        stats = GraphStore(db).stats()

        print("Social Explore Statistics")
        print("=" * 40)
        print(f"Users: {stats['users']}")
        print(f"Posts: {stats['posts']} ({stats['orphaned_posts']} orphaned)")
        print(f"Follows: {stats['follows']}")
        print(f"Likes: {stats['likes']}")
        print(f"Shares: {stats['shares']}")
    finally:
        db.close()


def cmd_suggestions(args):
    """Show follow suggestions for a user."""
    init_db()
    db = SessionLocal()

    try:
        suggestions = SuggestionRanker(GraphStore(db)).rank(args.username)

        if args.json:
            print(json.dumps([asdict(s) for s in suggestions], indent=2))
            return

        if not suggestions:
            print(f"No suggestions for @{args.username}")
            return

        print(f"Suggestions for @{args.username}:")
        print("-" * 60)
        for s in suggestions:
            print(f"  @{s.username} ({s.name})")
            print(f"    Mutual friends: {s.mutual_friends}  Category match: {s.category_match}  Score: {s.score}")
    finally:
        db.close()


def cmd_explore(args):
    """Show the explore feed for a user."""
    init_db()
    db = SessionLocal()

    try:
        ranker = ExploreRanker(GraphStore(db), limit=args.limit)
        feed = ranker.rank(args.username)

        if args.json:
            print(json.dumps([asdict(p) for p in feed], indent=2))
            return

        if not feed:
            print(f"Explore feed for @{args.username} is empty")
            return

        print(f"Explore feed for @{args.username}:")
        print("-" * 60)
        for post in feed:
            caption = post.caption.replace("\n", " ").strip()
            if len(caption) > 60:
                caption = f"{caption[:57]}..."
            flags = "".join([
                "L" if post.already_liked else "-",
                "S" if post.already_shared else "-",
            ])
            print(f"  [{post.priority}] {post.id} @{post.author} {flags}")
            print(f"    {caption}")
            print(f"    Likes: {post.likes}  Shares: {post.shares}  Category match: {post.category_match}")
    finally:
        db.close()


def main():
    """CLI entry point."""
    parser = argparse.ArgumentParser(
        description="Social Explore - follow suggestions and explore feed"
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Debug logging")
    subparsers = parser.add_subparsers(dest="command", help="Commands")

    # init
    init_parser = subparsers.add_parser("init", help="Initialize database")
    init_parser.set_defaults(func=cmd_init)

    # seed
    seed_parser = subparsers.add_parser("seed", help="Seed a demo graph")
    seed_parser.add_argument("--seed", type=int, default=42, help="Random seed")
    seed_parser.set_defaults(func=cmd_seed)

    # stats
    stats_parser = subparsers.add_parser("stats", help="Show statistics")
    stats_parser.set_defaults(func=cmd_stats)

    # suggestions
    suggestions_parser = subparsers.add_parser("suggestions", help="Rank follow suggestions")
    suggestions_parser.add_argument("username", help="Requesting user")
    suggestions_parser.add_argument("--json", action="store_true", help="Output JSON")
    suggestions_parser.set_defaults(func=cmd_suggestions)

    # explore
    explore_parser = subparsers.add_parser("explore", help="Rank the explore feed")
    explore_parser.add_argument("username", help="Requesting user")
    explore_parser.add_argument("--limit", type=int, default=None, help="Feed size")
    explore_parser.add_argument("--json", action="store_true", help="Output JSON")
    explore_parser.set_defaults(func=cmd_explore)

    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s [%(levelname)s] %(name)s - %(message)s",
    )

    if not args.command:
        parser.print_help()
        return 1

    args.func(args)
    return 0


if __name__ == "__main__":
    sys.exit(main())
