"""
hiermem CLI — inspect and edit a memory store from the shell

Commands:
    hiermem add     "content" [--level L] [--tags a,b] [--parent ID]
    hiermem show    <id>
    hiermem update  <id> [--content C] [--level L] [--tags a,b]
    hiermem delete  <id>                        — removes the whole subtree
    hiermem search  [query] [--tags a,b [--any]] [--regex]
    hiermem list    [--level L | --roots | --children ID | --since TS --until TS]
    hiermem tree                                — parent/child outline (IDs)
    hiermem top     [-k N] [--recent]           — most / recently accessed
    hiermem stats

Environment variables:
    MEMORY_DATA_DIR          Data directory (default: ./data)
    HIERMEM_MAX_CONTENT      Max content length (default: 10000)
    HIERMEM_MAX_TAG_LENGTH   Max tag length (default: 50)
    HIERMEM_MAX_TAGS         Max tags per entry (default: 20)

Precedence (invariant):
    CLI --flag  >  env var  >  --config file  >  compiled default

Exit codes:
    0  Success (including zero results)
    1  Operational error (bad args, validation failure, unknown ID)
    2  Internal failure (unexpected exception, I/O or parse error)
"""

from __future__ import annotations

import argparse
import json
import logging
import os
import sys
from typing import List, Optional

from hiermem.errors import FILE_IO_ERROR, JSON_PARSE_ERROR, MemoryStoreError
from hiermem.types import MemoryEntry

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Env parsing (never crash on a bad export)
# ---------------------------------------------------------------------------


def _env_int(name: str, default: int) -> int:
    """Parse integer env var with fallback. Never raises on bad input."""
    v = os.environ.get(name)
    if not v:
        return default
    try:
        return int(v)
    except ValueError:
        return default


# ---------------------------------------------------------------------------
# Store factory
# ---------------------------------------------------------------------------


def _open_store(args: argparse.Namespace):
    """Open the store named by --data-dir / MEMORY_DATA_DIR / ./data."""
    from hiermem.config import DATA_DIR_ENV, load_config
    from hiermem.store import HierarchicalMemory

    cfg = load_config(getattr(args, "config", None)).store
    return HierarchicalMemory(
        data_dir=(
            getattr(args, "data_dir", None)
            or os.environ.get(DATA_DIR_ENV)
            or cfg.data_dir
        ),
        max_content_length=_env_int("HIERMEM_MAX_CONTENT", cfg.max_content_length),
        max_tag_length=_env_int("HIERMEM_MAX_TAG_LENGTH", cfg.max_tag_length),
        max_tag_count=_env_int("HIERMEM_MAX_TAGS", cfg.max_tag_count),
    )


def _parse_tags(raw: Optional[str]) -> Optional[List[str]]:
    from hiermem.validation import split_tags
    return split_tags(raw) if raw is not None else None


# ---------------------------------------------------------------------------
# Stderr / stdout helpers (respect --quiet)
# ---------------------------------------------------------------------------

_quiet = False


def _info(msg: str) -> None:
    """Print progress to stderr (suppressed by --quiet)."""
    if not _quiet:
        print(msg, file=sys.stderr)


def _warn(msg: str) -> None:
    """Print warning to stderr (always visible)."""
    print(msg, file=sys.stderr)


def _fail(error: MemoryStoreError) -> None:
    """Report a store error and exit: 2 for I/O and parse, 1 otherwise."""
    _warn(f"Error: {error}")
    sys.exit(2 if error.kind in (FILE_IO_ERROR, JSON_PARSE_ERROR) else 1)


def _print_entries(entries: List[MemoryEntry], args: argparse.Namespace) -> None:
    if getattr(args, "json", False):
        print(json.dumps([e.to_dict() for e in entries], indent=2, ensure_ascii=False))
        return
    if not entries:
        _info("No results found.")
        return
    print(f"Found {len(entries)} item(s):\n")
    for e in entries:
        parent = f"  parent={e.parent_id}" if e.parent_id else ""
        print(f"  [{e.level.upper()}] {e.id}  accessed={e.access_count}{parent}")
        if e.tags:
            print(f"    tags: {', '.join(e.tags)}")
        preview = e.content if len(e.content) <= 80 else e.content[:77] + "..."
        print(f"    {preview}")
        print()


# ===========================================================================
# Commands
# ===========================================================================


def cmd_add(args: argparse.Namespace) -> None:
    """Add one entry and print its ID."""
    store = _open_store(args)
    result = store.add_safe(
        args.content, args.level, _parse_tags(args.tags) or [], args.parent,
    )
    if result.is_err:
        _fail(result.error)
    if getattr(args, "json", False):
        print(json.dumps({"id": result.value}))
    else:
        print(result.value)


def cmd_show(args: argparse.Namespace) -> None:
    """Show an entry by ID (counts as an access)."""
    store = _open_store(args)
    entry = store.get(args.id)
    if entry is None:
        _warn(f"Item not found: {args.id}")
        sys.exit(1)

    if getattr(args, "json", False):
        print(entry.to_json())
    else:
        print(f"ID:        {entry.id}")
        print(f"Level:     {entry.level}")
        print(f"Tags:      {', '.join(entry.tags) if entry.tags else '(none)'}")
        print(f"Parent:    {entry.parent_id or '(root)'}")
        print(f"Children:  {len(entry.children)}")
        print(f"Created:   {entry.created_at}")
        print(f"Accessed:  {entry.last_accessed} ({entry.access_count}x)")
        print(f"\n--- Content ---\n{entry.content}")


def cmd_update(args: argparse.Namespace) -> None:
    """Update the given fields of an entry."""
    store = _open_store(args)
    result = store.update_safe(
        args.id, content=args.content, level=args.level, tags=_parse_tags(args.tags),
    )
    if result.is_err:
        _fail(result.error)
    _info(f"Updated {args.id}")
    if getattr(args, "json", False):
        print(result.value.to_json())


def cmd_delete(args: argparse.Namespace) -> None:
    """Delete an entry and all of its descendants."""
    store = _open_store(args)
    result = store.delete_safe(args.id)
    if result.is_err:
        _fail(result.error)
    if getattr(args, "json", False):
        print(json.dumps({"id": args.id, "deleted": result.value}))
    else:
        print(f"Deleted {result.value} item(s)")


def cmd_search(args: argparse.Namespace) -> None:
    """Search by tags, regex or content substring."""
    store = _open_store(args)
    tags = _parse_tags(args.tags)
    if tags is not None:
        entries = store.search_by_tags_or(tags) if args.any else store.search_by_tags(tags)
    elif args.query is None:
        _warn("search needs a query or --tags")
        sys.exit(1)
    elif args.regex:
        result = store.search_by_content_regex(args.query)
        if result.is_err:
            _fail(result.error)
        entries = result.value
    else:
        entries = store.search_by_content(args.query)
    _print_entries(entries, args)


def cmd_list(args: argparse.Namespace) -> None:
    """List entries by level, roots, children or creation window."""
    store = _open_store(args)
    if args.children:
        entries = store.get_children(args.children)
    elif args.roots:
        entries = store.get_roots()
    elif args.level:
        entries = store.get_by_level(args.level)
    elif args.since or args.until:
        entries = store.get_by_date_range(
            args.since or "1970-01-01T00:00:00Z",
            args.until or "9999-12-31T23:59:59Z",
        )
    else:
        entries = store.get_all()
    _print_entries(entries, args)


def cmd_tree(args: argparse.Namespace) -> None:
    """Print the parent/child outline without touching access stats."""
    store = _open_store(args)
    hierarchy = store.get_hierarchy()
    if getattr(args, "json", False):
        print(json.dumps(hierarchy, indent=2))
        return
    if not hierarchy:
        _info("Store is empty.")
        return
    children = {c for kids in hierarchy.values() for c in kids}
    stack = [(mid, 0) for mid in reversed(list(hierarchy)) if mid not in children]
    while stack:
        mid, depth = stack.pop()
        print("  " * depth + mid)
        for child in reversed(hierarchy.get(mid, [])):
            stack.append((child, depth + 1))


def cmd_top(args: argparse.Namespace) -> None:
    """Most accessed (default) or most recently accessed entries."""
    store = _open_store(args)
    if args.recent:
        entries = store.get_recently_accessed(args.k)
    else:
        entries = store.get_most_accessed(args.k)
    _print_entries(entries, args)


def cmd_stats(args: argparse.Namespace) -> None:
    """Show store statistics."""
    store = _open_store(args)
    stats = store.get_memory_stats()

    if getattr(args, "json", False):
        stats["status"] = "ok"
        print(json.dumps(stats, indent=2, ensure_ascii=False))
    else:
        print("Memory Store Statistics")
        print("=" * 40)
        print(f"  Data file: {store.path}")
        print(f"  Total:     {stats['total']}")
        print(f"  Roots:     {stats['roots']}")
        print(f"  By level:")
        for level in ("short_term", "medium_term", "long_term"):
            print(f"    {level:12s}: {stats[level]}")
        print(f"  Accesses:  {stats['total_accesses']}")


# ===========================================================================
# Entry point
# ===========================================================================


def main() -> None:
    """CLI entry point: hiermem <command> [args]."""
    global _quiet

    # SUPPRESS defaults so subparser defaults don't override values
    # parsed at the main-parser level (argparse parents quirk).
    _common = argparse.ArgumentParser(add_help=False)
    _common.add_argument(
        "--data-dir", default=argparse.SUPPRESS,
        help="Data directory (default: MEMORY_DATA_DIR or ./data)",
    )
    _common.add_argument(
        "--config", default=argparse.SUPPRESS,
        help="JSON config file with a 'store' section",
    )
    _common.add_argument(
        "--quiet", "-q", action="store_true", default=argparse.SUPPRESS,
        help="Suppress stderr progress messages",
    )
    _common.add_argument(
        "--json", action="store_true", default=argparse.SUPPRESS,
        help="Machine-readable JSON output",
    )
    _common.add_argument(
        "-v", "--verbose", action="store_true", default=argparse.SUPPRESS,
        help="Enable verbose logging",
    )

    parser = argparse.ArgumentParser(
        prog="hiermem",
        description="hiermem — hierarchical short/medium/long-term memory store",
        parents=[_common],
    )
    sub = parser.add_subparsers(dest="command", help="Available commands")

    # -- add ---------------------------------------------------------------
    p_add = sub.add_parser("add", parents=[_common], help="Add a memory entry")
    p_add.add_argument("content", help="Entry content")
    p_add.add_argument("--level", default="short_term",
                       help="short_term|medium_term|long_term (or st/mt/lt)")
    p_add.add_argument("--tags", default=None, help="Comma-separated tags")
    p_add.add_argument("--parent", default=None, help="Parent entry ID")
    p_add.set_defaults(func=cmd_add)

    # -- show --------------------------------------------------------------
    p_show = sub.add_parser("show", parents=[_common], help="Show an entry")
    p_show.add_argument("id", help="Entry ID")
    p_show.set_defaults(func=cmd_show)

    # -- update ------------------------------------------------------------
    p_update = sub.add_parser("update", parents=[_common], help="Update an entry")
    p_update.add_argument("id", help="Entry ID")
    p_update.add_argument("--content", default=None, help="New content")
    p_update.add_argument("--level", default=None, help="New level")
    p_update.add_argument("--tags", default=None, help="New comma-separated tags")
    p_update.set_defaults(func=cmd_update)

    # -- delete ------------------------------------------------------------
    p_delete = sub.add_parser("delete", parents=[_common],
                              help="Delete an entry and its descendants")
    p_delete.add_argument("id", help="Entry ID")
    p_delete.set_defaults(func=cmd_delete)

    # -- search ------------------------------------------------------------
    p_search = sub.add_parser("search", parents=[_common], help="Search entries")
    p_search.add_argument("query", nargs="?", default=None, help="Content query")
    p_search.add_argument("--tags", default=None, help="Comma-separated tags (AND)")
    p_search.add_argument("--any", action="store_true", help="Match any tag (OR)")
    p_search.add_argument("--regex", action="store_true", help="Treat query as a regex")
    p_search.set_defaults(func=cmd_search)

    # -- list --------------------------------------------------------------
    p_list = sub.add_parser("list", parents=[_common], help="List entries")
    p_list.add_argument("--level", default=None, help="Filter by level")
    p_list.add_argument("--roots", action="store_true", help="Only entries without parent")
    p_list.add_argument("--children", default=None, metavar="ID",
                        help="Direct children of ID")
    p_list.add_argument("--since", default=None, help="Created at or after (YYYY-MM-DDTHH:MM:SSZ)")
    p_list.add_argument("--until", default=None, help="Created at or before (YYYY-MM-DDTHH:MM:SSZ)")
    p_list.set_defaults(func=cmd_list)

    # -- tree --------------------------------------------------------------
    p_tree = sub.add_parser("tree", parents=[_common], help="Show the hierarchy")
    p_tree.set_defaults(func=cmd_tree)

    # -- top ---------------------------------------------------------------
    p_top = sub.add_parser("top", parents=[_common], help="Most accessed entries")
    p_top.add_argument("-k", type=int, default=10, help="Max results (default: 10)")
    p_top.add_argument("--recent", action="store_true", help="Rank by last access time")
    p_top.set_defaults(func=cmd_top)

    # -- stats -------------------------------------------------------------
    p_stats = sub.add_parser("stats", parents=[_common], help="Store statistics")
    p_stats.set_defaults(func=cmd_stats)

    # -- Parse and dispatch ------------------------------------------------
    args = parser.parse_args()

    _quiet = getattr(args, "quiet", False)

    if getattr(args, "verbose", False):
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(name)s %(levelname)s %(message)s",
        )
    else:
        logging.basicConfig(level=logging.WARNING)

    if not args.command:
        parser.print_help()
        sys.exit(1)

    try:
        args.func(args)
    except BrokenPipeError:
        # Handle broken pipe gracefully (e.g. hiermem list | head)
        devnull = os.open(os.devnull, os.O_WRONLY)
        os.dup2(devnull, sys.stdout.fileno())
        sys.exit(0)
    except KeyboardInterrupt:
        sys.exit(0)
    except MemoryStoreError as e:
        _fail(e)
    except ValueError as e:
        _warn(f"Error: {e}")
        sys.exit(1)
    except Exception as e:
        _warn(f"Internal error: {e}")
        if getattr(args, "verbose", False):
            import traceback
            traceback.print_exc(file=sys.stderr)
        sys.exit(2)


if __name__ == "__main__":
    main()
