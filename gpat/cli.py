"""
GPAT registry CLI - operator commands.
"""

import logging
import sys

from gpat import config, paths
from gpat.models import Kind
from gpat.notifier import SqliteJobBroker
from gpat.public import PublicRegistry
from gpat.store import RecordStore, init_db
from gpat.type_registry import TypeRegistry


def print_header(text: str):
    """Print a section header."""
    print(f"\n{'═' * 50}")
    print(f"  {text}")
    print(f"{'═' * 50}")


def print_table(headers: list, rows: list, widths: list = None):
    """Print a simple table."""
    if not widths:
        widths = [max(len(str(row[i])) for row in [headers] + rows) for i in range(len(headers))]

    header_str = " │ ".join(str(h).ljust(w) for h, w in zip(headers, widths))
    print(header_str)
    print("─" * len(header_str))

    for row in rows:
        print(" │ ".join(str(c)[:w].ljust(w) for c, w in zip(row, widths)))


def _flag(value: bool) -> str:
    return "✓" if value else ""


def cmd_init_db(args):
    """Create the database schema."""
    path = init_db(args[0] if args else None)
    print(f"✓ Database ready: {path}")


def cmd_types(args):
    """Show the type-tag table."""
    registry = TypeRegistry.load()
    print_header(f"TYPE TAGS ({paths.types_path()})")

    for kind, label in ((Kind.ACTOR, "ACTORTYPES"), (Kind.MEASURE, "MEASURETYPES")):
        print(f"\n{label}")
        rows = [
            [
                t.id,
                t.title,
                _flag(t.publishable),
                _flag(t.has_parent),
                _flag(t.has_target),
                _flag(t.has_members),
                _flag(t.notifications),
                _flag(t.is_active),
                _flag(t.is_target),
            ]
            for t in registry.all(kind)
        ]
        print_table(["id", "title", "pub", "parent", "target", "members", "notify", "active", "is_target"], rows)


PUBLIC_LISTINGS = {
    "countries": (Kind.ACTOR, "public_countries", ["gpat_id", "code", "name", "updated_at"]),
    "statements": (Kind.MEASURE, "public_statements", ["gpat_id", "title", "date", "updated_at"]),
    "topics": (Kind.INDICATOR, "public_topics", ["gpat_id", "code", "title", "updated_at"]),
}


def cmd_public(args):
    """Show a public listing."""
    name = args[0] if args else "countries"
    store = RecordStore()
    try:
        public = PublicRegistry(store)
        if name == "country-statements":
            results = public.country_statements()
            print_header(f"COUNTRY STATEMENTS ({len(results)})")
            columns = ["country_code", "statement_code", "date_start", "via_group_code"]
            print_table(columns, [[r.get(c) or "-" for c in columns] for r in results])
            return

        if name not in PUBLIC_LISTINGS:
            print(f"Unknown listing: {name}")
            print(f"Choose from: {', '.join([*PUBLIC_LISTINGS, 'country-statements'])}")
            return

        kind, method, columns = PUBLIC_LISTINGS[name]
        results = getattr(public, method)()
        last_updated, count = public.last_updated(kind)
        print_header(f"PUBLIC {name.upper()} ({count}, last updated {last_updated or '-'})")
        if not results:
            print("Nothing published.")
            return
        print_table(columns, [[r.get(c) or "-" for c in columns] for r in results])
    finally:
        store.close()


def cmd_jobs(args):
    """Show pending task notifications."""
    store = RecordStore()
    try:
        jobs = SqliteJobBroker(store).pending(config.TASK_NOTIFICATION_JOB)
    finally:
        store.close()

    print_header(f"PENDING {config.TASK_NOTIFICATION_JOB} ({len(jobs)})")
    if not jobs:
        print("No pending jobs.")
        return
    print_table(["id", "user", "measure", "run_at"], [[j.id, j.user_id, j.measure_id, j.run_at] for j in jobs])


def cmd_help(args):
    """Show help."""
    print_header("GPAT REGISTRY CLI")
    print("""
COMMANDS:

  init-db [path]       Create the database schema (default: GPAT_DB or ~/.gpat/data/gpat.db)
  types                Show actortype / measuretype flags
  public [listing]     Show a public listing: countries, statements, topics, country-statements
  jobs                 Show pending task notifications
  help                 Show this help

ENVIRONMENT:
  GPAT_HOME                Data directory root
  GPAT_DB                  Database path
  GPAT_TYPES_FILE          Type-tag YAML file
  TASK_NOTIFICATION_DELAY  Seconds before a task notification fires (default 20)
""")


COMMANDS = {
    "init-db": cmd_init_db,
    "types": cmd_types,
    "public": cmd_public,
    "jobs": cmd_jobs,
    "help": cmd_help,
    "h": cmd_help,
}


def main(argv: list[str] | None = None):
    """Main entry point."""
    argv = sys.argv[1:] if argv is None else argv
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    if not argv:
        cmd_help([])
        return

    cmd, args = argv[0], argv[1:]
    if cmd in COMMANDS:
        COMMANDS[cmd](args)
    else:
        print(f"Unknown command: {cmd}")
        print("Run 'help' for available commands.")
