"""Command-line entry point for operating releasewire.

Subcommands
-----------
``init-db``
    Create every releasewire table.
``track OWNER/NAME``
    Start tracking a repository (idempotent).
``poll [--at ISO]``
    Run one poll cycle for the shard of ``--at`` (default: now).
``sweep [--now ISO]``
    Run one notification retry sweep.

The database URL comes from ``--database-url`` or
``RELEASEWIRE_DATABASE_URL``.
"""

from __future__ import annotations

import argparse
import asyncio
import os
import typing as typ

from sqlalchemy.ext.asyncio import create_async_engine

from releasewire.common.slug import parse_resource_slug
from releasewire.common.time import parse_iso_timestamp
from releasewire.db import init_storage, session_factory_for
from releasewire.logging import configure_logging

if typ.TYPE_CHECKING:
    import collections.abc as cabc
    import datetime as dt

    from sqlalchemy.ext.asyncio import AsyncEngine

_EXIT_USAGE = 2


def _timestamp(field: str) -> cabc.Callable[[str], dt.datetime]:
    def parse(value: str) -> dt.datetime:
        try:
            return parse_iso_timestamp(value, field=field)
        except ValueError as exc:
            raise argparse.ArgumentTypeError(str(exc)) from exc

    return parse


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="releasewire", description=__doc__)
    parser.add_argument(
        "--database-url",
        default=os.environ.get("RELEASEWIRE_DATABASE_URL"),
        help="SQLAlchemy async URL (default: $RELEASEWIRE_DATABASE_URL)",
    )
    parser.add_argument(
        "--log-level",
        default=os.environ.get("RELEASEWIRE_LOG_LEVEL", "INFO"),
        help="Log level (default: $RELEASEWIRE_LOG_LEVEL or INFO)",
    )
    commands = parser.add_subparsers(dest="command", required=True)

    commands.add_parser("init-db", help="Create the releasewire tables")

    track = commands.add_parser("track", help="Track a repository")
    track.add_argument("slug", help="Repository as owner/name")
    track.add_argument("--default-branch", default="main")

    poll = commands.add_parser("poll", help="Run one poll cycle")
    poll.add_argument(
        "--at",
        type=_timestamp("at"),
        default=None,
        help="Cycle timestamp with offset (default: now)",
    )

    sweep = commands.add_parser("sweep", help="Run one retry sweep")
    sweep.add_argument(
        "--now",
        type=_timestamp("now"),
        default=None,
        help="Sweep timestamp with offset (default: now)",
    )
    return parser


def _print_summary(title: str, summary: cabc.Mapping[str, object]) -> None:
    fields = " ".join(f"{key}={value}" for key, value in summary.items())
    print(f"{title}: {fields}")


async def _run_command(args: argparse.Namespace, engine: AsyncEngine) -> int:
    from releasewire.pipeline import run_poll_cycle, run_retry_sweep
    from releasewire.registry import ResourceRegistry

    session_factory = session_factory_for(engine)
    match args.command:
        case "init-db":
            await init_storage(engine)
            print("releasewire tables are ready")
        case "track":
            owner, name = parse_resource_slug(args.slug)
            resource = await ResourceRegistry(session_factory).track(
                owner, name, default_branch=args.default_branch
            )
            print(f"tracking {resource.slug} (id={resource.id})")
        case "poll":
            report = await run_poll_cycle(session_factory, args.at)
            _print_summary("poll cycle", report.as_summary())
        case "sweep":
            result = await run_retry_sweep(session_factory, args.now)
            _print_summary(
                "retry sweep",
                {
                    "attempted": result.attempted,
                    "sent": result.sent,
                    "failed": result.failed,
                    "exhausted": result.exhausted,
                },
            )
        case _:  # pragma: no cover - argparse restricts choices
            return _EXIT_USAGE
    return 0


async def _main_async(args: argparse.Namespace) -> int:
    engine = create_async_engine(args.database_url)
    try:
        return await _run_command(args, engine)
    finally:
        await engine.dispose()


def main(argv: list[str] | None = None) -> int:
    """Run a releasewire subcommand.

    Parameters
    ----------
    argv : list[str] | None, optional
        Command-line arguments. ``None`` defaults to ``sys.argv``.

    Returns
    -------
    int
        Exit code: 0 on success, 1 for an invalid repository slug, 2 when no
        database URL is configured.

    """
    parser = _build_parser()
    args = parser.parse_args(argv)
    configure_logging(args.log_level)

    if not args.database_url:
        print("No database URL: pass --database-url or set RELEASEWIRE_DATABASE_URL")
        return _EXIT_USAGE

    try:
        return asyncio.run(_main_async(args))
    except ValueError as exc:
        print(f"releasewire: {exc}")
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
