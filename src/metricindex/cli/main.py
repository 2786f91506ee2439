"""
metricindex command line.

Commands:
    metricindex backends                                   - List discovery backends
    metricindex browse <query> --tenant T                  - Show one namespace level
    metricindex search <query>... --tenant T               - Find complete metric names
    metricindex names <query> --tenant T                   - List complete names at the query depth

--names-file loads newline-separated metric names into the configured
backend first, which makes the in-memory backend usable from the shell.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from pathlib import Path
from typing import Any, Sequence

from metricindex.cli.ux import console, header, info, print_table
from metricindex.config.settings import get_settings
from metricindex.core.errors import ConfigurationError, main_with_error_handling
from metricindex.discovery.models import BrowseResult, Metric, MetricName, SearchResult
from metricindex.logging import bind_context, configure_logging
from metricindex.providers import create_discovery_backend, list_backends
from metricindex.providers.base import DiscoveryBackend


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="metricindex",
        description="Browse hierarchical metric names level by level",
    )
    parser.add_argument("--backend", help="Discovery backend (default: METRICINDEX_DISCOVERY_BACKEND)")
    parser.add_argument("--log-level", default=None, help="Log level (default: METRICINDEX_LOG_LEVEL)")
    subparsers = parser.add_subparsers(dest="command")

    subparsers.add_parser("backends", help="List registered discovery backends")

    def add_query_options(sub: argparse.ArgumentParser) -> None:
        sub.add_argument("--tenant", required=True, help="Tenant id")
        sub.add_argument("--names-file", help="Load newline-separated metric names before querying")
        sub.add_argument("--format", choices=["table", "json"], default="table", dest="output_format")

    browse_parser = subparsers.add_parser("browse", help="Show the namespace level below a prefix")
    browse_parser.add_argument("query", help="Prefix query, e.g. 'servers.*.cpu'")
    add_query_options(browse_parser)

    search_parser = subparsers.add_parser("search", help="Find complete metric names")
    search_parser.add_argument("queries", nargs="+", help="Glob queries")
    add_query_options(search_parser)

    names_parser = subparsers.add_parser("names", help="List complete metric names matching a query")
    names_parser.add_argument("query", help="Glob query")
    add_query_options(names_parser)

    return parser


def _read_names(path: str) -> list[str]:
    names_path = Path(path).expanduser()
    if not names_path.is_file():
        raise ConfigurationError("Names file not found", {"path": str(names_path)})
    lines = names_path.read_text(encoding="utf-8").splitlines()
    return [line.strip() for line in lines if line.strip() and not line.startswith("#")]


async def _load_names(backend: DiscoveryBackend, tenant_id: str, path: str | None) -> None:
    if not path:
        return
    names = _read_names(path)
    await backend.insert_discoveries(
        [Metric(tenant_id=tenant_id, metric_name=name) for name in names]
    )
    info(f"Loaded {len(names)} metric names for tenant {tenant_id}")


def _print_json(payload: Any) -> None:
    console.print_json(json.dumps(payload))


def _render_browse(result: BrowseResult, output_format: str) -> None:
    if output_format == "json":
        _print_json(result.model_dump())
        return

    header(f"{result.tenant_id}: {result.query}")
    rows = [
        [entry.name, "metric" if entry.is_complete_name else "prefix"]
        for entry in result.entries()
    ]
    print_table("Level view", ["Name", "Kind"], rows)
    if result.tokens_with_next_level:
        console.print(f"[muted]Next level:[/muted] {', '.join(result.tokens_with_next_level)}")


def _render_search(results: list[SearchResult], output_format: str) -> None:
    if output_format == "json":
        _print_json([result.model_dump() for result in results])
        return
    rows = [[r.metric_name, r.unit or ""] for r in sorted(results, key=lambda r: r.metric_name)]
    print_table(f"{len(rows)} metrics", ["Metric", "Unit"], rows)


def _render_names(names: list[MetricName], output_format: str) -> None:
    if output_format == "json":
        _print_json([name.model_dump() for name in names])
        return
    print_table(f"{len(names)} metric names", ["Metric"], [[n.name] for n in names])


async def _run_query(backend: DiscoveryBackend, args: argparse.Namespace) -> None:
    log = bind_context(command=args.command, tenant_id=args.tenant, backend=backend.name)
    log.info("cli_query_started")
    try:
        await _load_names(backend, args.tenant, args.names_file)
        if args.command == "browse":
            _render_browse(await backend.browse(args.tenant, args.query), args.output_format)
        elif args.command == "search":
            _render_search(await backend.search_many(args.tenant, args.queries), args.output_format)
        else:
            _render_names(await backend.get_metric_names(args.tenant, args.query), args.output_format)
    finally:
        await backend.close()


@main_with_error_handling()
def main(argv: Sequence[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    settings = get_settings()
    if args.backend:
        settings = settings.model_copy(update={"discovery_backend": args.backend})
    configure_logging(args.log_level or settings.log_level, json_output=not sys.stderr.isatty())

    if args.command == "backends":
        rows = [[spec.name, spec.description or ""] for spec in list_backends()]
        print_table("Discovery backends", ["Name", "Description"], rows)
        return 0

    if args.command in {"browse", "search", "names"}:
        backend = create_discovery_backend(settings)
        asyncio.run(_run_query(backend, args))
        return 0

    parser.print_help()
    return 1


if __name__ == "__main__":  # pragma: no cover - exercised via module entrypoint
    raise SystemExit(main())
