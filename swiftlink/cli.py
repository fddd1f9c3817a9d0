"""Command-line client for SwiftLink.

Usage:
    swiftlink shorten <url>
    swiftlink resolve <short_code>
    swiftlink stats <short_code>
    swiftlink list [--limit N]

Global options ``--mode {direct,backend}`` and ``--store {sql,redis,memory}``
override SERVICE_MODE and STORE_BACKEND for one invocation. Results are printed
as JSON on stdout, errors as JSON on stderr; the exit code is 0 on success and
1 on error. Writes still queued for an unreachable store are listed on stderr;
without an OFFLINE_QUEUE_PATH journal they would be lost, so the exit code is 1.
"""

import argparse
import asyncio
import json
import sys
from collections.abc import Sequence
from typing import Any

from swiftlink.config import Settings, get_settings
from swiftlink.enums import ServiceMode, StoreBackend
from swiftlink.exceptions import ShortenerError
from swiftlink.queued_store import QueuedLinkStore
from swiftlink.service import LinkServices, build_services

__all__ = ["build_parser", "run_command", "main"]


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="swiftlink", description="Shorten URLs and resolve short codes.")
    parser.add_argument("--mode", choices=[m.value for m in ServiceMode], help="Override SERVICE_MODE")
    parser.add_argument("--store", choices=[s.value for s in StoreBackend], help="Override STORE_BACKEND")

    subparsers = parser.add_subparsers(dest="command", required=True)

    shorten = subparsers.add_parser("shorten", help="Create a short code for a URL")
    shorten.add_argument("url")

    resolve = subparsers.add_parser("resolve", help="Resolve a short code and record a visit")
    resolve.add_argument("short_code")

    stats = subparsers.add_parser("stats", help="Show a link record without recording a visit")
    stats.add_argument("short_code")

    list_cmd = subparsers.add_parser("list", help="List the most recently created links")
    list_cmd.add_argument("--limit", type=int, default=None)

    return parser


def _settings_for(args: argparse.Namespace) -> Settings:
    overrides: dict[str, Any] = {}
    if args.mode:
        overrides["SERVICE_MODE"] = ServiceMode(args.mode)
    if args.store:
        overrides["STORE_BACKEND"] = StoreBackend(args.store)
    settings = get_settings()
    return settings.model_copy(update=overrides) if overrides else settings


def _emit(payload: Any) -> None:
    print(json.dumps(payload, indent=2))


async def run_command(args: argparse.Namespace, services: LinkServices, settings: Settings) -> int:
    """Execute one parsed command against ``services`` and print the result."""
    try:
        if args.command == "shorten":
            short_code = await services.shortener.shorten(args.url)
            _emit(
                {
                    "shortCode": short_code,
                    "originalUrl": args.url,
                    "shortUrl": f"{settings.BASE_URL.rstrip('/')}/r/{short_code}",
                }
            )
        elif args.command == "resolve":
            original_url = await services.resolver.resolve(args.short_code)
            _emit({"shortCode": args.short_code, "originalUrl": original_url})
        elif args.command == "stats":
            record = await services.resolver.lookup(args.short_code)
            _emit(record.model_dump(mode="json", by_alias=True))
        elif args.command == "list":
            limit = min(args.limit or settings.LIST_LIMIT, settings.LIST_LIMIT)
            records = await services.shortener.list_recent(limit)
            _emit([record.model_dump(mode="json", by_alias=True) for record in records])
    except ShortenerError as exc:
        print(json.dumps({"error": str(exc)}, indent=2), file=sys.stderr)
        return 1
    return 0


async def _run(args: argparse.Namespace) -> int:
    settings = _settings_for(args)
    services = await build_services(settings)
    try:
        exit_code = await run_command(args, services, settings)
    finally:
        await services.close()
    if isinstance(services.store, QueuedLinkStore) and services.store.pending_count:
        return _report_unflushed(services.store, exit_code)
    return exit_code


def _report_unflushed(store: QueuedLinkStore, exit_code: int) -> int:
    """Warn about writes the store never accepted; fail when nothing keeps them."""
    journal = store.journal_path
    report: dict[str, Any] = {"pendingWrites": store.pending_codes}
    if journal is None:
        report["error"] = "Store unreachable; queued writes were not saved"
        print(json.dumps(report, indent=2), file=sys.stderr)
        return 1
    report["warning"] = f"Store unreachable; queued writes kept in {journal} until the next run"
    print(json.dumps(report, indent=2), file=sys.stderr)
    return exit_code


def main(argv: Sequence[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    return asyncio.run(_run(args))


if __name__ == "__main__":
    sys.exit(main())
