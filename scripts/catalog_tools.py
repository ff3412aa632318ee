#!/usr/bin/env python
"""Utility CLI for scanning and browsing the project catalog."""

from __future__ import annotations

import argparse
import json
import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import Optional

ROOT = Path(__file__).resolve().parent.parent
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from config.config_store import ConfigError, ConfigStore
from database.catalog import Catalog, CatalogError, QueryError, SortDirection, SortKey
from services.catalog_service import load_scan_config, query_projects, run_scan
from utils.env import is_dev_mode
from utils.logging_utils import setup_logging


def _open_catalog(args: argparse.Namespace) -> Catalog:
    return Catalog.open(args.db)


def _format_size(size: Optional[int]) -> str:
    if size is None:
        return "-"
    value = float(size)
    for unit in ("B", "KB", "MB", "GB"):
        if value < 1024 or unit == "GB":
            return f"{value:.0f} {unit}" if unit == "B" else f"{value:.1f} {unit}"
        value /= 1024
    return f"{value:.1f} GB"


def _format_time(timestamp: Optional[int]) -> str:
    if timestamp is None:
        return "-"
    return datetime.fromtimestamp(timestamp).strftime("%Y-%m-%d %H:%M")


def cmd_config(args: argparse.Namespace) -> int:
    if args.db_path:
        print(args.db or ConfigStore.catalog_path())
        return 0
    if args.path:
        print(ConfigStore.config_path())
        return 0

    config, config_error = load_scan_config()
    if config_error is not None:
        print(f"warning: {config_error}", file=sys.stderr)
    print(json.dumps(config.to_dict(), indent=2))
    return 0


def cmd_scan(args: argparse.Namespace) -> int:
    config, config_error = load_scan_config()
    if config_error is not None:
        print(f"warning: {config_error}", file=sys.stderr)

    catalog = None if args.dry_run else _open_catalog(args)
    try:
        report = run_scan(
            catalog,
            roots=args.root or None,
            dry_run=args.dry_run,
            config=config,
            timeout=args.timeout,
        )
    finally:
        if catalog is not None:
            catalog.close()

    if args.json:
        print(json.dumps(report.to_dict(), indent=2))
        return 0

    for entry in report.warnings:
        print(f"warning [{entry.kind}]: {entry.message}", file=sys.stderr)
    if args.dry_run:
        for record in report.projects:
            print(f"- {record.name} ({record.project_type or 'git'}) | {record.path}")
        print(f"Dry run: {report.count} project(s) would be indexed.")
    else:
        print(f"Indexed {report.count} project(s).")
    return 0


def cmd_list(args: argparse.Namespace) -> int:
    with _open_catalog(args) as catalog:
        page = query_projects(
            catalog,
            text=args.query,
            sort_key=args.sort,
            direction=args.direction,
            page=args.page,
            page_size=args.page_size,
        )

    if args.json:
        print(json.dumps(page.to_dict(), indent=2))
        return 0

    if not page.items:
        print("No projects found in catalog.")
        return 0

    for item in page.items:
        line = (
            f"- {item.name} | Type: {item.project_type or '-'} "
            f"| Git: {'yes' if item.is_git_repo else 'no'} "
            f"| Size: {_format_size(item.size_bytes)} "
            f"| Edited: {_format_time(item.last_edited_at)}"
        )
        if args.show_loc:
            line += f" | LOC: {item.loc if item.loc is not None else '-'}"
        if item.is_stale:
            line += " | STALE"
        print(f"{line} | {item.path}")
    print(f"Page {page.page + 1}/{max(page.page_count, 1)} ({page.total_count} total)")
    return 0


def cmd_show(args: argparse.Namespace) -> int:
    with _open_catalog(args) as catalog:
        row = catalog.get(str(Path(args.path).expanduser().resolve()))
    if row is None:
        print(f"Project '{args.path}' not found.")
        return 1
    print(json.dumps(row.to_dict(), indent=2))
    return 0


def cmd_prune(args: argparse.Namespace) -> int:
    with _open_catalog(args) as catalog:
        stale = catalog.refresh_stale()
        if not stale:
            print("No stale projects.")
            return 0
        if not args.force:
            confirm = input(
                f"Remove {stale} project(s) whose directory no longer exists? [y/N]: "
            ).strip().lower()
            if confirm not in {"y", "yes"}:
                print("Aborted.")
                return 1
        removed = catalog.prune_stale()
    print(f"Removed {removed} stale project(s).")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Project catalog tooling.")
    parser.add_argument("-v", "--verbose", action="store_true", help="Log progress to stderr.")
    parser.add_argument("--log-file", type=Path, default=None, help="Structured log file path.")
    subparsers = parser.add_subparsers(dest="command")

    def add_db_argument(sub: argparse.ArgumentParser) -> None:
        sub.add_argument("--db", type=Path, default=None, help="Catalog database path.")

    config_parser = subparsers.add_parser("config", help="Show configuration.")
    config_group = config_parser.add_mutually_exclusive_group()
    config_group.add_argument("--print", action="store_true", help="Print effective config (default).")
    config_group.add_argument("--db-path", action="store_true", help="Print the catalog path.")
    config_group.add_argument("--path", action="store_true", help="Print the config file path.")
    add_db_argument(config_parser)
    config_parser.set_defaults(func=cmd_config)

    scan_parser = subparsers.add_parser("scan", help="Scan roots and index projects.")
    scan_parser.add_argument(
        "--root",
        action="append",
        type=Path,
        help="Root to scan instead of the configured roots (repeatable).",
    )
    scan_parser.add_argument("--dry-run", action="store_true", help="Detect without writing.")
    scan_parser.add_argument("--timeout", type=float, default=None, help="Stop after N seconds.")
    scan_parser.add_argument("--json", action="store_true", help="Print the scan report as JSON.")
    add_db_argument(scan_parser)
    scan_parser.set_defaults(func=cmd_scan)

    list_parser = subparsers.add_parser("list", help="List catalogued projects.")
    list_parser.add_argument("--query", default="", help="Filter by name or path substring.")
    list_parser.add_argument(
        "--sort", default=SortKey.RECENT.value, choices=[key.value for key in SortKey]
    )
    list_parser.add_argument(
        "--direction",
        default=SortDirection.DESC.value,
        choices=[direction.value for direction in SortDirection],
    )
    list_parser.add_argument("--page", type=int, default=0, help="Zero-based page number.")
    list_parser.add_argument("--page-size", type=int, default=50)
    list_parser.add_argument("--json", action="store_true", help="Print the page as JSON.")
    list_parser.add_argument("--show-loc", action="store_true", help="Include lines of code.")
    add_db_argument(list_parser)
    list_parser.set_defaults(func=cmd_list)

    show_parser = subparsers.add_parser("show", help="Show one project with VCS/LOC details.")
    show_parser.add_argument("path", help="Project directory.")
    add_db_argument(show_parser)
    show_parser.set_defaults(func=cmd_show)

    prune_parser = subparsers.add_parser("prune", help="Remove projects that no longer exist.")
    prune_parser.add_argument("--force", action="store_true", help="Skip confirmation prompt.")
    add_db_argument(prune_parser)
    prune_parser.set_defaults(func=cmd_prune)

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    if not hasattr(args, "func"):
        parser.print_help()
        return 1

    level = logging.DEBUG if is_dev_mode() else logging.INFO if args.verbose else logging.WARNING
    setup_logging(level, args.log_file)

    try:
        return args.func(args)
    except (ConfigError, QueryError, CatalogError) as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
