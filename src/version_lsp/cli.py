"""Command line entry point for checking versions against the shared cache.

The language server answers from the same cache file, so ``refresh`` run
from a shell (or a cron job) warms it for every open editor.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import List, Optional

from .common.http_client import HttpClient
from .common.logging_utils import configure_logging, extra_context, is_debug_enabled
from .config import Settings, load_settings, log_path
from .constants import ExitCodes
from .errors import CacheError, ConfigError, FetchError
from .versioning.checker import VersionChecker, compare_entry
from .versioning.messages import describe
from .versioning.models import PackageIdentity, RegistryType, VersionCompareResult, VersionStatus

logger = logging.getLogger(__name__)

_REGISTRY_CHOICES = [registry_type.value for registry_type in RegistryType]


def _registry_arg(value: str) -> RegistryType:
    try:
        return RegistryType.parse(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(str(exc)) from exc


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Parses the arguments passed to the program."""
    parser = argparse.ArgumentParser(
        prog="version-lsp-check",
        description="Check declared dependency versions against package registries",
    )
    parser.add_argument("-c", "--config",
                        dest="CONFIG",
                        help="Path to a YAML config file",
                        action="store", type=str)
    parser.add_argument("--loglevel",
                        dest="LOG_LEVEL",
                        help="Set the logging level",
                        action="store", type=str,
                        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"])
    parser.add_argument("--logfile",
                        dest="LOG_FILE",
                        help="Write JSON log lines to this file instead of stderr "
                             f"(default with no value: {log_path()})",
                        action="store", type=str, nargs="?", const=str(log_path()))
    parser.add_argument("--db",
                        dest="DB_PATH",
                        help="Cache database location (overrides config)",
                        action="store", type=str)

    sub = parser.add_subparsers(dest="command", required=True)

    check = sub.add_parser("check", help="Compare one declared version with the registry")
    check.add_argument("registry", type=_registry_arg, metavar="REGISTRY",
                       help=f"One of: {', '.join(_REGISTRY_CHOICES)}")
    check.add_argument("package", help="Package name as the registry knows it")
    check.add_argument("spec", help="Declared version or range")
    check.add_argument("--wait", dest="WAIT", action="store_true",
                       help="Wait for a missing or stale entry to be fetched and check again")
    check.add_argument("--json", dest="JSON", action="store_true", help="Print the result as JSON")

    refresh = sub.add_parser("refresh", help="Fetch fresh versions into the cache")
    refresh.add_argument("registry", type=_registry_arg, nargs="?", metavar="REGISTRY")
    refresh.add_argument("package", nargs="?")
    refresh.add_argument("--all-stale", dest="ALL_STALE", action="store_true",
                         help="Refresh every cached package older than the refresh interval")

    show = sub.add_parser("show", help="Print the cached entry for a package")
    show.add_argument("registry", type=_registry_arg, metavar="REGISTRY")
    show.add_argument("package")

    args = parser.parse_args(argv)
    if args.command == "refresh" and not args.ALL_STALE and not (args.registry and args.package):
        parser.error("refresh needs REGISTRY and PACKAGE, or --all-stale")
    return args


def _result_payload(identity: PackageIdentity, result: VersionCompareResult) -> dict:
    described = describe(result)
    return {
        "package": str(identity),
        "current": result.current_version,
        "latest": result.latest_version,
        "status": result.status.value,
        "best_match": result.best_match,
        "message": described[1] if described else None,
    }


def _print_result(identity: PackageIdentity, result: VersionCompareResult, as_json: bool) -> None:
    payload = _result_payload(identity, result)
    if as_json:
        print(json.dumps(payload, indent=2))
        return
    line = f"{identity} {result.current_version}: {result.status.value}"
    if result.latest_version:
        line += f" (latest {result.latest_version})"
    print(line)
    if payload["message"]:
        print(f"  {payload['message']}")


async def _run_check(checker: VersionChecker, args: argparse.Namespace) -> int:
    identity = PackageIdentity(args.registry, args.package)
    result = await checker.compare_version(identity, args.spec)
    if args.WAIT:
        await checker.wait_idle()
        entry = await checker.cache.aget(identity)
        matcher = checker.matcher_for(identity.registry_type)
        if entry is not None and matcher is not None:
            result = compare_entry(entry, matcher, args.spec)

    _print_result(identity, result, args.JSON)
    if result.status is VersionStatus.LATEST:
        return ExitCodes.SUCCESS.value
    if result.status is VersionStatus.NOT_IN_CACHE:
        return ExitCodes.CONNECTION_ERROR.value if args.WAIT else ExitCodes.SUCCESS.value
    return ExitCodes.EXIT_WARNINGS.value


async def _run_refresh(checker: VersionChecker, args: argparse.Namespace) -> int:
    if args.ALL_STALE:
        count = await checker.refresh_stale()
        await checker.wait_idle()
        print(f"Refreshed {count} stale packages")
        return ExitCodes.SUCCESS.value

    identity = PackageIdentity(args.registry, args.package)
    registry = checker.registry_for(identity.registry_type)
    if registry is None:
        logger.error("Registry %s is disabled", identity.registry_type.value)
        return ExitCodes.FILE_ERROR.value
    try:
        entry = await checker.cache.fetch_with_dedup(identity, registry)
    except FetchError as exc:
        logger.error("Refresh failed: %s", exc)
        return ExitCodes.CONNECTION_ERROR.value
    print(f"{identity}: {len(entry.version_set)} versions, latest {entry.version_set.latest or '-'}")
    return ExitCodes.SUCCESS.value


def _run_show(checker: VersionChecker, args: argparse.Namespace) -> int:
    identity = PackageIdentity(args.registry, args.package)
    entry = checker.cache.get(identity)
    if entry is None:
        print(f"{identity}: not cached")
        return ExitCodes.FILE_ERROR.value
    print(json.dumps({
        "package": str(identity),
        "fetched_at": entry.fetched_at.isoformat(),
        "stale": entry.is_stale(),
        "latest": entry.version_set.latest,
        "versions": list(entry.version_set.versions),
    }, indent=2))
    return ExitCodes.SUCCESS.value


async def _run(settings: Settings, args: argparse.Namespace) -> int:
    async with HttpClient(timeout=settings.fetch_timeout) as http:
        checker = VersionChecker.from_settings(settings, http=http)
        try:
            if args.command == "check":
                return await _run_check(checker, args)
            if args.command == "refresh":
                return await _run_refresh(checker, args)
            return _run_show(checker, args)
        finally:
            # Let scheduled fetches land so the next run answers from the cache.
            await checker.wait_idle()
            checker.cache.close()


def main(argv: Optional[List[str]] = None) -> int:
    """Main function of the program."""
    args = parse_args(argv)
    configure_logging(log_file=args.LOG_FILE, level=args.LOG_LEVEL)

    if is_debug_enabled(logger):
        logger.debug("CLI start", extra=extra_context(event="function_entry", component="cli",
                                                      action=args.command))
    try:
        settings = load_settings(args.CONFIG)
    except ConfigError as exc:
        logger.error("%s", exc)
        return ExitCodes.FILE_ERROR.value
    if args.DB_PATH:
        settings.db_path = Path(args.DB_PATH).expanduser()
    if (not args.LOG_FILE and settings.log_path) or (not args.LOG_LEVEL and settings.log_level):
        configure_logging(log_file=args.LOG_FILE or settings.log_path,
                          level=args.LOG_LEVEL or settings.log_level)

    try:
        return asyncio.run(_run(settings, args))
    except CacheError as exc:
        logger.error("Cache failure: %s", exc)
        return ExitCodes.FILE_ERROR.value


if __name__ == "__main__":
    sys.exit(main())
