"""Trakt account and import commands.

Every command prints JSON to stdout. Engine failures are reported on stderr
and exit with status 1.
"""

from __future__ import annotations

import argparse
from contextlib import contextmanager
from typing import Any, Callable, Iterator, MutableMapping, Optional, Sequence

from watchsync.backend.common.errors import WatchSyncError
from watchsync.backend.common.logging import init_logging
from watchsync.backend.trakt.models import ImportOptions
from watchsync.backend.trakt.services import TraktServices, create_trakt_services
from watchsync.config import settings

from ._utils import (
    build_subparser,
    exit_with_error,
    parse_datetime_arg,
    print_json,
    require_subcommand,
    to_serializable,
)

_SECRET_KEYS = ("client_id", "client_secret")


@contextmanager
def _trakt() -> Iterator[TraktServices]:
    services = create_trakt_services()
    try:
        yield services
    except WatchSyncError as exc:
        exit_with_error(str(exc))
    finally:
        services.close()


def _import_options(args: argparse.Namespace) -> ImportOptions:
    return ImportOptions(
        watched_movies=not args.no_movies,
        watched_series=not args.no_series,
        ratings=not args.no_ratings,
        watchlist=not args.no_watchlist,
    )


# ----------------------------------------------------------------------
# Account
# ----------------------------------------------------------------------
def _handle_auth_url(_: argparse.Namespace) -> None:
    with _trakt() as trakt:
        print_json(to_serializable(trakt.oauth.get_auth_url()))


def _handle_exchange(args: argparse.Namespace) -> None:
    with _trakt() as trakt:
        trakt.oauth.exchange_code(args.code, args.state, expected_state=args.expected_state)
        token = trakt.tokens.current()
        print_json(
            {
                "authenticated": trakt.tokens.is_authenticated(),
                "expires_at": to_serializable(token.expires_at if token else None),
            }
        )


def _handle_status(_: argparse.Namespace) -> None:
    with _trakt() as trakt:
        payload: MutableMapping[str, Any] = to_serializable(trakt.sync.status())
        token = trakt.tokens.current()
        payload["expires_at"] = to_serializable(token.expires_at if token else None)
        print_json(payload)


def _handle_disconnect(_: argparse.Namespace) -> None:
    with _trakt() as trakt:
        trakt.oauth.disconnect()
        print_json({"authenticated": False})


def _handle_auto_sync(args: argparse.Namespace) -> None:
    with _trakt() as trakt:
        set_auto_sync: Optional[Callable[[bool], None]] = getattr(trakt.store, "set_auto_sync", None)
        if set_auto_sync is None:
            exit_with_error("The configured settings store cannot toggle auto-sync")
            return
        set_auto_sync(args.state == "on")
        print_json(to_serializable(trakt.sync.status()))


def _handle_config(_: argparse.Namespace) -> None:
    providers = settings.list_provider_configs()
    for config in providers.values():
        for key in _SECRET_KEYS:
            if config.get(key):
                config[key] = "***"
    print_json(
        {
            "settings": settings.get_settings().as_dict(),
            "paths": settings.snapshot_paths(),
            "providers": providers,
        }
    )


# ----------------------------------------------------------------------
# Import / sync
# ----------------------------------------------------------------------
def _handle_preview(args: argparse.Namespace) -> None:
    with _trakt() as trakt:
        preview = trakt.sync.preview(_import_options(args))
        if args.summary:
            print_json(to_serializable(preview.model_dump(exclude={"movies", "series"})))
            return
        print_json(to_serializable(preview))


def _handle_import(args: argparse.Namespace) -> None:
    with _trakt() as trakt:
        batch = trakt.sync.full_import(_import_options(args))
        payload: MutableMapping[str, Any] = to_serializable(batch)
        payload["total_items"] = batch.total_items
        print_json(payload)


def _print_sync_batch(batch: Any) -> None:
    payload: MutableMapping[str, Any] = to_serializable(batch)
    payload["new_movie_watches"] = batch.new_movie_watches
    payload["new_episode_watches"] = batch.new_episode_watches
    print_json(payload)


def _handle_sync(_: argparse.Namespace) -> None:
    with _trakt() as trakt:
        _print_sync_batch(trakt.sync.incremental_sync())


def _handle_resync(args: argparse.Namespace) -> None:
    with _trakt() as trakt:
        _print_sync_batch(trakt.sync.resync_since(args.since))


def _handle_show_history(args: argparse.Namespace) -> None:
    with _trakt() as trakt:
        print_json(trakt.history.debug_show_history(args.tmdb_id, limit=args.limit))


# ----------------------------------------------------------------------
# Parser
# ----------------------------------------------------------------------
def _add_import_flags(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--no-movies", action="store_true", help="Skip watched movies.")
    parser.add_argument("--no-series", action="store_true", help="Skip watched series.")
    parser.add_argument("--no-ratings", action="store_true", help="Skip personal ratings.")
    parser.add_argument("--no-watchlist", action="store_true", help="Skip the watchlist.")


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Import and sync watch history from Trakt.")
    subparsers = parser.add_subparsers(dest="command")
    require_subcommand(subparsers)

    auth_url = build_subparser(subparsers, "auth-url", help="Print a Trakt authorization URL and its state token.")
    auth_url.set_defaults(func=_handle_auth_url)

    exchange = build_subparser(subparsers, "exchange", help="Trade an authorization code for an access token.")
    exchange.add_argument("code", help="Authorization code shown by Trakt.")
    exchange.add_argument("state", help="State value returned with the code.")
    exchange.add_argument("--expected-state", help="State issued by auth-url; rejects the code on mismatch.")
    exchange.set_defaults(func=_handle_exchange)

    status = build_subparser(subparsers, "status", help="Show connection and sync status.")
    status.set_defaults(func=_handle_status)

    disconnect = build_subparser(subparsers, "disconnect", help="Forget stored Trakt tokens.")
    disconnect.set_defaults(func=_handle_disconnect)

    auto_sync = build_subparser(subparsers, "auto-sync", help="Enable or disable automatic sync.")
    auto_sync.add_argument("state", choices=["on", "off"])
    auto_sync.set_defaults(func=_handle_auto_sync)

    config = build_subparser(subparsers, "config", help="Show resolved settings, paths and provider config.")
    config.set_defaults(func=_handle_config)

    preview = build_subparser(subparsers, "preview", help="Show what a full import would fetch.")
    _add_import_flags(preview)
    preview.add_argument("--summary", action="store_true", help="Only print the counts.")
    preview.set_defaults(func=_handle_preview)

    full_import = build_subparser(subparsers, "import", help="Fetch the full Trakt history.")
    _add_import_flags(full_import)
    full_import.set_defaults(func=_handle_import)

    sync = build_subparser(subparsers, "sync", help="Fetch watches recorded since the last sync.")
    sync.set_defaults(func=_handle_sync)

    resync = build_subparser(subparsers, "resync", help="Fetch watches recorded since a given time.")
    resync.add_argument("since", type=parse_datetime_arg, help="ISO-8601 timestamp, e.g. 2024-01-01T00:00:00Z.")
    resync.set_defaults(func=_handle_resync)

    show_history = build_subparser(subparsers, "show-history", help="Dump raw history entries for one show.")
    show_history.add_argument("tmdb_id", type=int, help="TMDB id of the show.")
    show_history.add_argument("--limit", type=int, default=20, help="Maximum number of entries.")
    show_history.set_defaults(func=_handle_show_history)

    return parser


def main(argv: Optional[Sequence[str]] = None) -> None:
    init_logging(settings.get_settings().log_level)
    parser = _build_parser()
    args = parser.parse_args(argv)
    handler = getattr(args, "func", None)
    if handler is None:
        parser.print_help()
        return
    handler(args)


if __name__ == "__main__":  # pragma: no cover
    main()
