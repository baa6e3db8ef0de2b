# src/shipment_dashboard/cli.py
from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path
from typing import Any

from .config.env import EnvError, get_app_env
from .config.logging_config import get_logger
from .errors import AggregateUnavailable, DashboardError, SourceUnavailable, TrackingNotFound
from .pipelines.filters import OrderFilters
from .pipelines.scheduler import RefreshScheduler
from .pipelines.sync import SYNC_SCOPES
from .service import ShipmentDashboard

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_USAGE = 2


def _add_filter_args(p: argparse.ArgumentParser) -> None:
    p.add_argument("--search", default=None, help="Match order id, AWB or customer name/phone/email.")
    p.add_argument("--status", default=None, help="Status bucket (Delivered, In Transit, ...) or 'all'.")
    p.add_argument("--date-from", default=None, help="YYYY-MM-DD lower bound on order date.")
    p.add_argument("--date-to", default=None, help="YYYY-MM-DD upper bound on order date (inclusive).")
    p.add_argument("--courier", default=None)
    p.add_argument("--payment-mode", default=None, help="Prepaid or COD.")


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="shipment-dashboard",
        description="Merged order listing, AWB tracking and channel sync over the orders database and Shiprocket.",
    )
    p.add_argument("--db", type=Path, default=None, help="Orders JSON file (default: ORDERS_DB_PATH).")
    p.add_argument("--env-file", type=Path, default=None, help="Explicit .env file (default: nearest .env).")
    p.add_argument(
        "--no-api",
        action="store_true",
        help="Do not call Shopify/Shiprocket; serve from the database only.",
    )
    p.add_argument(
        "--no-console",
        action="store_true",
        help="Disable console logging (file logging remains if --log-file is set).",
    )
    p.add_argument(
        "--log-level",
        default="INFO",
        help="Logging level (DEBUG, INFO, WARNING, ERROR). Default: INFO",
    )
    p.add_argument("--log-file", type=Path, default=None, help="Also log to this rotating file.")
    p.add_argument(
        "--strict-env",
        action="store_true",
        help="Require SHIPROCKET_EMAIL/PASSWORD to be present; otherwise exit 2.",
    )

    sub = p.add_subparsers(dest="command", required=True)

    orders = sub.add_parser("orders", help="List merged orders.")
    _add_filter_args(orders)
    orders.add_argument("--page", type=int, default=1)
    orders.add_argument("--page-size", type=int, default=None, help="Omit to list everything.")
    orders.add_argument(
        "--source",
        choices=("database", "api"),
        default=None,
        help="Show one source's own page instead of the merged listing.",
    )

    track = sub.add_parser("track", help="Tracking timeline for one AWB.")
    track.add_argument("awb")

    sync = sub.add_parser("sync", help="Pull new orders from the channels into the database.")
    sync.add_argument("--scope", choices=SYNC_SCOPES, default=None, help="Default: every configured channel.")

    summary = sub.add_parser("summary", help="Status/courier counts over the merged orders.")
    _add_filter_args(summary)

    watch = sub.add_parser("watch", help="Re-fetch the listing on an interval until interrupted.")
    _add_filter_args(watch)
    watch.add_argument("--page", type=int, default=1)
    watch.add_argument("--page-size", type=int, default=None)
    watch.add_argument("--interval", type=float, default=None, help="Seconds (default: REFRESH_INTERVAL_SECONDS).")
    watch.add_argument("--iterations", type=int, default=None, help="Stop after this many refreshes.")
    return p


def _filters(args: argparse.Namespace) -> OrderFilters:
    return OrderFilters(
        search=args.search,
        status=args.status,
        date_from=args.date_from,
        date_to=args.date_to,
        courier=args.courier,
        payment_mode=args.payment_mode,
    )


def _emit(payload: Any) -> None:
    print(json.dumps(payload, ensure_ascii=False, indent=2, default=str))


def _cmd_orders(dash: ShipmentDashboard, args: argparse.Namespace, logger) -> int:
    if args.source:
        try:
            result = dash.fetch_orders_by_source(args.source, args.page, args.page_size or 20)
        except ValueError as e:
            logger.error("%s", e)
            return EXIT_USAGE
        _emit({
            "source": result.source,
            "current_page": result.current_page,
            "total_pages": result.total_pages,
            "orders": [o.to_dict() for o in result.orders],
        })
        return EXIT_OK

    listing = dash.fetch_orders(_filters(args), page=args.page, page_size=args.page_size)
    if listing.degraded:
        logger.warning("Partial listing; unavailable: %s", ", ".join(listing.degraded_sources))
    _emit(listing.to_dict())
    return EXIT_OK


def _cmd_track(dash: ShipmentDashboard, args: argparse.Namespace, logger) -> int:
    try:
        snapshot = dash.fetch_tracking(args.awb)
    except TrackingNotFound as e:
        print(e.user_message, file=sys.stderr)
        return EXIT_FAILURE
    _emit(snapshot.to_dict())
    return EXIT_OK


def _cmd_sync(dash: ShipmentDashboard, args: argparse.Namespace, logger) -> int:
    result = dash.trigger_sync(args.scope)
    _emit(result.to_dict())
    return EXIT_OK if result.success else EXIT_FAILURE


def _cmd_summary(dash: ShipmentDashboard, args: argparse.Namespace, logger) -> int:
    _emit(dash.order_summary(_filters(args)).to_dict())
    return EXIT_OK


def _cmd_watch(dash: ShipmentDashboard, args: argparse.Namespace, logger, interval: float) -> int:
    filters = _filters(args)
    done = {"n": 0}

    def fetch(key):
        return dash.fetch_orders(filters, page=args.page, page_size=args.page_size, refresh=True)

    def on_result(key, listing):
        done["n"] += 1
        logger.info(
            "Refreshed: %d orders (database=%d api=%d)%s",
            listing.total_count,
            listing.provenance_counts.get("database", 0),
            listing.provenance_counts.get("api", 0),
            " [degraded]" if listing.degraded else "",
        )
        _emit(listing.to_dict())

    def on_error(key, exc):
        done["n"] += 1
        print(getattr(exc, "user_message", str(exc)), file=sys.stderr)

    scheduler = RefreshScheduler(fetch, interval=interval, on_result=on_result, on_error=on_error, logger=logger)
    until = (lambda: done["n"] >= args.iterations) if args.iterations else None
    scheduler.start((filters.cache_key(), args.page, args.page_size))
    try:
        scheduler.run_forever(until=until, poll=min(1.0, interval))
    except KeyboardInterrupt:
        logger.info("Interrupted.")
    finally:
        scheduler.stop()
    return EXIT_OK


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)

    logger = get_logger(
        "shipment_dashboard",
        level=args.log_level,
        console=not args.no_console,
        log_file=args.log_file,
    )
    logger.debug("Logger initialized.")

    # Load env (don't fail unless user asked for strict)
    try:
        env_cfg = get_app_env(args.env_file, strict=args.strict_env)
        if args.strict_env:
            logger.info("Strict env passed; Shiprocket credentials present.")
        else:
            logger.debug("Env loaded (non-strict).")
    except EnvError as e:
        logger.error("Environment error: %s", e)
        return EXIT_USAGE

    try:
        dash = ShipmentDashboard.from_env(
            env_cfg,
            use_api=not args.no_api,
            db_path=str(args.db) if args.db else None,
            logger=logger,
        )
    except ValueError as e:
        logger.error("Could not open orders database: %s", e)
        return EXIT_USAGE

    try:
        if args.command == "orders":
            return _cmd_orders(dash, args, logger)
        if args.command == "track":
            return _cmd_track(dash, args, logger)
        if args.command == "sync":
            return _cmd_sync(dash, args, logger)
        if args.command == "summary":
            return _cmd_summary(dash, args, logger)
        if args.command == "watch":
            interval = args.interval or env_cfg.REFRESH_INTERVAL_SECONDS
            if interval <= 0:
                logger.error("--interval must be positive")
                return EXIT_USAGE
            return _cmd_watch(dash, args, logger, interval)
    except AggregateUnavailable as e:
        print(e.user_message, file=sys.stderr)
        logger.debug("Aggregate failure: %s", e)
        return EXIT_FAILURE
    except SourceUnavailable as e:
        logger.error("Source unavailable: %s", e)
        return EXIT_FAILURE
    except DashboardError as e:
        logger.error("%s", e)
        return EXIT_FAILURE

    return EXIT_USAGE


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
