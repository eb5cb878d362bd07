"""
Command-line entrypoint.

Usage:
    python -m bizsync status                          # change-log counts + last run
    python -m bizsync sync --company ID --token T     # one full sync
    python -m bizsync initial-load --company ID --token T
    python -m bizsync cleanup --days 30               # purge old synced entries
    python -m bizsync run --company ID --token T      # scheduler loop until Ctrl+C
    uvicorn bizsync.api.main:app --port 8000          # HTTP surface
"""
import argparse
import asyncio
import json
import logging
import sys

logger = logging.getLogger(__name__)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="bizsync", description="Offline-first store sync")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("status", help="Show sync status")

    for name, help_text in (
        ("sync", "Run one full sync"),
        ("initial-load", "Replace local company data with the remote copy"),
        ("run", "Run the background scheduler"),
    ):
        cmd = sub.add_parser(name, help=help_text)
        cmd.add_argument("--company", help="Company id (default: COMPANY_ID setting)")
        cmd.add_argument("--token", help="Bearer token for the remote API")

    cleanup = sub.add_parser("cleanup", help="Purge synced change-log entries")
    cleanup.add_argument("--days", type=int, help="Retention in days")
    return parser


def _print(payload) -> None:
    print(json.dumps(payload, indent=2, default=str))


async def _run_command(args, settings) -> int:
    from bizsync.scheduler.jobs import build_scheduler
    from bizsync.sync.engine import create_sync_engine

    sync_engine = create_sync_engine(settings)
    try:
        if args.command == "status":
            await sync_engine.check_online_status()
            _print(sync_engine.get_sync_status().to_dict())
            return 0

        company_id = args.company or settings.company_id
        if not company_id:
            logger.error("No company given. Pass --company or set COMPANY_ID.")
            return 2
        sync_engine.set_auth_token(args.token)

        if args.command == "sync":
            result = await sync_engine.full_sync(company_id)
            _print(result.to_dict())
            return 0 if result.success else 1

        if args.command == "initial-load":
            await sync_engine.check_online_status()
            result = await sync_engine.initial_load(company_id)
            _print(result.to_dict())
            return 0 if result.success else 1

        # run
        await sync_engine.check_online_status()
        scheduler = build_scheduler(sync_engine, company_id)
        scheduler.start()
        logger.info(
            "Scheduler started (sync every %d min for company %s)",
            settings.sync_interval_minutes, company_id,
        )
        try:
            await asyncio.Event().wait()
        except (KeyboardInterrupt, SystemExit, asyncio.CancelledError):
            logger.info("Shutting down...")
        finally:
            scheduler.shutdown()
        return 0
    finally:
        await sync_engine.remote.aclose()


def main(argv=None) -> int:
    from bizsync.config import get_settings
    from bizsync.db.engine import close_store, init_store

    args = _build_parser().parse_args(argv)
    settings = get_settings()
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(name)s %(levelname)s %(message)s",
    )

    engine = init_store()
    try:
        if args.command == "cleanup":
            from bizsync.store.change_log import ChangeLog
            days = args.days if args.days is not None else settings.change_log_retention_days
            removed = ChangeLog(engine).cleanup(days)
            _print({"removed": removed})
            return 0
        return asyncio.run(_run_command(args, settings))
    finally:
        close_store()


if __name__ == "__main__":
    sys.exit(main())
