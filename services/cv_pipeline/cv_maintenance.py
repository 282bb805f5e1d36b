"""CV maintenance runner.

Offline repair jobs for the CV collections. Stop the API server first: the
store's locks only coordinate within one process.

Usage:
    python -m services.cv_pipeline.cv_maintenance reindex --owner u1
    python -m services.cv_pipeline.cv_maintenance backfill-hashes [--owner u1]
    python -m services.cv_pipeline.cv_maintenance reconcile [--owner u1] [--max-age-minutes 30]
"""

import argparse
import asyncio
import sys
from datetime import timedelta

from services.cv_pipeline.CVService import COLLECTION, CVService
from services.cv_pipeline.TaskSupervisor import TaskSupervisor
from services.cv_pipeline.UploadStorage import UploadStorage
from shared.clients.analyzer.fallback.AnalyzerClientFallback import AnalyzerClientFallback
from shared.clients.extractor.TextExtractor import TextExtractor
from shared.helper.HelperConfig import HelperConfig
from shared.logging.logging_setup import setup_logging
from shared.store.DocumentStore import DocumentStore


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="cv_maintenance", description="Repair and backfill CV collections.")
    sub = parser.add_subparsers(dest="command", required=True)

    reindex = sub.add_parser("reindex", help="Register stored upload files that no record references.")
    reindex.add_argument("--owner", required=True, help="Owner that receives the recovered records.")

    backfill = sub.add_parser("backfill-hashes", help="Compute missing content digests.")
    backfill.add_argument("--owner", help="Only this owner (default: all owners).")

    reconcile = sub.add_parser("reconcile", help="Reset records stuck in processing back to uploaded.")
    reconcile.add_argument("--owner", help="Only this owner (default: all owners).")
    reconcile.add_argument("--max-age-minutes", type=float, default=None, help="Override CV_STALE_PROCESSING_MINUTES.")
    return parser


def build_service(config: HelperConfig) -> CVService:
    # maintenance never runs the analyzer, so the offline one is enough
    store = DocumentStore(helper_config=config)
    return CVService(
        helper_config=config,
        store=store,
        extractor=TextExtractor(helper_config=config),
        analyzer=AnalyzerClientFallback(helper_config=config),
        supervisor=TaskSupervisor(helper_config=config, concurrency=1),
        uploads=UploadStorage(helper_config=config, data_dir=str(store.get_base_dir())),
    )


async def run(args: argparse.Namespace, service: CVService) -> int:
    logger = service.logging
    if args.command == "reindex":
        created = await service.reindex_uploads(args.owner)
        logger.info("Reindex finished: %d record(s) created.", len(created), color="green")
        return 0

    owners = [args.owner] if args.owner else await service.store.list_owners(COLLECTION)
    if args.command == "backfill-hashes":
        total = 0
        for owner in owners:
            total += await service.ensure_hashes_for_owner(owner)
        logger.info("Backfill finished: %d digest(s) written across %d owner(s).", total, len(owners), color="green")
        return 0

    if args.command == "reconcile":
        max_age = timedelta(minutes=args.max_age_minutes) if args.max_age_minutes is not None else None
        total = 0
        for owner in owners:
            total += await service.reconcile_stale_processing(owner, max_age=max_age)
        logger.info("Reconcile finished: %d record(s) reset.", total, color="green")
        return 0

    logger.error("Unknown command '%s'.", args.command)
    return 2


async def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    logger = setup_logging()
    config = HelperConfig(logger=logger)
    try:
        return await run(args, build_service(config))
    except Exception as e:
        logger.error("Maintenance command '%s' failed: %s", args.command, e)
        return 1


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
