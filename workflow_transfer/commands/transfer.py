"""
Transfer command.

Copies (or renames, or tags) n8n workflows from the source instance to the
target instance through the batch engine and writes reports.

Usage:
    python -m workflow_transfer.commands.transfer --dry-run
    python -m workflow_transfer.commands.transfer --deduplicator fuzzy --fuzzy-threshold 0.9
    python -m workflow_transfer.commands.transfer --mutation tag --tag-name migrated --tags prod
    python -m workflow_transfer.commands.transfer --mutation rename --rename-map renames.json
    python -m workflow_transfer.commands.transfer --list-strategies

Exit codes:
    0  every item transferred, skipped or previewed
    1  some items failed or the run aborted
    2  configuration, connectivity or read error
"""

import argparse
import asyncio
import json
import logging
import sys
from typing import Any, Dict, List, Optional

from ..config import settings
from ..core.errors import InvalidArgumentError, RemoteServiceError
from ..models.config_models import TransferConfig
from ..models.run_models import RunOptions
from ..registry import strategy_registry
from ..services.config_loader import build_service, load_transfer_config, validate_transfer_config
from ..services.report_service import write_report
from ..services.transfer_service import ConnectivityError, TransferService
from .common import (
    add_common_arguments,
    build_filter,
    build_validators,
    configure_logging,
    install_cancel_handler,
    print_strategies,
)

logger = logging.getLogger("workflow_transfer.commands.transfer")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Transfer n8n workflows between instances")
    add_common_arguments(parser)
    parser.add_argument("--dry-run", action="store_true", help="Preview outcomes without mutating")
    parser.add_argument("--deduplicator", default=None, help="Deduplicator name (exact, fuzzy)")
    parser.add_argument("--fuzzy-threshold", type=float, default=None, help="Similarity treated as duplicate")
    parser.add_argument("--mutation", default=None, help="Mutation name (recreate, rename, tag)")
    parser.add_argument("--tag-id", action="append", default=[], help="Tag id for the tag mutation")
    parser.add_argument("--tag-name", action="append", default=[], help="Tag name (created if missing)")
    parser.add_argument("--rename-map", default=None, help="JSON file mapping item id to new name")
    parser.add_argument("--concurrency", type=int, default=None, help="Parallel workers")
    parser.add_argument("--rollback-threshold", type=float, default=None, help="Abort below this success rate")
    parser.add_argument("--post-validate", action="store_true", help="Validate items after mutation")
    parser.add_argument("--skip-credentials", action="store_true", help="Skip items that use credentials")
    parser.add_argument("--report", type=lambda v: [p for p in v.split(",") if p], default=["json"],
                        help="Comma-separated report formats (json,csv); empty to disable")
    parser.add_argument("--report-dir", default=None, help="Report directory (defaults to REPORT_DIR)")
    return parser


def build_run_options(config: TransferConfig, args: argparse.Namespace) -> RunOptions:
    overrides: Dict[str, Any] = {}
    if args.dry_run:
        overrides["dry_run"] = True
    if args.concurrency is not None:
        overrides["concurrency_limit"] = args.concurrency
    if args.rollback_threshold is not None:
        overrides["rollback_threshold"] = args.rollback_threshold
    if args.post_validate:
        overrides["post_validate"] = True
    if args.skip_credentials:
        overrides["skip_credentials"] = True
    return RunOptions(**{**config.run.run_options().model_dump(), **overrides})


async def build_mutation(name: str, options: Dict[str, Any], args: argparse.Namespace, target):
    options = dict(options)
    if name == "tag":
        tag_ids: List[str] = list(options.pop("tag_ids", [])) + list(args.tag_id)
        for tag_name in args.tag_name:
            tag = await target.ensure_tag(tag_name)
            tag_ids.append(str(tag["id"]))
        options["tag_ids"] = tag_ids
    elif name == "rename" and args.rename_map:
        with open(args.rename_map, "r", encoding="utf-8") as f:
            options["names"] = json.load(f)
    return strategy_registry.create("mutation", name, **options)


def print_summary(summary: Dict[str, Any]) -> None:
    stats = summary["stats"]
    mode = "DRY RUN" if summary["dry_run"] else "TRANSFER"
    print(f"\n{mode} {summary['state'].upper()}: {summary['source']} -> {summary['target']}")
    print(
        f"  total={stats['total']} transferred={stats['succeeded']} skipped={stats['skipped']} "
        f"failed={stats['failed']} dry_run={stats['dry_run']} retries={stats['total_retries']} "
        f"success_rate={stats['success_rate']:.1%}"
    )
    if summary.get("abort_reason"):
        print(f"  {summary['abort_reason']}")
    for outcome in summary["outcomes"]:
        if outcome["status"] == "failed":
            print(f"  FAILED {outcome['name']}: {outcome['reason']}")


async def run_transfer(args: argparse.Namespace) -> int:
    try:
        config = load_transfer_config(args.config)
        for warning in validate_transfer_config(config):
            logger.warning(warning)
    except (FileNotFoundError, ValueError) as e:
        logger.error(f"Configuration error: {e}")
        return 2

    run = config.run
    source = build_service(config.source, "source")
    target = build_service(config.target, "target")
    try:
        dedup_name = args.deduplicator or run.deduplicator
        dedup_options = {}
        if dedup_name == "fuzzy":
            dedup_options["threshold"] = args.fuzzy_threshold if args.fuzzy_threshold is not None else run.fuzzy_threshold
        service = TransferService(
            source,
            target,
            deduplicator=strategy_registry.create("deduplicator", dedup_name, **dedup_options),
            validators=build_validators(args.validators or run.validators),
            mutation=await build_mutation(args.mutation or run.mutation, run.mutation_options, args, target),
        )
        options = build_run_options(config, args)
        install_cancel_handler(service.cancel)
        summary = await service.transfer(options, build_filter(args))
    except (InvalidArgumentError, ValueError, OSError) as e:
        logger.error(f"Invalid arguments: {e}")
        return 2
    except ConnectivityError as e:
        logger.error(str(e))
        return 2
    except RemoteServiceError as e:
        logger.error(f"Remote read failed ({e.category.value}): {e}")
        return 2
    finally:
        await source.close()
        await target.close()

    print_summary(summary)
    for fmt in args.report:
        write_report(summary, fmt, args.report_dir or settings.report_dir)

    if summary["aborted"] or summary["stats"]["failed"]:
        return 1
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(args.log_level)
    if args.list_strategies:
        print_strategies()
        return 0
    return asyncio.run(run_transfer(args))


if __name__ == "__main__":
    sys.exit(main())
