# workflow_transfer/commands/common.py
"""Argument and wiring helpers shared by the transfer and validate commands."""

import argparse
import asyncio
import logging
import signal
from typing import Callable, List, Optional

from ..config import settings
from ..models.item_models import ItemFilter
from ..registry import strategy_registry

logger = logging.getLogger("workflow_transfer.commands")


def configure_logging(level: Optional[str] = None) -> None:
    logging.basicConfig(
        level=(level or settings.log_level).upper(),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


def _csv_list(value: str) -> List[str]:
    return [part.strip() for part in value.split(",") if part.strip()]


def add_common_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--config", default=None, help="Path to a YAML transfer config")
    parser.add_argument("--log-level", default=None, help="Log level (defaults to LOG_LEVEL)")
    parser.add_argument(
        "--validators", type=_csv_list, default=None,
        help="Comma-separated validator names (default: schema,integrity)",
    )
    group = parser.add_argument_group("selection")
    group.add_argument("--ids", type=_csv_list, default=[], help="Only items with these ids")
    group.add_argument("--names", type=_csv_list, default=[], help="Only items with these names")
    group.add_argument("--tags", type=_csv_list, default=[], help="Only items carrying any of these tags")
    group.add_argument("--exclude-tags", type=_csv_list, default=[], help="Skip items carrying any of these tags")
    parser.add_argument(
        "--list-strategies", action="store_true",
        help="List registered deduplicators, validators and mutations and exit",
    )


def build_filter(args: argparse.Namespace) -> ItemFilter:
    return ItemFilter(ids=args.ids, names=args.names, tags=args.tags, exclude_tags=args.exclude_tags)


def build_validators(names: List[str]):
    return [strategy_registry.create("validator", name) for name in names]


def print_strategies() -> None:
    for kind, entries in strategy_registry.describe().items():
        print(f"{kind}s:")
        for entry in entries:
            aliases = f" (aliases: {', '.join(entry['aliases'])})" if entry["aliases"] else ""
            print(f"  {entry['name']:<12} {entry['description']}{aliases}")


def install_cancel_handler(cancel: Callable[[], bool]) -> None:
    """Route SIGINT to ``cancel`` so in-flight items finish before stopping."""
    loop = asyncio.get_running_loop()

    def handler():
        if cancel():
            logger.warning("Interrupt received, finishing in-flight items")

    try:
        loop.add_signal_handler(signal.SIGINT, handler)
    except (NotImplementedError, RuntimeError):
        # Event loops without signal support keep the default KeyboardInterrupt
        logger.debug("Signal handlers unavailable; Ctrl+C will interrupt immediately")
