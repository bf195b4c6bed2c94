"""
Validate command.

Runs the configured validators over source workflows without transferring
anything and prints the findings.

Usage:
    python -m workflow_transfer.commands.validate
    python -m workflow_transfer.commands.validate --validators integrity --tags prod --json
"""

import argparse
import asyncio
import json
import logging
import sys
from typing import List, Optional

from ..core.errors import InvalidArgumentError, RemoteServiceError
from ..services.config_loader import build_service, load_transfer_config, validate_transfer_config
from ..services.transfer_service import ConnectivityError, TransferService
from .common import add_common_arguments, build_filter, build_validators, configure_logging, print_strategies

logger = logging.getLogger("workflow_transfer.commands.validate")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Validate n8n workflows on the source instance")
    add_common_arguments(parser)
    parser.add_argument("--json", action="store_true", help="Print the full result as JSON")
    return parser


async def run_validate(args: argparse.Namespace) -> int:
    try:
        config = load_transfer_config(args.config)
        validate_transfer_config(config, require_target=False)
        validators = build_validators(args.validators or config.run.validators)
    except (FileNotFoundError, ValueError, InvalidArgumentError) as e:
        logger.error(f"Configuration error: {e}")
        return 2

    source = build_service(config.source, "source")
    try:
        # Validation never touches the target
        service = TransferService(source, source, validators=validators)
        result = await service.validate(build_filter(args))
    except ConnectivityError as e:
        logger.error(str(e))
        return 2
    except RemoteServiceError as e:
        logger.error(f"Remote read failed ({e.category.value}): {e}")
        return 2
    finally:
        await source.close()

    if args.json:
        print(json.dumps(result, indent=2, default=str))
    else:
        print(f"\n{result['total']} items: {result['valid']} valid, {result['invalid']} invalid, "
              f"{result['with_warnings']} with warnings")
        for issue in result["issues"]:
            print(f"  [{issue['severity'].upper()}] {issue['name']} ({issue['item_id']})")
            for error in issue["errors"]:
                print(f"      error: {error}")
            for warning in issue["warnings"]:
                print(f"      warning: {warning}")
    return 1 if result["invalid"] else 0


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(args.log_level)
    if args.list_strategies:
        print_strategies()
        return 0
    return asyncio.run(run_validate(args))


if __name__ == "__main__":
    sys.exit(main())
