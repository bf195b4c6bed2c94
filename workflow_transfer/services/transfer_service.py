# ============================================================================
# Workflow Transfer - Transfer Service
# ============================================================================
"""
Orchestrates a transfer between a source and a target n8n instance.

The transfer flow:
1. Check connectivity to both instances
2. Fetch source items (target items for in-place mutations) and apply the ``ItemFilter``
3. Fetch the target snapshot used for duplicate detection
4. Run the ``BatchProcessor`` against the target
5. Return a summary for reporting

``validate`` runs the configured validators over source items without
touching the target.

Usage:
    service = TransferService(source, target, deduplicator=FuzzyDeduplicator())
    summary = await service.transfer(RunOptions(dry_run=True), ItemFilter(tags=["prod"]))
"""

import logging
import time
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional

from ..dedup.base import BaseDeduplicator
from ..models.item_models import ItemFilter
from ..models.run_models import RunOptions
from ..validators.base import BaseValidator
from ..validators.integrity import IntegrityValidator
from ..validators.schema import SchemaValidator
from .batch_processor import BatchProcessor
from .mutations import ItemMutation
from .remote_item_service import RemoteItemService, mask_url

logger = logging.getLogger("workflow_transfer.transfer_service")


class ConnectivityError(RuntimeError):
    """Raised when an instance fails its connectivity check."""

    def __init__(self, instance: str, details: Dict[str, Any]):
        super().__init__(f"Cannot connect to {instance} instance: {details.get('message')}")
        self.instance = instance
        self.details = details


class TransferService:

    def __init__(
        self,
        source: RemoteItemService,
        target: RemoteItemService,
        deduplicator: Optional[BaseDeduplicator] = None,
        validators: Optional[Iterable[BaseValidator]] = None,
        mutation: Optional[ItemMutation] = None,
    ):
        self.source = source
        self.target = target
        self.validators = list(validators) if validators is not None else [SchemaValidator(), IntegrityValidator()]
        self.processor = BatchProcessor(
            target,
            deduplicator=deduplicator,
            validators=self.validators,
            mutation=mutation,
        )

    def cancel(self) -> bool:
        return self.processor.cancel()

    async def test_connectivity(self, include_target: bool = True) -> Dict[str, Dict[str, Any]]:
        """
        Check source (and target) connectivity.

        Raises:
            ConnectivityError: For the first instance that fails
        """
        checks = {"source": self.source}
        if include_target:
            checks["target"] = self.target
        results = {}
        for name, service in checks.items():
            result = await service.test_connection()
            results[name] = result
            if not result["success"]:
                logger.error(f"Connectivity check failed for {name}: {result['message']}")
                raise ConnectivityError(name, result)
            logger.info(f"Connected to {name} ({result['url']}) in {result['latency_ms']}ms")
        return results

    async def _fetch_items(
        self, service: RemoteItemService, item_filter: Optional[ItemFilter]
    ) -> List[Dict[str, Any]]:
        items = await service.list_items()
        if item_filter is not None and not item_filter.is_empty:
            selected = item_filter.apply(items)
            logger.info(f"Filter selected {len(selected)} of {len(items)} {service.name} items")
            return selected
        return items

    async def transfer(
        self,
        options: Optional[RunOptions] = None,
        item_filter: Optional[ItemFilter] = None,
    ) -> Dict[str, Any]:
        """
        Transfer filtered source items to the target.

        In-place mutations read their items from the target instead, so tag
        and rename runs change items where they already live.

        Returns:
            Summary dict with masked instance URLs, filter, timing and the run result

        Raises:
            ConnectivityError: If either instance is unreachable
            RemoteServiceError: If source items or the target snapshot cannot be read
        """
        options = options or RunOptions()
        started = time.monotonic()
        started_at = datetime.now(timezone.utc)

        # In-place mutations (tag, rename) edit items on the target itself
        origin = self.target if self.processor.mutation.in_place else self.source

        await self.test_connectivity()
        items = await self._fetch_items(origin, item_filter)
        existing = await self.target.list_items()
        logger.info(f"Transferring {len(items)} items; target holds {len(existing)} items")

        result = await self.processor.run(items, options, existing=existing)

        return {
            "source": mask_url(self.source.base_url),
            "target": mask_url(self.target.base_url),
            "dry_run": options.dry_run,
            "filter": item_filter.to_dict() if item_filter else None,
            "started_at": started_at.isoformat(),
            "finished_at": datetime.now(timezone.utc).isoformat(),
            "duration_seconds": round(time.monotonic() - started, 3),
            "deduplicator": self.processor.deduplicator.name,
            "validators": [v.name for v in self.validators],
            "mutation": self.processor.mutation.name,
            "items_from": origin.name,
            "http": {"source": self.source.get_stats(), "target": self.target.get_stats()},
            **result.to_dict(),
        }

    async def validate(
        self,
        item_filter: Optional[ItemFilter] = None,
        validators: Optional[Iterable[BaseValidator]] = None,
    ) -> Dict[str, Any]:
        """
        Validate source items without transferring them.

        Returns:
            Dict with totals and, per item with findings, its errors and warnings
        """
        validators = list(validators) if validators is not None else self.validators
        await self.test_connectivity(include_target=False)
        items = await self._fetch_items(self.source, item_filter)

        issues = []
        valid_count = 0
        warning_count = 0
        for item in items:
            errors: List[str] = []
            warnings: List[str] = []
            for validator in validators:
                outcome = validator.validate(item, "pre")
                errors.extend(outcome.errors)
                warnings.extend(outcome.warnings)
            if not errors:
                valid_count += 1
            if warnings:
                warning_count += 1
            if errors or warnings:
                issues.append({
                    "item_id": item.get("id"),
                    "name": item.get("name"),
                    "severity": "error" if errors else "warning",
                    "errors": errors,
                    "warnings": warnings,
                })

        logger.info(f"Validated {len(items)} items: {valid_count} valid, {len(items) - valid_count} invalid")
        return {
            "source": mask_url(self.source.base_url),
            "validators": [v.name for v in validators],
            "total": len(items),
            "valid": valid_count,
            "invalid": len(items) - valid_count,
            "with_warnings": warning_count,
            "issues": issues,
        }

    async def close(self) -> None:
        await self.source.close()
        await self.target.close()
