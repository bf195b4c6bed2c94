# ============================================================================
# Workflow Transfer - Batch Processor
# ============================================================================
"""
Batch mutation engine.

Runs every item through the same pipeline under bounded concurrency:

    dedup check -> pre-validation -> credential filter -> dry run | mutate
    (with classified retry) -> optional post-validation

Each item ends with exactly one ``ItemOutcome``; outcomes are returned in
input order together with aggregate ``BatchStats``. A fixed pool of
asyncio workers pulls from a shared queue. Statistics and outcomes are
updated under one lock, and every ``batch_size`` completed items the
running success rate is compared with ``rollback_threshold``. When it drops
below, the run stops: queued items are recorded as ``skipped-filtered`` and
the result reports ``aborted`` with the reason.

Usage:
    processor = BatchProcessor(target_service, deduplicator=FuzzyDeduplicator())
    result = await processor.run(items, RunOptions(concurrency_limit=5))
    if result.aborted:
        rollback(result.outcomes)
"""

import asyncio
import logging
import time
from collections import deque
from collections.abc import Mapping
from datetime import datetime, timezone
from typing import Any, Callable, Deque, Iterable, List, Optional, Sequence, Tuple

from ..core.errors import ErrorCategory, InvalidArgumentError, RemoteServiceError
from ..dedup.base import BaseDeduplicator
from ..dedup.exact import ExactDeduplicator
from ..models.item_models import has_credentials
from ..models.result_models import (
    BatchStats,
    ErrorInfo,
    ItemOutcome,
    ItemStatus,
    MutationResult,
    RunResult,
    RunState,
    ValidationResult,
)
from ..models.run_models import PacingPolicy, RetryPolicy, RunOptions
from ..validators.base import BaseValidator
from ..validators.integrity import IntegrityValidator
from ..validators.schema import SchemaValidator
from .mutations import ItemMutation, RecreateMutation
from .remote_item_service import RemoteItemService

logger = logging.getLogger("workflow_transfer.batch_processor")


class AdaptivePacer:
    """Rolling-latency controller for the delay before each mutate call."""

    def __init__(self, policy: PacingPolicy):
        self.policy = policy
        self.delay = policy.min_delay_seconds if policy.enabled else 0.0
        self._samples: Deque[float] = deque(maxlen=policy.window)

    def record(self, latency_ms: float) -> None:
        self._samples.append(latency_ms)

    @property
    def average_ms(self) -> Optional[float]:
        if not self._samples:
            return None
        return sum(self._samples) / len(self._samples)

    def adjust(self) -> float:
        average = self.average_ms
        if not self.policy.enabled or average is None:
            return self.delay
        if average > self.policy.high_latency_ms:
            self.delay = min(self.delay + self.policy.step_seconds, self.policy.max_delay_seconds)
        elif average < self.policy.low_latency_ms:
            self.delay = max(self.delay - self.policy.step_seconds, self.policy.min_delay_seconds)
        return self.delay


class BatchProcessor:
    """
    Applies one mutation to a batch of items against a remote service.

    A processor runs one batch at a time; a second ``run`` while the first
    is in progress raises ``RuntimeError``.

    Args:
        remote_service: Destination service (snapshot source and mutation target)
        deduplicator: Dedup strategy; exact matching by default
        validators: Validators applied in order; schema and integrity by default
        mutation: Mutation strategy; re-create by default
        on_outcome: Optional callback invoked with each recorded ``ItemOutcome``;
            exceptions it raises are logged and do not stop the run
    """

    def __init__(
        self,
        remote_service: RemoteItemService,
        deduplicator: Optional[BaseDeduplicator] = None,
        validators: Optional[Iterable[BaseValidator]] = None,
        mutation: Optional[ItemMutation] = None,
        on_outcome: Optional[Callable[[ItemOutcome], None]] = None,
    ):
        self.remote_service = remote_service
        self.deduplicator = deduplicator or ExactDeduplicator()
        self.validators: List[BaseValidator] = (
            list(validators) if validators is not None else [SchemaValidator(), IntegrityValidator()]
        )
        self.mutation = mutation or RecreateMutation()
        self.on_outcome = on_outcome
        self._state = RunState.IDLE
        self._cancel_event: Optional[asyncio.Event] = None
        self._abort_reason: Optional[str] = None

    @property
    def state(self) -> RunState:
        return self._state

    def cancel(self, reason: str = "Cancelled: stop requested") -> bool:
        """
        Stop the current run after in-flight items finish.

        Returns:
            True if a run was in progress
        """
        if self._state != RunState.RUNNING:
            return False
        self._stop(reason)
        return True

    def _stop(self, reason: str) -> None:
        if self._abort_reason is None:
            self._abort_reason = reason
            logger.warning(reason)
        self._cancel_event.set()

    # =========================================================================
    # RUN
    # =========================================================================

    async def run(
        self,
        items: Iterable[Any],
        options: Optional[RunOptions] = None,
        existing: Optional[Sequence[Any]] = None,
    ) -> RunResult:
        """
        Process ``items`` and return their outcomes and statistics.

        Args:
            items: Items to process
            options: Run options; defaults when omitted
            existing: Destination snapshot for dedup; fetched from the remote
                service when omitted

        Returns:
            RunResult with ordered outcomes, stats and the abort reason if any

        Raises:
            RuntimeError: If this processor is already running
            RemoteServiceError: If the destination snapshot cannot be fetched
        """
        if self._state == RunState.RUNNING:
            raise RuntimeError("A run is already in progress on this processor")

        options = options or RunOptions()
        items = list(items)
        self._state = RunState.RUNNING
        self._cancel_event = asyncio.Event()
        self._abort_reason = None
        self._lock = asyncio.Lock()
        self._stats = BatchStats(total=len(items))
        self._outcomes: List[Optional[ItemOutcome]] = [None] * len(items)
        self._completed = 0
        self._pacer = AdaptivePacer(options.pacing)
        started_at = datetime.now(timezone.utc)

        logger.info(
            f"Starting run: {len(items)} items, concurrency={options.concurrency_limit}, "
            f"dry_run={options.dry_run}, deduplicator={self.deduplicator.name}, "
            f"validators={[v.name for v in self.validators]}, mutation={self.mutation.name}"
        )

        try:
            snapshot = list(existing) if existing is not None else await self.remote_service.list_items()
        except RemoteServiceError as e:
            self._state = RunState.ABORTED
            logger.error(f"Could not fetch destination snapshot: {e}")
            raise

        queue: asyncio.Queue = asyncio.Queue()
        for index, item in enumerate(items):
            queue.put_nowait((index, item))

        worker_count = min(options.concurrency_limit, len(items))
        workers = [
            asyncio.create_task(self._worker(queue, snapshot, options))
            for _ in range(worker_count)
        ]
        try:
            await asyncio.gather(*workers)
        except BaseException:
            self._state = RunState.ABORTED
            for worker in workers:
                worker.cancel()
            await asyncio.gather(*workers, return_exceptions=True)
            raise

        for index, outcome in enumerate(self._outcomes):
            if outcome is None:
                item_id, name = _identity(items[index])
                self._record_sync(index, ItemOutcome(
                    item_id=item_id,
                    name=name,
                    status=ItemStatus.SKIPPED_FILTERED,
                    reason=self._abort_reason or "Not processed",
                ))

        self._state = RunState.ABORTED if self._abort_reason else RunState.COMPLETED
        result = RunResult(
            state=self._state,
            stats=self._stats,
            outcomes=list(self._outcomes),
            abort_reason=self._abort_reason,
            started_at=started_at,
            finished_at=datetime.now(timezone.utc),
        )
        logger.info(
            f"Run {result.state.value}: {self._stats.succeeded} transferred, {self._stats.skipped} skipped, "
            f"{self._stats.failed} failed, {self._stats.dry_run} dry-run, "
            f"{self._stats.total_retries} retries in {result.duration_seconds:.2f}s"
        )
        return result

    async def _worker(self, queue: asyncio.Queue, snapshot: List[Any], options: RunOptions) -> None:
        while not self._cancel_event.is_set():
            try:
                index, item = queue.get_nowait()
            except asyncio.QueueEmpty:
                return
            try:
                outcome = await self._process_item(item, snapshot, options)
            except Exception as e:
                logger.exception(f"Unexpected error processing item at index {index}: {e}")
                item_id, name = _identity(item)
                outcome = ItemOutcome(
                    item_id=item_id,
                    name=name,
                    status=ItemStatus.FAILED,
                    reason=f"Unexpected error: {e}",
                    error=ErrorInfo(ErrorCategory.CLIENT_ERROR, str(e)),
                )
            async with self._lock:
                self._record_sync(index, outcome)
                if self._completed % options.checkpoint_size == 0:
                    self._checkpoint(options)

    def _record_sync(self, index: int, outcome: ItemOutcome) -> None:
        self._outcomes[index] = outcome
        self._stats.record(outcome)
        self._completed += 1
        if self.on_outcome is not None:
            try:
                self.on_outcome(outcome)
            except Exception:
                logger.exception(f"on_outcome callback failed for item {outcome.item_id}")

    def _checkpoint(self, options: RunOptions) -> None:
        rate = self._stats.success_rate
        delay = self._pacer.adjust()
        logger.debug(
            f"Checkpoint at {self._completed}/{self._stats.total}: success rate {rate:.1%}, pacing delay {delay:.2f}s"
        )
        if rate < options.rollback_threshold:
            self._stop(
                f"Aborted: failure rate below threshold "
                f"(success rate {rate:.1%} < {options.rollback_threshold:.1%})"
            )

    # =========================================================================
    # PER-ITEM PIPELINE
    # =========================================================================

    async def _process_item(self, item: Any, snapshot: List[Any], options: RunOptions) -> ItemOutcome:
        started = time.monotonic()
        item_id, name = _identity(item)

        def outcome(status: ItemStatus, **kwargs) -> ItemOutcome:
            return ItemOutcome(
                item_id=item_id,
                name=name,
                status=status,
                duration_ms=(time.monotonic() - started) * 1000,
                **kwargs,
            )

        try:
            duplicate = self.deduplicator.check(item, self._dedup_pool(item, snapshot))
        except InvalidArgumentError as e:
            return outcome(
                ItemStatus.SKIPPED_INVALID,
                reason=str(e),
                error=ErrorInfo(ErrorCategory.INVALID_ARGUMENT, str(e)),
            )
        if duplicate.is_duplicate:
            return outcome(ItemStatus.SKIPPED_DUPLICATE, reason=duplicate.reason)

        validation = self._validate(item, "pre")
        if not validation.valid:
            message = "; ".join(validation.errors)
            return outcome(
                ItemStatus.SKIPPED_INVALID,
                reason=f"Validation failed: {message}",
                error=ErrorInfo(ErrorCategory.VALIDATION_FAILURE, message),
            )

        if options.skip_credentials and has_credentials(item):
            return outcome(ItemStatus.SKIPPED_FILTERED, reason="Item uses credentials (skip_credentials enabled)")

        if options.dry_run:
            return outcome(ItemStatus.DRY_RUN, reason=self.mutation.describe(item))

        result, attempts, abandoned = await self._mutate_with_retry(item, options.retry_policy)

        if result.ok:
            returned = result.item or {}
            reason = None
            if options.post_validate:
                post = self._validate(returned, "post")
                if not post.valid:
                    reason = "Transferred with warnings: " + "; ".join(post.errors)
            return outcome(
                ItemStatus.TRANSFERRED,
                reason=reason,
                attempts=attempts,
                target_id=str(returned["id"]) if returned.get("id") is not None else None,
            )
        if result.category == ErrorCategory.CONFLICT:
            return outcome(ItemStatus.TRANSFERRED, reason="Already applied (409 conflict)", attempts=attempts)
        if result.category == ErrorCategory.NOT_FOUND:
            return outcome(
                ItemStatus.SKIPPED_FILTERED,
                reason="Item not found on remote (404)",
                error=result.to_error(),
                attempts=attempts,
            )

        reason = result.message or result.category.value
        if abandoned:
            reason = f"Retry abandoned, run stopped: {reason}"
        elif result.category.is_retryable:
            reason = f"Retries exhausted after {attempts} attempts: {reason}"
        return outcome(ItemStatus.FAILED, reason=reason, error=result.to_error(), attempts=attempts)

    def _dedup_pool(self, item: Any, snapshot: List[Any]) -> List[Any]:
        """Snapshot to dedup against; in-place mutations never match the item itself."""
        if not self.mutation.in_place or not isinstance(item, Mapping) or item.get("id") is None:
            return snapshot
        item_id = str(item["id"])
        return [
            entry for entry in snapshot
            if not (isinstance(entry, Mapping) and str(entry.get("id")) == item_id)
        ]

    def _validate(self, item: Any, phase: str) -> ValidationResult:
        result = ValidationResult()
        for validator in self.validators:
            try:
                result = result.merge(validator.validate(item, phase))
            except Exception as e:
                logger.exception(f"Validator '{validator.name}' raised during {phase} validation")
                result.errors.append(f"Validator '{validator.name}' error: {e}")
        return result

    async def _mutate_with_retry(self, item: Any, policy: RetryPolicy) -> Tuple[MutationResult, int, bool]:
        """
        Apply the mutation, retrying retryable categories per ``policy``.

        Returns:
            ``(last_result, attempts, abandoned)`` where ``abandoned`` means
            the run stopped while a retry was pending
        """
        attempts = 0
        while True:
            if attempts > 0:
                async with self._lock:
                    self._stats.total_retries += 1
            await self._pace()
            attempts += 1
            call_started = time.monotonic()
            result = await self.mutation.apply(self.remote_service, item)
            self._pacer.record((time.monotonic() - call_started) * 1000)

            if result.ok or not result.category.is_retryable:
                return result, attempts, False
            if attempts >= policy.max_attempts:
                logger.warning(f"Giving up on '{_identity(item)[1]}' after {attempts} attempts: {result.message}")
                return result, attempts, False
            if self._cancel_event.is_set():
                return result, attempts, True

            delay = policy.delay_for(attempts - 1, result.retry_after)
            logger.info(
                f"Retrying '{_identity(item)[1]}' in {delay:.2f}s "
                f"(attempt {attempts}/{policy.max_attempts}, {result.category.value})"
            )
            if await self._wait(delay):
                return result, attempts, True

    async def _pace(self) -> None:
        if self._pacer.delay > 0 and not self._cancel_event.is_set():
            await self._wait(self._pacer.delay)

    async def _wait(self, delay: float) -> bool:
        """Sleep up to ``delay`` seconds; returns True if the run was stopped meanwhile."""
        if delay <= 0:
            return self._cancel_event.is_set()
        try:
            await asyncio.wait_for(self._cancel_event.wait(), timeout=delay)
            return True
        except asyncio.TimeoutError:
            return False


def _identity(item: Any) -> Tuple[Optional[str], Optional[str]]:
    if not isinstance(item, Mapping):
        return None, None
    item_id = item.get("id")
    name = item.get("name")
    return (
        str(item_id) if item_id is not None else None,
        name if isinstance(name, str) else None,
    )
