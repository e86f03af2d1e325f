"""
Sync Engine - Incremental ERC-20 Transfer Sync
===============================================

Continuous fetch -> decode -> persist pipeline over one chain.

    fetch stage ──Queue──> decode workers (N) ──Queue──> persist stage
        │                                                    │
    tip polling, range scheduling,             store batch, resequence,
    transport backoff, window shrink           advance checkpoint (CAS)

Ordering guarantees:
- A range's events are stored before the checkpoint covers it
- The checkpoint only advances over contiguous stored ranges
- Stop requests are honored between items; an in-progress persist completes
"""

import asyncio
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

from erc20_sync.common.retry_handler import RetryHandler
from erc20_sync.config.value_objects import EngineConfig
from erc20_sync.infrastructure.observability import get_orchestration_logger
from erc20_sync.ingestion.ports.chain import IChainClient
from erc20_sync.orchestration.ports import (
    DecodedRange,
    FetchedRange,
    ICheckpointStore,
    IEventDecoder,
    IEventStore,
    SyncState,
)
from erc20_sync.orchestration.reporter import SyncReporter
from erc20_sync.orchestration.resequencer import RangeResequencer
from erc20_sync.orchestration.scheduler import RangeScheduler
from erc20_sync.shared.exceptions import (
    ConfigurationError,
    InvalidRangeError,
    RangeShrinkExhaustedError,
    StorageError,
    TransportError,
)
from erc20_sync.shared.models import BlockRange, RawLog

T = TypeVar("T")


class SyncEngine:
    """
    Drives the transfer sync for one chain until stopped or a fatal error.

    Usage:
        >>> engine = SyncEngine(client, decoder, checkpoints, transfers, config)
        >>> await engine.run()  # returns after engine.stop(), raises on fatal errors
    """

    def __init__(
        self,
        chain_client: IChainClient,
        decoder: IEventDecoder,
        checkpoints: ICheckpointStore,
        transfers: IEventStore,
        config: EngineConfig,
        reporter: SyncReporter | None = None,
    ):
        if config.max_window < 1:
            raise ValueError(f"max_window must be >= 1, got {config.max_window}")
        if config.decode_workers < 1:
            raise ValueError(f"decode_workers must be >= 1, got {config.decode_workers}")

        self.chain_client = chain_client
        self.decoder = decoder
        self.checkpoints = checkpoints
        self.transfers = transfers
        self.config = config
        self.reporter = reporter or SyncReporter()
        self.scheduler = RangeScheduler(config.confirmations)
        self.transport_retry = RetryHandler(config.transport_retry)
        self.storage_retry = RetryHandler(config.storage_retry)

        self.window = config.max_window
        self._state = SyncState.STARTING
        self._shutdown = asyncio.Event()
        self.log = get_orchestration_logger(chain_id=config.chain_id)

    @property
    def state(self) -> SyncState:
        return self._state

    def stop(self) -> None:
        """Request a graceful shutdown at the next safe boundary."""
        if not self._shutdown.is_set():
            self.log.info("shutdown_requested", state=self._state.value)
            self._shutdown.set()

    def _set_state(self, state: SyncState, **context: Any) -> None:
        self._state = state
        self.log.debug("state_transition", state=state.value, **context)

    # ========================================================================
    # Lifecycle
    # ========================================================================

    async def run(self) -> None:
        """
        Run the sync until ``stop()`` is called.

        Raises:
            ConfigurationError: Endpoint reports a different chain id
            RangeShrinkExhaustedError: Endpoint rejects every window size
            StorageError: Durable store failed past its retry budget
        """
        self.log.info(
            "sync_starting",
            start_block=self.config.start_block,
            max_window=self.config.max_window,
            confirmations=self.config.confirmations,
        )
        try:
            checkpoint = await self._startup()
            if checkpoint is not None and not self._shutdown.is_set():
                await self._run_pipeline(checkpoint)
        except Exception as e:
            self._state = SyncState.FAILED
            context = e.context() if hasattr(e, "context") else {"error_type": type(e).__name__}
            self.log.error("sync_failed", error=str(e), **context)
            self.reporter.log_summary(SyncState.FAILED, error=e)
            raise

        self._set_state(SyncState.SHUTTING_DOWN)
        self._state = SyncState.STOPPED
        self.log.info("sync_stopped", checkpoint=self.reporter.stats.checkpoint)
        self.reporter.log_summary(SyncState.STOPPED)

    async def _startup(self) -> int | None:
        """Verify the network and seed the checkpoint.

        Returns:
            Checkpoint to resume from, or None if stopped during startup
        """
        self._set_state(SyncState.STARTING)
        chain_id = self.config.chain_id

        remote_chain_id = await self._with_transport_retry("chain_id", self.chain_client.chain_id)
        if remote_chain_id is None:
            return None
        if remote_chain_id != chain_id:
            raise ConfigurationError(
                f"Chain id mismatch: endpoint reports {remote_chain_id}, configured {chain_id}",
                stage=SyncState.STARTING.value,
            )

        await self._with_storage_retry(
            "seed_checkpoint",
            lambda: self.checkpoints.seed_if_absent_or_lower(
                chain_id, self.config.start_block - 1
            ),
        )
        stored = await self._with_storage_retry(
            "load_checkpoint", lambda: self.checkpoints.load(chain_id)
        )
        if stored is None:
            raise StorageError(
                f"Checkpoint for chain {chain_id} missing after seeding",
                stage=SyncState.STARTING.value,
            )
        checkpoint = stored.block_number

        self.reporter.stats.checkpoint = checkpoint
        self.log.info("sync_resuming", checkpoint=checkpoint, next_block=checkpoint + 1)
        return checkpoint

    async def _run_pipeline(self, checkpoint: int) -> None:
        """Run all stages; the first stage failure cancels the rest and is raised."""
        fetched: asyncio.Queue[FetchedRange] = asyncio.Queue(maxsize=self.config.queue_capacity)
        decoded: asyncio.Queue[DecodedRange] = asyncio.Queue(maxsize=self.config.queue_capacity)

        tasks = [asyncio.create_task(self._fetch_stage(checkpoint, fetched), name="fetch")]
        tasks.extend(
            asyncio.create_task(self._decode_stage(fetched, decoded), name=f"decode-{i}")
            for i in range(self.config.decode_workers)
        )
        tasks.append(asyncio.create_task(self._persist_stage(checkpoint, decoded), name="persist"))

        try:
            done, _ = await asyncio.wait(tasks, return_when=asyncio.FIRST_EXCEPTION)
        finally:
            for task in tasks:
                if not task.done():
                    task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)

        for task in done:
            if not task.cancelled() and task.exception() is not None:
                raise task.exception()

    # ========================================================================
    # Stages
    # ========================================================================

    async def _fetch_stage(self, checkpoint: int, out: asyncio.Queue) -> None:
        cursor = checkpoint
        while not self._shutdown.is_set():
            self._set_state(SyncState.POLLING, cursor=cursor)
            tip = await self._with_transport_retry("latest_block", self.chain_client.latest_block)
            if tip is None:
                return
            self.reporter.stats.tip = tip

            block_range = self.scheduler.next_range(cursor, tip, self.window)
            if block_range is None:
                self._set_state(SyncState.IDLE, cursor=cursor, tip=tip)
                await self._sleep(self.config.poll_interval)
                continue

            while block_range is not None:
                if self._shutdown.is_set():
                    return
                self._set_state(SyncState.FETCHING, block_range=str(block_range))
                result = await self._fetch_with_shrink(block_range)
                if result is None:
                    return
                fetched_range, logs = result
                if not await self._put(out, FetchedRange(fetched_range, logs, tip)):
                    return
                cursor = fetched_range.end
                block_range = self.scheduler.next_range(cursor, tip, self.window)

    async def _decode_stage(self, source: asyncio.Queue, out: asyncio.Queue) -> None:
        while not self._shutdown.is_set():
            item: FetchedRange | None = await self._get(source)
            if item is None:
                return
            self._set_state(SyncState.DECODING, block_range=str(item.block_range))
            result = self.decoder.decode_batch(item.logs)
            decoded = DecodedRange(
                block_range=item.block_range,
                events=result.events,
                fetched=len(item.logs),
                malformed=result.malformed_count,
                tip=item.tip,
            )
            if not await self._put(out, decoded):
                return

    async def _persist_stage(self, checkpoint: int, source: asyncio.Queue) -> None:
        chain_id = self.config.chain_id
        resequencer = RangeResequencer(checkpoint)
        stored = checkpoint

        while not self._shutdown.is_set():
            item: DecodedRange | None = await self._get(source)
            if item is None:
                return

            self._set_state(SyncState.PERSISTING, block_range=str(item.block_range))
            inserted = await self._with_storage_retry(
                "store_batch",
                lambda: self.transfers.store_batch(item.events),
                item.block_range,
            )

            frontier = resequencer.complete(item.block_range)
            if frontier is not None:
                self._set_state(SyncState.ADVANCING, checkpoint=frontier)
                expected = stored
                await self._with_storage_retry(
                    "advance_checkpoint",
                    lambda: self.checkpoints.advance(chain_id, frontier, expected=expected),
                    item.block_range,
                )
                stored = frontier

            self.reporter.record_range(item, inserted, checkpoint=stored)

    # ========================================================================
    # Fetch with backoff and window shrinking
    # ========================================================================

    async def _fetch_with_shrink(
        self, block_range: BlockRange
    ) -> tuple[BlockRange, list[RawLog]] | None:
        """
        Fetch logs, halving the window while the endpoint rejects it.

        The shrunk window is kept for all later ranges.

        Returns:
            The range actually fetched and its logs, or None on shutdown
        """
        shrinks = 0
        while True:
            current = block_range
            try:
                logs = await self._with_transport_retry(
                    "fetch_logs",
                    lambda: self.chain_client.fetch_logs(current.start, current.end),
                    current,
                )
            except InvalidRangeError as e:
                shrinks += 1
                if shrinks > self.config.max_shrink_attempts:
                    raise RangeShrinkExhaustedError(
                        f"Endpoint rejected {shrinks} consecutive windows "
                        f"(smallest {current.size} blocks)",
                        stage=SyncState.FETCHING.value,
                        block_range=current,
                        cause=e,
                    ) from e
                self.window = max(self.window // 2, 1)
                block_range = BlockRange(
                    current.start, min(current.start + self.window - 1, current.end)
                )
                self.reporter.record_shrink()
                self.log.warning(
                    "window_shrunk",
                    rejected=str(current),
                    retry=str(block_range),
                    window=self.window,
                    attempt=shrinks,
                )
                continue

            if logs is None:
                return None
            return current, logs

    # ========================================================================
    # Retry helpers
    # ========================================================================

    async def _with_transport_retry(
        self,
        operation: str,
        call: Callable[[], Awaitable[T]],
        block_range: BlockRange | None = None,
    ) -> T | None:
        """
        Call until success, backing off on TransportError.

        InvalidRangeError is not retried here; it is raised to the caller.

        Returns:
            The call result, or None if shutdown was requested
        """
        attempt = 0
        while not self._shutdown.is_set():
            try:
                return await call()
            except InvalidRangeError:
                raise
            except TransportError as e:
                delay = self.transport_retry.get_retry_delay(attempt)
                attempt += 1
                if self.transport_retry.exhausted(attempt):
                    raise
                self.reporter.record_transport_retry()
                self.log.warning(
                    "transport_error_retrying",
                    operation=operation,
                    attempt=attempt,
                    delay=round(delay, 2),
                    block_range=str(block_range) if block_range else None,
                    error=e.message,
                    status_code=e.status_code,
                )
                await self._sleep(delay)
        return None

    async def _with_storage_retry(
        self,
        operation: str,
        call: Callable[[], Awaitable[T]],
        block_range: BlockRange | None = None,
    ) -> T:
        """
        Call with a bounded number of retries on StorageError.

        Backoff is not cut short by stop(): the write in progress is allowed
        to finish, so each retry gets its full delay.

        Raises:
            StorageError: Fatal subclasses immediately, others once retries run out
        """
        attempt = 0
        while True:
            try:
                return await call()
            except StorageError as e:
                if e.fatal:
                    raise
                attempt += 1
                if self.storage_retry.exhausted(attempt):
                    raise StorageError(
                        f"{operation} failed after {attempt} attempts",
                        stage=self._state.value,
                        block_range=block_range,
                        cause=e,
                    ) from e
                delay = self.storage_retry.get_retry_delay(attempt - 1)
                self.reporter.record_storage_retry()
                self.log.warning(
                    "storage_error_retrying",
                    operation=operation,
                    attempt=attempt,
                    delay=round(delay, 2),
                    error=str(e),
                )
                await asyncio.sleep(delay)

    # ========================================================================
    # Shutdown-aware primitives
    # ========================================================================

    async def _sleep(self, seconds: float) -> None:
        """Sleep, waking early on shutdown."""
        if seconds <= 0:
            await asyncio.sleep(0)
            return
        try:
            await asyncio.wait_for(self._shutdown.wait(), timeout=seconds)
        except asyncio.TimeoutError:
            pass

    async def _race_shutdown(self, operation: Awaitable[T]) -> tuple[bool, T | None]:
        op = asyncio.ensure_future(operation)
        stop = asyncio.ensure_future(self._shutdown.wait())
        try:
            await asyncio.wait({op, stop}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            stop.cancel()
            if not op.done():
                op.cancel()
        if op.done() and not op.cancelled():
            return True, op.result()
        return False, None

    async def _get(self, queue: asyncio.Queue) -> Any | None:
        """Next queue item, or None on shutdown (queued items are dropped)."""
        completed, item = await self._race_shutdown(queue.get())
        if not completed or self._shutdown.is_set():
            return None
        return item

    async def _put(self, queue: asyncio.Queue, item: Any) -> bool:
        """Put with backpressure; False if shutdown was requested first."""
        completed, _ = await self._race_shutdown(queue.put(item))
        return completed and not self._shutdown.is_set()
