"""
Sync reporter for progress logging and summary reporting.

Responsibility: Accumulate counters and log progress/results.
Does NOT make sync decisions or touch storage.
"""

import logging
import time
from dataclasses import dataclass, field

from erc20_sync.orchestration.ports import DecodedRange, SyncState

logger = logging.getLogger(__name__)


@dataclass
class SyncStats:
    """Counters accumulated over one engine run."""

    ranges_completed: int = 0
    logs_fetched: int = 0
    events_decoded: int = 0
    malformed_logs: int = 0
    rows_inserted: int = 0
    duplicates: int = 0
    window_shrinks: int = 0
    transport_retries: int = 0
    storage_retries: int = 0
    checkpoint: int | None = None
    tip: int | None = None
    started_at: float = field(default_factory=time.monotonic)

    @property
    def duration_seconds(self) -> float:
        return time.monotonic() - self.started_at

    @property
    def lag(self) -> int | None:
        if self.checkpoint is None or self.tip is None:
            return None
        return max(self.tip - self.checkpoint, 0)


class SyncReporter:
    """
    Reports sync progress and results.

    Single Responsibility: Format and log progress metrics without making
    sync decisions.
    """

    def __init__(self, verbose: bool = False, progress_every: int = 10):
        """
        Args:
            verbose: Log every range instead of every ``progress_every``-th
            progress_every: Info-level progress cadence in ranges
        """
        self.verbose = verbose
        self.progress_every = max(progress_every, 1)
        self.stats = SyncStats()

    def record_range(self, decoded: DecodedRange, inserted: int, checkpoint: int) -> None:
        """Account for one persisted range and log progress."""
        stats = self.stats
        stats.ranges_completed += 1
        stats.logs_fetched += decoded.fetched
        stats.events_decoded += len(decoded.events)
        stats.malformed_logs += decoded.malformed
        stats.rows_inserted += inserted
        stats.duplicates += len(decoded.events) - inserted
        stats.checkpoint = checkpoint
        stats.tip = decoded.tip

        message = (
            f"📊 range {decoded.block_range}: {decoded.fetched} logs, "
            f"{len(decoded.events)} decoded, {decoded.malformed} malformed, "
            f"{inserted} new rows; checkpoint={checkpoint}, lag={stats.lag}"
        )
        if self.verbose:
            logger.info(message)
        elif stats.ranges_completed % self.progress_every == 0 or decoded.malformed:
            logger.info(message)
        else:
            logger.debug(message)

    def record_shrink(self) -> None:
        self.stats.window_shrinks += 1

    def record_transport_retry(self) -> None:
        self.stats.transport_retries += 1

    def record_storage_retry(self) -> None:
        self.stats.storage_retries += 1

    def log_summary(self, state: SyncState, error: BaseException | None = None) -> None:
        """
        Log final sync summary.

        Args:
            state: Terminal engine state (STOPPED or FAILED)
            error: Fatal error, if the run failed
        """
        stats = self.stats
        logger.info("=" * 80)
        logger.info(f"SYNC SUMMARY ({state.value})")
        logger.info("=" * 80)
        logger.info(f"Ranges completed: {stats.ranges_completed}")
        logger.info(f"Logs fetched: {stats.logs_fetched:,}")
        logger.info(f"  ✅ Decoded: {stats.events_decoded:,}")
        logger.info(f"  ❌ Malformed: {stats.malformed_logs:,}")
        logger.info(f"Rows inserted: {stats.rows_inserted:,} ({stats.duplicates:,} duplicates)")
        logger.info(
            f"Retries: {stats.transport_retries} transport, {stats.storage_retries} storage; "
            f"window shrinks: {stats.window_shrinks}"
        )
        logger.info(f"Checkpoint: {stats.checkpoint} (tip {stats.tip}, lag {stats.lag})")
        logger.info(f"Total duration: {stats.duration_seconds:.1f}s")

        if error is not None:
            logger.error(f"Fatal error: {error}")

        logger.info("=" * 80)
