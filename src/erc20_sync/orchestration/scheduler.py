"""
Block-range scheduler for the sync loop.

Responsibility: Compute the next block window behind the confirmation lag.
Does NOT fetch logs or track progress.
"""

import logging

from erc20_sync.shared.models import BlockRange

logger = logging.getLogger(__name__)

DEFAULT_CONFIRMATIONS = 6


def next_range(
    checkpoint: int, tip: int, max_window: int, confirmations: int
) -> BlockRange | None:
    """
    Next window to fetch, or None if nothing new is safe yet.

    Args:
        checkpoint: Last persisted block (-1 when nothing is persisted)
        tip: Latest block reported by the chain
        max_window: Maximum number of blocks per window
        confirmations: Blocks to stay behind the tip

    Returns:
        ``[checkpoint + 1, min(checkpoint + max_window, safe_tip)]`` or None
    """
    if max_window < 1:
        raise ValueError(f"max_window must be >= 1, got {max_window}")
    if checkpoint < -1:
        raise ValueError(f"checkpoint must be >= -1, got {checkpoint}")

    safe_tip = max(tip - confirmations, 0)
    start = checkpoint + 1
    if start > safe_tip:
        return None
    return BlockRange(start=start, end=min(checkpoint + max_window, safe_tip))


class RangeScheduler:
    """
    Schedules contiguous block windows behind the chain tip.

    Single Responsibility: Window boundaries only; the window size is owned
    by the caller so it can shrink it on endpoint range limits.
    """

    def __init__(self, confirmations: int = DEFAULT_CONFIRMATIONS):
        """
        Args:
            confirmations: Blocks to stay behind the tip (reorg lag)
        """
        if confirmations < 0:
            raise ValueError(f"confirmations must be >= 0, got {confirmations}")
        self.confirmations = confirmations

    def safe_tip(self, tip: int) -> int:
        return max(tip - self.confirmations, 0)

    def next_range(self, checkpoint: int, tip: int, max_window: int) -> BlockRange | None:
        block_range = next_range(checkpoint, tip, max_window, self.confirmations)
        if block_range is None:
            logger.debug(
                f"No safe range: checkpoint={checkpoint}, safe_tip={self.safe_tip(tip)}"
            )
        return block_range
