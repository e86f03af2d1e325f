"""Reorders out-of-order stored ranges into a contiguous checkpoint frontier."""

from erc20_sync.shared.models import BlockRange


class RangeResequencer:
    """
    Tracks stored ranges and releases only the contiguous prefix.

    Ranges must tile the block space without overlap, starting right after
    the checkpoint the resequencer was created with.
    """

    def __init__(self, checkpoint: int):
        self.frontier = checkpoint
        self._pending: dict[int, BlockRange] = {}

    @property
    def pending(self) -> int:
        return len(self._pending)

    def complete(self, block_range: BlockRange) -> int | None:
        """
        Mark ``block_range`` as durably stored.

        Returns:
            The new frontier if it moved, else None
        """
        if block_range.end <= self.frontier:
            return None
        if block_range.start <= self.frontier:
            raise ValueError(
                f"Range {block_range} overlaps frontier {self.frontier}"
            )
        self._pending[block_range.start] = block_range

        moved = False
        while self.frontier + 1 in self._pending:
            self.frontier = self._pending.pop(self.frontier + 1).end
            moved = True
        return self.frontier if moved else None
