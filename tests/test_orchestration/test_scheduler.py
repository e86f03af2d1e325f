"""Tests for next_range / RangeScheduler and RangeResequencer."""

import pytest

from erc20_sync.orchestration import RangeResequencer, RangeScheduler, next_range
from erc20_sync.shared.models import BlockRange


class TestNextRange:
    def test_first_and_second_window(self):
        first = next_range(checkpoint=99, tip=250, max_window=100, confirmations=0)
        assert first == BlockRange(100, 199)

        second = next_range(checkpoint=first.end, tip=250, max_window=100, confirmations=0)
        assert second == BlockRange(200, 250)

    def test_confirmation_lag_caps_window(self):
        assert next_range(99, 256, 100, 6) == BlockRange(100, 199)
        assert next_range(199, 256, 100, 6) == BlockRange(200, 250)

    def test_none_when_caught_up(self):
        assert next_range(250, 256, 100, 6) is None
        assert next_range(250, 250, 100, 0) is None

    def test_safe_tip_saturates_at_zero(self):
        # tip below the lag: only block 0 is ever safe
        assert next_range(-1, 3, 100, 6) == BlockRange(0, 0)
        assert next_range(0, 3, 100, 6) is None

    def test_fresh_chain_starts_at_genesis(self):
        assert next_range(-1, 1_000, 10, 0) == BlockRange(0, 9)

    def test_window_of_one(self):
        assert next_range(41, 100, 1, 0) == BlockRange(42, 42)

    @pytest.mark.parametrize("window", [0, -5])
    def test_rejects_non_positive_window(self, window):
        with pytest.raises(ValueError, match="max_window"):
            next_range(0, 100, window, 0)

    def test_rejects_checkpoint_below_minus_one(self):
        with pytest.raises(ValueError, match="checkpoint"):
            next_range(-2, 100, 10, 0)

    @pytest.mark.parametrize(
        "checkpoint,tip,window,confirmations",
        [(99, 250, 100, 0), (-1, 57, 7, 6), (0, 1_000, 33, 12), (500, 501, 3, 0)],
    )
    def test_repeated_application_covers_to_safe_tip(
        self, checkpoint, tip, window, confirmations
    ):
        safe_tip = max(tip - confirmations, 0)
        covered = []
        current = checkpoint
        while (block_range := next_range(current, tip, window, confirmations)) is not None:
            assert block_range.start == current + 1
            assert block_range.size <= window
            covered.append(block_range)
            current = block_range.end

        assert current == max(safe_tip, checkpoint)


class TestRangeScheduler:
    def test_uses_configured_confirmations(self):
        scheduler = RangeScheduler(confirmations=6)

        assert scheduler.safe_tip(256) == 250
        assert scheduler.next_range(99, 256, 100) == BlockRange(100, 199)

    def test_rejects_negative_confirmations(self):
        with pytest.raises(ValueError):
            RangeScheduler(confirmations=-1)


class TestRangeResequencer:
    def test_in_order_completion_advances_each_time(self):
        reseq = RangeResequencer(99)

        assert reseq.complete(BlockRange(100, 199)) == 199
        assert reseq.complete(BlockRange(200, 250)) == 250

    def test_out_of_order_completion_waits_for_gap(self):
        reseq = RangeResequencer(99)

        assert reseq.complete(BlockRange(200, 299)) is None
        assert reseq.complete(BlockRange(300, 310)) is None
        assert reseq.pending == 2

        assert reseq.complete(BlockRange(100, 199)) == 310
        assert reseq.pending == 0

    def test_already_covered_range_is_ignored(self):
        reseq = RangeResequencer(199)

        assert reseq.complete(BlockRange(100, 199)) is None
        assert reseq.frontier == 199

    def test_overlap_with_frontier_is_rejected(self):
        reseq = RangeResequencer(150)

        with pytest.raises(ValueError, match="overlaps"):
            reseq.complete(BlockRange(100, 199))
