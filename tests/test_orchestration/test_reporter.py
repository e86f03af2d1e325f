"""Tests for SyncReporter counters and summary output."""

import logging

from erc20_sync.orchestration import DecodedRange, SyncReporter, SyncState
from erc20_sync.shared.exceptions import StorageError
from erc20_sync.shared.models import BlockRange
from erc20_sync.transformation import TransferDecoder
from tests.fixtures import CHAIN_ID, make_logs


def decoded_range(start, end, malformed=0, tip=1_000):
    events = TransferDecoder(CHAIN_ID).decode_batch(make_logs(range(start, end + 1))).events
    return DecodedRange(
        block_range=BlockRange(start, end),
        events=events,
        fetched=len(events) + malformed,
        malformed=malformed,
        tip=tip,
    )


class TestSyncReporter:
    def test_record_range_accumulates(self):
        reporter = SyncReporter()

        reporter.record_range(decoded_range(100, 109, malformed=1), inserted=10, checkpoint=109)
        reporter.record_range(decoded_range(110, 119), inserted=4, checkpoint=119)

        stats = reporter.stats
        assert stats.ranges_completed == 2
        assert stats.logs_fetched == 21
        assert stats.events_decoded == 20
        assert stats.malformed_logs == 1
        assert stats.rows_inserted == 14
        assert stats.duplicates == 6
        assert stats.checkpoint == 119
        assert stats.lag == 881

    def test_retry_counters(self):
        reporter = SyncReporter()
        reporter.record_shrink()
        reporter.record_transport_retry()
        reporter.record_transport_retry()
        reporter.record_storage_retry()

        assert reporter.stats.window_shrinks == 1
        assert reporter.stats.transport_retries == 2
        assert reporter.stats.storage_retries == 1

    def test_lag_unknown_before_progress(self):
        assert SyncReporter().stats.lag is None

    def test_summary_includes_fatal_error(self, caplog):
        reporter = SyncReporter()
        error = StorageError("store_batch failed after 4 attempts", stage="persisting")

        with caplog.at_level(logging.INFO, logger="erc20_sync.orchestration.reporter"):
            reporter.log_summary(SyncState.FAILED, error=error)

        assert "SYNC SUMMARY (failed)" in caplog.text
        assert "store_batch failed after 4 attempts" in caplog.text

    def test_verbose_logs_every_range_at_info(self, caplog):
        reporter = SyncReporter(verbose=True)

        with caplog.at_level(logging.INFO, logger="erc20_sync.orchestration.reporter"):
            reporter.record_range(decoded_range(100, 101), inserted=2, checkpoint=101)

        assert "range [100, 101]" in caplog.text
