from .transfer import MAX_SQL_INTEGER, BlockRange, Checkpoint, RawLog, TransferEvent

__all__ = ["MAX_SQL_INTEGER", "BlockRange", "Checkpoint", "RawLog", "TransferEvent"]
