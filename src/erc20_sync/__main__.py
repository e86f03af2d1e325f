"""
erc20-sync entry point.

Composition root: loads configuration, wires the chain client, decoder and
SQLite repositories into a SyncEngine and runs it until SIGINT/SIGTERM.

Exit codes:
    0  clean shutdown
    1  fatal sync failure
    2  invalid configuration or wrong network
"""

import argparse
import asyncio
import signal
import sys

from dotenv import load_dotenv

from erc20_sync.config import SyncSettings, get_config
from erc20_sync.infrastructure.observability import (
    get_infrastructure_logger,
    setup_logging,
)
from erc20_sync.ingestion.adapters.evm_rpc import JsonRpcChainClient
from erc20_sync.orchestration import SyncEngine, SyncReporter
from erc20_sync.shared.exceptions import ConfigurationError, SyncError
from erc20_sync.storage import CheckpointRepository, SqliteDatabase, TransferRepository
from erc20_sync.transformation import TransferDecoder

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_CONFIG = 2


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="erc20-sync",
        description="Incrementally sync ERC-20 Transfer events into SQLite",
    )
    parser.add_argument(
        "--config-dir",
        default=None,
        help="Directory holding sync.yaml and env/<env>.yaml (default: ./config)",
    )
    parser.add_argument("--log-level", default=None, help="Override LOG_LEVEL")
    parser.add_argument(
        "--console-logs",
        action="store_true",
        help="Human-readable logs instead of JSON",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Log every completed range instead of a periodic summary",
    )
    return parser.parse_args(argv)


async def run_sync(settings: SyncSettings, verbose: bool = False) -> None:
    """Build the components, run the engine and release resources."""
    log = get_infrastructure_logger("entrypoint")

    db = SqliteDatabase(settings.storage.db_path)
    client = JsonRpcChainClient(settings.rpc_client_config())
    engine = SyncEngine(
        chain_client=client,
        decoder=TransferDecoder(settings.chain.chain_id),
        checkpoints=CheckpointRepository(db),
        transfers=TransferRepository(db),
        config=settings.engine_config(),
        reporter=SyncReporter(verbose=verbose),
    )

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, engine.stop)
        except NotImplementedError:
            # add_signal_handler is unavailable on Windows event loops
            signal.signal(sig, lambda *_: loop.call_soon_threadsafe(engine.stop))

    try:
        await db.connect()
        await engine.run()
    finally:
        await client.close()
        await db.close()
        log.info("resources_released")


def main(argv: list[str] | None = None) -> int:
    load_dotenv()
    args = parse_args(argv)

    # Bootstrap logging so configuration errors are reported
    setup_logging(level=args.log_level or "INFO", json_logs=not args.console_logs)
    log = get_infrastructure_logger("entrypoint")

    try:
        settings = get_config(args.config_dir)
    except ConfigurationError as e:
        log.error("configuration_invalid", error=str(e), **e.context())
        return EXIT_CONFIG

    setup_logging(
        level=args.log_level or settings.logging.level,
        json_logs=settings.logging.json_logs and not args.console_logs,
    )
    log = get_infrastructure_logger("entrypoint")
    log.info(
        "sync_configured",
        rpc_url=settings.rpc.url,
        chain_id=settings.chain.chain_id,
        token_address=settings.chain.token_address,
        start_block=settings.sync.start_block,
        db_path=settings.storage.db_path,
        env=settings.env,
    )

    try:
        asyncio.run(run_sync(settings, verbose=args.verbose))
    except ConfigurationError as e:
        log.error("sync_aborted", error=str(e), **e.context())
        return EXIT_CONFIG
    except SyncError as e:
        log.error("sync_aborted", error=str(e), **e.context())
        return EXIT_FAILURE
    except KeyboardInterrupt:
        log.info("sync_interrupted")
        return EXIT_OK

    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
