"""Relational schema for the durable store.

Two tables:
- sync: one checkpoint row per chain
- transfers: decoded Transfer events keyed by (chain_id, tx_hash, log_index)

``value`` is TEXT holding a decimal string: SQLite NUMERIC affinity would
silently coerce uint256 amounts to REAL.
"""

SCHEMA_VERSION = 1

MIGRATIONS: tuple[tuple[int, str, tuple[str, ...]], ...] = (
    (
        1,
        "initial",
        (
            """
            CREATE TABLE IF NOT EXISTS sync (
                chain_id INTEGER NOT NULL,
                block_number INTEGER NOT NULL,
                PRIMARY KEY (chain_id)
            )
            """,
            """
            CREATE TABLE IF NOT EXISTS transfers (
                chain_id INTEGER NOT NULL,
                block_number INTEGER NOT NULL,
                tx_hash CHAR(66) NOT NULL,
                token_address CHAR(42) NOT NULL,
                from_addr CHAR(42) NOT NULL,
                to_addr CHAR(42) NOT NULL,
                value TEXT NOT NULL,
                log_index INTEGER NOT NULL,
                PRIMARY KEY (chain_id, tx_hash, log_index)
            )
            """,
            "CREATE INDEX IF NOT EXISTS idx_block ON transfers(chain_id, block_number)",
            "CREATE INDEX IF NOT EXISTS idx_token ON transfers(chain_id, token_address)",
            "CREATE INDEX IF NOT EXISTS idx_from ON transfers(from_addr)",
            "CREATE INDEX IF NOT EXISTS idx_to ON transfers(to_addr)",
        ),
    ),
)

TRANSFER_COLUMNS = (
    "chain_id",
    "block_number",
    "tx_hash",
    "token_address",
    "from_addr",
    "to_addr",
    "value",
    "log_index",
)
