from .relational import MIGRATIONS, SCHEMA_VERSION, TRANSFER_COLUMNS

__all__ = ["MIGRATIONS", "SCHEMA_VERSION", "TRANSFER_COLUMNS"]
