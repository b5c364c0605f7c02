"""Store access helpers."""

from .clickhouse import ClickHouseClient, ClickHouseClientError
from .store import ClickHouseStore, DataStore, MemoryStore, StoreError

__all__ = [
    "ClickHouseClient",
    "ClickHouseClientError",
    "ClickHouseStore",
    "DataStore",
    "MemoryStore",
    "StoreError",
]
