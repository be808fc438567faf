from .connection_handler import ConnectionDescriptor, SnowflakeConnectionHandler
from .failed_queries import FailedQuery, FailedQueryRepository
from .pool_args import PoolSettings, load_pool_settings

__all__ = [
    "ConnectionDescriptor",
    "SnowflakeConnectionHandler",
    "FailedQuery",
    "FailedQueryRepository",
    "PoolSettings",
    "load_pool_settings",
]
