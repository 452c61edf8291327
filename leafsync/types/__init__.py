# leafsync/types/__init__.py

from .evm import EvmLog, to_int

from .leaf import (
    Leaf,
    SubscriptionFilter,
    TrackedContract,
    Subscribed,
    EndpointError,
    SubscribeResult,
)

from .config import (
    BlockParamFormat,
    STRING_BLOCK_CLIENTS,
    RpcConfig,
    StreamConfig,
    DatabaseConfig,
    LoggingConfig,
)

__all__ = [
    'EvmLog',
    'to_int',
    'Leaf',
    'SubscriptionFilter',
    'TrackedContract',
    'Subscribed',
    'EndpointError',
    'SubscribeResult',
    'BlockParamFormat',
    'STRING_BLOCK_CLIENTS',
    'RpcConfig',
    'StreamConfig',
    'DatabaseConfig',
    'LoggingConfig',
]
