# leafsync/types/config.py

import enum
from pathlib import Path
from typing import Optional, Union

from msgspec import Struct


class BlockParamFormat(str, enum.Enum):
    """How block numbers are serialized in outbound eth_getLogs filters"""
    NUMBER = "number"
    DECIMAL_STRING = "decimal_string"
    HEX = "hex"

    def to_param(self, block_number: int) -> Union[int, str]:
        if self is BlockParamFormat.DECIMAL_STRING:
            return str(block_number)
        if self is BlockParamFormat.HEX:
            return hex(block_number)
        return block_number


# Node implementations known to reject numeric block parameters
STRING_BLOCK_CLIENTS = frozenset({"besu"})


class RpcConfig(Struct):
    endpoint_url: str
    timeout: float = 30.0
    block_param_format: BlockParamFormat = BlockParamFormat.NUMBER


class StreamConfig(Struct):
    endpoint_url: str
    request_timeout: float = 30.0
    open_timeout: float = 10.0
    ping_interval: Optional[float] = 20.0
    ping_timeout: Optional[float] = 20.0


class DatabaseConfig(Struct):
    url: str
    pool_size: int = 5
    max_overflow: int = 10


class LoggingConfig(Struct):
    log_level: str = "INFO"
    log_dir: Optional[Path] = None
    console_enabled: bool = True
    file_enabled: bool = False
    structured_format: bool = True
