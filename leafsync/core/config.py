# leafsync/core/config.py

import os
from pathlib import Path
from typing import Mapping, Optional

from dotenv import load_dotenv
from msgspec import Struct

from ..types import (
    BlockParamFormat,
    STRING_BLOCK_CLIENTS,
    DatabaseConfig,
    LoggingConfig,
    RpcConfig,
    StreamConfig,
)
from .logging import SyncLogger, log_with_context, DEBUG

ENV_PREFIX = "LEAFSYNC_"
DEFAULT_DB_URL = "sqlite:///leafsync.db"


def _get(env: Mapping[str, str], name: str, *fallbacks: str, default: Optional[str] = None) -> Optional[str]:
    for key in (f"{ENV_PREFIX}{name}",) + fallbacks:
        value = env.get(key)
        if value:
            return value
    return default


def _get_bool(env: Mapping[str, str], name: str, default: bool) -> bool:
    value = _get(env, name)
    if value is None:
        return default
    return value.lower() in ("1", "true", "yes", "on")


class SyncConfig(Struct):
    rpc: RpcConfig
    stream: StreamConfig
    database: DatabaseConfig
    logging: LoggingConfig
    reconnect_delay: float = 5.0
    close_gap: bool = True

    @classmethod
    def from_env(cls, env_vars: Optional[Mapping[str, str]] = None, load_env_file: bool = True) -> 'SyncConfig':
        if load_env_file:
            load_dotenv()
        env = env_vars if env_vars is not None else os.environ

        logger = SyncLogger.get_logger('core.config')

        http_url = _get(env, "RPC_HTTP", "ETH_CLIENT_HTTP")
        ws_url = _get(env, "RPC_WS", "ETH_CLIENT_WS")
        if not http_url:
            raise ValueError(f"{ENV_PREFIX}RPC_HTTP (or ETH_CLIENT_HTTP) must be set")
        if not ws_url:
            raise ValueError(f"{ENV_PREFIX}RPC_WS (or ETH_CLIENT_WS) must be set")

        block_param_format = cls._resolve_block_param_format(env)

        log_dir = _get(env, "LOG_DIR")
        config = cls(
            rpc=RpcConfig(
                endpoint_url=http_url,
                timeout=float(_get(env, "RPC_TIMEOUT", default="30")),
                block_param_format=block_param_format,
            ),
            stream=StreamConfig(
                endpoint_url=ws_url,
                request_timeout=float(_get(env, "WS_REQUEST_TIMEOUT", default="30")),
                open_timeout=float(_get(env, "WS_OPEN_TIMEOUT", default="10")),
            ),
            database=DatabaseConfig(url=_get(env, "DB_URL", default=DEFAULT_DB_URL)),
            logging=LoggingConfig(
                log_level=_get(env, "LOG_LEVEL", default="INFO"),
                log_dir=Path(log_dir) if log_dir else Path.cwd() / "logs",
                console_enabled=_get_bool(env, "LOG_CONSOLE", True),
                file_enabled=_get_bool(env, "LOG_FILE", False),
                structured_format=_get_bool(env, "LOG_STRUCTURED", True),
            ),
            reconnect_delay=float(_get(env, "RECONNECT_DELAY", default="5")),
            close_gap=_get_bool(env, "CLOSE_GAP", True),
        )

        log_with_context(logger, DEBUG, f"Configuration loaded, block params as {block_param_format.value}",
                         endpoint=ws_url)
        return config

    @staticmethod
    def _resolve_block_param_format(env: Mapping[str, str]) -> BlockParamFormat:
        explicit = _get(env, "BLOCK_PARAM_FORMAT")
        if explicit:
            try:
                return BlockParamFormat(explicit.lower())
            except ValueError:
                choices = ", ".join(f.value for f in BlockParamFormat)
                raise ValueError(f"{ENV_PREFIX}BLOCK_PARAM_FORMAT must be one of: {choices}") from None

        client_type = _get(env, "CLIENT_TYPE", "ETH_CLIENT_TYPE")
        if client_type and client_type.lower() in STRING_BLOCK_CLIENTS:
            return BlockParamFormat.DECIMAL_STRING
        return BlockParamFormat.NUMBER
