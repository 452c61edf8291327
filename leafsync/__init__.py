# leafsync/__init__.py

from typing import Mapping, Optional

from .core.config import SyncConfig
from .core.container import SyncContainer
from .core.logging import SyncLogger, log_with_context, INFO
from .clients.rpc_client import JsonRpcClient
from .database.connection import DatabaseManager
from .database.store import DatabaseLeafStore
from .decode.log_decoder import LeafDecoder
from .pipeline.coordinator import RestartCoordinator
from .pipeline.replayer import LogReplayer
from .stream.manager import ConnectionManager
from .stream.subscriber import EventSubscriber

__version__ = "0.1.0"


def create_syncer(env_vars: Optional[Mapping[str, str]] = None,
                  config: Optional[SyncConfig] = None) -> SyncContainer:
    """Build the service container from environment variables or an explicit config"""
    if config is None:
        config = SyncConfig.from_env(env_vars)
    _configure_logging_early(config)

    logger = SyncLogger.get_logger('core.init')
    log_with_context(logger, INFO, "Creating leafsync instance",
                     endpoint=config.stream.endpoint_url)

    container = SyncContainer(config)
    _register_services(container)
    return container


def _configure_logging_early(config: SyncConfig) -> None:
    SyncLogger.configure(
        log_dir=config.logging.log_dir,
        log_level=config.logging.log_level,
        console_enabled=config.logging.console_enabled,
        file_enabled=config.logging.file_enabled,
        structured_format=config.logging.structured_format,
    )


def _register_services(container: SyncContainer) -> None:
    container.register_instance(SyncConfig, container.config)

    container.register_factory(DatabaseManager, _create_database_manager)
    container.register_singleton(DatabaseLeafStore, DatabaseLeafStore)

    container.register_factory(JsonRpcClient, _create_rpc_client)
    container.register_factory(ConnectionManager, _create_connection_manager)
    container.register_singleton(LeafDecoder, LeafDecoder)

    container.register_factory(EventSubscriber, _create_event_subscriber)
    container.register_factory(LogReplayer, _create_log_replayer)
    container.register_factory(RestartCoordinator, _create_restart_coordinator)


def _create_database_manager(container: SyncContainer) -> DatabaseManager:
    db_manager = DatabaseManager(container.config.database)
    db_manager.initialize()
    return db_manager


def _create_rpc_client(container: SyncContainer) -> JsonRpcClient:
    rpc = container.config.rpc
    return JsonRpcClient(endpoint_url=rpc.endpoint_url, timeout=rpc.timeout)


def _create_connection_manager(container: SyncContainer) -> ConnectionManager:
    return ConnectionManager(container.config.stream)


def _create_event_subscriber(container: SyncContainer) -> EventSubscriber:
    return EventSubscriber(
        connection_manager=container.get(ConnectionManager),
        decoder=container.get(LeafDecoder),
        sink=container.get(DatabaseLeafStore).insert_leaf,
    )


def _create_log_replayer(container: SyncContainer) -> LogReplayer:
    return LogReplayer(
        rpc_client=container.get(JsonRpcClient),
        decoder=container.get(LeafDecoder),
        sink=container.get(DatabaseLeafStore).insert_leaf,
        block_param_format=container.config.rpc.block_param_format,
    )


def _create_restart_coordinator(container: SyncContainer) -> RestartCoordinator:
    return RestartCoordinator(
        store=container.get(DatabaseLeafStore),
        replayer=container.get(LogReplayer),
        subscriber=container.get(EventSubscriber),
        connection_manager=container.get(ConnectionManager),
        reconnect_delay=container.config.reconnect_delay,
        close_gap=container.config.close_gap,
    )
