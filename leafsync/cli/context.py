# leafsync/cli/context.py

from typing import Optional

import msgspec

from .. import create_syncer
from ..core.config import SyncConfig
from ..core.container import SyncContainer
from ..core.logging import SyncLogger
from ..database.connection import DatabaseManager
from ..database.store import DatabaseLeafStore


class CLIContext:
    """Lazily builds the service container so commands only pay for what they use"""

    def __init__(self, verbose: bool = False):
        self.verbose = verbose
        self.logger = SyncLogger.get_logger('cli.context')
        self._container: Optional[SyncContainer] = None

    def load_config(self) -> SyncConfig:
        config = SyncConfig.from_env()
        if self.verbose:
            # Only the level changes; file and directory settings still apply
            logging_config = msgspec.structs.replace(config.logging, log_level="DEBUG")
            config = msgspec.structs.replace(config, logging=logging_config)
        return config

    @property
    def container(self) -> SyncContainer:
        if self._container is None:
            self._container = create_syncer(config=self.load_config())
            self._container.get(DatabaseManager).create_tables()
        return self._container

    @property
    def store(self) -> DatabaseLeafStore:
        return self.container.get(DatabaseLeafStore)

    def shutdown(self) -> None:
        if self._container is not None:
            self._container.get(DatabaseManager).shutdown()
