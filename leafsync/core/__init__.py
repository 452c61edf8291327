# leafsync/core/__init__.py

from .config import SyncConfig
from .container import SyncContainer
from .exceptions import LeafSyncError, RpcError, StreamClosedError, StreamTimeoutError, LeafDecodeError
from .logging import SyncLogger, LoggingMixin, log_with_context
