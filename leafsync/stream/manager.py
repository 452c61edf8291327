# leafsync/stream/manager.py

import threading
from typing import Callable, List, Optional

from websockets.exceptions import WebSocketException
from websockets.sync.client import connect

from ..core.logging import LoggingMixin
from ..types import StreamConfig
from .connection import StreamConnection, CloseHandler


class ConnectionManager(LoggingMixin):
    """
    Owns the process-wide streaming connection.

    The connection is created on first demand and the reference is cleared
    when the socket reports an error or closes. Nothing reconnects in the
    background: the next get_connection() call opens a fresh one.
    """

    def __init__(self, config: StreamConfig, connector: Callable = connect):
        self.config = config
        self._connector = connector
        self._connection: Optional[StreamConnection] = None
        self._lock = threading.RLock()
        self._listeners: List[CloseHandler] = []

    @property
    def endpoint_url(self) -> str:
        return self.config.endpoint_url

    def add_listener(self, listener: CloseHandler) -> None:
        """Register a callback run whenever a managed connection goes away"""
        self._listeners.append(listener)

    def get_connection(self) -> Optional[StreamConnection]:
        with self._lock:
            if self._connection is not None and self._connection.is_open:
                return self._connection
            self._connection = None

            try:
                connection = StreamConnection.open(
                    self.config, on_close=self._on_close, connector=self._connector
                )
            except (WebSocketException, OSError) as e:
                self.log_error("[WEBSOCKET] Cannot establish connection",
                               endpoint=self.endpoint_url,
                               error=str(e),
                               exception_type=type(e).__name__)
                return None

            if not connection.is_open:
                return None

            self._connection = connection
            self.log_info("Established websocket connection", endpoint=self.endpoint_url)
            return connection

    def current(self) -> Optional[StreamConnection]:
        """The live connection, without opening one"""
        with self._lock:
            if self._connection is not None and self._connection.is_open:
                return self._connection
            return None

    def invalidate(self, connection: Optional[StreamConnection] = None) -> None:
        with self._lock:
            target = connection or self._connection
            if target is None:
                return
            if self._connection is target:
                self._connection = None
        if target.is_open:
            target.close()

    def close(self) -> None:
        self.invalidate()

    def _on_close(self, connection: StreamConnection, reason: Optional[BaseException]) -> None:
        with self._lock:
            if self._connection is connection:
                self._connection = None

        for listener in list(self._listeners):
            listener(connection, reason)
