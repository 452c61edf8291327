# leafsync/stream/connection.py
"""
Streaming JSON-RPC session over a WebSocket.

A reader thread owns the socket's receive side. It resolves pending
requests by id and hands eth_subscription notifications to the handler
registered for their subscription id.
"""

import itertools
import json
import threading
from concurrent.futures import Future, TimeoutError as FutureTimeoutError
from typing import Any, Callable, Dict, List, Optional, Tuple

from websockets.exceptions import ConnectionClosed, ConnectionClosedOK
from websockets.sync.client import connect

from ..core.exceptions import RpcError, StreamClosedError, StreamTimeoutError
from ..core.logging import LoggingMixin
from ..types import StreamConfig

NotificationHandler = Callable[[Dict[str, Any]], None]
CloseHandler = Callable[['StreamConnection', Optional[BaseException]], None]


class StreamConnection(LoggingMixin):

    def __init__(self, websocket, endpoint_url: str, request_timeout: float = 30.0,
                 on_close: Optional[CloseHandler] = None):
        self.websocket = websocket
        self.endpoint_url = endpoint_url
        self.request_timeout = request_timeout

        self._ids = itertools.count(1)
        self._lock = threading.RLock()
        self._pending: Dict[int, Tuple[str, Future, Optional[Callable[[Any], None]]]] = {}
        self._handlers: Dict[str, NotificationHandler] = {}
        self._close_handlers: List[CloseHandler] = [on_close] if on_close else []
        self._closed = threading.Event()
        self._closing = False
        self.close_reason: Optional[BaseException] = None

        self._reader = threading.Thread(
            target=self._read_loop, name="leafsync-stream-reader", daemon=True
        )

    @classmethod
    def open(cls, config: StreamConfig, on_close: Optional[CloseHandler] = None,
             connector: Callable = connect) -> 'StreamConnection':
        """Open the socket and start reading. Connector errors propagate."""
        websocket = connector(
            config.endpoint_url,
            open_timeout=config.open_timeout,
            ping_interval=config.ping_interval,
            ping_timeout=config.ping_timeout,
        )
        connection = cls(websocket, config.endpoint_url, config.request_timeout, on_close)
        connection.start()
        return connection

    def start(self) -> None:
        self._reader.start()

    @property
    def is_open(self) -> bool:
        return not self._closed.is_set()

    def add_close_handler(self, handler: CloseHandler) -> None:
        with self._lock:
            if not self._closed.is_set():
                self._close_handlers.append(handler)
                return
        handler(self, self.close_reason)

    # === Requests ===

    def request(self, method: str, params: List[Any],
                on_result: Optional[Callable[[Any], None]] = None,
                timeout: Optional[float] = None) -> Any:
        """
        Send a request and block until its response arrives.

        on_result runs on the reader thread before any later message is
        dispatched. A request that outlives its timeout aborts the connection.
        """
        if self._closed.is_set():
            raise StreamClosedError(f"Connection to {self.endpoint_url} is closed")

        request_id = next(self._ids)
        future: Future = Future()
        with self._lock:
            self._pending[request_id] = (method, future, on_result)

        try:
            self.websocket.send(json.dumps({
                "jsonrpc": "2.0",
                "id": request_id,
                "method": method,
                "params": params,
            }))
        except ConnectionClosed as e:
            with self._lock:
                self._pending.pop(request_id, None)
            raise StreamClosedError(f"Connection to {self.endpoint_url} closed during {method}") from e

        try:
            return future.result(timeout=timeout or self.request_timeout)
        except FutureTimeoutError as e:
            with self._lock:
                self._pending.pop(request_id, None)
            self.log_error("[WEBSOCKET] Request timed out, dropping connection",
                           method=method, endpoint=self.endpoint_url)
            error = StreamTimeoutError(f"{method} timed out on {self.endpoint_url}")
            self.abort(error)
            raise error from e

    def subscribe(self, filter_params: Dict[str, Any], handler: NotificationHandler) -> str:
        def install(subscription_id: str) -> None:
            with self._lock:
                self._handlers[subscription_id] = handler

        return self.request("eth_subscribe", ["logs", filter_params], on_result=install)

    def unsubscribe(self, subscription_id: str) -> bool:
        with self._lock:
            self._handlers.pop(subscription_id, None)
        return bool(self.request("eth_unsubscribe", [subscription_id]))

    # === Lifecycle ===

    def close(self) -> None:
        self._closing = True
        self.websocket.close()
        if self._reader.is_alive() and self._reader is not threading.current_thread():
            self._reader.join(timeout=5)
        self._mark_closed(None)

    def abort(self, reason: BaseException) -> None:
        self._mark_closed(reason)
        self.websocket.close()

    def _read_loop(self) -> None:
        reason: Optional[BaseException] = None
        try:
            for message in self.websocket:
                self._dispatch(message)
        except Exception as e:
            # ConnectionClosedError and socket-level failures end the session alike
            reason = e
        self._mark_closed(reason)

    def _dispatch(self, message) -> None:
        try:
            payload = json.loads(message)
        except (TypeError, ValueError):
            self.log_warning("Ignoring malformed stream message", endpoint=self.endpoint_url)
            return

        if payload.get("method") == "eth_subscription":
            params = payload.get("params") or {}
            subscription_id = params.get("subscription")
            with self._lock:
                handler = self._handlers.get(subscription_id)
            if handler is None:
                self.log_debug("Notification for unknown subscription",
                               subscription_id=subscription_id)
                return
            try:
                handler(params.get("result"))
            except Exception as e:
                self.log_error("Subscription handler failed",
                               subscription_id=subscription_id,
                               error=str(e),
                               exception_type=type(e).__name__)
            return

        with self._lock:
            entry = self._pending.pop(payload.get("id"), None)
        if entry is None:
            return

        method, future, on_result = entry
        if payload.get("error") is not None:
            future.set_exception(RpcError(method, payload["error"]))
            return
        result = payload.get("result")
        if on_result is not None:
            on_result(result)
        future.set_result(result)

    def _mark_closed(self, reason: Optional[BaseException]) -> None:
        with self._lock:
            if self._closed.is_set():
                return
            self._closed.set()
            self.close_reason = reason
            pending = list(self._pending.values())
            self._pending.clear()
            self._handlers.clear()
            handlers = list(self._close_handlers)

        for method, future, _ in pending:
            if not future.done():
                future.set_exception(StreamClosedError(f"Connection closed during {method}"))

        if self._closing:
            self.log_info("[WEBSOCKET] Connection closed", endpoint=self.endpoint_url)
        elif reason is None or isinstance(reason, ConnectionClosedOK):
            self.log_error('[WEBSOCKET] "close" event', endpoint=self.endpoint_url,
                           error=str(reason) if reason else None)
        else:
            self.log_error('[WEBSOCKET] "error" event', endpoint=self.endpoint_url,
                           error=str(reason),
                           exception_type=type(reason).__name__)

        for handler in handlers:
            try:
                handler(self, reason)
            except Exception as e:
                self.log_error("Close handler failed", endpoint=self.endpoint_url,
                               error=str(e),
                               exception_type=type(e).__name__)
