# leafsync/stream/subscriber.py

import queue
import threading
from typing import Any, Callable, Dict, List, Optional

from ..contracts.events import NEW_LEAF_TOPIC
from ..core.exceptions import LeafDecodeError, RpcError, StreamClosedError, StreamTimeoutError
from ..core.logging import LoggingMixin
from ..decode.log_decoder import LeafDecoder
from ..types import EndpointError, Leaf, SubscribeResult, Subscribed, SubscriptionFilter
from .connection import StreamConnection
from .manager import ConnectionManager

LeafSink = Callable[[str, Leaf], Any]
FailureListener = Callable[[str, Leaf], None]

CONNECTION_UNAVAILABLE_CODE = -32603


class LiveSubscription(LoggingMixin):
    """
    One registered filter on one connection.

    The reader thread publishes raw logs into a queue; a single worker
    drains it, so leaves reach the sink in arrival order.
    """

    _STOP = object()

    def __init__(self, contract_address: str, filter: SubscriptionFilter,
                 connection: StreamConnection, decoder: LeafDecoder, sink: LeafSink,
                 on_ingest_failure: Optional[Callable[['LiveSubscription', Leaf], None]] = None):
        self.contract_address = contract_address
        self.filter = filter
        self.connection = connection
        self.decoder = decoder
        self.sink = sink
        self.on_ingest_failure = on_ingest_failure
        self.subscription_id: Optional[str] = None

        self._queue: queue.Queue = queue.Queue()
        self._worker = threading.Thread(
            target=self._drain,
            name=f"leafsync-ingest-{contract_address[:10]}",
            daemon=True,
        )

    def start(self) -> None:
        self._worker.start()

    def publish(self, raw_log: Dict[str, Any]) -> None:
        self._queue.put(raw_log)

    def stop(self) -> None:
        """Close the channel. Logs already queued are still ingested."""
        self._queue.put(self._STOP)

    def join(self, timeout: Optional[float] = None) -> None:
        if self._worker is not threading.current_thread():
            self._worker.join(timeout)

    def _drain(self) -> None:
        while True:
            item = self._queue.get()
            if item is self._STOP:
                break
            if not self._ingest(item):
                # Later leaves must not be stored past one that was lost
                break
        self.log_debug("Ingestion worker stopped", contract_address=self.contract_address)

    def _ingest(self, raw_log: Dict[str, Any]) -> bool:
        try:
            leaf = self.decoder.decode(raw_log)
        except LeafDecodeError as e:
            self.log_warning("Skipping undecodable live event",
                             contract_address=self.contract_address,
                             error=str(e))
            return True

        self.log_info("NewLeaf event emitted for contract",
                      contract_address=self.contract_address,
                      leaf_index=leaf.leaf_index,
                      block_number=leaf.block_number)

        try:
            self.sink(self.contract_address, leaf)
        except Exception as e:
            self.log_error("Failed to ingest live leaf",
                           contract_address=self.contract_address,
                           leaf_index=leaf.leaf_index,
                           block_number=leaf.block_number,
                           error=str(e),
                           exception_type=type(e).__name__)
            if self.on_ingest_failure is not None:
                self.on_ingest_failure(self, leaf)
            return False
        return True


class EventSubscriber(LoggingMixin):
    """Registers live NewLeaf filters per contract on the shared connection"""

    def __init__(self, connection_manager: ConnectionManager, decoder: LeafDecoder,
                 sink: LeafSink, event_topic: str = NEW_LEAF_TOPIC):
        self.connection_manager = connection_manager
        self.decoder = decoder
        self.sink = sink
        self.event_topic = event_topic

        self._subscriptions: Dict[str, LiveSubscription] = {}
        self._lock = threading.Lock()
        self._failure_listeners: List[FailureListener] = []
        connection_manager.add_listener(self._on_connection_lost)

    def add_failure_listener(self, listener: FailureListener) -> None:
        """Register a callback run with (contract_address, leaf) when a live leaf cannot be stored"""
        self._failure_listeners.append(listener)

    def build_filter(self, contract_address: str) -> SubscriptionFilter:
        return SubscriptionFilter(address=contract_address, topics=(self.event_topic,))

    def subscribe(self, contract_address: str) -> SubscribeResult:
        self.log_info("Creating event listeners for contract", contract_address=contract_address)

        key = contract_address.lower()
        filter = self.build_filter(contract_address)

        connection = self.connection_manager.get_connection()
        if connection is None:
            error = EndpointError(
                code=CONNECTION_UNAVAILABLE_CODE,
                message="WEBSOCKET: could not establish connection",
                data=f"Attempted endpoint: {self.connection_manager.endpoint_url}",
            )
            self.log_error("Cannot subscribe without a streaming connection",
                           contract_address=contract_address,
                           endpoint=self.connection_manager.endpoint_url)
            return error

        with self._lock:
            existing = self._subscriptions.get(key)
            if existing is not None and existing.connection is connection:
                return Subscribed(filter=filter, subscription_id=existing.subscription_id)
            if existing is not None:
                del self._subscriptions[key]
        if existing is not None:
            existing.stop()

        subscription = LiveSubscription(
            contract_address, filter, connection, self.decoder, self.sink,
            on_ingest_failure=self._on_ingest_failure,
        )
        subscription.start()

        try:
            subscription.subscription_id = connection.subscribe(filter.to_params(), subscription.publish)
        except (StreamClosedError, StreamTimeoutError, RpcError) as e:
            subscription.stop()
            self.log_error("Failed to register live filter",
                           contract_address=contract_address,
                           endpoint=self.connection_manager.endpoint_url,
                           error=str(e),
                           exception_type=type(e).__name__)
            return EndpointError(
                code=getattr(e, "code", None) or CONNECTION_UNAVAILABLE_CODE,
                message=str(e),
                data=f"Attempted endpoint: {self.connection_manager.endpoint_url}",
            )

        with self._lock:
            self._subscriptions[key] = subscription

        if not connection.is_open:
            # Dropped between registration and bookkeeping
            self._on_connection_lost(connection, connection.close_reason)

        self.log_info("Live filter registered",
                      contract_address=contract_address,
                      subscription_id=subscription.subscription_id)
        return Subscribed(filter=filter, subscription_id=subscription.subscription_id)

    def unsubscribe(self, contract_address: str) -> None:
        self.log_info("Removing event listeners for contract", contract_address=contract_address)

        with self._lock:
            subscription = self._subscriptions.pop(contract_address.lower(), None)
        if subscription is None:
            return

        connection = self.connection_manager.current()
        if connection is not None and connection is subscription.connection:
            try:
                connection.unsubscribe(subscription.subscription_id)
            except (StreamClosedError, StreamTimeoutError, RpcError) as e:
                self.log_warning("Failed to deregister live filter",
                                 contract_address=contract_address,
                                 subscription_id=subscription.subscription_id,
                                 error=str(e))
        subscription.stop()

    def is_subscribed(self, contract_address: str) -> bool:
        with self._lock:
            return contract_address.lower() in self._subscriptions

    def subscribed_addresses(self) -> List[str]:
        with self._lock:
            return [s.contract_address for s in self._subscriptions.values()]

    def close(self) -> None:
        for contract_address in self.subscribed_addresses():
            self.unsubscribe(contract_address)

    def _on_connection_lost(self, connection: StreamConnection, reason: Optional[BaseException]) -> None:
        with self._lock:
            lost = [key for key, s in self._subscriptions.items() if s.connection is connection]
            dropped = [self._subscriptions.pop(key) for key in lost]

        for subscription in dropped:
            self.log_warning("Live filter dropped with its connection",
                             contract_address=subscription.contract_address,
                             subscription_id=subscription.subscription_id)
            subscription.stop()

    def _on_ingest_failure(self, subscription: LiveSubscription, leaf: Leaf) -> None:
        for listener in list(self._failure_listeners):
            listener(subscription.contract_address, leaf)
        # Dropping the connection hands recovery to catch-up from the lost leaf
        self.connection_manager.invalidate(subscription.connection)
