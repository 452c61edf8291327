# leafsync/pipeline/coordinator.py

import threading
from typing import Dict, Optional

import requests
from msgspec import Struct, field
from sqlalchemy.exc import SQLAlchemyError

from ..core.exceptions import RpcError
from ..core.logging import LoggingMixin
from ..database.store import LeafStore
from ..stream.manager import ConnectionManager
from ..stream.subscriber import EventSubscriber
from ..types import EndpointError, Leaf, TrackedContract
from .replayer import LogReplayer, ReplayResult

REPLAY_ERRORS = (RpcError, requests.RequestException, SQLAlchemyError, ValueError)

# Resume point meaning "replay from block 0"
GENESIS = -1


class RestartReport(Struct):
    replayed: dict[str, int] = field(default_factory=dict)
    subscribed: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)
    unsubscribed: list[str] = field(default_factory=list)
    aborted: bool = False

    @property
    def complete(self) -> bool:
        return not self.aborted and not self.failed and not self.unsubscribed


class RestartCoordinator(LoggingMixin):
    """
    Brings every active tree back in sync: catch-up first, then the live filter.

    Contracts are handled one at a time. A contract is only subscribed once
    its catch-up has been fully ingested. With close_gap enabled, a second
    catch-up pass runs after the filter is registered to pick up leaves mined
    between the first pass and the registration; the store's idempotent
    insert absorbs the overlap.

    A leaf that could not be stored pins its contract's next catch-up to the
    block before it, even when the store already holds later leaves from
    that block.
    """

    def __init__(self, store: LeafStore, replayer: LogReplayer, subscriber: EventSubscriber,
                 connection_manager: Optional[ConnectionManager] = None,
                 reconnect_delay: float = 5.0, close_gap: bool = True):
        self.store = store
        self.replayer = replayer
        self.subscriber = subscriber
        self.reconnect_delay = reconnect_delay
        self.close_gap = close_gap

        self._resync = threading.Event()
        self._resume_lock = threading.Lock()
        self._resume_points: Dict[str, int] = {}

        subscriber.add_failure_listener(self._on_ingest_failure)
        if connection_manager is not None:
            connection_manager.add_listener(self._on_connection_lost)

    def restart(self) -> RestartReport:
        """Meant to be called every time the service starts"""
        report = RestartReport()
        active = self.store.get_active_contracts()
        self.log_info("Restarting subscriptions for active trees", tree_count=len(active))

        for tracked in active:
            self.sync_contract(tracked, report)

        self.log_info(f"Restart finished: {len(report.subscribed)} subscribed, "
                      f"{len(report.failed)} failed, {len(report.unsubscribed)} without live filter")
        return report

    def sync_contract(self, tracked: TrackedContract, report: RestartReport) -> None:
        address = tracked.contract_address
        from_block = self.resume_block(tracked)
        context = self.log_contract_context(address, from_block=from_block)

        try:
            result = self.replayer.replay(address, from_block)
        except REPLAY_ERRORS as e:
            # Subscribing now would leave a hole behind the live filter
            self.log_error("Catch-up failed, contract left unsubscribed",
                           error=str(e), exception_type=type(e).__name__, **context)
            self.hold_resume_point(address, from_block)
            report.failed.append(address)
            return
        self._release_resume_point(address, from_block)
        report.replayed[address] = result.leaf_count

        outcome = self.subscriber.subscribe(address)
        if isinstance(outcome, EndpointError):
            self.log_error("Live subscription unavailable",
                           endpoint=outcome.data, error=outcome.message, **context)
            report.unsubscribed.append(address)
            return
        report.subscribed.append(address)

        if self.close_gap:
            self._close_gap(address, from_block, result, report)

    def _close_gap(self, address: str, from_block: Optional[int],
                   first_pass: ReplayResult, report: RestartReport) -> None:
        last_block = first_pass.last_block
        if last_block is None:
            last_block = from_block

        try:
            result = self.replayer.replay(address, last_block)
        except REPLAY_ERRORS as e:
            self.log_error("Gap-closing catch-up failed",
                           error=str(e), exception_type=type(e).__name__,
                           **self.log_contract_context(address, from_block=last_block))
            self.hold_resume_point(address, last_block)
            report.failed.append(address)
            return
        report.replayed[address] += result.leaf_count

    # === Resume points ===

    def resume_block(self, tracked: TrackedContract) -> Optional[int]:
        """Block to replay after: the store's last block, or earlier if a leaf was lost"""
        from_block = tracked.last_block_number
        with self._resume_lock:
            pinned = self._resume_points.get(tracked.contract_address.lower())

        if pinned is None or from_block is None or pinned >= from_block:
            return from_block
        return None if pinned == GENESIS else pinned

    def hold_resume_point(self, contract_address: str, from_block: Optional[int]) -> None:
        point = GENESIS if from_block is None else from_block
        key = contract_address.lower()
        with self._resume_lock:
            current = self._resume_points.get(key)
            if current is None or point < current:
                self._resume_points[key] = point

    def _release_resume_point(self, contract_address: str, from_block: Optional[int]) -> None:
        point = GENESIS if from_block is None else from_block
        key = contract_address.lower()
        with self._resume_lock:
            # A point pinned earlier while this replay ran stays in place
            if self._resume_points.get(key, point) >= point:
                self._resume_points.pop(key, None)

    def _on_ingest_failure(self, contract_address: str, leaf: Leaf) -> None:
        self.log_warning("Pinning catch-up before lost leaf",
                         contract_address=contract_address,
                         leaf_index=leaf.leaf_index,
                         block_number=leaf.block_number)
        self.hold_resume_point(contract_address, leaf.block_number - 1 if leaf.block_number > 0 else None)

    # === Run loop ===

    def run(self, stop_event: threading.Event, poll_interval: float = 1.0) -> None:
        """
        Restart once, then keep the mirror healthy until stop_event is set.

        A dropped connection, a restart that left contracts behind, or a
        store error while listing trees triggers another restart after
        reconnect_delay seconds.
        """
        report = self._guarded_restart()
        while not stop_event.is_set():
            if report.complete and not self._resync.wait(timeout=poll_interval):
                continue
            self._resync.clear()
            if stop_event.wait(self.reconnect_delay):
                break
            self.log_info("Resynchronizing trees")
            report = self._guarded_restart()

    def _guarded_restart(self) -> RestartReport:
        try:
            return self.restart()
        except SQLAlchemyError as e:
            self.log_error("Restart aborted by store error",
                           error=str(e), exception_type=type(e).__name__)
            return RestartReport(aborted=True)

    def _on_connection_lost(self, connection, reason) -> None:
        self._resync.set()
