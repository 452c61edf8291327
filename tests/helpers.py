# tests/helpers.py
"""
Test doubles for the node.

FakeNode answers HTTP eth_getLogs calls from an in-memory log list.
FakeWebSocket plays the streaming endpoint and lets tests push
notifications or drop the socket.
"""

import json
import queue
import threading
import time

from eth_abi import encode
from web3 import Web3
from websockets.exceptions import ConnectionClosedOK

from leafsync.contracts.events import NEW_LEAF_TOPIC
from leafsync.types import to_int

CONTRACT = "0x000000000000000000000000000000000000abc0"
OTHER_CONTRACT = "0x000000000000000000000000000000000000def0"
WS_URL = "ws://node.test:8546"

_CLOSE = object()


def leaf_value(leaf_index: int) -> str:
    return "0x" + f"{leaf_index + 1:064x}"


def make_raw_log(leaf_index: int, block_number: int, address: str = CONTRACT,
                 value: str = None, removed: bool = False) -> dict:
    value = value or leaf_value(leaf_index)
    data = encode(
        ["uint256", "bytes32", "bytes32"],
        [leaf_index, bytes.fromhex(value[2:]), b"\x11" * 32],
    )
    return {
        "address": address,
        "topics": [NEW_LEAF_TOPIC],
        "data": Web3.to_hex(data),
        "blockNumber": hex(block_number),
        "blockHash": "0x" + "ab" * 32,
        "transactionHash": "0x" + f"{block_number:04x}{leaf_index:04x}".rjust(64, "0"),
        "transactionIndex": "0x0",
        "logIndex": "0x0",
        "removed": removed,
    }


def wait_until(predicate, timeout: float = 5.0, interval: float = 0.01) -> bool:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(interval)
    return predicate()


class FakeNode:
    """Answers JsonRpcClient.call for eth_getLogs from a list of raw logs"""

    def __init__(self):
        self.logs = []
        self.calls = []
        self.error = None

    def add(self, raw_log: dict) -> None:
        self.logs.append(raw_log)

    def call(self, method, params, id=1):
        self.calls.append((method, params))
        if self.error is not None:
            return {"jsonrpc": "2.0", "id": id, "error": self.error}

        log_filter = params[0]
        from_block = to_int(log_filter["fromBlock"])
        result = [
            raw for raw in self.logs
            if raw["address"].lower() == log_filter["address"].lower()
            and to_int(raw["blockNumber"]) >= from_block
        ]
        return {"jsonrpc": "2.0", "id": id, "result": result}


class FakeWebSocket:
    """Stands in for a websockets sync ClientConnection"""

    def __init__(self):
        self.sent = []
        self.closed = False
        self.fail_methods = {}
        self.silent_methods = set()
        self._inbox = queue.Queue()
        self._subscription_ids = iter(f"0x{n:x}" for n in range(1, 1000))

    def send(self, message):
        if self.closed:
            raise ConnectionClosedOK(None, None)
        request = json.loads(message)
        self.sent.append(request)
        self._respond(request)

    def _respond(self, request):
        method = request["method"]
        if method in self.silent_methods:
            return
        if method in self.fail_methods:
            self.push({"jsonrpc": "2.0", "id": request["id"], "error": self.fail_methods[method]})
        elif method == "eth_subscribe":
            self.push({"jsonrpc": "2.0", "id": request["id"], "result": next(self._subscription_ids)})
        elif method == "eth_unsubscribe":
            self.push({"jsonrpc": "2.0", "id": request["id"], "result": True})

    def push(self, payload) -> None:
        self._inbox.put(json.dumps(payload))

    def notify(self, subscription_id: str, raw_log: dict) -> None:
        self.push({
            "jsonrpc": "2.0",
            "method": "eth_subscription",
            "params": {"subscription": subscription_id, "result": raw_log},
        })

    def fail(self, error: BaseException) -> None:
        """Make the receive side raise, as a dropped TCP connection would"""
        self._inbox.put(error)

    def requests_for(self, method: str) -> list:
        return [r for r in self.sent if r["method"] == method]

    def __iter__(self):
        while True:
            item = self._inbox.get()
            if item is _CLOSE:
                return
            if isinstance(item, BaseException):
                raise item
            yield item

    def close(self):
        if not self.closed:
            self.closed = True
            self._inbox.put(_CLOSE)


class FakeConnector:
    """Replacement for websockets.sync.client.connect"""

    def __init__(self):
        self.sockets = []
        self.refuse = False
        self.calls = []

    def __call__(self, url, **kwargs):
        self.calls.append((url, kwargs))
        if self.refuse:
            raise ConnectionRefusedError(f"Connection refused: {url}")
        websocket = FakeWebSocket()
        self.sockets.append(websocket)
        return websocket

    @property
    def latest(self) -> FakeWebSocket:
        return self.sockets[-1]


class RecordingSink:
    """Collects (contract_address, leaf) pairs; can be told to fail"""

    def __init__(self):
        self.received = []
        self.fail_on = set()
        self._lock = threading.Lock()

    def __call__(self, contract_address, leaf):
        if leaf.leaf_index in self.fail_on:
            raise RuntimeError(f"sink rejected leaf {leaf.leaf_index}")
        with self._lock:
            self.received.append((contract_address, leaf))
        return True

    @property
    def indices(self) -> list:
        with self._lock:
            return [leaf.leaf_index for _, leaf in self.received]


