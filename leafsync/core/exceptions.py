# leafsync/core/exceptions.py


class LeafSyncError(Exception):
    """Base class for leafsync errors"""


class RpcError(LeafSyncError):
    """The node answered a JSON-RPC request with an error member"""

    def __init__(self, method: str, error: dict):
        self.method = method
        self.code = error.get("code") if isinstance(error, dict) else None
        self.rpc_message = error.get("message") if isinstance(error, dict) else str(error)
        self.data = error.get("data") if isinstance(error, dict) else None
        super().__init__(f"{method} failed: [{self.code}] {self.rpc_message}")


class StreamClosedError(LeafSyncError):
    """The streaming connection closed before a request completed"""


class StreamTimeoutError(LeafSyncError):
    """A streaming request did not receive a response in time"""


class LeafDecodeError(LeafSyncError):
    """A raw log could not be decoded into a Leaf"""
