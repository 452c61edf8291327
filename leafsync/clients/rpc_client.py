# leafsync/clients/rpc_client.py

from typing import Any, Dict, List, Optional

import requests

from ..core.logging import LoggingMixin


class JsonRpcClient(LoggingMixin):
    """
    Plain HTTP JSON-RPC client for the node.

    No retries and no batching: transport and HTTP errors propagate to the
    caller unmodified.
    """

    def __init__(self, endpoint_url: str, timeout: float = 30.0,
                 session: Optional[requests.Session] = None):
        self.endpoint_url = endpoint_url
        self.timeout = timeout
        self.session = session or requests.Session()

    def call(self, method: str, params: List[Any], id: int = 1) -> Dict[str, Any]:
        """
        Send one JSON-RPC request and return the decoded response body.

        Args:
            method: RPC method name
            params: Positional parameters for the method
            id: Request id echoed back by the node

        Returns:
            The full response object, including either 'result' or 'error'
        """
        payload = {
            "jsonrpc": "2.0",
            "id": id,
            "method": method,
            "params": params,
        }
        self.log_debug("Sending RPC request", method=method, endpoint=self.endpoint_url)

        response = self.session.post(self.endpoint_url, json=payload, timeout=self.timeout)
        response.raise_for_status()
        return response.json()

    def close(self) -> None:
        self.session.close()
