# tests/test_rpc_client.py

import pytest
import requests

from leafsync.clients.rpc_client import JsonRpcClient


class FakeResponse:
    def __init__(self, body, status_code=200):
        self.body = body
        self.status_code = status_code

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} Server Error")

    def json(self):
        return self.body


class FakeSession:
    def __init__(self, response):
        self.response = response
        self.posts = []
        self.closed = False

    def post(self, url, json=None, timeout=None):
        self.posts.append((url, json, timeout))
        return self.response

    def close(self):
        self.closed = True


def test_call_posts_json_rpc_envelope():
    session = FakeSession(FakeResponse({"jsonrpc": "2.0", "id": 1, "result": "0x10"}))
    client = JsonRpcClient("http://node.test:8545", timeout=5.0, session=session)

    response = client.call("eth_blockNumber", [])

    assert response["result"] == "0x10"
    url, payload, timeout = session.posts[0]
    assert url == "http://node.test:8545"
    assert payload == {"jsonrpc": "2.0", "id": 1, "method": "eth_blockNumber", "params": []}
    assert timeout == 5.0


def test_call_uses_given_id():
    session = FakeSession(FakeResponse({"jsonrpc": "2.0", "id": 7, "result": []}))
    client = JsonRpcClient("http://node.test:8545", session=session)

    client.call("eth_getLogs", [{}], id=7)

    assert session.posts[0][1]["id"] == 7


def test_error_member_is_returned_not_raised():
    error = {"code": -32000, "message": "query returned more than 10000 results"}
    session = FakeSession(FakeResponse({"jsonrpc": "2.0", "id": 1, "error": error}))
    client = JsonRpcClient("http://node.test:8545", session=session)

    assert client.call("eth_getLogs", [{}])["error"] == error


def test_http_error_propagates():
    session = FakeSession(FakeResponse({}, status_code=502))
    client = JsonRpcClient("http://node.test:8545", session=session)

    with pytest.raises(requests.HTTPError):
        client.call("eth_getLogs", [{}])


def test_close_closes_session():
    session = FakeSession(FakeResponse({}))
    JsonRpcClient("http://node.test:8545", session=session).close()

    assert session.closed
