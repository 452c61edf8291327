# tests/test_stream.py

import threading

import pytest

from leafsync.core.exceptions import RpcError, StreamClosedError, StreamTimeoutError
from leafsync.stream.connection import StreamConnection
from leafsync.stream.manager import ConnectionManager

from tests.helpers import WS_URL, wait_until


@pytest.fixture
def manager(stream_config, connector):
    manager = ConnectionManager(stream_config, connector=connector)
    yield manager
    manager.close()


def test_connection_is_created_lazily_and_reused(manager, connector):
    assert manager.current() is None
    assert connector.calls == []

    first = manager.get_connection()
    second = manager.get_connection()

    assert first is second
    assert len(connector.calls) == 1
    url, options = connector.calls[0]
    assert url == WS_URL
    assert options["open_timeout"] == 1.0


def test_refused_connection_returns_none(manager, connector):
    connector.refuse = True

    assert manager.get_connection() is None
    assert manager.current() is None


def test_reference_cleared_after_socket_error(manager, connector):
    lost = []
    manager.add_listener(lambda connection, reason: lost.append((connection, reason)))

    connection = manager.get_connection()
    connector.latest.fail(ConnectionResetError("reset by peer"))

    assert wait_until(lambda: not connection.is_open)
    assert manager.current() is None
    assert wait_until(lambda: len(lost) == 1)
    assert lost[0][0] is connection
    assert isinstance(lost[0][1], ConnectionResetError)

    replacement = manager.get_connection()
    assert replacement is not connection
    assert replacement.is_open
    assert len(connector.sockets) == 2


def test_reference_cleared_after_remote_close(manager, connector):
    connection = manager.get_connection()
    connector.latest.close()

    assert wait_until(lambda: not connection.is_open)
    assert manager.current() is None


def test_invalidate_closes_connection(manager, connector):
    connection = manager.get_connection()

    manager.invalidate()

    assert not connection.is_open
    assert connector.latest.closed
    assert manager.current() is None


def test_invalidate_ignores_stale_connection(manager, connector):
    stale = manager.get_connection()
    connector.latest.close()
    assert wait_until(lambda: not stale.is_open)
    fresh = manager.get_connection()

    manager.invalidate(stale)

    assert manager.current() is fresh


def test_request_returns_result(manager, connector):
    connection = manager.get_connection()

    assert connection.request("eth_subscribe", ["logs", {}]) == "0x1"
    assert connector.latest.requests_for("eth_subscribe")[0]["params"] == ["logs", {}]


def test_request_error_raises_rpc_error(manager, connector):
    connection = manager.get_connection()
    connector.latest.fail_methods["eth_subscribe"] = {"code": -32602, "message": "invalid params"}

    with pytest.raises(RpcError) as exc_info:
        connection.request("eth_subscribe", ["logs", {}])

    assert exc_info.value.code == -32602
    assert connection.is_open


def test_request_timeout_drops_connection(manager, connector):
    connection = manager.get_connection()
    connector.latest.silent_methods.add("eth_subscribe")

    with pytest.raises(StreamTimeoutError):
        connection.request("eth_subscribe", ["logs", {}], timeout=0.1)

    assert not connection.is_open
    assert manager.current() is None


def test_pending_request_fails_when_connection_drops(manager, connector):
    connection = manager.get_connection()
    websocket = connector.latest
    websocket.silent_methods.add("eth_subscribe")
    outcome = []

    def send():
        try:
            connection.request("eth_subscribe", ["logs", {}])
        except StreamClosedError as e:
            outcome.append(e)

    sender = threading.Thread(target=send)
    sender.start()
    assert wait_until(lambda: websocket.requests_for("eth_subscribe"))
    websocket.fail(ConnectionResetError("reset by peer"))
    sender.join(timeout=5)

    assert len(outcome) == 1


def test_request_on_closed_connection(manager):
    connection = manager.get_connection()
    connection.close()

    with pytest.raises(StreamClosedError):
        connection.request("eth_unsubscribe", ["0x1"])


def test_notifications_reach_handler_in_order(manager, connector):
    connection = manager.get_connection()
    received = []

    subscription_id = connection.subscribe({"address": "0x0"}, received.append)
    for n in range(5):
        connector.latest.notify(subscription_id, {"n": n})

    assert wait_until(lambda: len(received) == 5)
    assert received == [{"n": n} for n in range(5)]


def test_notification_sent_right_after_response_is_delivered(stream_config, connector):
    received = []

    def connector_with_eager_node(url, **kwargs):
        websocket = connector(url, **kwargs)
        original = websocket._respond

        def respond(request):
            original(request)
            if request["method"] == "eth_subscribe":
                websocket.notify("0x1", {"n": 0})

        websocket._respond = respond
        return websocket

    manager = ConnectionManager(stream_config, connector=connector_with_eager_node)
    try:
        manager.get_connection().subscribe({"address": "0x0"}, received.append)
        assert wait_until(lambda: received == [{"n": 0}])
    finally:
        manager.close()


def test_malformed_messages_are_ignored(manager, connector):
    connection = manager.get_connection()
    connector.latest._inbox.put("not json")

    assert connection.request("eth_unsubscribe", ["0x1"]) is True


def test_close_handler_added_after_close_runs_immediately(stream_config, connector):
    connection = StreamConnection.open(stream_config, connector=connector)
    connection.close()
    calls = []

    connection.add_close_handler(lambda conn, reason: calls.append(conn))

    assert calls == [connection]
