# tests/test_replayer.py

import pytest

from leafsync.contracts.events import NEW_LEAF_TOPIC
from leafsync.core.exceptions import RpcError
from leafsync.decode.log_decoder import LeafDecoder
from leafsync.pipeline.replayer import LogReplayer
from leafsync.types import BlockParamFormat

from tests.helpers import CONTRACT, OTHER_CONTRACT, make_raw_log


@pytest.fixture
def replayer(node, sink):
    return LogReplayer(node, LeafDecoder(), sink)


@pytest.mark.parametrize("from_block, expected", [(None, 0), (0, 1), (50, 51)])
def test_start_block_skips_recorded_block(from_block, expected):
    assert LogReplayer.start_block(from_block) == expected


@pytest.mark.parametrize("block_param_format, expected", [
    (BlockParamFormat.NUMBER, 51),
    (BlockParamFormat.DECIMAL_STRING, "51"),
    (BlockParamFormat.HEX, "0x33"),
])
def test_filter_encodes_from_block(node, sink, block_param_format, expected):
    replayer = LogReplayer(node, LeafDecoder(), sink, block_param_format=block_param_format)

    log_filter = replayer.build_log_filter(CONTRACT, 51)

    assert log_filter == {
        "fromBlock": expected,
        "toBlock": "latest",
        "address": CONTRACT,
        "topics": [NEW_LEAF_TOPIC],
    }


def test_replay_ingests_logs_after_last_block(replayer, node, sink):
    node.add(make_raw_log(9, 50))
    node.add(make_raw_log(10, 51))
    node.add(make_raw_log(11, 53))
    node.add(make_raw_log(0, 52, address=OTHER_CONTRACT))

    result = replayer.replay(CONTRACT, 50)

    assert node.calls == [("eth_getLogs", [replayer.build_log_filter(CONTRACT, 51)])]
    assert sink.indices == [10, 11]
    assert result.start_block == 51
    assert result.leaf_count == 2
    assert result.last_block == 53


def test_replay_without_history_starts_at_genesis(replayer, node, sink):
    node.add(make_raw_log(0, 0))

    result = replayer.replay(CONTRACT, None)

    assert node.calls[0][1][0]["fromBlock"] == 0
    assert sink.indices == [0]
    assert result.last_block == 0


def test_replay_with_no_logs(replayer, sink):
    result = replayer.replay(CONTRACT, 50)

    assert sink.received == []
    assert result.leaf_count == 0
    assert result.last_block is None


def test_undecodable_logs_are_skipped(replayer, node, sink):
    node.add(make_raw_log(10, 51, removed=True))
    node.add(make_raw_log(11, 52))

    result = replayer.replay(CONTRACT, 50)

    assert sink.indices == [11]
    assert result.skipped == 1


def test_node_error_raises_rpc_error(replayer, node, sink):
    node.error = {"code": -32005, "message": "limit exceeded"}

    with pytest.raises(RpcError) as exc_info:
        replayer.replay(CONTRACT, 50)

    assert exc_info.value.code == -32005
    assert exc_info.value.method == "eth_getLogs"
    assert sink.received == []


def test_sink_failure_stops_replay(replayer, node, sink):
    node.add(make_raw_log(10, 51))
    node.add(make_raw_log(11, 52))
    node.add(make_raw_log(12, 53))
    sink.fail_on = {11}

    with pytest.raises(RuntimeError):
        replayer.replay(CONTRACT, 50)

    assert sink.indices == [10]
