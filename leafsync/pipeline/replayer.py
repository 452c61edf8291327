# leafsync/pipeline/replayer.py

from typing import Any, Callable, Dict, List, Optional

from msgspec import Struct

from ..clients.rpc_client import JsonRpcClient
from ..contracts.events import NEW_LEAF_TOPIC
from ..core.exceptions import LeafDecodeError, RpcError
from ..core.logging import LoggingMixin
from ..decode.log_decoder import LeafDecoder
from ..types import BlockParamFormat, Leaf

LeafSink = Callable[[str, Leaf], Any]


class ReplayResult(Struct):
    start_block: int
    leaf_count: int = 0
    skipped: int = 0
    last_block: Optional[int] = None


class LogReplayer(LoggingMixin):
    """Catch-up over eth_getLogs for leaves emitted while no live filter was registered"""

    def __init__(self, rpc_client: JsonRpcClient, decoder: LeafDecoder, sink: LeafSink,
                 block_param_format: BlockParamFormat = BlockParamFormat.NUMBER,
                 event_topic: str = NEW_LEAF_TOPIC):
        self.rpc_client = rpc_client
        self.decoder = decoder
        self.sink = sink
        self.block_param_format = block_param_format
        self.event_topic = event_topic

    @staticmethod
    def start_block(from_block: Optional[int]) -> int:
        # The leaf at from_block is already recorded
        return from_block + 1 if from_block is not None else 0

    def build_log_filter(self, contract_address: str, start_block: int) -> Dict[str, Any]:
        return {
            "fromBlock": self.block_param_format.to_param(start_block),
            "toBlock": "latest",
            "address": contract_address,
            "topics": [self.event_topic],
        }

    def fetch_logs(self, contract_address: str, start_block: int) -> List[Dict[str, Any]]:
        params = self.build_log_filter(contract_address, start_block)
        response = self.rpc_client.call("eth_getLogs", [params])

        if response.get("error") is not None:
            raise RpcError("eth_getLogs", response["error"])
        return response.get("result") or []

    def replay(self, contract_address: str, from_block: Optional[int]) -> ReplayResult:
        start = self.start_block(from_block)
        self.log_info("Checking chain logs for missed NewLeaf events",
                      contract_address=contract_address,
                      from_block=start,
                      to_block="latest")

        logs = self.fetch_logs(contract_address, start)
        result = ReplayResult(start_block=start)

        for raw_log in logs:
            try:
                leaf = self.decoder.decode(raw_log)
            except LeafDecodeError as e:
                result.skipped += 1
                self.log_warning("Skipping undecodable historical log",
                                 contract_address=contract_address,
                                 error=str(e))
                continue

            self.log_info("Found previously missed leaf",
                          contract_address=contract_address,
                          leaf_index=leaf.leaf_index,
                          block_number=leaf.block_number)

            self.sink(contract_address, leaf)
            result.leaf_count += 1
            result.last_block = leaf.block_number

        self.log_info("Catch-up finished",
                      contract_address=contract_address,
                      from_block=start,
                      log_count=len(logs))
        return result
