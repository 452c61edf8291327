# leafsync/decode/log_decoder.py

from typing import Any, Dict, Optional, Union

import msgspec
from eth_abi.exceptions import DecodingError
from hexbytes import HexBytes
from web3 import Web3
from web3._utils.events import get_event_data
from web3.exceptions import MismatchedABI

from ..contracts.events import NEW_LEAF_EVENT_ABI
from ..core.exceptions import LeafDecodeError
from ..core.logging import LoggingMixin
from ..types import EvmLog, Leaf, to_int


class LeafDecoder(LoggingMixin):
    """Decodes raw NewLeaf log records into Leaf structs"""

    def __init__(self, event_abi: Optional[Dict[str, Any]] = None):
        self.event_abi = event_abi or NEW_LEAF_EVENT_ABI
        self.w3 = Web3()

    def parse_log(self, raw: Union[EvmLog, Dict[str, Any]]) -> EvmLog:
        if isinstance(raw, EvmLog):
            return raw
        try:
            return msgspec.convert(raw, EvmLog)
        except msgspec.ValidationError as e:
            raise LeafDecodeError(f"Malformed log record: {e}") from e

    def decode(self, raw: Union[EvmLog, Dict[str, Any]]) -> Leaf:
        log = self.parse_log(raw)

        if log.removed:
            raise LeafDecodeError(f"Log in tx {log.transactionHash} was removed by a reorg")

        try:
            log_entry = {
                "address": log.address,
                "topics": [HexBytes(topic) for topic in log.topics],
                "data": log.data,
                "blockNumber": to_int(log.blockNumber),
                "blockHash": log.blockHash,
                "transactionHash": log.transactionHash,
                "transactionIndex": log.transactionIndex,
                "logIndex": log.logIndex,
            }
            event_data = get_event_data(self.w3.codec, self.event_abi, log_entry)
        except (MismatchedABI, DecodingError, ValueError, TypeError) as e:
            raise LeafDecodeError(
                f"Cannot decode {self.event_abi['name']} from tx {log.transactionHash}: {e}"
            ) from e

        args = event_data["args"]
        leaf = Leaf(
            value=Web3.to_hex(args["leafValue"]),
            leaf_index=int(args["leafIndex"]),
            transaction_hash=log.transactionHash,
            block_number=log_entry["blockNumber"],
        )

        self.log_debug("Decoded leaf",
                       contract_address=log.address,
                       leaf_index=leaf.leaf_index,
                       block_number=leaf.block_number,
                       root=Web3.to_hex(args["root"]))

        return leaf
