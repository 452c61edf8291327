# leafsync/types/evm.py

from typing import Optional, Union

from msgspec import Struct


class EvmLog(Struct):
    """Raw log record as returned by eth_getLogs or an eth_subscription notification"""
    address: str
    topics: list[str]
    data: str
    blockNumber: Union[int, str]
    transactionHash: str
    logIndex: Union[int, str, None] = None
    blockHash: Optional[str] = None
    transactionIndex: Union[int, str, None] = None
    removed: bool = False # True when the log was dropped by a reorg


def to_int(quantity: Union[int, str]) -> int:
    """Convert a JSON-RPC quantity (hex string, decimal string or int) to int"""
    if isinstance(quantity, int):
        return quantity
    if quantity.startswith(("0x", "0X")):
        return int(quantity, 16)
    return int(quantity)
