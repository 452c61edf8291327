# leafsync/contracts/events.py
"""
Tree contract event schema, built once per process.
"""

from web3 import Web3

from .abi_loader import ABILoader

MERKLE_TREE_ABI_FILE = "merkle_tree.json"

NEW_LEAF_SIGNATURE = "NewLeaf(uint256,bytes32,bytes32)"
NEW_LEAF_TOPIC = Web3.to_hex(Web3.keccak(text=NEW_LEAF_SIGNATURE))

NEW_LEAF_EVENT_ABI = ABILoader().get_event_abi(MERKLE_TREE_ABI_FILE, "NewLeaf")
