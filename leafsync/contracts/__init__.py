# leafsync/contracts/__init__.py

from .abi_loader import ABILoader
from .events import NEW_LEAF_SIGNATURE, NEW_LEAF_TOPIC, NEW_LEAF_EVENT_ABI
