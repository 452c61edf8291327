# leafsync/types/leaf.py

from typing import Optional, Union

from msgspec import Struct


class Leaf(Struct, frozen=True):
    value: str
    leaf_index: int
    transaction_hash: str
    block_number: int


class SubscriptionFilter(Struct, frozen=True):
    address: str
    topics: tuple[str, ...]

    def to_params(self) -> dict:
        return {"address": self.address, "topics": list(self.topics)}


class TrackedContract(Struct, frozen=True):
    contract_address: str
    last_block_number: Optional[int] = None


class Subscribed(Struct, frozen=True):
    filter: SubscriptionFilter
    subscription_id: str


class EndpointError(Struct, frozen=True):
    code: int
    message: str
    data: str


SubscribeResult = Union[Subscribed, EndpointError]
