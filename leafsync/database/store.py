# leafsync/database/store.py

from typing import List, Optional, Protocol

from sqlalchemy.exc import IntegrityError

from ..core.logging import LoggingMixin
from ..types import Leaf, TrackedContract
from .connection import DatabaseManager
from .repositories import LeafRepository, MerkleTreeRepository
from .tables import LeafRecord, MerkleTree


class LeafStore(Protocol):
    """What the sync pipeline needs from durable storage"""

    def get_active_contracts(self) -> List[TrackedContract]: ...

    def insert_leaf(self, contract_address: str, leaf: Leaf) -> bool: ...


class DatabaseLeafStore(LoggingMixin):
    """
    SQLAlchemy-backed leaf store.

    insert_leaf is idempotent per (contract_address, leaf_index): repeating
    a known leaf returns False and changes nothing.
    """

    def __init__(self, db_manager: DatabaseManager):
        self.db_manager = db_manager
        self.trees = MerkleTreeRepository()
        self.leaves = LeafRepository()

    def get_active_contracts(self) -> List[TrackedContract]:
        with self.db_manager.get_session() as session:
            return [
                TrackedContract(
                    contract_address=tree.contract_address,
                    last_block_number=tree.latest_leaf_block_number,
                )
                for tree in self.trees.get_active(session)
            ]

    def insert_leaf(self, contract_address: str, leaf: Leaf) -> bool:
        with self.db_manager.get_transaction() as session:
            if self.leaves.get_by_index(session, contract_address, leaf.leaf_index) is not None:
                self.log_debug("Leaf already recorded",
                               contract_address=contract_address,
                               leaf_index=leaf.leaf_index)
                return False

            self.trees.get_or_create(session, contract_address)
            self._check_sequence(session, contract_address, leaf)

            try:
                self.leaves.create_from_leaf(session, contract_address, leaf)
            except IntegrityError:
                # A concurrent writer stored the same leaf first
                session.rollback()
                if self.leaves.get_by_index(session, contract_address, leaf.leaf_index) is not None:
                    return False
                raise

            self.trees.advance_latest_leaf(session, contract_address, leaf.leaf_index, leaf.block_number)

        self.log_info("Leaf stored",
                      contract_address=contract_address,
                      leaf_index=leaf.leaf_index,
                      block_number=leaf.block_number)
        return True

    def _check_sequence(self, session, contract_address: str, leaf: Leaf) -> None:
        # Gap means the preceding index is missing from the leaves table
        if leaf.leaf_index == 0:
            return
        if self.leaves.get_by_index(session, contract_address, leaf.leaf_index - 1) is None:
            # Flag only: a synthetic leaf would corrupt the mirrored tree
            self.log_warning(f"Leaf index gap detected: leaf {leaf.leaf_index - 1} not recorded before {leaf.leaf_index}",
                             contract_address=contract_address,
                             leaf_index=leaf.leaf_index,
                             block_number=leaf.block_number)

    def track_contract(self, contract_address: str) -> TrackedContract:
        with self.db_manager.get_transaction() as session:
            tree = self.trees.get_or_create(session, contract_address)
            tree.active = True
            return TrackedContract(tree.contract_address, tree.latest_leaf_block_number)

    def get_tracked(self, contract_address: str) -> Optional[TrackedContract]:
        """Resume point of any known tree, active or not"""
        with self.db_manager.get_session() as session:
            tree = self.trees.get(session, contract_address)
            if tree is None:
                return None
            return TrackedContract(tree.contract_address, tree.latest_leaf_block_number)

    def set_active(self, contract_address: str, active: bool) -> bool:
        with self.db_manager.get_transaction() as session:
            tree = self.trees.get(session, contract_address)
            if tree is None:
                return False
            tree.active = active
            return True

    def get_trees(self) -> List[MerkleTree]:
        with self.db_manager.get_session() as session:
            return self.trees.get_all(session)

    def get_leaves(self, contract_address: str) -> List[Leaf]:
        with self.db_manager.get_session() as session:
            return [self._to_leaf(record) for record in self.leaves.get_for_contract(session, contract_address)]

    def count_leaves(self, contract_address: str) -> int:
        with self.db_manager.get_session() as session:
            return self.leaves.count_for_contract(session, contract_address)

    @staticmethod
    def _to_leaf(record: LeafRecord) -> Leaf:
        return Leaf(
            value=record.value,
            leaf_index=record.leaf_index,
            transaction_hash=record.transaction_hash,
            block_number=record.block_number,
        )
