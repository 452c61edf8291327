# leafsync/database/repositories/tree_repository.py

from typing import List, Optional

from sqlalchemy import or_, update
from sqlalchemy.orm import Session

from ..tables import MerkleTree
from .base_repository import BaseRepository


class MerkleTreeRepository(BaseRepository[MerkleTree]):
    def __init__(self):
        super().__init__(MerkleTree)

    def get(self, session: Session, contract_address: str) -> Optional[MerkleTree]:
        return session.get(MerkleTree, contract_address.lower())

    def get_active(self, session: Session) -> List[MerkleTree]:
        return session.query(MerkleTree).filter(
            MerkleTree.active.is_(True)
        ).order_by(MerkleTree.contract_address).all()

    def get_or_create(self, session: Session, contract_address: str, active: bool = True) -> MerkleTree:
        tree = self.get(session, contract_address)
        if tree is None:
            tree = self.create(session, contract_address=contract_address.lower(), active=active)
            self.logger.info(f"Tracking new tree {tree.contract_address}")
        return tree

    def advance_latest_leaf(self, session: Session, contract_address: str,
                            leaf_index: int, block_number: int) -> bool:
        """Move the tree's latest leaf forward. Never moves it back, whatever other writers did."""
        stmt = (
            update(MerkleTree)
            .where(
                MerkleTree.contract_address == contract_address.lower(),
                or_(MerkleTree.latest_leaf_index.is_(None), MerkleTree.latest_leaf_index < leaf_index),
            )
            .values(latest_leaf_index=leaf_index, latest_leaf_block_number=block_number)
            .execution_options(synchronize_session=False)
        )
        return session.execute(stmt).rowcount > 0
