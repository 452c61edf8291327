# leafsync/database/repositories/leaf_repository.py

from typing import List, Optional

from sqlalchemy.orm import Session

from ...types import Leaf
from ..tables import LeafRecord
from .base_repository import BaseRepository


class LeafRepository(BaseRepository[LeafRecord]):
    def __init__(self):
        super().__init__(LeafRecord)

    def get_by_index(self, session: Session, contract_address: str, leaf_index: int) -> Optional[LeafRecord]:
        return session.query(LeafRecord).filter(
            LeafRecord.contract_address == contract_address.lower(),
            LeafRecord.leaf_index == leaf_index,
        ).one_or_none()

    def get_for_contract(self, session: Session, contract_address: str) -> List[LeafRecord]:
        return session.query(LeafRecord).filter(
            LeafRecord.contract_address == contract_address.lower()
        ).order_by(LeafRecord.leaf_index).all()

    def count_for_contract(self, session: Session, contract_address: str) -> int:
        return session.query(LeafRecord).filter(
            LeafRecord.contract_address == contract_address.lower()
        ).count()

    def create_from_leaf(self, session: Session, contract_address: str, leaf: Leaf) -> LeafRecord:
        record = LeafRecord.from_msgspec(leaf, contract_address=contract_address.lower())
        session.add(record)
        session.flush()
        return record
