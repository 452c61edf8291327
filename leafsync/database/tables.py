# leafsync/database/tables.py

from sqlalchemy import BigInteger, Boolean, Column, Integer, String, UniqueConstraint

from .base import DBBaseModel


class MerkleTree(DBBaseModel):
    """A tree contract whose leaves are mirrored. Only active trees are synced."""
    __tablename__ = 'merkle_trees'

    contract_address = Column(String(42), primary_key=True)
    active = Column(Boolean, nullable=False, default=True, index=True)
    latest_leaf_index = Column(Integer, nullable=True)
    latest_leaf_block_number = Column(BigInteger, nullable=True)

    def __repr__(self) -> str:
        return f"<MerkleTree(contract_address={self.contract_address}, active={self.active})>"


class LeafRecord(DBBaseModel):
    __tablename__ = 'leaves'
    __table_args__ = (
        UniqueConstraint('contract_address', 'leaf_index', name='uq_leaves_contract_leaf_index'),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    contract_address = Column(String(42), nullable=False, index=True)
    leaf_index = Column(Integer, nullable=False)
    value = Column(String(66), nullable=False)
    transaction_hash = Column(String(66), nullable=False)
    block_number = Column(BigInteger, nullable=False, index=True)

    def __repr__(self) -> str:
        return f"<LeafRecord(contract_address={self.contract_address}, leaf_index={self.leaf_index})>"
