# leafsync/database/repositories/__init__.py

from .base_repository import BaseRepository
from .leaf_repository import LeafRepository
from .tree_repository import MerkleTreeRepository
