# leafsync/database/__init__.py

from .base import Base
from .connection import DatabaseManager
from .tables import LeafRecord, MerkleTree
from .store import DatabaseLeafStore, LeafStore
