# leafsync/contracts/abi_loader.py

import json
from pathlib import Path
from typing import Optional, List, Dict, Any

from ..core.logging import LoggingMixin

DEFAULT_ABI_DIR = Path(__file__).parent / "abis"


class ABILoader(LoggingMixin):
    """Loads contract ABIs from filesystem with caching"""

    def __init__(self, abi_base_path: Optional[Path] = None):
        self.abi_base_path = abi_base_path or DEFAULT_ABI_DIR
        self._abi_cache: Dict[str, List[Dict[str, Any]]] = {}

        self.log_debug("ABI loader initialized", abi_base_path=str(self.abi_base_path))

    def load_abi(self, abi_file: str) -> List[Dict[str, Any]]:
        """Load ABI from filesystem with caching. Raises if the file is missing or malformed."""
        if abi_file in self._abi_cache:
            return self._abi_cache[abi_file]

        abi_path = self.abi_base_path / abi_file
        with open(abi_path, 'r') as f:
            abi_data = json.load(f)

        # Handle both a bare ABI array and a compiler artifact wrapping it
        if isinstance(abi_data, dict) and 'abi' in abi_data:
            abi = abi_data['abi']
        else:
            abi = abi_data

        if not isinstance(abi, list):
            raise ValueError(f"ABI in {abi_path} is not a list")

        self._abi_cache[abi_file] = abi

        self.log_debug("ABI loaded successfully",
                       abi_path=str(abi_path),
                       abi_events=len([item for item in abi if item.get('type') == 'event']))

        return abi

    def get_event_abi(self, abi_file: str, event_name: str) -> Dict[str, Any]:
        for item in self.load_abi(abi_file):
            if item.get('type') == 'event' and item.get('name') == event_name:
                return item
        raise ValueError(f"Event {event_name} not found in {abi_file}")
