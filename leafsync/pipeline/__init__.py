# leafsync/pipeline/__init__.py

from .replayer import LogReplayer, ReplayResult
from .coordinator import RestartCoordinator, RestartReport
