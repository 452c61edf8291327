# leafsync/stream/__init__.py

from .connection import StreamConnection
from .manager import ConnectionManager
from .subscriber import EventSubscriber, LiveSubscription
