# leafsync/clients/__init__.py

from .rpc_client import JsonRpcClient
