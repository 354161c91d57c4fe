# services/__init__.py
# External collaborator clients

from .graph_store import GraphStoreClient

__all__ = [
    "GraphStoreClient",
]
