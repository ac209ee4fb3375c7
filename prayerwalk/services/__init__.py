"""Services package"""

from .connections import ConnectionRegistry, InMemoryConnectionRegistry
from .ingestion import SessionWorkerPool, make_sample_handler
from .walks import WalkService

__all__ = [
    "ConnectionRegistry",
    "InMemoryConnectionRegistry",
    "SessionWorkerPool",
    "WalkService",
    "make_sample_handler",
]
