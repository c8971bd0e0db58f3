"""
Threading and socket plumbing for the host server.
"""

from .connection import Connection, ConnectionClosed, ConnectionState
from .worker_pool import Task, Worker, WorkerPool, WorkerState

__all__ = [
    "Connection",
    "ConnectionClosed",
    "ConnectionState",
    "Task",
    "Worker",
    "WorkerPool",
    "WorkerState",
]
