"""Client for the Ceph REST API (RBD block images and background tasks)."""

from .block import BlockImageClient, RBDCreate, RBDImage, RBDUpdate
from .client import CephClient, connect
from .session import CephSession, Server
from .tasks import OperationIdentity, Task, TaskDirectory, TaskDirectoryReader, TaskWaiter, matches
from .utils import path_join

__all__ = [
    "BlockImageClient",
    "CephClient",
    "CephSession",
    "OperationIdentity",
    "RBDCreate",
    "RBDImage",
    "RBDUpdate",
    "Server",
    "Task",
    "TaskDirectory",
    "TaskDirectoryReader",
    "TaskWaiter",
    "connect",
    "matches",
    "path_join",
]
