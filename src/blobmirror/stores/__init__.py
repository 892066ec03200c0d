"""
Object stores: the storage backends the mirror reads from and writes to.
"""

from blobmirror.stores.base import ContainerDescriptor, ObjectDescriptor, ObjectStore
from blobmirror.stores.factory import create_store
from blobmirror.stores.filesystem import FilesystemStore
from blobmirror.stores.memory import InMemoryStore

__all__ = [
    "ObjectStore",
    "ContainerDescriptor",
    "ObjectDescriptor",
    "create_store",
    "FilesystemStore",
    "InMemoryStore",
]
