"""
Business logic services for the Contact Identity Resolution API
Contains the identity resolution core, its contact store and cluster locks.
"""

from .cluster_lock import ClusterLockManager
from .contact_store import ContactStore
from .exceptions import (
    IdentityResolutionError,
    InvalidInputError,
    StoreUnavailableError,
    ConcurrentClusterConflictError,
)
from .identity_service import IdentityService, identity_service

__all__ = [
    "ClusterLockManager",
    "ContactStore",
    "IdentityResolutionError",
    "InvalidInputError",
    "StoreUnavailableError",
    "ConcurrentClusterConflictError",
    "IdentityService",
    "identity_service"
]
