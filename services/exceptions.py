"""
Error taxonomy raised by the identity resolution core
"""

from typing import FrozenSet, Optional


class IdentityResolutionError(Exception):
    """Base class for every failure surfaced by the identity service"""

    error_code = "IdentityResolutionError"


class InvalidInputError(IdentityResolutionError):
    """Neither an email nor a phone number was supplied"""

    error_code = "ValidationError"


class StoreUnavailableError(IdentityResolutionError):
    """The persistence layer failed; the request's transaction was rolled back"""

    error_code = "StoreUnavailable"


class ConcurrentClusterConflictError(IdentityResolutionError):
    """
    The set of clusters implicated by a request changed between the unlocked
    lookup and lock acquisition more often than the retry budget allows
    """

    error_code = "ConcurrentClusterConflict"

    def __init__(
        self,
        message: str,
        expected_keys: Optional[FrozenSet[str]] = None,
        actual_keys: Optional[FrozenSet[str]] = None,
    ):
        super().__init__(message)
        self.expected_keys = expected_keys
        self.actual_keys = actual_keys
