"""Custom exceptions for the Ceph REST client."""

from typing import Any, List, Optional


class CephRestException(Exception):
    """Base exception for Ceph REST client errors."""

    def __init__(self, message: str):
        self.message = message
        super().__init__(self.message)


class CephValidationError(CephRestException, ValueError):
    """A required parameter is missing or invalid. Never retried."""

    pass


class CephAPIConnectionError(CephRestException):
    """Failed to connect to the Ceph REST API."""

    pass


class CephAPITimeout(CephRestException):
    """API request timed out."""

    pass


class CephAPIError(CephRestException):
    """API returned an error response.

    ``response_data`` holds the parsed body when the server sent JSON. Ceph
    error bodies look like ``{"detail": ..., "code": ..., "component": ...}``
    and the ``code``/``detail`` values are exposed as attributes.
    """

    def __init__(self, message: str, status_code: int = None, response_data: Any = None):
        super().__init__(message)
        self.status_code = status_code
        self.response_data = response_data

    @property
    def code(self) -> Optional[str]:
        if isinstance(self.response_data, dict):
            code = self.response_data.get("code")
            return str(code) if code is not None else None
        return None

    @property
    def detail(self) -> Optional[str]:
        if isinstance(self.response_data, dict):
            return self.response_data.get("detail")
        return None


class CephImageNotFound(CephAPIError):
    """RBD image not found."""

    pass


class CephImageAlreadyExists(CephAPIError):
    """RBD image already exists (create, or rename onto an existing name)."""

    pass


class CephLoginError(CephRestException):
    """Login to the Ceph REST API failed."""

    def __init__(self, message: str, status_code: int = None):
        super().__init__(message)
        self.status_code = status_code


class CephMaxIterationsExceeded(CephRestException):
    """The whole-operation retry budget was used up.

    ``attempts`` is the list of :class:`ceph_rest.client.block.Attempt`
    records collected while retrying.
    """

    def __init__(self, message: str, attempts: Optional[List[Any]] = None):
        super().__init__(message)
        self.attempts = list(attempts or [])


class CephTaskIndeterminate(CephRestException):
    """A task left the executing list but never showed up as finished.

    The outcome of the operation is unknown: it must not be read as success.
    """

    def __init__(self, message: str, identity: Any = None):
        super().__init__(message)
        self.identity = identity
