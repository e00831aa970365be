"""Error taxonomy for the warehouse-document bridge.

Every error carries a human-readable message that is returned to the caller
unchanged, an optional ``details`` mapping merged into the error response,
and the HTTP status class the API layer should answer with.
"""

from typing import Any, Dict, Optional


class BridgeError(Exception):
    """Base exception for bridge errors."""
    status_code: int = 500

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details: Dict[str, Any] = dict(details or {})

    def to_dict(self) -> Dict[str, Any]:
        return {"error": self.message, **self.details}


class ValidationError(BridgeError):
    """Malformed, missing or contradictory caller input (400)."""
    status_code = 400


class NotFoundError(BridgeError):
    """The resolved entity has no product rows (404)."""
    status_code = 404


class RemoteCallError(BridgeError):
    """Any failure reported by, or on the way to, the remote REST API."""

    def __init__(
        self,
        message: str,
        method: str = "",
        error_code: str = "",
        status_code: int = 0,
    ):
        super().__init__(message)
        self.method = method
        self.error_code = error_code
        # HTTP status returned by the remote side, 0 for transport failures
        self.remote_status = status_code


class ConfigurationError(BridgeError):
    """The webhook link has not been initialized or cannot be read."""
    pass
