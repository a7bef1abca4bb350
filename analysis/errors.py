"""Error taxonomy shared by the codec, dispatcher and proxy layer"""
from typing import Optional


class OrchestratorError(Exception):
    """Base class for every error raised by this package"""


class FormatError(OrchestratorError, ValueError):
    """Malformed or under-sized table input"""


class ValidationError(OrchestratorError, ValueError):
    """Required input missing (no table, no goal text, wrong state)"""


class RemoteServiceError(OrchestratorError):
    """A remote agent service could not produce a usable response"""

    def __init__(self, message: str, target: str = ""):
        super().__init__(message)
        self.message = message
        self.target = target


class NetworkError(RemoteServiceError):
    """Endpoint unreachable or timed out"""


class UpstreamError(RemoteServiceError):
    """Endpoint reachable but answered with a non-2xx status"""

    def __init__(self, message: str, target: str = "", status_code: int = 502, body: Optional[str] = None):
        super().__init__(message, target)
        self.status_code = status_code
        self.body = body
