"""Error taxonomy for the access routing layer."""

from typing import Optional


class BeamError(Exception):
    """Base class for every error raised or reported by beam_core."""


class ConfigurationError(BeamError):
    """The access node directory is missing, unreadable or malformed."""


class NoCoverageError(BeamError):
    """No configured access node can answer for a required height."""

    def __init__(self, height: Optional[int] = None):
        self.height = height
        if height is None:
            message = "No access node configured"
        else:
            message = f"No access node for height {height}"
        super().__init__(message)


class BackendError(BeamError):
    """A call to an access node failed (transport, protocol or rejection)."""

    def __init__(
        self,
        address: str,
        operation: str,
        details: str,
        code: Optional[str] = None,
    ):
        self.address = address
        self.operation = operation
        self.details = details
        self.code = code
        prefix = f"{operation} on {address} failed"
        if code:
            prefix += f" [{code}]"
        super().__init__(f"{prefix}: {details}")
