"""
Exception hierarchy for the report sync pipeline.

Every failure raised by the sync flow derives from SyncError so the HTTP
entry point and the CLI can convert it into a uniform failure response.
"""


class SyncError(Exception):
    """Base class for report sync failures."""
    pass


class ConfigurationError(SyncError):
    """Raised when a required setting is missing or invalid."""
    pass


class AuthenticationError(SyncError):
    """Raised when the client-credentials token exchange fails."""

    def __init__(self, message: str, status_code: int = None, body: str = None):
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class FileFetchError(SyncError):
    """Raised when the remote report file cannot be downloaded."""

    def __init__(self, message: str, status_code: int = None, body: str = None):
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class ReportParseError(SyncError):
    """Raised when the report body is not well-formed XML."""
    pass


class PersistenceError(SyncError):
    """Raised when a header or row insert is rejected by the datastore."""
    pass
