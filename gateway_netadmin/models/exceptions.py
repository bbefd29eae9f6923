class NetAdminException(Exception):
    pass


class ConfigurationError(NetAdminException):
    """A configuration item failed its own validity check."""

    def __init__(self, message: str, item=None):
        super().__init__(message)
        self.item = item


class RequiredAttributeMissingError(NetAdminException):
    """A mandatory configuration item is missing for the interface type."""


class InternalError(NetAdminException):
    """Wraps failures of external processes and host lookups."""
