class DiscoveryError(Exception):
    """Base class for every failure raised during a discovery pass."""

    retryable = False

    def __init__(self, message, region=None, operation=None, code=None):
        super().__init__(message)
        self.message = message
        self.region = region
        self.operation = operation
        self.code = code

    @property
    def kind(self):
        return type(self).__name__

    def to_dict(self):
        return {
            "type": self.kind,
            "message": self.message,
            "region": self.region,
            "operation": self.operation,
            "code": self.code,
        }


class AuthError(DiscoveryError):
    """Missing, invalid or expired credentials, or an access denial."""


class TransportError(DiscoveryError):
    """Network failure, throttling or a 5xx from the provider."""

    retryable = True


class NotFoundError(DiscoveryError):
    """The requested resource no longer exists."""


class EndpointNotReadyError(NotFoundError):
    """The cluster exists but has no API endpoint yet (e.g. still creating)."""


class ConfigError(DiscoveryError):
    """A client or configuration could not be built."""


class DiscoveryCancelledError(DiscoveryError):
    """Work abandoned because the run deadline passed or it was cancelled."""
