"""Error taxonomy for the cluster control plane."""


class ClusterControlError(Exception):
    """Base class for all control-plane errors."""

    pass


class NotFoundError(ClusterControlError):
    """Raised when no persisted state exists for a resource."""

    pass


class NotAuthorizedError(ClusterControlError):
    """Raised when state is absent and the caller may not create it."""

    pass


class ConflictError(ClusterControlError):
    """Raised when a create-if-absent lost a race to another writer."""

    pass


class ConfigParseError(ClusterControlError):
    """Raised for a malformed counter, directory or override document."""

    pass


class RenderError(ClusterControlError):
    """Raised when a config artifact cannot be written."""

    pass


class RetryableUnavailableError(ClusterControlError):
    """Raised when external credentials are not present yet."""

    pass


class StoreError(ClusterControlError):
    """Raised for any other failure of the Kubernetes API."""

    def __init__(self, message: str, status: int | None = None):
        super().__init__(message)
        self.status = status


class KeyGenerationError(ClusterControlError):
    """Raised when the keyring tool fails or its output has no key."""

    pass


class ResolutionCancelledError(ClusterControlError):
    """Raised when a polling loop is stopped before it resolved."""

    pass
