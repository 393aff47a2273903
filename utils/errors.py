"""Error taxonomy shared by the store, the pipeline, the API and the CLI."""


class MetricWatchError(Exception):
    """Base error with an HTTP-style status classification."""
    status_code = 500

    def __init__(self, message, status_code=None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class Unauthenticated(MetricWatchError):
    status_code = 401

    def __init__(self, message="Unauthorized"):
        super().__init__(message)


class ValidationError(MetricWatchError):
    """Malformed input, rejected before anything is persisted."""
    status_code = 400

    def __init__(self, message, field=None):
        super().__init__(message)
        self.field = field


class NotFound(MetricWatchError):
    status_code = 404


class StorageError(MetricWatchError):
    """Underlying store failure. The message is never shown to API clients."""
    status_code = 500
