class FeedError(Exception):
    code: str = "feed_error"
    status: int = 400

    def __init__(self, message: str = "", *, code: str | None = None, status: int | None = None):
        super().__init__(message or self.__class__.__name__)
        if code: self.code = code
        if status: self.status = status


class NotFound(FeedError):
    code = "not_found"
    status = 404


class ValidationFailure(FeedError):
    code = "validation_failure"
    status = 422


class DegradedDependency(FeedError):
    """A catalog or aggregate store failed; callers recover with partial data."""
    code = "degraded_dependency"
    status = 503


class ConfigurationError(FeedError):
    """The configured storage backend cannot provide a required feature."""
    code = "configuration_error"
    status = 500
