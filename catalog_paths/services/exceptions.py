class ServiceError(Exception):
    """Base exception for service-level errors."""


class NotFoundError(ServiceError):
    pass


class ConflictError(ServiceError):
    pass


class InvalidCategoryError(ServiceError):
    pass


class PathResolutionError(ServiceError):
    """Base exception for failures while walking a category's ancestors."""

    def __init__(self, message: str, *, category_id=None, chain: list | None = None):
        super().__init__(message)
        self.category_id = category_id
        self.chain = list(chain or [])


class CycleDetected(PathResolutionError):
    pass


class PathDepthExceeded(PathResolutionError):
    pass


class ResolutionTimeout(PathResolutionError):
    pass
