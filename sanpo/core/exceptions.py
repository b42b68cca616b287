from __future__ import annotations


class PipelineError(Exception):
    """Base class for every failure that ends a pipeline run."""

    category = "pipeline"

    def __init__(self, message: str, status_code: int = 500) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.message = message


class ParseError(PipelineError):
    category = "parse"

    def __init__(self, message: str, status_code: int = 422) -> None:
        super().__init__(message, status_code=status_code)


class NotFoundError(PipelineError):
    category = "not_found"

    def __init__(self, message: str, status_code: int = 404) -> None:
        super().__init__(message, status_code=status_code)


class RouteNotFoundError(PipelineError):
    category = "route_not_found"

    def __init__(self, message: str, status_code: int = 404) -> None:
        super().__init__(message, status_code=status_code)


class DecodeError(PipelineError):
    category = "decode"

    def __init__(self, message: str, status_code: int = 502) -> None:
        super().__init__(message, status_code=status_code)


class GeometryError(PipelineError):
    category = "geometry"

    def __init__(self, message: str, status_code: int = 422) -> None:
        super().__init__(message, status_code=status_code)


class FetchError(PipelineError):
    category = "fetch"

    def __init__(self, message: str, status_code: int = 502) -> None:
        super().__init__(message, status_code=status_code)


class ServiceError(PipelineError):
    category = "service"

    def __init__(self, message: str, status_code: int = 503) -> None:
        super().__init__(message, status_code=status_code)


class RateLimitedError(ServiceError):
    """Upstream answered 429; retried at the transport level."""
