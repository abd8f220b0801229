from typing import Any, Optional


class BubbleMapError(Exception):
    pass


class DataSourceError(BubbleMapError):
    pass


class TransportError(DataSourceError):
    pass


class ServiceError(DataSourceError):
    def __init__(self, message: str, errors: Optional[Any] = None) -> None:
        super().__init__(message)
        self.errors = errors


class FatalFetchError(DataSourceError):
    def __init__(self, message: str, attempts: int) -> None:
        super().__init__(message)
        self.attempts = attempts
