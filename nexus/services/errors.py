from __future__ import annotations

from typing import Any


class ServiceError(Exception):
    pass


class ValidationError(ServiceError):
    pass


class NotFoundError(ServiceError):
    pass


class ConflictError(ServiceError):
    pass


class DeleteBlockedError(ServiceError):
    def __init__(self, message: str, details: dict[str, Any]) -> None:
        super().__init__(message)
        self.details = details


class StorageError(ServiceError):
    pass


class ForbiddenError(ServiceError):
    pass
