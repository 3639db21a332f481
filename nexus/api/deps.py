from __future__ import annotations

from typing import Annotated

from fastapi import Depends, HTTPException, status

from nexus.config import Settings, get_settings
from nexus.services.errors import (
    ConflictError,
    DeleteBlockedError,
    ForbiddenError,
    NotFoundError,
    ServiceError,
    StorageError,
    ValidationError,
)

AppSettings = Annotated[Settings, Depends(get_settings)]


def handle_service_error(exc: ServiceError) -> None:
    """Re-raise a service failure as the matching HTTP error."""
    if isinstance(exc, NotFoundError):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    if isinstance(exc, DeleteBlockedError):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"message": str(exc), "details": exc.details},
        ) from exc
    if isinstance(exc, ValidationError):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    if isinstance(exc, ConflictError):
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
    if isinstance(exc, ForbiddenError):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(exc)) from exc
    if isinstance(exc, StorageError):
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc)) from exc
    raise exc


def parse_bool_flag(value: str | None) -> bool | None:
    """Query flags are true only for the literal ``"true"``."""
    if value is None or value.strip() == "":
        return None
    return value.strip() == "true"
