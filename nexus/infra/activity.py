from __future__ import annotations

from typing import Any

from pydantic import BaseModel
from sqlmodel import Session

from nexus.domain.models import ActivityLog

ACTION_CREATED = "created"
ACTION_UPDATED = "updated"
ACTION_DELETED = "deleted"
ACTION_FILES_UPLOADED = "files_uploaded"
ACTION_FILE_DELETED = "file_deleted"


def snapshot(read_model: type[BaseModel], row: Any) -> dict[str, Any]:
    """Serialize a table row through its read schema for the audit trail."""
    return read_model.model_validate(row).model_dump(mode="json", by_alias=True)


def record_activity(
    session: Session,
    *,
    action: str,
    entity_type: str,
    entity_id: str,
    organization_id: str,
    user_id: str | None,
    description: str,
    old_values: dict[str, Any] | None = None,
    new_values: dict[str, Any] | None = None,
) -> ActivityLog:
    """Stage an activity row on the caller's session.

    The row is committed together with the entity change it describes.
    """
    log = ActivityLog(
        action=action,
        entity_type=entity_type,
        entity_id=entity_id,
        description=description,
        old_values=old_values,
        new_values=new_values,
        organization_id=organization_id,
        user_id=user_id,
    )
    session.add(log)
    return log
