from __future__ import annotations

from collections.abc import Iterable, Sequence
from typing import Any, TypeVar

from sqlalchemy import func
from sqlmodel import Session, SQLModel, col, select

from nexus.domain.models import (
    Asset,
    AssetRead,
    AssetRecordRead,
    AssetRef,
    Comment,
    CommentRead,
    Organization,
    OrganizationRef,
    User,
    UserRead,
    UserRef,
    WorkOrder,
    WorkOrderRead,
    WorkOrderRecordRead,
)

RowT = TypeVar("RowT", bound=SQLModel)


def load_by_ids(session: Session, model: type[RowT], ids: Iterable[str | None]) -> dict[str, RowT]:
    wanted = {item for item in ids if item}
    if not wanted:
        return {}
    rows = session.exec(select(model).where(col(model.id).in_(sorted(wanted)))).all()  # type: ignore[attr-defined]
    return {row.id: row for row in rows}  # type: ignore[attr-defined]


def count_by(session: Session, column: Any, ids: Iterable[str]) -> dict[str, int]:
    wanted = set(ids)
    if not wanted:
        return {}
    statement = select(column, func.count()).where(col(column).in_(sorted(wanted))).group_by(column)
    return {key: int(total) for key, total in session.exec(statement).all()}


def count_where(session: Session, model: type[SQLModel], *predicates: Any) -> int:
    statement = select(func.count()).select_from(model)
    for predicate in predicates:
        statement = statement.where(predicate)
    return int(session.exec(statement).one())


def _org_ref(org: Organization | None) -> OrganizationRef | None:
    return OrganizationRef.model_validate(org) if org is not None else None


def _user_ref(user: User | None) -> UserRef | None:
    return UserRef.model_validate(user) if user is not None else None


def asset_reads(session: Session, rows: Sequence[Asset]) -> list[AssetRead]:
    orgs = load_by_ids(session, Organization, (row.organization_id for row in rows))
    users = load_by_ids(session, User, (row.created_by_id for row in rows))
    work_order_counts = count_by(session, WorkOrder.asset_id, (row.id for row in rows))
    return [
        AssetRead(
            **AssetRecordRead.model_validate(row).model_dump(),
            organization=_org_ref(orgs.get(row.organization_id)),
            created_by=_user_ref(users.get(row.created_by_id)),
            work_order_count=work_order_counts.get(row.id, 0),
        )
        for row in rows
    ]


def asset_read(session: Session, row: Asset) -> AssetRead:
    return asset_reads(session, [row])[0]


def work_order_reads(session: Session, rows: Sequence[WorkOrder]) -> list[WorkOrderRead]:
    orgs = load_by_ids(session, Organization, (row.organization_id for row in rows))
    assets = load_by_ids(session, Asset, (row.asset_id for row in rows))
    users = load_by_ids(
        session,
        User,
        [*(row.assigned_to_id for row in rows), *(row.created_by_id for row in rows)],
    )
    comment_counts = count_by(session, Comment.work_order_id, (row.id for row in rows))
    result: list[WorkOrderRead] = []
    for row in rows:
        asset = assets.get(row.asset_id) if row.asset_id else None
        assignee = users.get(row.assigned_to_id) if row.assigned_to_id else None
        result.append(
            WorkOrderRead(
                **WorkOrderRecordRead.model_validate(row).model_dump(),
                organization=_org_ref(orgs.get(row.organization_id)),
                asset=AssetRef.model_validate(asset) if asset is not None else None,
                assigned_to=_user_ref(assignee),
                created_by=_user_ref(users.get(row.created_by_id)),
                comment_count=comment_counts.get(row.id, 0),
            )
        )
    return result


def work_order_read(session: Session, row: WorkOrder) -> WorkOrderRead:
    return work_order_reads(session, [row])[0]


def comment_reads(session: Session, rows: Sequence[Comment]) -> list[CommentRead]:
    authors = load_by_ids(session, User, (row.author_id for row in rows))
    return [
        CommentRead(
            id=row.id,
            work_order_id=row.work_order_id,
            author_id=row.author_id,
            author=_user_ref(authors.get(row.author_id)),
            content=row.content,
            type=row.type,
            created_at=row.created_at,
        )
        for row in rows
    ]


def user_reads(session: Session, rows: Sequence[User]) -> list[UserRead]:
    orgs = load_by_ids(session, Organization, (row.organization_id for row in rows))
    return [
        UserRead(
            **UserRead.model_validate(row).model_dump(exclude={"organization"}),
            organization=_org_ref(orgs.get(row.organization_id)) if row.organization_id else None,
        )
        for row in rows
    ]


def user_read(session: Session, row: User) -> UserRead:
    return user_reads(session, [row])[0]
