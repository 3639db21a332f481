from __future__ import annotations

from typing import Any

import structlog
from sqlmodel import Session, col, select

from nexus.domain.models import (
    Asset,
    Comment,
    CommentCreate,
    CommentRead,
    Organization,
    User,
    WorkOrder,
    WorkOrderCreate,
    WorkOrderDetail,
    WorkOrderPriority,
    WorkOrderRead,
    WorkOrderRecordRead,
    WorkOrderStatus,
    WorkOrderUpdate,
    now_utc,
)
from nexus.infra.activity import ACTION_CREATED, ACTION_UPDATED, record_activity, snapshot
from nexus.infra.db import get_engine
from nexus.services.errors import NotFoundError, ValidationError
from nexus.services.filters import Page, work_order_predicates
from nexus.services.numbering import next_work_order_number
from nexus.services.relations import comment_reads, count_where, work_order_read, work_order_reads

logger = structlog.get_logger(__name__)

ENTITY_TYPE = "WorkOrder"
REQUIRED_COLUMNS = {"title", "status", "priority"}


def ensure_user(session: Session, user_id: str | None, message: str) -> None:
    if user_id and session.get(User, user_id) is None:
        raise ValidationError(message)


def ensure_asset_in_organization(session: Session, asset_id: str | None, organization_id: str) -> None:
    if not asset_id:
        return
    asset = session.get(Asset, asset_id)
    if asset is None:
        raise ValidationError("Invalid asset ID")
    if asset.organization_id != organization_id:
        raise ValidationError("Asset belongs to a different organization")


def insert_work_order(session: Session, data: dict[str, Any]) -> WorkOrder:
    """Number, stage and audit a new work order on ``session``.

    ``data`` holds validated column values including ``organization_id`` and
    ``created_by_id``. The caller commits.
    """
    if session.get(Organization, data["organization_id"]) is None:
        raise ValidationError("Invalid organization ID")
    ensure_user(session, data["created_by_id"], "Invalid creator user ID")
    ensure_user(session, data.get("assigned_to_id"), "Invalid assignee user ID")
    ensure_asset_in_organization(session, data.get("asset_id"), data["organization_id"])

    work_order = WorkOrder(
        work_order_number=next_work_order_number(session, data["organization_id"]),
        **data,
    )
    if work_order.status == WorkOrderStatus.COMPLETED:
        work_order.completed_at = now_utc()
    session.add(work_order)
    session.flush()
    record_activity(
        session,
        action=ACTION_CREATED,
        entity_type=ENTITY_TYPE,
        entity_id=work_order.id,
        organization_id=work_order.organization_id,
        user_id=work_order.created_by_id,
        description=f'Work order "{work_order.work_order_number}" was created',
        new_values=snapshot(WorkOrderRecordRead, work_order),
    )
    return work_order


class WorkOrderService:
    def _session(self) -> Session:
        return Session(get_engine(), expire_on_commit=False)

    def _get_work_order(self, session: Session, work_order_id: str) -> WorkOrder:
        work_order = session.get(WorkOrder, work_order_id)
        if work_order is None:
            raise NotFoundError("Work order not found")
        return work_order

    def list_work_orders(
        self,
        *,
        organization_id: str | None = None,
        status: WorkOrderStatus | None = None,
        priority: WorkOrderPriority | None = None,
        assigned_to_id: str | None = None,
        created_by_id: str | None = None,
        asset_id: str | None = None,
        type: str | None = None,
        search: str | None = None,
        limit: int | None = None,
        offset: int | None = None,
    ) -> Page[WorkOrderRead]:
        params: dict[str, Any] = {
            "organization_id": organization_id,
            "status": status,
            "priority": priority,
            "assigned_to_id": assigned_to_id,
            "created_by_id": created_by_id,
            "asset_id": asset_id,
            "type": type,
            "search": search,
        }
        predicates = work_order_predicates(params)
        with self._session() as session:
            statement = select(WorkOrder)
            for predicate in predicates:
                statement = statement.where(predicate)
            statement = statement.order_by(col(WorkOrder.created_at).desc())
            if offset is not None:
                statement = statement.offset(offset)
            if limit is not None:
                statement = statement.limit(limit)
            rows = list(session.exec(statement).all())
            total = count_where(session, WorkOrder, *predicates)
            items = work_order_reads(session, rows)
        return Page(
            items=items,
            total=total,
            offset=offset or 0,
            limit=limit if limit is not None else len(items),
        )

    def get_work_order(self, work_order_id: str) -> WorkOrderDetail:
        with self._session() as session:
            work_order = self._get_work_order(session, work_order_id)
            comments = session.exec(
                select(Comment)
                .where(Comment.work_order_id == work_order_id)
                .order_by(col(Comment.created_at).asc())
            ).all()
            return WorkOrderDetail(
                **work_order_read(session, work_order).model_dump(),
                comments=comment_reads(session, comments),
            )

    def create_work_order(self, payload: WorkOrderCreate) -> WorkOrderRead:
        with self._session() as session:
            work_order = insert_work_order(session, payload.model_dump())
            session.commit()
            session.refresh(work_order)
            logger.info(
                "work_order_created",
                work_order_id=work_order.id,
                work_order_number=work_order.work_order_number,
                organization_id=work_order.organization_id,
            )
            return work_order_read(session, work_order)

    def update_work_order(self, work_order_id: str, payload: WorkOrderUpdate) -> WorkOrderRead:
        with self._session() as session:
            work_order = self._get_work_order(session, work_order_id)
            before = snapshot(WorkOrderRecordRead, work_order)
            changes = payload.model_dump(exclude_unset=True)
            updated_by_id = changes.pop("updated_by_id", None)
            if "assigned_to_id" in changes:
                ensure_user(session, changes["assigned_to_id"], "Invalid assignee user ID")
            if "asset_id" in changes:
                ensure_asset_in_organization(session, changes["asset_id"], work_order.organization_id)

            previous_status = work_order.status
            for key, value in changes.items():
                if value is None and key in REQUIRED_COLUMNS:
                    continue
                setattr(work_order, key, value)
            if work_order.status != previous_status:
                if work_order.status == WorkOrderStatus.COMPLETED:
                    work_order.completed_at = now_utc()
                elif previous_status == WorkOrderStatus.COMPLETED:
                    work_order.completed_at = None
            work_order.updated_at = now_utc()
            session.add(work_order)
            if updated_by_id:
                record_activity(
                    session,
                    action=ACTION_UPDATED,
                    entity_type=ENTITY_TYPE,
                    entity_id=work_order.id,
                    organization_id=work_order.organization_id,
                    user_id=updated_by_id,
                    description=f'Work order "{work_order.work_order_number}" was updated',
                    old_values=before,
                    new_values=snapshot(WorkOrderRecordRead, work_order),
                )
            session.commit()
            session.refresh(work_order)
            return work_order_read(session, work_order)

    def list_comments(self, work_order_id: str) -> list[CommentRead]:
        with self._session() as session:
            self._get_work_order(session, work_order_id)
            rows = session.exec(
                select(Comment)
                .where(Comment.work_order_id == work_order_id)
                .order_by(col(Comment.created_at).asc())
            ).all()
            return comment_reads(session, rows)

    def add_comment(self, work_order_id: str, payload: CommentCreate) -> CommentRead:
        with self._session() as session:
            self._get_work_order(session, work_order_id)
            ensure_user(session, payload.author_id, "Invalid author user ID")
            comment = Comment(
                work_order_id=work_order_id,
                author_id=payload.author_id,
                content=payload.content,
                type=payload.type,
            )
            session.add(comment)
            session.commit()
            session.refresh(comment)
            return comment_reads(session, [comment])[0]
