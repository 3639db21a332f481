from __future__ import annotations

import structlog
from sqlmodel import Session, col, select

from nexus.domain.models import (
    Asset,
    AssetStatus,
    AssetStats,
    Organization,
    OrganizationAssetSummary,
    OrganizationCounts,
    OrganizationCreate,
    OrganizationDetail,
    OrganizationListItem,
    OrganizationRead,
    OrganizationStats,
    OrganizationUpdate,
    OrganizationUserSummary,
    User,
    UserStats,
    WorkOrder,
    WorkOrderStats,
    WorkOrderStatus,
    WorkOrderSummary,
    now_utc,
)
from nexus.infra.db import get_engine
from nexus.services.errors import DeleteBlockedError, NotFoundError
from nexus.services.relations import count_by, count_where

logger = structlog.get_logger(__name__)

OPEN_WORK_ORDER_STATUSES = (WorkOrderStatus.OPEN, WorkOrderStatus.IN_PROGRESS)
OFFLINE_ASSET_STATUSES = (AssetStatus.INACTIVE, AssetStatus.UNDER_MAINTENANCE)


class OrganizationService:
    def _session(self) -> Session:
        return Session(get_engine(), expire_on_commit=False)

    def _get_organization(self, session: Session, organization_id: str) -> Organization:
        organization = session.get(Organization, organization_id)
        if organization is None:
            raise NotFoundError("Organization not found")
        return organization

    def _counts(self, session: Session, organization_id: str) -> OrganizationCounts:
        return OrganizationCounts(
            users=count_where(session, User, User.organization_id == organization_id),
            assets=count_where(session, Asset, Asset.organization_id == organization_id),
            work_orders=count_where(session, WorkOrder, WorkOrder.organization_id == organization_id),
        )

    def create_organization(self, payload: OrganizationCreate) -> OrganizationRead:
        with self._session() as session:
            data = payload.model_dump()
            data["timezone"] = data.get("timezone") or "UTC"
            organization = Organization(**data)
            session.add(organization)
            session.commit()
            session.refresh(organization)
            logger.info("organization_created", organization_id=organization.id)
            return OrganizationRead.model_validate(organization)

    def list_organizations(self) -> list[OrganizationListItem]:
        with self._session() as session:
            rows = list(
                session.exec(select(Organization).order_by(col(Organization.created_at).desc())).all()
            )
            ids = [row.id for row in rows]
            users = count_by(session, User.organization_id, ids)
            assets = count_by(session, Asset.organization_id, ids)
            work_orders = count_by(session, WorkOrder.organization_id, ids)
            return [
                OrganizationListItem(
                    **OrganizationRead.model_validate(row).model_dump(),
                    counts=OrganizationCounts(
                        users=users.get(row.id, 0),
                        assets=assets.get(row.id, 0),
                        work_orders=work_orders.get(row.id, 0),
                    ),
                )
                for row in rows
            ]

    def get_organization(self, organization_id: str) -> OrganizationDetail:
        with self._session() as session:
            organization = self._get_organization(session, organization_id)
            users = session.exec(select(User).where(User.organization_id == organization_id)).all()
            assets = session.exec(select(Asset).where(Asset.organization_id == organization_id)).all()
            work_orders = session.exec(
                select(WorkOrder).where(WorkOrder.organization_id == organization_id)
            ).all()
            return OrganizationDetail(
                **OrganizationRead.model_validate(organization).model_dump(),
                users=[OrganizationUserSummary.model_validate(item) for item in users],
                assets=[OrganizationAssetSummary.model_validate(item) for item in assets],
                work_orders=[WorkOrderSummary.model_validate(item) for item in work_orders],
                counts=OrganizationCounts(
                    users=len(users),
                    assets=len(assets),
                    work_orders=len(work_orders),
                ),
            )

    def update_organization(self, organization_id: str, payload: OrganizationUpdate) -> OrganizationRead:
        with self._session() as session:
            organization = self._get_organization(session, organization_id)
            changes = payload.model_dump(exclude_unset=True)
            for key, value in changes.items():
                if value is None and key in {"name", "timezone"}:
                    continue
                setattr(organization, key, value)
            organization.updated_at = now_utc()
            session.add(organization)
            session.commit()
            session.refresh(organization)
            return OrganizationRead.model_validate(organization)

    def delete_organization(self, organization_id: str) -> None:
        with self._session() as session:
            organization = self._get_organization(session, organization_id)
            counts = self._counts(session, organization_id)
            if counts.users > 0 or counts.assets > 0 or counts.work_orders > 0:
                raise DeleteBlockedError(
                    "Cannot delete organization with existing users, assets, or work orders",
                    counts.model_dump(by_alias=True),
                )
            session.delete(organization)
            session.commit()
        logger.info("organization_deleted", organization_id=organization_id)

    def get_stats(self, organization_id: str) -> OrganizationStats:
        with self._session() as session:
            self._get_organization(session, organization_id)
            in_org_user = User.organization_id == organization_id
            in_org_asset = Asset.organization_id == organization_id
            in_org_work_order = WorkOrder.organization_id == organization_id
            is_open = col(WorkOrder.status).in_(OPEN_WORK_ORDER_STATUSES)

            total_users = count_where(session, User, in_org_user)
            active_users = count_where(session, User, in_org_user, col(User.is_active).is_(True))
            total_work_orders = count_where(session, WorkOrder, in_org_work_order)
            completed = count_where(
                session, WorkOrder, in_org_work_order, WorkOrder.status == WorkOrderStatus.COMPLETED
            )
            return OrganizationStats(
                users=UserStats(
                    total=total_users,
                    active=active_users,
                    inactive=total_users - active_users,
                ),
                assets=AssetStats(
                    total=count_where(session, Asset, in_org_asset),
                    active=count_where(session, Asset, in_org_asset, Asset.status == AssetStatus.ACTIVE),
                    offline=count_where(
                        session, Asset, in_org_asset, col(Asset.status).in_(OFFLINE_ASSET_STATUSES)
                    ),
                    under_maintenance=count_where(
                        session, Asset, in_org_asset, Asset.status == AssetStatus.UNDER_MAINTENANCE
                    ),
                ),
                work_orders=WorkOrderStats(
                    total=total_work_orders,
                    open=count_where(session, WorkOrder, in_org_work_order, is_open),
                    overdue=count_where(
                        session,
                        WorkOrder,
                        in_org_work_order,
                        is_open,
                        col(WorkOrder.due_date) < now_utc(),
                    ),
                    completed=completed,
                    completion_rate=(completed / total_work_orders) * 100 if total_work_orders > 0 else 0.0,
                ),
            )
