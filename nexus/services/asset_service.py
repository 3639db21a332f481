from __future__ import annotations

from typing import Any

import structlog
from sqlalchemy import nulls_last
from sqlmodel import Session, col, select

from nexus.domain.models import (
    PREVENTIVE_MAINTENANCE_TYPE,
    Asset,
    AssetCreate,
    AssetDetail,
    AssetRead,
    AssetRecordRead,
    AssetStatus,
    AssetUpdate,
    Criticality,
    MaintenanceScheduleRequest,
    Organization,
    User,
    WorkOrder,
    WorkOrderRead,
    WorkOrderStatus,
    now_utc,
)
from nexus.infra.activity import (
    ACTION_CREATED,
    ACTION_DELETED,
    ACTION_UPDATED,
    record_activity,
    snapshot,
)
from nexus.infra.db import get_engine
from nexus.services.errors import DeleteBlockedError, NotFoundError, ValidationError
from nexus.services.filters import Page, asset_predicates, contains_ci
from nexus.services.relations import asset_read, asset_reads, count_where, work_order_read, work_order_reads
from nexus.services.work_order_service import insert_work_order

logger = structlog.get_logger(__name__)

ENTITY_TYPE = "Asset"
REQUIRED_COLUMNS = {"name", "type", "location", "status", "criticality"}


class AssetService:
    def _session(self) -> Session:
        return Session(get_engine(), expire_on_commit=False)

    def _get_asset(self, session: Session, asset_id: str) -> Asset:
        asset = session.get(Asset, asset_id)
        if asset is None:
            raise NotFoundError("Asset not found")
        return asset

    def list_assets(
        self,
        *,
        organization_id: str | None = None,
        status: AssetStatus | None = None,
        criticality: Criticality | None = None,
        created_by_id: str | None = None,
        type: str | None = None,
        location: str | None = None,
        search: str | None = None,
        limit: int | None = None,
        offset: int | None = None,
    ) -> Page[AssetRead]:
        params: dict[str, Any] = {
            "organization_id": organization_id,
            "status": status,
            "criticality": criticality,
            "created_by_id": created_by_id,
            "type": type,
            "location": location,
            "search": search,
        }
        predicates = asset_predicates(params)
        with self._session() as session:
            statement = select(Asset)
            for predicate in predicates:
                statement = statement.where(predicate)
            statement = statement.order_by(col(Asset.created_at).desc())
            if offset is not None:
                statement = statement.offset(offset)
            if limit is not None:
                statement = statement.limit(limit)
            rows = list(session.exec(statement).all())
            total = count_where(session, Asset, *predicates)
            items = asset_reads(session, rows)
        return Page(
            items=items,
            total=total,
            offset=offset or 0,
            limit=limit if limit is not None else len(items),
        )

    def get_asset(self, asset_id: str) -> AssetDetail:
        with self._session() as session:
            asset = self._get_asset(session, asset_id)
            work_orders = session.exec(
                select(WorkOrder)
                .where(WorkOrder.asset_id == asset_id)
                .order_by(col(WorkOrder.created_at).desc())
            ).all()
            return AssetDetail(
                **asset_read(session, asset).model_dump(),
                work_orders=work_order_reads(session, work_orders),
            )

    def create_asset(self, payload: AssetCreate) -> AssetRead:
        with self._session() as session:
            if session.get(Organization, payload.organization_id) is None:
                raise ValidationError("Invalid organization ID")
            if session.get(User, payload.created_by_id) is None:
                raise ValidationError("Invalid creator user ID")

            asset = Asset(**payload.model_dump())
            session.add(asset)
            session.flush()
            record_activity(
                session,
                action=ACTION_CREATED,
                entity_type=ENTITY_TYPE,
                entity_id=asset.id,
                organization_id=asset.organization_id,
                user_id=asset.created_by_id,
                description=f'Asset "{asset.name}" was created',
                new_values=snapshot(AssetRecordRead, asset),
            )
            session.commit()
            session.refresh(asset)
            logger.info("asset_created", asset_id=asset.id, organization_id=asset.organization_id)
            return asset_read(session, asset)

    def update_asset(self, asset_id: str, payload: AssetUpdate) -> AssetRead:
        with self._session() as session:
            asset = self._get_asset(session, asset_id)
            before = snapshot(AssetRecordRead, asset)
            changes = payload.model_dump(exclude_unset=True)
            updated_by_id = changes.pop("updated_by_id", None)
            for key, value in changes.items():
                if value is None and key in REQUIRED_COLUMNS:
                    continue
                setattr(asset, key, value)
            asset.updated_at = now_utc()
            session.add(asset)
            if updated_by_id:
                record_activity(
                    session,
                    action=ACTION_UPDATED,
                    entity_type=ENTITY_TYPE,
                    entity_id=asset.id,
                    organization_id=asset.organization_id,
                    user_id=updated_by_id,
                    description=f'Asset "{asset.name}" was updated',
                    old_values=before,
                    new_values=snapshot(AssetRecordRead, asset),
                )
            session.commit()
            session.refresh(asset)
            return asset_read(session, asset)

    def delete_asset(self, asset_id: str, *, deleted_by_id: str | None = None) -> None:
        with self._session() as session:
            asset = self._get_asset(session, asset_id)
            work_orders = count_where(session, WorkOrder, WorkOrder.asset_id == asset_id)
            if work_orders > 0:
                raise DeleteBlockedError(
                    "Cannot delete asset with associated work orders",
                    {"workOrders": work_orders},
                )
            if deleted_by_id:
                record_activity(
                    session,
                    action=ACTION_DELETED,
                    entity_type=ENTITY_TYPE,
                    entity_id=asset.id,
                    organization_id=asset.organization_id,
                    user_id=deleted_by_id,
                    description=f'Asset "{asset.name}" was deleted',
                    old_values=snapshot(AssetRecordRead, asset),
                )
            session.delete(asset)
            session.commit()
        logger.info("asset_deleted", asset_id=asset_id)

    def maintenance_history(self, asset_id: str) -> list[WorkOrderRead]:
        with self._session() as session:
            self._get_asset(session, asset_id)
            rows = session.exec(
                select(WorkOrder)
                .where(WorkOrder.asset_id == asset_id)
                .where(contains_ci(WorkOrder.type, "maintenance"))
                .order_by(nulls_last(col(WorkOrder.completed_at).desc()), col(WorkOrder.created_at).desc())
            ).all()
            return work_order_reads(session, rows)

    def schedule_maintenance(self, asset_id: str, payload: MaintenanceScheduleRequest) -> WorkOrderRead:
        """Open a preventive maintenance work order against the asset.

        The work order always belongs to the asset's organization.
        """
        with self._session() as session:
            asset = self._get_asset(session, asset_id)
            data = payload.model_dump()
            data["title"] = data.get("title") or f"Scheduled Maintenance - {asset.name}"
            data.update(
                type=PREVENTIVE_MAINTENANCE_TYPE,
                status=WorkOrderStatus.OPEN,
                organization_id=asset.organization_id,
                asset_id=asset.id,
            )
            work_order = insert_work_order(session, data)
            session.commit()
            session.refresh(work_order)
            logger.info(
                "maintenance_scheduled",
                asset_id=asset.id,
                work_order_id=work_order.id,
                work_order_number=work_order.work_order_number,
            )
            return work_order_read(session, work_order)
