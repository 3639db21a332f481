from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Body, Depends, Query, status

from nexus.api.deps import handle_service_error
from nexus.domain.models import (
    ApiResponse,
    AssetCreate,
    AssetDeleteRequest,
    AssetDetail,
    AssetRead,
    AssetStatus,
    AssetUpdate,
    Criticality,
    MaintenanceScheduleRequest,
    PaginatedResponse,
    Pagination,
    WorkOrderRead,
)
from nexus.services.asset_service import AssetService
from nexus.services.errors import ServiceError
from nexus.services.filters import page_window

router = APIRouter()


def get_asset_service() -> AssetService:
    return AssetService()


Service = Annotated[AssetService, Depends(get_asset_service)]


@router.get("", response_model=PaginatedResponse[list[AssetRead]])
def list_assets(
    service: Service,
    organization_id: Annotated[str | None, Query(alias="organizationId")] = None,
    status: AssetStatus | None = None,
    criticality: Criticality | None = None,
    created_by_id: Annotated[str | None, Query(alias="createdById")] = None,
    type: str | None = None,
    location: str | None = None,
    search: str | None = None,
    limit: str | None = None,
    offset: str | None = None,
) -> PaginatedResponse[list[AssetRead]]:
    page_limit, page_offset = page_window(limit, offset)
    page = service.list_assets(
        organization_id=organization_id,
        status=status,
        criticality=criticality,
        created_by_id=created_by_id,
        type=type,
        location=location,
        search=search,
        limit=page_limit,
        offset=page_offset,
    )
    return PaginatedResponse(
        data=page.items,
        pagination=Pagination(total=page.total, offset=page.offset, limit=page.limit),
    )


@router.get("/{asset_id}", response_model=ApiResponse[AssetDetail])
def get_asset(asset_id: str, service: Service) -> ApiResponse[AssetDetail]:
    try:
        return ApiResponse(data=service.get_asset(asset_id))
    except ServiceError as exc:
        handle_service_error(exc)
        raise


@router.post("", response_model=ApiResponse[AssetRead], status_code=status.HTTP_201_CREATED)
def create_asset(payload: AssetCreate, service: Service) -> ApiResponse[AssetRead]:
    try:
        asset = service.create_asset(payload)
        return ApiResponse(data=asset, message="Asset created successfully")
    except ServiceError as exc:
        handle_service_error(exc)
        raise


@router.put("/{asset_id}", response_model=ApiResponse[AssetRead])
def update_asset(asset_id: str, payload: AssetUpdate, service: Service) -> ApiResponse[AssetRead]:
    try:
        asset = service.update_asset(asset_id, payload)
        return ApiResponse(data=asset, message="Asset updated successfully")
    except ServiceError as exc:
        handle_service_error(exc)
        raise


@router.delete("/{asset_id}", response_model=ApiResponse[None])
def delete_asset(
    asset_id: str,
    service: Service,
    payload: Annotated[AssetDeleteRequest | None, Body()] = None,
) -> ApiResponse[None]:
    try:
        service.delete_asset(asset_id, deleted_by_id=payload.deleted_by_id if payload else None)
    except ServiceError as exc:
        handle_service_error(exc)
        raise
    return ApiResponse(message="Asset deleted successfully")


@router.get("/{asset_id}/maintenance-history", response_model=ApiResponse[list[WorkOrderRead]])
def get_maintenance_history(asset_id: str, service: Service) -> ApiResponse[list[WorkOrderRead]]:
    try:
        return ApiResponse(data=service.maintenance_history(asset_id))
    except ServiceError as exc:
        handle_service_error(exc)
        raise


@router.post(
    "/{asset_id}/maintenance",
    response_model=ApiResponse[WorkOrderRead],
    status_code=status.HTTP_201_CREATED,
)
def schedule_maintenance(
    asset_id: str,
    payload: MaintenanceScheduleRequest,
    service: Service,
) -> ApiResponse[WorkOrderRead]:
    try:
        work_order = service.schedule_maintenance(asset_id, payload)
        return ApiResponse(data=work_order, message="Maintenance work order created successfully")
    except ServiceError as exc:
        handle_service_error(exc)
        raise
