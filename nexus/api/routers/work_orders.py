from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, Query, status

from nexus.api.deps import handle_service_error
from nexus.domain.models import (
    ApiResponse,
    CommentCreate,
    CommentRead,
    PaginatedResponse,
    Pagination,
    WorkOrderCreate,
    WorkOrderDetail,
    WorkOrderPriority,
    WorkOrderRead,
    WorkOrderStatus,
    WorkOrderUpdate,
)
from nexus.services.errors import ServiceError
from nexus.services.filters import page_window
from nexus.services.work_order_service import WorkOrderService

router = APIRouter()


def get_work_order_service() -> WorkOrderService:
    return WorkOrderService()


Service = Annotated[WorkOrderService, Depends(get_work_order_service)]


@router.get("", response_model=PaginatedResponse[list[WorkOrderRead]])
def list_work_orders(
    service: Service,
    organization_id: Annotated[str | None, Query(alias="organizationId")] = None,
    status: WorkOrderStatus | None = None,
    priority: WorkOrderPriority | None = None,
    assigned_to_id: Annotated[str | None, Query(alias="assignedToId")] = None,
    created_by_id: Annotated[str | None, Query(alias="createdById")] = None,
    asset_id: Annotated[str | None, Query(alias="assetId")] = None,
    type: str | None = None,
    search: str | None = None,
    limit: str | None = None,
    offset: str | None = None,
) -> PaginatedResponse[list[WorkOrderRead]]:
    page_limit, page_offset = page_window(limit, offset)
    page = service.list_work_orders(
        organization_id=organization_id,
        status=status,
        priority=priority,
        assigned_to_id=assigned_to_id,
        created_by_id=created_by_id,
        asset_id=asset_id,
        type=type,
        search=search,
        limit=page_limit,
        offset=page_offset,
    )
    return PaginatedResponse(
        data=page.items,
        pagination=Pagination(total=page.total, offset=page.offset, limit=page.limit),
    )


@router.get("/{work_order_id}", response_model=ApiResponse[WorkOrderDetail])
def get_work_order(work_order_id: str, service: Service) -> ApiResponse[WorkOrderDetail]:
    try:
        return ApiResponse(data=service.get_work_order(work_order_id))
    except ServiceError as exc:
        handle_service_error(exc)
        raise


@router.post("", response_model=ApiResponse[WorkOrderRead], status_code=status.HTTP_201_CREATED)
def create_work_order(payload: WorkOrderCreate, service: Service) -> ApiResponse[WorkOrderRead]:
    try:
        work_order = service.create_work_order(payload)
        return ApiResponse(data=work_order, message="Work order created successfully")
    except ServiceError as exc:
        handle_service_error(exc)
        raise


@router.put("/{work_order_id}", response_model=ApiResponse[WorkOrderRead])
def update_work_order(
    work_order_id: str,
    payload: WorkOrderUpdate,
    service: Service,
) -> ApiResponse[WorkOrderRead]:
    try:
        work_order = service.update_work_order(work_order_id, payload)
        return ApiResponse(data=work_order, message="Work order updated successfully")
    except ServiceError as exc:
        handle_service_error(exc)
        raise


@router.get("/{work_order_id}/comments", response_model=ApiResponse[list[CommentRead]])
def list_comments(work_order_id: str, service: Service) -> ApiResponse[list[CommentRead]]:
    try:
        return ApiResponse(data=service.list_comments(work_order_id))
    except ServiceError as exc:
        handle_service_error(exc)
        raise


@router.post(
    "/{work_order_id}/comments",
    response_model=ApiResponse[CommentRead],
    status_code=status.HTTP_201_CREATED,
)
def add_comment(work_order_id: str, payload: CommentCreate, service: Service) -> ApiResponse[CommentRead]:
    try:
        comment = service.add_comment(work_order_id, payload)
        return ApiResponse(data=comment, message="Comment added successfully")
    except ServiceError as exc:
        handle_service_error(exc)
        raise
