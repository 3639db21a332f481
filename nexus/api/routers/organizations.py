from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, status

from nexus.api.deps import handle_service_error
from nexus.domain.models import (
    ApiResponse,
    OrganizationCreate,
    OrganizationDetail,
    OrganizationListItem,
    OrganizationRead,
    OrganizationStats,
    OrganizationUpdate,
)
from nexus.services.errors import ServiceError
from nexus.services.organization_service import OrganizationService

router = APIRouter()


def get_organization_service() -> OrganizationService:
    return OrganizationService()


Service = Annotated[OrganizationService, Depends(get_organization_service)]


@router.get("", response_model=ApiResponse[list[OrganizationListItem]])
def list_organizations(service: Service) -> ApiResponse[list[OrganizationListItem]]:
    return ApiResponse(data=service.list_organizations())


@router.get("/{organization_id}", response_model=ApiResponse[OrganizationDetail])
def get_organization(organization_id: str, service: Service) -> ApiResponse[OrganizationDetail]:
    try:
        return ApiResponse(data=service.get_organization(organization_id))
    except ServiceError as exc:
        handle_service_error(exc)
        raise


@router.post("", response_model=ApiResponse[OrganizationRead], status_code=status.HTTP_201_CREATED)
def create_organization(payload: OrganizationCreate, service: Service) -> ApiResponse[OrganizationRead]:
    organization = service.create_organization(payload)
    return ApiResponse(data=organization, message="Organization created successfully")


@router.put("/{organization_id}", response_model=ApiResponse[OrganizationRead])
def update_organization(
    organization_id: str,
    payload: OrganizationUpdate,
    service: Service,
) -> ApiResponse[OrganizationRead]:
    try:
        organization = service.update_organization(organization_id, payload)
        return ApiResponse(data=organization, message="Organization updated successfully")
    except ServiceError as exc:
        handle_service_error(exc)
        raise


@router.delete("/{organization_id}", response_model=ApiResponse[None])
def delete_organization(organization_id: str, service: Service) -> ApiResponse[None]:
    try:
        service.delete_organization(organization_id)
    except ServiceError as exc:
        handle_service_error(exc)
        raise
    return ApiResponse(message="Organization deleted successfully")


@router.get("/{organization_id}/stats", response_model=ApiResponse[OrganizationStats])
def get_organization_stats(organization_id: str, service: Service) -> ApiResponse[OrganizationStats]:
    try:
        return ApiResponse(data=service.get_stats(organization_id))
    except ServiceError as exc:
        handle_service_error(exc)
        raise
