from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, Query, status

from nexus.api.deps import AppSettings, handle_service_error, parse_bool_flag
from nexus.domain.models import (
    ApiResponse,
    UserCreate,
    UserDetail,
    UserListItem,
    UserLoginRead,
    UserLoginRequest,
    UserRead,
    UserRole,
    UserUpdate,
)
from nexus.infra.auth import create_access_token
from nexus.services.errors import ServiceError
from nexus.services.user_service import UserService

router = APIRouter()


def get_user_service() -> UserService:
    return UserService()


Service = Annotated[UserService, Depends(get_user_service)]


@router.get("", response_model=ApiResponse[list[UserListItem]])
def list_users(
    service: Service,
    organization_id: Annotated[str | None, Query(alias="organizationId")] = None,
    role: UserRole | None = None,
    is_active: Annotated[str | None, Query(alias="isActive")] = None,
) -> ApiResponse[list[UserListItem]]:
    rows = service.list_users(
        organization_id=organization_id,
        role=role,
        is_active=parse_bool_flag(is_active),
    )
    return ApiResponse(data=rows)


@router.post("/login", response_model=ApiResponse[UserLoginRead])
def login(payload: UserLoginRequest, settings: AppSettings, service: Service) -> ApiResponse[UserLoginRead]:
    """Upsert the user by email and issue a demo access token.

    No route requires the token; it is returned for clients that want a
    signed identity claim.
    """
    user, created = service.login(payload)
    token = create_access_token(
        settings,
        user_id=user.id,
        email=user.email,
        organization_id=user.organization_id,
        role=user.role.value,
    )
    return ApiResponse(
        data=UserLoginRead(**user.model_dump(), access_token=token),
        message="User created and logged in" if created else "Login successful",
    )


@router.get("/{user_id}", response_model=ApiResponse[UserDetail])
def get_user(user_id: str, service: Service) -> ApiResponse[UserDetail]:
    try:
        return ApiResponse(data=service.get_user(user_id))
    except ServiceError as exc:
        handle_service_error(exc)
        raise


@router.post("", response_model=ApiResponse[UserRead], status_code=status.HTTP_201_CREATED)
def create_user(payload: UserCreate, service: Service) -> ApiResponse[UserRead]:
    try:
        user = service.create_user(payload)
        return ApiResponse(data=user, message="User created successfully")
    except ServiceError as exc:
        handle_service_error(exc)
        raise


@router.put("/{user_id}", response_model=ApiResponse[UserRead])
def update_user(user_id: str, payload: UserUpdate, service: Service) -> ApiResponse[UserRead]:
    try:
        user = service.update_user(user_id, payload)
        return ApiResponse(data=user, message="User updated successfully")
    except ServiceError as exc:
        handle_service_error(exc)
        raise


@router.delete("/{user_id}", response_model=ApiResponse[None])
def delete_user(
    user_id: str,
    service: Service,
    permanent: str | None = None,
) -> ApiResponse[None]:
    try:
        removed = service.delete_user(user_id, permanent=permanent == "true")
    except ServiceError as exc:
        handle_service_error(exc)
        raise
    return ApiResponse(message="User permanently deleted" if removed else "User deactivated")
