from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, File, Form, Query, Request, UploadFile, status
from fastapi.responses import FileResponse

from nexus.api.deps import AppSettings, handle_service_error
from nexus.domain.models import (
    ApiResponse,
    DownloadUrlRead,
    FileDeleteRead,
    FileDeleteRequest,
    PresignedUrlRead,
    PresignedUrlRequest,
    StorageHealthRead,
    StoredObjectRead,
    UploadResultRead,
)
from nexus.services.errors import ServiceError
from nexus.services.upload_service import IncomingFile, UploadService

router = APIRouter()


def get_upload_service(settings: AppSettings) -> UploadService:
    return UploadService(settings)


Service = Annotated[UploadService, Depends(get_upload_service)]


@router.post("", response_model=ApiResponse[UploadResultRead], status_code=status.HTTP_201_CREATED)
async def upload_files(
    service: Service,
    files: Annotated[list[UploadFile] | None, File()] = None,
    organization_id: Annotated[str | None, Form(alias="organizationId")] = None,
    asset_id: Annotated[str | None, Form(alias="assetId")] = None,
    uploaded_by: Annotated[str | None, Form(alias="uploadedBy")] = None,
) -> ApiResponse[UploadResultRead]:
    incoming = [
        IncomingFile(
            original_name=item.filename or "file",
            mime_type=item.content_type or "application/octet-stream",
            content=await item.read(),
        )
        for item in files or []
    ]
    try:
        result = service.upload_files(
            incoming,
            organization_id=organization_id,
            asset_id=asset_id,
            uploaded_by=uploaded_by,
        )
    except ServiceError as exc:
        handle_service_error(exc)
        raise
    return ApiResponse(data=result, message=f"Successfully uploaded {len(result.files)} file(s)")


@router.post("/presigned", response_model=ApiResponse[PresignedUrlRead])
def create_presigned_url(payload: PresignedUrlRequest, service: Service) -> ApiResponse[PresignedUrlRead]:
    try:
        return ApiResponse(data=service.presigned_upload(payload))
    except ServiceError as exc:
        handle_service_error(exc)
        raise


@router.get("/download", response_model=ApiResponse[DownloadUrlRead])
def create_download_url(
    service: Service,
    file_url: Annotated[str, Query(alias="fileUrl", min_length=1)],
    expires_in: Annotated[str | None, Query(alias="expiresIn")] = None,
) -> ApiResponse[DownloadUrlRead]:
    try:
        return ApiResponse(data=service.download_url(file_url, expires_in))
    except ServiceError as exc:
        handle_service_error(exc)
        raise


@router.get("/health", response_model=ApiResponse[StorageHealthRead])
def storage_health(service: Service) -> ApiResponse[StorageHealthRead]:
    return ApiResponse(data=service.health())


@router.put("/objects/{object_key:path}", response_model=ApiResponse[StoredObjectRead])
async def put_signed_object(
    object_key: str,
    request: Request,
    service: Service,
    expires: str | None = None,
    signature: str | None = None,
) -> ApiResponse[StoredObjectRead]:
    content = await request.body()
    try:
        meta = service.put_signed_object(
            object_key,
            content,
            request.headers.get("content-type", "application/octet-stream"),
            expires=expires,
            signature=signature,
        )
    except ServiceError as exc:
        handle_service_error(exc)
        raise
    return ApiResponse(data=StoredObjectRead(key=meta.object_key, size=meta.size_bytes, etag=meta.etag))


@router.get("/objects/{object_key:path}")
def get_signed_object(
    object_key: str,
    service: Service,
    expires: str | None = None,
    signature: str | None = None,
) -> FileResponse:
    try:
        path = service.signed_object_path(object_key, expires=expires, signature=signature)
    except ServiceError as exc:
        handle_service_error(exc)
        raise
    return FileResponse(path, filename=path.name)


@router.delete("/{asset_id}/file", response_model=ApiResponse[FileDeleteRead])
def delete_file(asset_id: str, payload: FileDeleteRequest, service: Service) -> ApiResponse[FileDeleteRead]:
    try:
        result = service.delete_file(asset_id, payload)
        return ApiResponse(data=result, message="File deleted successfully")
    except ServiceError as exc:
        handle_service_error(exc)
        raise
