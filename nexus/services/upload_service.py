from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path

import structlog
from sqlmodel import Session

from nexus.config import Settings
from nexus.domain.models import (
    Asset,
    DownloadUrlRead,
    FileDeleteRead,
    FileDeleteRequest,
    PresignedUrlRead,
    PresignedUrlRequest,
    StorageHealthRead,
    UploadedFileRead,
    UploadResultRead,
    UploadSummaryRead,
    now_utc,
)
from nexus.infra.activity import ACTION_FILE_DELETED, ACTION_FILES_UPLOADED, record_activity
from nexus.infra.db import get_engine
from nexus.services.errors import ForbiddenError, NotFoundError, StorageError, ValidationError
from nexus.services.filters import parse_optional_int
from nexus.services.object_storage_service import (
    ObjectSignatureError,
    ObjectStorageError,
    ObjectStorageNotFoundError,
    ObjectStorageObjectMeta,
    ObjectStorageService,
    format_file_size,
)
from nexus.services.relations import asset_read

logger = structlog.get_logger(__name__)

ENTITY_TYPE = "Asset"


@dataclass(frozen=True)
class IncomingFile:
    original_name: str
    mime_type: str
    content: bytes


class UploadService:
    def __init__(self, settings: Settings, storage: ObjectStorageService | None = None) -> None:
        self._settings = settings
        self._storage = storage or ObjectStorageService(settings)

    def _session(self) -> Session:
        return Session(get_engine(), expire_on_commit=False)

    def _validate_files(self, files: Sequence[IncomingFile]) -> None:
        if not files:
            raise ValidationError("No files uploaded")
        if len(files) > self._settings.max_upload_files:
            raise ValidationError(f"Too many files. Maximum is {self._settings.max_upload_files} per upload")
        max_size = self._settings.max_file_size_bytes
        for item in files:
            if not self._storage.check_file_type(item.mime_type).is_valid:
                allowed = ", ".join(self._storage.allowed_types())
                raise ValidationError(
                    f"File type {item.mime_type} is not allowed. Allowed types: {allowed}"
                )
            if len(item.content) > max_size:
                raise ValidationError(
                    f"File {item.original_name} exceeds the maximum size of {format_file_size(max_size)}"
                )

    def _cleanup(self, stored: Sequence[ObjectStorageObjectMeta]) -> None:
        for meta in stored:
            try:
                self._storage.delete_object(meta.object_key)
            except (ObjectStorageError, OSError) as exc:
                logger.warning("storage_cleanup_failed", object_key=meta.object_key, error=str(exc))

    def upload_files(
        self,
        files: Sequence[IncomingFile],
        *,
        organization_id: str | None,
        asset_id: str | None,
        uploaded_by: str | None,
    ) -> UploadResultRead:
        """Store files under the organization and attach them to an asset.

        Objects stored before a failure are removed again so no upload is
        left without a referencing asset.
        """
        self._validate_files(files)
        if not organization_id or not uploaded_by:
            raise ValidationError("organizationId and uploadedBy are required")

        if asset_id:
            with self._session() as session:
                asset = session.get(Asset, asset_id)
                if asset is None:
                    raise NotFoundError("Asset not found")
                if asset.organization_id != organization_id:
                    raise ValidationError("Asset belongs to a different organization")

        stored: list[ObjectStorageObjectMeta] = []
        uploaded: list[UploadedFileRead] = []
        try:
            for item in files:
                object_key = self._storage.build_object_key(
                    organization_id=organization_id,
                    file_name=item.original_name,
                    mime_type=item.mime_type,
                )
                meta = self._storage.put_object(
                    object_key=object_key,
                    content=item.content,
                    content_type=item.mime_type,
                )
                stored.append(meta)
                uploaded.append(
                    UploadedFileRead(
                        original_name=item.original_name,
                        file_name=object_key.rsplit("/", 1)[-1],
                        url=self._storage.object_url(object_key),
                        size=meta.size_bytes,
                        formatted_size=format_file_size(meta.size_bytes),
                        mime_type=item.mime_type,
                        key=object_key,
                        is_image=self._storage.check_file_type(item.mime_type).is_image,
                    )
                )
        except (ObjectStorageError, OSError) as exc:
            self._cleanup(stored)
            raise StorageError("File upload failed") from exc

        images = [item for item in uploaded if item.is_image]
        documents = [item for item in uploaded if not item.is_image]
        summary = UploadSummaryRead(
            total_files=len(uploaded),
            images=len(images),
            documents=len(documents),
            total_size=sum(item.size for item in uploaded),
        )
        logger.info(
            "files_uploaded",
            organization_id=organization_id,
            asset_id=asset_id,
            total_files=summary.total_files,
            total_size=summary.total_size,
        )
        if not asset_id:
            return UploadResultRead(files=uploaded, summary=summary)

        try:
            with self._session() as session:
                asset = session.get(Asset, asset_id)
                if asset is None:
                    raise NotFoundError("Asset not found")
                asset.image_urls = [*asset.image_urls, *(item.url for item in images)]
                asset.file_urls = [*asset.file_urls, *(item.url for item in documents)]
                asset.updated_at = now_utc()
                session.add(asset)
                record_activity(
                    session,
                    action=ACTION_FILES_UPLOADED,
                    entity_type=ENTITY_TYPE,
                    entity_id=asset.id,
                    organization_id=organization_id,
                    user_id=uploaded_by,
                    description=f'{len(uploaded)} file(s) uploaded to asset "{asset.name}"',
                    new_values={
                        "uploadedFiles": [
                            {
                                "name": item.original_name,
                                "url": item.url,
                                "type": item.mime_type,
                                "size": item.formatted_size,
                            }
                            for item in uploaded
                        ]
                    },
                )
                session.commit()
        except NotFoundError:
            self._cleanup(stored)
            raise
        except Exception as exc:
            self._cleanup(stored)
            raise StorageError("Failed to update asset with uploaded files") from exc

        # Committed: the asset now references the stored objects.
        with self._session() as session:
            asset = session.get(Asset, asset_id)
            if asset is None:
                raise NotFoundError("Asset not found")
            return UploadResultRead(files=uploaded, summary=summary, asset=asset_read(session, asset))

    def presigned_upload(self, payload: PresignedUrlRequest) -> PresignedUrlRead:
        check = self._storage.check_file_type(payload.mime_type)
        if not check.is_valid:
            raise ValidationError(f"File type {payload.mime_type} is not allowed")
        object_key = self._storage.build_object_key(
            organization_id=payload.organization_id,
            file_name=payload.file_name,
            mime_type=payload.mime_type,
        )
        expires_in = self._storage.url_ttl_seconds
        return PresignedUrlRead(
            upload_url=self._storage.presigned_url(method="PUT", object_key=object_key, expires_in=expires_in),
            file_url=self._storage.object_url(object_key),
            key=object_key,
            is_image=check.is_image,
            expires_in=expires_in,
        )

    def delete_file(self, asset_id: str, payload: FileDeleteRequest) -> FileDeleteRead:
        with self._session() as session:
            asset = session.get(Asset, asset_id)
            if asset is None:
                raise NotFoundError("Asset not found")
            file_url = payload.file_url
            in_images = file_url in asset.image_urls
            in_files = file_url in asset.file_urls
            if not in_images and not in_files:
                raise NotFoundError("File not found in asset")

            try:
                self._storage.delete_object(self._storage.key_from_url(file_url))
            except (ObjectStorageError, OSError) as exc:
                logger.warning("storage_delete_failed", asset_id=asset_id, file_url=file_url, error=str(exc))

            if in_images:
                asset.image_urls = [url for url in asset.image_urls if url != file_url]
            if in_files:
                asset.file_urls = [url for url in asset.file_urls if url != file_url]
            asset.updated_at = now_utc()
            session.add(asset)
            if payload.deleted_by:
                record_activity(
                    session,
                    action=ACTION_FILE_DELETED,
                    entity_type=ENTITY_TYPE,
                    entity_id=asset.id,
                    organization_id=asset.organization_id,
                    user_id=payload.deleted_by,
                    description=f'File deleted from asset "{asset.name}"',
                    old_values={"deletedFileUrl": file_url},
                )
            session.commit()
            session.refresh(asset)
            logger.info("file_deleted", asset_id=asset_id, file_url=file_url)
            return FileDeleteRead(deleted_file_url=file_url, asset=asset_read(session, asset))

    def download_url(self, file_url: str, expires_in: str | None = None) -> DownloadUrlRead:
        ttl = parse_optional_int(expires_in)
        if ttl is None:
            ttl = self._storage.url_ttl_seconds
        try:
            object_key = self._storage.key_from_url(file_url)
        except ObjectStorageError as exc:
            raise ValidationError("Invalid file URL") from exc
        return DownloadUrlRead(
            download_url=self._storage.presigned_url(method="GET", object_key=object_key, expires_in=ttl),
            expires_in=ttl,
        )

    def health(self) -> StorageHealthRead:
        return StorageHealthRead(
            storage_connected=self._storage.health_check(),
            bucket_name=self._storage.bucket,
            region=self._storage.region,
            max_file_size=self._settings.max_file_size,
            allowed_image_types=self._settings.image_types,
            allowed_file_types=self._settings.file_types,
        )

    def put_signed_object(
        self,
        object_key: str,
        content: bytes,
        content_type: str,
        *,
        expires: str | None,
        signature: str | None,
    ) -> ObjectStorageObjectMeta:
        try:
            self._storage.verify(method="PUT", object_key=object_key, expires=expires, signature=signature)
        except ObjectSignatureError as exc:
            raise ForbiddenError(str(exc)) from exc
        if len(content) > self._settings.max_file_size_bytes:
            raise ValidationError("File exceeds the maximum size")
        try:
            return self._storage.put_object(object_key=object_key, content=content, content_type=content_type)
        except ObjectStorageError as exc:
            raise ValidationError(str(exc)) from exc

    def signed_object_path(self, object_key: str, *, expires: str | None, signature: str | None) -> Path:
        try:
            self._storage.verify(method="GET", object_key=object_key, expires=expires, signature=signature)
        except ObjectSignatureError as exc:
            raise ForbiddenError(str(exc)) from exc
        try:
            return self._storage.get_download_path(object_key)
        except ObjectStorageNotFoundError as exc:
            raise NotFoundError("File not found") from exc
        except ObjectStorageError as exc:
            raise ValidationError(str(exc)) from exc
