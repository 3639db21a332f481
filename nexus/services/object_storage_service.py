from __future__ import annotations

import hashlib
import hmac
import secrets
import time
from dataclasses import dataclass
from pathlib import Path, PurePosixPath
from urllib.parse import quote, unquote, urlencode

from nexus.config import Settings

IMAGES_FOLDER = "images"
FILES_FOLDER = "files"
_SIZE_LABELS = ("Bytes", "KB", "MB", "GB")


class ObjectStorageError(Exception):
    pass


class ObjectStorageNotFoundError(ObjectStorageError):
    pass


class ObjectSignatureError(ObjectStorageError):
    pass


@dataclass(frozen=True)
class ObjectStorageObjectMeta:
    bucket: str
    object_key: str
    size_bytes: int
    etag: str
    content_type: str
    absolute_path: Path


@dataclass(frozen=True)
class FileTypeCheck:
    is_valid: bool
    is_image: bool
    is_file: bool


class LocalObjectStorageAdapter:
    def __init__(self, root_dir: Path) -> None:
        self._root_dir = root_dir
        self._root_dir.mkdir(parents=True, exist_ok=True)

    def _safe_object_path(self, bucket: str, object_key: str) -> Path:
        normalized_bucket = bucket.strip()
        if not normalized_bucket:
            raise ObjectStorageError("bucket is empty")
        key_path = PurePosixPath(object_key)
        if key_path.is_absolute() or ".." in key_path.parts:
            raise ObjectStorageError("invalid object key")
        if not key_path.parts:
            raise ObjectStorageError("object key is empty")
        return self._root_dir / normalized_bucket / Path(*key_path.parts)

    def put_bytes(
        self,
        *,
        bucket: str,
        object_key: str,
        content: bytes,
        content_type: str,
    ) -> ObjectStorageObjectMeta:
        path = self._safe_object_path(bucket, object_key)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(content)
        return ObjectStorageObjectMeta(
            bucket=bucket,
            object_key=object_key,
            size_bytes=len(content),
            etag=hashlib.sha256(content).hexdigest(),
            content_type=content_type,
            absolute_path=path,
        )

    def delete_object(self, *, bucket: str, object_key: str) -> None:
        path = self._safe_object_path(bucket, object_key)
        if not path.is_file():
            raise ObjectStorageNotFoundError("object not found")
        path.unlink()

    def get_download_path(self, *, bucket: str, object_key: str) -> Path:
        path = self._safe_object_path(bucket, object_key)
        if not path.exists() or not path.is_file():
            raise ObjectStorageNotFoundError("object not found")
        return path

    def bucket_reachable(self, bucket: str) -> bool:
        bucket_dir = self._root_dir / bucket.strip()
        bucket_dir.mkdir(parents=True, exist_ok=True)
        return bucket_dir.is_dir()


def generate_file_name(original_name: str, *, now_ms: int | None = None) -> str:
    """Build ``{timestamp}_{random}_{sanitized}{ext}`` from an upload name."""
    base = PurePosixPath(original_name.replace("\\", "/")).name
    extension = PurePosixPath(base).suffix
    stem = base[: -len(extension)] if extension else base
    sanitized = "".join(ch if (ch.isascii() and ch.isalnum()) or ch in ".-" else "_" for ch in stem)
    timestamp = now_ms if now_ms is not None else int(time.time() * 1000)
    return f"{timestamp}_{secrets.token_hex(8)}_{sanitized}{extension}"


def format_file_size(size_bytes: int) -> str:
    if size_bytes <= 0:
        return "0 Bytes"
    value = float(size_bytes)
    index = 0
    while value >= 1024 and index < len(_SIZE_LABELS) - 1:
        value /= 1024
        index += 1
    return f"{round(value, 2):g} {_SIZE_LABELS[index]}"


class ObjectStorageService:
    def __init__(self, settings: Settings) -> None:
        backend = settings.object_storage_backend.strip().lower()
        if backend != "local":
            raise ObjectStorageError(f"unsupported storage backend: {backend}")
        self._settings = settings
        self._adapter = LocalObjectStorageAdapter(Path(settings.object_storage_root))
        self.bucket = settings.object_storage_bucket
        self.region = settings.object_storage_region
        self.public_url = settings.object_storage_public_url.rstrip("/")
        self.url_ttl_seconds = settings.object_storage_url_ttl_seconds

    # keys and urls

    def check_file_type(self, mime_type: str) -> FileTypeCheck:
        is_image = mime_type in self._settings.image_types
        is_file = mime_type in self._settings.file_types
        return FileTypeCheck(is_valid=is_image or is_file, is_image=is_image, is_file=is_file)

    def allowed_types(self) -> list[str]:
        return [*self._settings.image_types, *self._settings.file_types]

    def build_object_key(self, *, organization_id: str, file_name: str, mime_type: str) -> str:
        folder = IMAGES_FOLDER if self.check_file_type(mime_type).is_image else FILES_FOLDER
        return f"{organization_id}/{folder}/{generate_file_name(file_name)}"

    def object_url(self, object_key: str) -> str:
        return f"{self.public_url}/{quote(object_key)}"

    def key_from_url(self, file_url: str) -> str:
        prefix = f"{self.public_url}/"
        if not file_url.startswith(prefix):
            raise ObjectStorageError("file URL does not belong to this storage")
        object_key = unquote(file_url[len(prefix) :].split("?", 1)[0])
        if not object_key:
            raise ObjectStorageError("file URL has no object key")
        return object_key

    # signing

    def sign(self, *, method: str, object_key: str, expires: int) -> str:
        message = f"{method.upper()}\n{self.bucket}/{object_key}\n{expires}".encode()
        secret = self._settings.object_storage_signing_secret.encode("utf-8")
        return hmac.new(secret, message, hashlib.sha256).hexdigest()

    def presigned_url(self, *, method: str, object_key: str, expires_in: int | None = None) -> str:
        ttl = expires_in if expires_in is not None else self.url_ttl_seconds
        expires = int(time.time()) + ttl
        signature = self.sign(method=method, object_key=object_key, expires=expires)
        query = urlencode({"expires": expires, "signature": signature})
        return f"{self.object_url(object_key)}?{query}"

    def verify(self, *, method: str, object_key: str, expires: str | None, signature: str | None) -> None:
        if not expires or not signature or not expires.isdigit():
            raise ObjectSignatureError("missing signature")
        if int(expires) < int(time.time()):
            raise ObjectSignatureError("signature expired")
        expected = self.sign(method=method, object_key=object_key, expires=int(expires))
        if not hmac.compare_digest(expected, signature):
            raise ObjectSignatureError("signature mismatch")

    # objects

    def put_object(self, *, object_key: str, content: bytes, content_type: str) -> ObjectStorageObjectMeta:
        return self._adapter.put_bytes(
            bucket=self.bucket,
            object_key=object_key,
            content=content,
            content_type=content_type,
        )

    def delete_object(self, object_key: str) -> None:
        self._adapter.delete_object(bucket=self.bucket, object_key=object_key)

    def get_download_path(self, object_key: str) -> Path:
        return self._adapter.get_download_path(bucket=self.bucket, object_key=object_key)

    def health_check(self) -> bool:
        try:
            return self._adapter.bucket_reachable(self.bucket)
        except OSError:
            return False
