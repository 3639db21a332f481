from __future__ import annotations

import re
import time
from pathlib import Path

import pytest

from nexus.config import Settings, parse_size, split_csv
from nexus.services.object_storage_service import (
    ObjectSignatureError,
    ObjectStorageError,
    ObjectStorageNotFoundError,
    ObjectStorageService,
    format_file_size,
    generate_file_name,
)


@pytest.fixture()
def storage(tmp_path: Path) -> ObjectStorageService:
    return ObjectStorageService(
        Settings(
            object_storage_root=str(tmp_path / "objects"),
            object_storage_public_url="http://files.local/objects/",
            object_storage_signing_secret="unit-secret",
        )
    )


def test_generate_file_name_shape() -> None:
    name = generate_file_name("Pump Manual (v2).pdf", now_ms=1700000000000)
    assert re.fullmatch(r"1700000000000_[0-9a-f]{16}_Pump_Manual__v2_\.pdf", name)

    no_extension = generate_file_name("README", now_ms=1)
    assert re.fullmatch(r"1_[0-9a-f]{16}_README", no_extension)

    nested = generate_file_name("C:\\Users\\me\\plan é.txt", now_ms=1)
    assert nested.endswith("_plan__.txt")


def test_generated_names_are_unique() -> None:
    assert generate_file_name("a.png", now_ms=1) != generate_file_name("a.png", now_ms=1)


@pytest.mark.parametrize(
    ("size", "expected"),
    [
        (0, "0 Bytes"),
        (13, "13 Bytes"),
        (1024, "1 KB"),
        (1536, "1.5 KB"),
        (50 * 1024 * 1024, "50 MB"),
        (3 * 1024**3, "3 GB"),
    ],
)
def test_format_file_size(size: int, expected: str) -> None:
    assert format_file_size(size) == expected


def test_object_keys_are_partitioned_by_organization(storage: ObjectStorageService) -> None:
    image_key = storage.build_object_key(organization_id="org-1", file_name="a.png", mime_type="image/png")
    file_key = storage.build_object_key(organization_id="org-1", file_name="a.pdf", mime_type="application/pdf")
    assert image_key.startswith("org-1/images/")
    assert file_key.startswith("org-1/files/")
    assert storage.check_file_type("image/png").is_image is True
    assert storage.check_file_type("application/zip").is_valid is False


def test_object_url_round_trips_to_key(storage: ObjectStorageService) -> None:
    url = storage.object_url("org-1/files/1_ab_a b.pdf")
    assert url == "http://files.local/objects/org-1/files/1_ab_a%20b.pdf"
    assert storage.key_from_url(url) == "org-1/files/1_ab_a b.pdf"
    assert storage.key_from_url(f"{url}?expires=1&signature=x") == "org-1/files/1_ab_a b.pdf"

    with pytest.raises(ObjectStorageError):
        storage.key_from_url("https://elsewhere.example.com/org-1/files/a.pdf")
    with pytest.raises(ObjectStorageError):
        storage.key_from_url("http://files.local/objects/")


def test_signatures_verify_and_expire(storage: ObjectStorageService) -> None:
    expires = int(time.time()) + 60
    signature = storage.sign(method="PUT", object_key="org-1/files/a.pdf", expires=expires)
    storage.verify(method="PUT", object_key="org-1/files/a.pdf", expires=str(expires), signature=signature)

    with pytest.raises(ObjectSignatureError):
        storage.verify(method="GET", object_key="org-1/files/a.pdf", expires=str(expires), signature=signature)
    with pytest.raises(ObjectSignatureError):
        storage.verify(method="PUT", object_key="org-1/files/b.pdf", expires=str(expires), signature=signature)
    with pytest.raises(ObjectSignatureError):
        storage.verify(method="PUT", object_key="org-1/files/a.pdf", expires=None, signature=signature)

    past = int(time.time()) - 1
    stale = storage.sign(method="PUT", object_key="org-1/files/a.pdf", expires=past)
    with pytest.raises(ObjectSignatureError):
        storage.verify(method="PUT", object_key="org-1/files/a.pdf", expires=str(past), signature=stale)


def test_presigned_url_carries_expiry_and_signature(storage: ObjectStorageService) -> None:
    url = storage.presigned_url(method="GET", object_key="org-1/files/a.pdf", expires_in=30)
    match = re.fullmatch(r"http://files\.local/objects/org-1/files/a\.pdf\?expires=(\d+)&signature=([0-9a-f]{64})", url)
    assert match is not None
    storage.verify(method="GET", object_key="org-1/files/a.pdf", expires=match.group(1), signature=match.group(2))


def test_local_objects_lifecycle(storage: ObjectStorageService) -> None:
    meta = storage.put_object(object_key="org-1/files/a.txt", content=b"hello", content_type="text/plain")
    assert meta.size_bytes == 5
    assert storage.get_download_path("org-1/files/a.txt").read_bytes() == b"hello"
    assert storage.health_check() is True

    storage.delete_object("org-1/files/a.txt")
    with pytest.raises(ObjectStorageNotFoundError):
        storage.get_download_path("org-1/files/a.txt")
    with pytest.raises(ObjectStorageNotFoundError):
        storage.delete_object("org-1/files/a.txt")
    with pytest.raises(ObjectStorageError):
        storage.put_object(object_key="../escape.txt", content=b"x", content_type="text/plain")


def test_settings_helpers() -> None:
    assert parse_size("50mb", 1) == 50 * 1024 * 1024
    assert parse_size(" 2 KB ", 1) == 2048
    assert parse_size("1024", 1) == 1024
    assert parse_size("lots", 7) == 7
    assert split_csv("image/png, image/gif,,") == ["image/png", "image/gif"]

    settings = Settings(max_file_size="bogus", allowed_image_types="image/png")
    assert settings.max_file_size_bytes == 50 * 1024 * 1024
    assert settings.image_types == ["image/png"]
