from __future__ import annotations

import hashlib
import hmac
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path, PurePosixPath
from urllib.parse import urlencode

from starlette.concurrency import run_in_threadpool


@dataclass(frozen=True)
class UploadedFile:
    filename: str
    content: bytes
    content_type: str = "application/octet-stream"


@dataclass(frozen=True)
class StoredFile:
    file_url: str
    object_key: str


def sign_object_key(secret_key: str, object_key: str) -> str:
    """HMAC-SHA256 signature for a local storage object key."""
    return hmac.new(
        secret_key.encode("utf-8"),
        object_key.encode("utf-8"),
        hashlib.sha256,
    ).hexdigest()


def verify_object_key_signature(secret_key: str, object_key: str, signature: str) -> bool:
    expected = sign_object_key(secret_key, object_key)
    return hmac.compare_digest(expected, signature)


class FileStorage(ABC):
    provider: str = "local"

    @abstractmethod
    async def upload(self, file: UploadedFile, *, object_key: str) -> StoredFile:
        """Persist ``file`` under ``object_key`` and return its retrievable URL."""

    @abstractmethod
    async def delete(self, object_key: str) -> None:
        pass


class LocalFileSystemStorage(FileStorage):
    def __init__(self, base_path: str, base_url: str, *, signing_key: str = ""):
        self.base_path = Path(base_path)
        self.base_url = base_url.rstrip("/")
        self.signing_key = signing_key
        self.provider = "local"

    def _resolve_safe_path(self, object_key: str) -> Path:
        if "\\" in object_key:
            raise ValueError("Invalid object key")
        key_path = PurePosixPath(object_key)
        if key_path.is_absolute() or ".." in key_path.parts:
            raise ValueError("Invalid object key")
        base = self.base_path.resolve()
        resolved = (base / Path(object_key)).resolve()
        if resolved != base and base not in resolved.parents:
            raise ValueError("Invalid object key")
        return resolved

    def resolve_path(self, object_key: str) -> Path:
        return self._resolve_safe_path(object_key)

    def content_url(self, object_key: str) -> str:
        params = urlencode(
            {"key": object_key, "signature": sign_object_key(self.signing_key, object_key)}
        )
        return f"{self.base_url}/api/v1/files/local-content?{params}"

    def _write(self, object_key: str, content: bytes) -> None:
        path = self._resolve_safe_path(object_key)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(content)

    async def upload(self, file: UploadedFile, *, object_key: str) -> StoredFile:
        await run_in_threadpool(self._write, object_key, file.content)
        return StoredFile(file_url=self.content_url(object_key), object_key=object_key)

    async def delete(self, object_key: str) -> None:
        path = self._resolve_safe_path(object_key)
        path.unlink(missing_ok=True)


class GCSFileStorage(FileStorage):
    def __init__(self, bucket: str):
        # Lazy import so the dependency is only needed when configured
        from google.cloud import storage

        self.provider = "gcs"
        self.bucket = bucket
        self.client = storage.Client()
        self._bucket_ref = self.client.bucket(bucket)

    def _write(self, object_key: str, file: UploadedFile) -> str:
        blob = self._bucket_ref.blob(object_key)
        blob.upload_from_string(file.content, content_type=file.content_type)
        return blob.public_url

    async def upload(self, file: UploadedFile, *, object_key: str) -> StoredFile:
        file_url = await run_in_threadpool(self._write, object_key, file)
        return StoredFile(file_url=file_url, object_key=object_key)

    async def delete(self, object_key: str) -> None:
        blob = self._bucket_ref.blob(object_key)
        await run_in_threadpool(blob.delete)
