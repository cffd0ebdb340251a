from uuid import uuid4

import pytest
from fastapi.testclient import TestClient

from loandesk.core.settings import settings
from loandesk.db.session import get_db
from loandesk.main import app
from loandesk.services.storage import LocalFileSystemStorage, UploadedFile, get_file_storage
from loandesk.services.storage.adapter import sign_object_key, verify_object_key_signature
from loandesk.services.storage.uploads import (
    checklist_item_subdir,
    generate_object_key,
    safe_filename,
    validate_upload,
)


def _storage(tmp_path) -> LocalFileSystemStorage:
    return LocalFileSystemStorage(
        base_path=str(tmp_path),
        base_url="http://testserver/",
        signing_key="signing-secret",
    )


@pytest.mark.asyncio
async def test_local_upload_writes_file_and_returns_signed_url(tmp_path) -> None:
    storage = _storage(tmp_path)
    key = "loans/abc/checklist/def/file.pdf"

    stored = await storage.upload(
        UploadedFile(filename="file.pdf", content=b"%PDF-1.7 body", content_type="application/pdf"),
        object_key=key,
    )

    assert (tmp_path / key).read_bytes() == b"%PDF-1.7 body"
    assert stored.object_key == key
    assert stored.file_url.startswith("http://testserver/api/v1/files/local-content?key=")
    assert sign_object_key("signing-secret", key) in stored.file_url


@pytest.mark.asyncio
async def test_local_delete_is_idempotent(tmp_path) -> None:
    storage = _storage(tmp_path)
    key = "loans/x/file.pdf"
    await storage.upload(UploadedFile(filename="file.pdf", content=b"%PDF"), object_key=key)

    await storage.delete(key)
    await storage.delete(key)

    assert not (tmp_path / key).exists()


@pytest.mark.parametrize("key", ["../escape.pdf", "/etc/passwd", "loans\\..\\x.pdf", "a/../../b.pdf"])
def test_local_storage_rejects_path_traversal(tmp_path, key) -> None:
    with pytest.raises(ValueError, match="Invalid object key"):
        _storage(tmp_path).resolve_path(key)


def test_object_key_signature() -> None:
    signature = sign_object_key("secret", "loans/a.pdf")
    assert verify_object_key_signature("secret", "loans/a.pdf", signature)
    assert not verify_object_key_signature("secret", "loans/b.pdf", signature)
    assert not verify_object_key_signature("other", "loans/a.pdf", signature)


def test_validate_upload_accepts_matching_content() -> None:
    validate_upload(UploadedFile(filename="scan.PNG", content=b"\x89PNG\r\n\x1a\nrest"))
    validate_upload(UploadedFile(filename="notes.txt", content=b"plain text"))


@pytest.mark.parametrize(
    ("upload", "message"),
    [
        (UploadedFile(filename="page.html", content=b"<html>"), "not allowed"),
        (UploadedFile(filename="empty.pdf", content=b""), "File is empty"),
        (UploadedFile(filename="fake.pdf", content=b"MZ\x90\x00"), "does not match"),
    ],
)
def test_validate_upload_rejects(upload, message) -> None:
    with pytest.raises(ValueError, match=message):
        validate_upload(upload)


def test_validate_upload_enforces_size_limit() -> None:
    upload = UploadedFile(filename="big.bin", content=b"x" * 2048)
    with pytest.raises(ValueError, match="maximum allowed size"):
        validate_upload(upload, max_size_bytes=1024)


def test_safe_filename_strips_directories() -> None:
    assert safe_filename("../../etc/report.pdf") == "report.pdf"
    assert safe_filename("") == "upload.bin"
    assert safe_filename(None) == "upload.bin"


def test_generate_object_key_keeps_extension() -> None:
    loan_id, item_id = uuid4(), uuid4()
    key = generate_object_key(checklist_item_subdir(loan_id, item_id), "Bank Statement.PDF")

    assert key.startswith(f"loans/{loan_id}/checklist/{item_id}/")
    assert key.endswith(".pdf")
    assert "Bank Statement" not in key


def test_get_file_storage_requires_gcs_bucket(monkeypatch) -> None:
    monkeypatch.setattr(settings, "storage_provider", "gcs")
    monkeypatch.setattr(settings, "gcs_bucket", None)
    with pytest.raises(ValueError, match="GCS bucket"):
        get_file_storage()


def test_get_file_storage_defaults_to_local(monkeypatch, tmp_path) -> None:
    monkeypatch.setattr(settings, "storage_provider", "local")
    monkeypatch.setattr(settings, "local_upload_dir", str(tmp_path))
    storage = get_file_storage()
    assert isinstance(storage, LocalFileSystemStorage)
    assert storage.provider == "local"


def test_local_content_route_serves_signed_files(client, monkeypatch, tmp_path) -> None:
    monkeypatch.setattr(settings, "storage_provider", "local")
    monkeypatch.setattr(settings, "local_upload_dir", str(tmp_path))
    key = "loans/l1/checklist/i1/doc.pdf"
    (tmp_path / "loans/l1/checklist/i1").mkdir(parents=True)
    (tmp_path / key).write_bytes(b"%PDF-1.4 served")

    ok = client.get(
        "/api/v1/files/local-content",
        params={"key": key, "signature": sign_object_key(settings.secret_key, key)},
    )
    forged = client.get(
        "/api/v1/files/local-content", params={"key": key, "signature": "0" * 64}
    )

    assert ok.status_code == 200
    assert ok.content == b"%PDF-1.4 served"
    assert forged.status_code == 403


def test_local_content_route_requires_auth(fake_db) -> None:
    async def _get_db():
        yield fake_db

    app.dependency_overrides[get_db] = _get_db
    response = TestClient(app).get(
        "/api/v1/files/local-content", params={"key": "a.pdf", "signature": "x"}
    )
    app.dependency_overrides.clear()

    assert response.status_code == 401
