from __future__ import annotations

from pathlib import Path
from uuid import UUID, uuid4

from loandesk.services.storage.adapter import UploadedFile


# Magic byte signatures for known binary file types.
_MAGIC_SIGNATURES: dict[str, list[bytes]] = {
    ".pdf": [b"%PDF"],
    ".png": [b"\x89PNG\r\n\x1a\n"],
    ".jpg": [b"\xff\xd8\xff"],
    ".jpeg": [b"\xff\xd8\xff"],
    ".gif": [b"GIF87a", b"GIF89a"],
    ".webp": [b"RIFF"],
    ".docx": [b"PK\x03\x04", b"PK\x05\x06"],
    ".xlsx": [b"PK\x03\x04", b"PK\x05\x06"],
    ".zip": [b"PK\x03\x04", b"PK\x05\x06"],
}

# Extensions whose content can execute scripts when rendered in a browser.
_DANGEROUS_EXTENSIONS = {".html", ".htm", ".svg", ".xhtml", ".js", ".mjs", ".xml"}


def safe_filename(filename: str | None, fallback: str = "upload.bin") -> str:
    if not filename:
        return fallback
    return Path(filename).name or fallback


def validate_upload(file: UploadedFile, *, max_size_bytes: int = 0) -> None:
    """Raise ``ValueError`` when the file is empty, too large or mislabelled."""
    ext = Path(safe_filename(file.filename)).suffix.lower()
    if ext in _DANGEROUS_EXTENSIONS:
        raise ValueError(
            f"File type '{ext}' is not allowed because it may contain executable content"
        )
    if not file.content:
        raise ValueError("File is empty")
    if max_size_bytes and len(file.content) > max_size_bytes:
        raise ValueError(
            f"File exceeds maximum allowed size of {max_size_bytes // (1024 * 1024)} MB"
        )
    signatures = _MAGIC_SIGNATURES.get(ext)
    if signatures and not any(file.content.startswith(sig) for sig in signatures):
        raise ValueError(f"File content does not match the expected format for '{ext}'")


def checklist_item_subdir(loan_id: UUID, item_id: UUID) -> Path:
    return Path("loans") / str(loan_id) / "checklist" / str(item_id)


def generate_object_key(subdir: Path, filename: str | None) -> str:
    ext = Path(safe_filename(filename)).suffix.lower()
    return (subdir / f"{uuid4().hex}{ext}").as_posix()
