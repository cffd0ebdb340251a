from loandesk.services.storage.adapter import (
    FileStorage,
    GCSFileStorage,
    LocalFileSystemStorage,
    StoredFile,
    UploadedFile,
)
from loandesk.services.storage.service import get_file_storage

__all__ = [
    "FileStorage",
    "GCSFileStorage",
    "LocalFileSystemStorage",
    "StoredFile",
    "UploadedFile",
    "get_file_storage",
]
