from loandesk.core.settings import settings
from loandesk.services.storage.adapter import FileStorage, GCSFileStorage, LocalFileSystemStorage


def get_file_storage() -> FileStorage:
    if settings.storage_provider == "gcs":
        if not settings.gcs_bucket:
            raise ValueError("GCS bucket is not configured")
        return GCSFileStorage(bucket=settings.gcs_bucket)

    return LocalFileSystemStorage(
        base_path=settings.local_upload_dir,
        base_url=settings.public_base_url,
        signing_key=settings.secret_key,
    )
