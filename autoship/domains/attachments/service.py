import logging
import secrets
import string
import time
from dataclasses import dataclass

from fastapi import HTTPException, status

from autoship.core.config import settings
from autoship.core.errors import StoreError
from autoship.core.supabase import DOCUMENT_ATTACHMENTS, SupabaseStorage, SupabaseTables, eq

logger = logging.getLogger(__name__)

_RAND_CHARS = string.digits + string.ascii_lowercase


@dataclass(frozen=True)
class UploadItem:
    file_name: str
    content_type: str
    content: bytes

    @property
    def size(self) -> int:
        return len(self.content)


def accepted_types() -> list[str]:
    return [t.strip().lower() for t in settings.attachment_accepted_types.split(",") if t.strip()]


def is_accepted(file_name: str, content_type: str | None, accepted: list[str] | None = None) -> bool:
    rules = accepted if accepted is not None else accepted_types()
    name = (file_name or "").lower()
    ctype = (content_type or "").lower()
    for rule in rules:
        if rule.startswith("."):
            if name.endswith(rule):
                return True
        elif rule.endswith("/*"):
            if ctype.startswith(rule[:-1]):
                return True
        elif ctype == rule:
            return True
    return False


def _reject(code: str, message: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail={"code": code, "message": message})


def validate_upload(items: list[UploadItem], *, existing_count: int = 0) -> None:
    if not items:
        raise _reject("NO_FILES", "Select at least one file.")
    if existing_count + len(items) > settings.attachment_max_files:
        raise _reject("TOO_MANY_FILES", f"Maximum {settings.attachment_max_files} files allowed")
    max_bytes = settings.attachment_max_size_mb * 1024 * 1024
    for item in items:
        if item.size > max_bytes:
            raise _reject("FILE_TOO_LARGE", f"{item.file_name} exceeds {settings.attachment_max_size_mb}MB limit")
        if not is_accepted(item.file_name, item.content_type):
            raise _reject("FILE_TYPE", f"{item.file_name} is not an accepted file type")


def build_storage_path(user_id: str, request_id: str, file_name: str, *, now_ms: int | None = None) -> str:
    ms = now_ms if now_ms is not None else int(time.time() * 1000)
    rand = "".join(secrets.choice(_RAND_CHARS) for _ in range(8))
    ext = file_name.rsplit(".", 1)[-1].lower() if "." in file_name else "bin"
    return f"{user_id}/{request_id}/{ms}-{rand}.{ext}"


def list_attachments(store: SupabaseTables, request_id: str) -> list[dict]:
    return store.select(DOCUMENT_ATTACHMENTS, eq("transportation_request_id", request_id), order="created_at.desc")


def _discard(storage: SupabaseStorage, paths: list[str]) -> None:
    if not paths:
        return
    try:
        storage.remove(settings.documents_bucket, paths)
    except StoreError as e:
        logger.error("orphaned attachment objects paths=%s: %s", paths, e)


def upload_attachments(
    store: SupabaseTables,
    storage: SupabaseStorage,
    *,
    request_id: str,
    user_id: str,
    items: list[UploadItem],
) -> list[dict]:
    validate_upload(items, existing_count=len(list_attachments(store, request_id)))

    # All objects first, then a single insert; any failure removes what was stored.
    uploaded: list[str] = []
    records: list[dict] = []
    try:
        for item in items:
            path = build_storage_path(user_id, request_id, item.file_name)
            storage.upload(settings.documents_bucket, path, item.content, content_type=item.content_type)
            uploaded.append(path)
            records.append(
                {
                    "transportation_request_id": request_id,
                    "file_name": item.file_name,
                    "file_size": item.size,
                    "file_type": item.content_type,
                    "storage_path": path,
                    "uploaded_by": user_id,
                }
            )
        rows = store.insert_many(DOCUMENT_ATTACHMENTS, records)
    except StoreError:
        logger.warning("attachment upload failed request_id=%s; removing %s stored objects", request_id, len(uploaded))
        _discard(storage, uploaded)
        raise
    logger.info("attachments uploaded request_id=%s count=%s", request_id, len(rows))
    return rows
