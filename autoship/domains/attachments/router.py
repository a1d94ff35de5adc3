from fastapi import APIRouter, Depends, File, UploadFile

from autoship.core.config import settings
from autoship.core.deps import get_storage, get_store, require_user
from autoship.core.supabase import SupabaseStorage, SupabaseTables
from autoship.domains.attachments.schemas import AttachmentListOut
from autoship.domains.attachments.service import UploadItem, list_attachments, upload_attachments
from autoship.domains.identity.service import SessionState
from autoship.domains.orders.service import get_request_for_session

router = APIRouter()


@router.post("/requests/{request_id}/attachments", response_model=AttachmentListOut)
async def upload_route(
    request_id: str,
    files: list[UploadFile] = File(...),
    session: SessionState = Depends(require_user),
    store: SupabaseTables = Depends(get_store),
    storage: SupabaseStorage = Depends(get_storage),
) -> AttachmentListOut:
    get_request_for_session(store, session, request_id)
    # One byte past the limit is enough for validation to reject the file.
    read_limit = settings.attachment_max_size_mb * 1024 * 1024 + 1
    items = [
        UploadItem(
            file_name=f.filename or "upload",
            content_type=f.content_type or "application/octet-stream",
            content=await f.read(read_limit),
        )
        for f in files
    ]
    rows = upload_attachments(store, storage, request_id=request_id, user_id=session.user.sub, items=items)  # type: ignore[union-attr]
    return AttachmentListOut(items=rows)


@router.get("/requests/{request_id}/attachments", response_model=AttachmentListOut)
def list_route(
    request_id: str,
    session: SessionState = Depends(require_user),
    store: SupabaseTables = Depends(get_store),
) -> AttachmentListOut:
    get_request_for_session(store, session, request_id)
    return AttachmentListOut(items=list_attachments(store, request_id))
