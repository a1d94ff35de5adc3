from pydantic import BaseModel, ConfigDict


class AttachmentOut(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: str
    transportation_request_id: str
    file_name: str
    file_size: int
    file_type: str | None = None
    storage_path: str
    uploaded_by: str | None = None
    created_at: str | None = None


class AttachmentListOut(BaseModel):
    items: list[AttachmentOut]
