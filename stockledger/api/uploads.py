from fastapi import APIRouter, Depends
from pydantic import BaseModel

from stockledger.api.auth import get_session_context
from stockledger.context import SessionContext
from stockledger.services import upload_service

router = APIRouter(prefix="/uploads", tags=["Uploads"])


class ImageUpload(BaseModel):
    base64: str = ""
    file_name: str = ""
    content_type: str = ""


@router.post("/images", status_code=201)
def upload_image(data: ImageUpload, ctx: SessionContext = Depends(get_session_context)):
    return {"url": upload_service.store_image(data.base64, data.file_name, data.content_type)}
