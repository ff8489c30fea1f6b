from fastapi import APIRouter
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from typing import Optional
import logging

from .imgur import imgur_client, ImageUploadError

router = APIRouter(tags=["Media"])
logger = logging.getLogger(__name__)


class ImageUploadRequest(BaseModel):
    imageBase64: Optional[str] = None
    title: Optional[str] = None


@router.post("/imgur-upload")
async def imgur_upload(payload: ImageUploadRequest):
    logger.info("Imgur upload function called")

    if not payload.imageBase64:
        return JSONResponse(status_code=400, content={"error": "Image data is required", "success": False})

    try:
        data = await imgur_client.upload(payload.imageBase64, payload.title)
    except ImageUploadError as e:
        logger.error(f"Error in imgur-upload: {str(e)}")
        return JSONResponse(status_code=500, content={"error": str(e), "success": False})

    return {"success": True, "data": data}
