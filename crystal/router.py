from fastapi import APIRouter
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from typing import Any, Dict, List, Optional
import logging

from .llm import CrystalLLMError
from .service import crystal_reply

router = APIRouter(tags=["Crystal"])
logger = logging.getLogger(__name__)


class CrystalChatRequest(BaseModel):
    message: str = ""
    conversationHistory: List[Dict[str, Any]] = []
    contextInfo: str = ""
    crushName: Optional[str] = None
    userId: Optional[str] = None
    imageUrl: Optional[str] = None
    imageBase64: Optional[str] = None


@router.post("/crystal-chat")
async def crystal_chat(payload: CrystalChatRequest):
    logger.info("Crystal chat function called")

    if not payload.message and not payload.imageBase64:
        return JSONResponse(status_code=400, content={"error": "Message is required", "success": False})

    try:
        response = await crystal_reply(
            payload.message,
            payload.conversationHistory,
            payload.contextInfo,
            payload.crushName,
            payload.imageBase64,
        )
    except CrystalLLMError as e:
        logger.error(f"Error in crystal-chat: {str(e)}")
        return JSONResponse(status_code=500, content={"error": str(e), "success": False})

    return {"response": response, "success": True}
