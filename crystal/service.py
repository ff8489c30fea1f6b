import logging
from typing import Any, Dict, List, Optional

from .llm import llm, CHAT_MODEL, VISION_MODEL
from .persona import build_system_prompt

logger = logging.getLogger(__name__)


def _image_data_url(image_base64: str) -> str:
    if image_base64.startswith("data:"):
        return image_base64
    return f"data:image/jpeg;base64,{image_base64}"


def build_chat_messages(
    message: str,
    conversation_history: Optional[List[Dict[str, Any]]] = None,
    context_info: str = "",
    crush_name: Optional[str] = None,
    image_base64: Optional[str] = None,
) -> List[Dict[str, Any]]:
    """System persona, prior turns, then the new user turn (multimodal when an image is attached)"""
    messages: List[Dict[str, Any]] = [
        {"role": "system", "content": build_system_prompt(context_info, crush_name)}
    ]
    messages.extend(conversation_history or [])

    if image_base64:
        messages.append({
            "role": "user",
            "content": [
                {"type": "text", "text": message or "O que você acha desta imagem?"},
                {"type": "image_url", "image_url": {"url": _image_data_url(image_base64)}},
            ],
        })
    else:
        messages.append({"role": "user", "content": message})
    return messages


async def crystal_reply(
    message: str,
    conversation_history: Optional[List[Dict[str, Any]]] = None,
    context_info: str = "",
    crush_name: Optional[str] = None,
    image_base64: Optional[str] = None,
) -> str:
    """
    Generate Crystal's next reply

    Raises:
        CrystalLLMError: model unavailable or reply unusable
    """
    messages = build_chat_messages(message, conversation_history, context_info, crush_name, image_base64)
    model = VISION_MODEL if image_base64 else CHAT_MODEL
    logger.info(f"Crystal reply requested (crush={crush_name or '-'}, history={len(conversation_history or [])})")
    return await llm.complete(messages, model=model, max_tokens=300, temperature=0.8)
