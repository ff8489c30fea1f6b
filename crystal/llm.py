"""
Chat-completion client for the Crystal persona
"""
import os
import logging
from typing import Any, Dict, List, Optional

from openai import AsyncOpenAI, OpenAIError

logger = logging.getLogger(__name__)

CHAT_MODEL = os.getenv("CRYSTAL_CHAT_MODEL", "gpt-4o-mini")
VISION_MODEL = os.getenv("CRYSTAL_VISION_MODEL", "gpt-4o")
INSIGHTS_MODEL = os.getenv("INSIGHTS_MODEL", "gpt-4o-mini")


class CrystalLLMError(Exception):
    """The language model could not produce a usable reply"""


class CrystalLLM:
    """Thin wrapper over AsyncOpenAI; the key is read per call so a missing key fails the call, not the import"""

    def __init__(self, api_key: Optional[str] = None):
        self._api_key = api_key

    @property
    def api_key(self) -> Optional[str]:
        return self._api_key or os.getenv("OPENAI_API_KEY")

    def is_configured(self) -> bool:
        return bool(self.api_key)

    async def complete(
        self,
        messages: List[Dict[str, Any]],
        model: str = CHAT_MODEL,
        max_tokens: int = 300,
        temperature: float = 0.8,
    ) -> str:
        """
        One chat completion

        Returns:
            the assistant text

        Raises:
            CrystalLLMError: no API key, provider error or empty reply
        """
        if not self.api_key:
            raise CrystalLLMError("OPENAI_API_KEY is not set")

        client = AsyncOpenAI(api_key=self.api_key)
        try:
            logger.info(f"Chat completion: model={model} messages={len(messages)}")
            response = await client.chat.completions.create(
                model=model,
                messages=messages,
                max_tokens=max_tokens,
                temperature=temperature,
            )
        except OpenAIError as e:
            logger.error(f"OpenAI API error: {str(e)}")
            raise CrystalLLMError(f"OpenAI API error: {str(e)}") from e

        content = response.choices[0].message.content if response.choices else None
        if not content:
            raise CrystalLLMError("Resposta inválida da Crystal")
        return content


llm = CrystalLLM()
