"""
Outbound HTTP client
Thin httpx wrapper used for every call leaving the service (webhook targets, image host)
"""

import httpx
import logging
from typing import Optional, Dict, Any

logger = logging.getLogger(__name__)

DEFAULT_HEADERS = {
    'Content-Type': 'application/json',
    'User-Agent': 'Crystal.AI/1.0',
}


class OutboundClient:
    """Client for JSON POSTs to third-party endpoints"""

    def __init__(self, timeout: float = 30.0, default_headers: Optional[Dict[str, str]] = None):
        self.timeout = timeout
        self.default_headers = {**DEFAULT_HEADERS, **(default_headers or {})}

    def get_headers(self, extra: Optional[Dict[str, str]] = None) -> Dict[str, str]:
        """
        Merge per-call headers over the client defaults

        Args:
            extra: headers for this call only

        Returns:
            Dictionary of headers
        """
        headers = dict(self.default_headers)
        if extra:
            headers.update(extra)
        return headers

    async def post(
        self,
        url: str,
        data: Dict[str, Any],
        headers: Optional[Dict[str, str]] = None,
        timeout: Optional[float] = None
    ) -> httpx.Response:
        """
        POST a JSON body and return the raw response without raising on status

        Args:
            url: Full URL to request
            data: JSON data to send
            headers: extra headers for this call
            timeout: Request timeout in seconds (client default when None)

        Returns:
            httpx.Response

        Raises:
            httpx.HTTPError: on transport failures (DNS, connect, timeout)
        """
        try:
            logger.info(f"Outbound POST: {url}")

            async with httpx.AsyncClient() as client:
                response = await client.post(
                    url,
                    headers=self.get_headers(headers),
                    json=data,
                    timeout=timeout or self.timeout
                )

            logger.info(f"Outbound POST done: {url} ({response.status_code})")
            return response

        except httpx.HTTPError as e:
            logger.error(f"Outbound POST failed: {url} - {str(e)}")
            raise

    async def post_json(
        self,
        url: str,
        data: Dict[str, Any],
        headers: Optional[Dict[str, str]] = None,
        timeout: Optional[float] = None
    ) -> Dict[str, Any]:
        """
        POST a JSON body and decode the JSON reply

        Raises:
            httpx.HTTPStatusError: non-2xx reply
            httpx.HTTPError: transport failures
        """
        response = await self.post(url, data, headers=headers, timeout=timeout)
        response.raise_for_status()
        return response.json() if response.content else {}
