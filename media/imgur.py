"""
Anonymous image hosting for crush photos and chat attachments
"""
import os
import re
import logging
from typing import Dict, Optional

import httpx

from shared_utils.http_client import OutboundClient

logger = logging.getLogger(__name__)

IMGUR_UPLOAD_URL = "https://api.imgur.com/3/image"
DATA_URI_PREFIX = re.compile(r"^data:image/\w+;base64,")


class ImageUploadError(Exception):
    """The image host rejected or failed the upload"""


def strip_data_uri(image_base64: str) -> str:
    return DATA_URI_PREFIX.sub("", image_base64)


class ImgurClient:
    def __init__(self, client_id: Optional[str] = None, client: Optional[OutboundClient] = None):
        self.client_id = client_id or os.getenv("IMGUR_CLIENT_ID", "546c25a59c58ad7")
        self.client = client or OutboundClient(timeout=30.0)

    async def upload(self, image_base64: str, title: Optional[str] = None) -> Dict[str, str]:
        """
        Upload a base64 image

        Returns:
            {url, deleteHash, id}

        Raises:
            ImageUploadError
        """
        body = {
            "image": strip_data_uri(image_base64),
            "type": "base64",
            "title": title or "Crystal Crush Photo",
            "description": "Uploaded via Crystal.ai",
        }
        try:
            data = await self.client.post_json(
                IMGUR_UPLOAD_URL, body, headers={"Authorization": f"Client-ID {self.client_id}"}
            )
        except httpx.HTTPStatusError as e:
            logger.error(f"Imgur API error: {e.response.status_code} {e.response.text}")
            raise ImageUploadError(f"Imgur upload failed: {e.response.status_code}") from e
        except httpx.HTTPError as e:
            raise ImageUploadError(f"Imgur upload failed: {str(e)}") from e

        if not data.get("success"):
            raise ImageUploadError((data.get("data") or {}).get("error") or "Upload failed")

        image = data["data"]
        logger.info(f"Imgur upload successful ({image.get('id')})")
        return {"url": image.get("link"), "deleteHash": image.get("deletehash"), "id": image.get("id")}


imgur_client = ImgurClient()
