"""Image uploads to the Cloudinary media host."""

import hashlib
import time
from typing import Dict, Optional
import httpx
import structlog

from devevent.exceptions import ConfigurationError, ImageUploadError
from devevent.models.config import DevEventConfig


logger = structlog.get_logger(__name__)

CLOUDINARY_API_URL = "https://api.cloudinary.com/v1_1"


def sign_params(params: Dict[str, str], api_secret: str) -> str:
    """Cloudinary signature: SHA-1 of the sorted ``key=value`` pairs followed by the secret."""
    to_sign = "&".join(f"{key}={params[key]}" for key in sorted(params))
    return hashlib.sha1(f"{to_sign}{api_secret}".encode("utf-8")).hexdigest()


class ImageUploader:
    """Uploads event banner images and returns their public HTTPS URL."""

    def __init__(self,
                 cloud_name: str,
                 api_key: str,
                 api_secret: str,
                 folder: str = "DevEvent",
                 timeout: float = 30.0,
                 transport: Optional[httpx.AsyncBaseTransport] = None):
        """
        Initialize the uploader.

        Args:
            cloud_name: Cloudinary cloud name
            api_key: Cloudinary API key
            api_secret: Cloudinary API secret, used only for signing
            folder: Folder the images are stored in
            timeout: Request timeout in seconds
            transport: Optional httpx transport (tests pass a mock transport)
        """
        if not (cloud_name and api_key and api_secret):
            raise ConfigurationError("Cloudinary cloud name, API key and API secret are required")

        self.cloud_name = cloud_name
        self.api_key = api_key
        self.api_secret = api_secret
        self.folder = folder
        self.timeout = timeout
        self.transport = transport
        self.logger = logger.bind(component="image_uploader")

    @classmethod
    def from_config(cls, config: DevEventConfig) -> "ImageUploader":
        return cls(
            cloud_name=config.cloudinary_cloud_name,
            api_key=config.cloudinary_api_key,
            api_secret=config.cloudinary_api_secret,
            folder=config.cloudinary_folder,
            timeout=config.media_upload_timeout,
        )

    @property
    def upload_url(self) -> str:
        return f"{CLOUDINARY_API_URL}/{self.cloud_name}/image/upload"

    async def upload(self, data: bytes, filename: str = "image", content_type: Optional[str] = None) -> str:
        """
        Upload image bytes.

        Returns:
            The ``secure_url`` of the stored image

        Raises:
            ImageUploadError: If the request fails or the host rejects the image
        """
        if not data:
            raise ImageUploadError("Image file is empty")

        params = {"folder": self.folder, "timestamp": str(int(time.time()))}
        form = dict(params, api_key=self.api_key, signature=sign_params(params, self.api_secret))
        files = {"file": (filename, data, content_type or "application/octet-stream")}

        try:
            async with httpx.AsyncClient(transport=self.transport, timeout=self.timeout) as client:
                response = await client.post(self.upload_url, data=form, files=files)
        except httpx.HTTPError as e:
            self.logger.error("Image upload request failed", filename=filename, error=str(e))
            raise ImageUploadError(f"Image upload request failed: {e}") from e

        if response.status_code != 200:
            self.logger.error(
                "Image upload rejected",
                status_code=response.status_code,
                response_text=response.text
            )
            raise ImageUploadError(f"Media host returned HTTP {response.status_code}")

        try:
            secure_url = response.json().get("secure_url")
        except ValueError as e:
            raise ImageUploadError("Media host returned a malformed response") from e
        if not secure_url:
            raise ImageUploadError("Media host response did not include a secure_url")

        self.logger.info("Image uploaded", filename=filename, url=secure_url)
        return secure_url
