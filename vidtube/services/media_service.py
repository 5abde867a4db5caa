"""Media store client for Cloudinary uploads."""

import os
import time
from pathlib import Path
from typing import Optional, Union

import httpx
import structlog
from cloudinary.utils import api_sign_request

from vidtube.config import Settings, get_settings

logger = structlog.get_logger(__name__)


def _remove_local_file(path: Path) -> None:
    try:
        os.remove(path)
    except FileNotFoundError:
        pass
    except OSError as e:
        logger.warning("media_local_file_cleanup_failed", path=str(path), error=str(e))


class MediaService:
    """Uploads staged local files and returns durable URLs."""

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()
        self._client: httpx.AsyncClient | None = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self.settings.media_upload_timeout)
            )
        return self._client

    async def close(self):
        """Close HTTP client."""
        if self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    @property
    def is_configured(self) -> bool:
        return bool(
            self.settings.cloudinary_cloud_name
            and self.settings.cloudinary_api_key
            and self.settings.cloudinary_api_secret
        )

    async def upload(self, local_path: Optional[Union[str, Path]]) -> Optional[str]:
        """Upload a local file and return its URL.

        The local file is removed once the attempt completes, whether or
        not the upload succeeded.

        Args:
            local_path: Path of the staged file, or None

        Returns:
            The secure URL of the stored media, or None on any failure
        """
        if not local_path:
            return None

        path = Path(local_path)

        try:
            if not self.is_configured:
                logger.error("media_store_not_configured")
                return None

            params = {"timestamp": int(time.time())}
            signature = api_sign_request(params, self.settings.cloudinary_api_secret)
            url = (
                f"{self.settings.media_upload_base_url}/"
                f"{self.settings.cloudinary_cloud_name}/auto/upload"
            )

            client = await self._get_client()
            with path.open("rb") as fh:
                response = await client.post(
                    url,
                    data={
                        **params,
                        "api_key": self.settings.cloudinary_api_key,
                        "signature": signature,
                    },
                    files={"file": (path.name, fh)},
                )
            response.raise_for_status()

            body = response.json()
            media_url = body.get("secure_url") or body.get("url")
            if not media_url:
                logger.error("media_upload_missing_url", file=path.name)
                return None

            logger.info("media_uploaded", file=path.name, url=media_url)
            return media_url

        except httpx.TimeoutException:
            logger.warning("media_upload_timeout", file=path.name)
            return None
        except httpx.HTTPStatusError as e:
            logger.error(
                "media_upload_rejected",
                file=path.name,
                status_code=e.response.status_code,
            )
            return None
        except (httpx.HTTPError, OSError, ValueError) as e:
            logger.error(
                "media_upload_failed",
                file=path.name,
                error=str(e),
                error_type=type(e).__name__,
            )
            return None
        finally:
            _remove_local_file(path)
