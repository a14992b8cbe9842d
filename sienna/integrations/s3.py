"""S3 object store for uploaded media (training images, PDFs, product shots)."""

from __future__ import annotations

import logging
import time
import urllib.parse

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from sienna.config import StorageConfig
from sienna.core import stats
from sienna.core.utils import IntegrationError
from sienna.integrations.interface import ObjectStore

logger = logging.getLogger(__name__)

CACHE_CONTROL = "public, max-age=31536000"


class S3ObjectStore(ObjectStore):
    """Public-read objects under ``{prefix}/`` in one bucket.

    Works against any S3-compatible endpoint when ``endpoint_url`` is set.
    """

    def __init__(self, config: StorageConfig):
        if not config.bucket:
            raise ValueError("SIENNA_STORAGE_BUCKET is required for uploads")
        self.bucket = config.bucket
        self.prefix = config.prefix.strip("/")
        self.public_base_url = (
            config.public_base_url.rstrip("/")
            or f"https://{config.bucket}.s3.{config.region}.amazonaws.com"
        )
        self._client = boto3.client(
            "s3",
            region_name=config.region,
            endpoint_url=config.endpoint_url or None,
        )
        logger.info("S3 object store ready: s3://%s/%s", self.bucket, self.prefix)

    def _key(self, filename: str) -> str:
        return f"{self.prefix}/{filename}" if self.prefix else filename

    def url_for(self, key: str) -> str:
        return f"{self.public_base_url}/{urllib.parse.quote(key)}"

    def key_for(self, url: str) -> str:
        if not url.startswith(self.public_base_url + "/"):
            raise ValueError(f"URL is not in this store: {url}")
        return urllib.parse.unquote(url[len(self.public_base_url) + 1:])

    def upload(self, data: bytes, filename: str, content_type: str) -> str:
        key = self._key(filename)
        t0 = time.monotonic()
        try:
            self._client.put_object(
                Bucket=self.bucket,
                Key=key,
                Body=data,
                ContentType=content_type,
                CacheControl=CACHE_CONTROL,
                ACL="public-read",
            )
        except (ClientError, BotoCoreError) as e:
            if stats.storage_stats:
                stats.storage_stats.record_error(str(e))
            raise IntegrationError(f"Failed to upload file: {e}") from e
        if stats.storage_stats:
            stats.storage_stats.record_call(latency_ms=(time.monotonic() - t0) * 1000)
        logger.info("Uploaded %s (%d bytes)", key, len(data))
        return self.url_for(key)

    def delete(self, url: str) -> None:
        key = self.key_for(url)
        try:
            self._client.delete_object(Bucket=self.bucket, Key=key)
        except (ClientError, BotoCoreError) as e:
            raise IntegrationError(f"File deletion failed: {e}") from e
        logger.info("Deleted %s", key)
