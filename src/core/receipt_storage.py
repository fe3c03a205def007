"""Receipt object storage collaborators.

Receipts are written under a storage key and handed to clients as a
time-limited URL. Supabase Storage is used in deployed environments and a
local directory in development and tests.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any

from supabase import Client

from src.core.config import Settings
from src.core.errors import DependencyError
from src.core.supabase import check_storage_connection, get_supabase_client

logger = logging.getLogger(__name__)

LOCAL_STORAGE_ROUTE = "/api/v1/storage/local"


class ReceiptStorage(ABC):
    """Interface to durable receipt storage."""

    name: str
    # Whether read() can hand objects back for the API to serve directly
    serves_content: bool = False

    @abstractmethod
    async def put(self, key: str, data: bytes, content_type: str) -> str:
        """Store an object, replacing any existing one, and return its key."""

    @abstractmethod
    async def signed_url(self, key: str) -> str:
        """Get a URL the client can download the object from."""

    async def read(self, key: str) -> bytes | None:
        """Read an object back, or None when it does not exist."""
        raise NotImplementedError(f"{self.name} storage only hands out signed URLs")

    @abstractmethod
    async def check_health(self) -> dict[str, Any]: ...


class LocalReceiptStorage(ReceiptStorage):
    """Receipts written to a local directory and served by the API."""

    name = "local"
    serves_content = True

    def __init__(self, base_dir: str | Path, public_base_url: str) -> None:
        self._base_dir = Path(base_dir).resolve()
        self._public_base_url = public_base_url.rstrip("/")

    def resolve(self, key: str) -> Path | None:
        """Map a key to a path inside the storage directory.

        Returns:
            Path | None: The file path, or None when the key escapes the
                storage directory.
        """
        path = (self._base_dir / key).resolve()
        if not path.is_relative_to(self._base_dir):
            return None
        return path

    async def put(self, key: str, data: bytes, content_type: str) -> str:
        path = self.resolve(key)
        if path is None:
            raise DependencyError(f"Invalid storage key: {key}", service="local_storage")

        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            await asyncio.to_thread(path.write_bytes, data)
        except OSError as e:
            logger.error("Failed to write receipt %s: %s", key, e)
            raise DependencyError("Receipt storage unavailable", service="local_storage") from e

        return key

    async def read(self, key: str) -> bytes | None:
        path = self.resolve(key)
        if path is None or not path.is_file():
            return None
        try:
            return await asyncio.to_thread(path.read_bytes)
        except OSError as e:
            logger.error("Failed to read receipt %s: %s", key, e)
            raise DependencyError("Receipt storage unavailable", service="local_storage") from e

    async def signed_url(self, key: str) -> str:
        return f"{self._public_base_url}{LOCAL_STORAGE_ROUTE}/{key}"

    async def check_health(self) -> dict[str, Any]:
        try:
            self._base_dir.mkdir(parents=True, exist_ok=True)
            return {"healthy": True, "error": None}
        except OSError as e:
            return {"healthy": False, "error": str(e)}


class SupabaseReceiptStorage(ReceiptStorage):
    """Receipts stored in a private Supabase Storage bucket."""

    name = "supabase"

    def __init__(self, bucket: str, url_ttl_seconds: int, client: Client | None = None) -> None:
        self._client = client
        self._bucket = bucket
        self._url_ttl_seconds = url_ttl_seconds

    @property
    def client(self) -> Client:
        """Get Supabase client, creating it lazily."""
        if self._client is None:
            self._client = get_supabase_client()
        return self._client

    async def put(self, key: str, data: bytes, content_type: str) -> str:
        try:
            await asyncio.to_thread(
                self.client.storage.from_(self._bucket).upload,
                path=key,
                file=data,
                file_options={"content-type": content_type, "upsert": "true"},
            )
        except Exception as e:
            logger.error("Failed to upload receipt %s: %s", key, e)
            raise DependencyError("Receipt storage unavailable", service="supabase_storage") from e

        return key

    async def signed_url(self, key: str) -> str:
        try:
            result = await asyncio.to_thread(
                self.client.storage.from_(self._bucket).create_signed_url,
                key,
                self._url_ttl_seconds,
            )
        except Exception as e:
            logger.error("Failed to sign receipt URL %s: %s", key, e)
            raise DependencyError("Receipt storage unavailable", service="supabase_storage") from e

        url = result.get("signedURL") or result.get("signedUrl")
        if not url:
            raise DependencyError("Receipt storage returned no signed URL", service="supabase_storage")
        return url

    async def check_health(self) -> dict[str, Any]:
        return await check_storage_connection(self.client, self._bucket)


def build_receipt_storage(settings: Settings) -> ReceiptStorage:
    """Build the configured receipt storage."""
    if settings.storage_provider == "supabase":
        return SupabaseReceiptStorage(
            bucket=settings.receipt_bucket,
            url_ttl_seconds=settings.receipt_url_ttl_seconds,
        )

    logger.info("Using local receipt storage at %s", settings.local_storage_dir)
    return LocalReceiptStorage(settings.local_storage_dir, settings.public_base_url)
