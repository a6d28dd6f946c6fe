"""Object storage for block inputs, rendered clips, final renders and voice previews.

Both backends share one contract: failures are logged and reported as
``None`` instead of raised, so callers decide whether a missing object is fatal.
"""

from pathlib import Path
from typing import Any, Optional
from urllib.parse import quote

import httpx

from reelsmith.core.config import Settings


def input_media_key(block_id: str, extension: str) -> str:
    return f"inputs/{block_id}.{extension}"


def generated_clip_key(block_id: str) -> str:
    return f"generated/{block_id}.mp4"


def final_render_key(item_id: str) -> str:
    return f"renders/{item_id}.mp4"


def voice_preview_key(voice_id: str) -> str:
    return f"voices/previews/{voice_id}.mp3"


def voice_sample_key(voice_id: str) -> str:
    return f"voices/{voice_id}.mp3"


class SupabaseObjectStore:
    """Supabase Storage over its REST API."""

    def __init__(
        self,
        settings: Settings,
        logger: Any,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize the store.

        Args:
            settings: Application settings (URL, service key, bucket names)
            logger: Logger instance
            transport: Optional httpx transport (used by tests)
        """
        self.settings = settings
        self.logger = logger
        self.base_url = (settings.supabase_url or "").rstrip("/")
        self.default_bucket = settings.storage_bucket
        self.transport = transport

    def _client(self) -> httpx.AsyncClient:
        key = self.settings.supabase_service_role_key or ""
        return httpx.AsyncClient(
            base_url=f"{self.base_url}/storage/v1",
            headers={"Authorization": f"Bearer {key}", "apikey": key},
            timeout=self.settings.storage_timeout_seconds,
            transport=self.transport,
        )

    @staticmethod
    def _object_path(bucket: str, path: str) -> str:
        return f"{quote(bucket)}/{quote(path.lstrip('/'))}"

    async def upload(self, path: str, data: bytes, content_type: str, bucket: Optional[str] = None) -> Optional[str]:
        """
        Upload (or overwrite) an object.

        Args:
            path: Object path inside the bucket
            data: Object bytes
            content_type: MIME type
            bucket: Bucket name (private media bucket by default)

        Returns:
            The object path, or None on failure
        """
        bucket = bucket or self.default_bucket
        try:
            async with self._client() as client:
                response = await client.post(
                    f"/object/{self._object_path(bucket, path)}",
                    content=data,
                    headers={"Content-Type": content_type, "x-upsert": "true"},
                )
            response.raise_for_status()
        except httpx.HTTPError as e:
            self.logger.error(f"Upload of {bucket}/{path} failed: {e}")
            return None
        self.logger.debug(f"Uploaded {len(data)} bytes to {bucket}/{path}")
        return path

    async def download(self, path: str, bucket: Optional[str] = None) -> Optional[bytes]:
        """Object bytes, or None on failure."""
        bucket = bucket or self.default_bucket
        try:
            async with self._client() as client:
                response = await client.get(f"/object/{self._object_path(bucket, path)}")
            response.raise_for_status()
        except httpx.HTTPError as e:
            self.logger.error(f"Download of {bucket}/{path} failed: {e}")
            return None
        return response.content

    def public_url(self, path: str, bucket: Optional[str] = None) -> str:
        bucket = bucket or self.settings.public_bucket
        return f"{self.base_url}/storage/v1/object/public/{self._object_path(bucket, path)}"

    async def signed_url(self, path: str, ttl: Optional[int] = None) -> Optional[str]:
        """
        Time-limited URL for a private object.

        Args:
            path: Object path in the private media bucket
            ttl: Lifetime in seconds (configured default when None)

        Returns:
            Absolute signed URL, or None on failure
        """
        expires_in = ttl or self.settings.signed_url_ttl_seconds
        try:
            async with self._client() as client:
                response = await client.post(
                    f"/object/sign/{self._object_path(self.default_bucket, path)}",
                    json={"expiresIn": expires_in},
                )
            response.raise_for_status()
            signed = response.json().get("signedURL") or response.json().get("signedUrl")
        except (httpx.HTTPError, ValueError, AttributeError) as e:
            self.logger.error(f"Signing {path} failed: {e}")
            return None
        if not signed:
            self.logger.error(f"Signing {path} returned no URL")
            return None
        return f"{self.base_url}/storage/v1{signed}"


class LocalObjectStore:
    """Filesystem-backed store for development and tests."""

    def __init__(self, root: Path, logger: Any, default_bucket: str = "video-assets", public_bucket: str = "public-assets"):
        self.root = Path(root)
        self.logger = logger
        self.default_bucket = default_bucket
        self.public_bucket = public_bucket
        self.root.mkdir(parents=True, exist_ok=True)

    def _file(self, path: str, bucket: Optional[str]) -> Path:
        target = (self.root / (bucket or self.default_bucket) / path.lstrip("/")).resolve()
        if self.root.resolve() not in target.parents:
            raise ValueError(f"Object path escapes the store root: {path}")
        return target

    async def upload(self, path: str, data: bytes, content_type: str, bucket: Optional[str] = None) -> Optional[str]:
        try:
            target = self._file(path, bucket)
            target.parent.mkdir(parents=True, exist_ok=True)
            tmp = target.with_suffix(target.suffix + ".part")
            tmp.write_bytes(data)
            tmp.replace(target)
        except (OSError, ValueError) as e:
            self.logger.error(f"Local upload of {path} failed: {e}")
            return None
        return path

    async def download(self, path: str, bucket: Optional[str] = None) -> Optional[bytes]:
        try:
            return self._file(path, bucket).read_bytes()
        except (OSError, ValueError) as e:
            self.logger.error(f"Local download of {path} failed: {e}")
            return None

    def public_url(self, path: str, bucket: Optional[str] = None) -> str:
        return (self.root / (bucket or self.public_bucket) / path.lstrip("/")).resolve().as_uri()

    async def signed_url(self, path: str, ttl: Optional[int] = None) -> Optional[str]:
        try:
            target = self._file(path, None)
        except ValueError as e:
            self.logger.error(f"Signing {path} failed: {e}")
            return None
        return target.as_uri() if target.exists() else None


def create_object_store(settings: Settings, logger: Any):
    """
    Build the object store selected by ``STORAGE_BACKEND``.

    Args:
        settings: Application settings
        logger: Logger instance

    Returns:
        SupabaseObjectStore or LocalObjectStore
    """
    backend = settings.storage_backend.lower()
    if backend == "local":
        return LocalObjectStore(
            Path(settings.local_object_store_path),
            logger,
            default_bucket=settings.storage_bucket,
            public_bucket=settings.public_bucket,
        )
    if backend == "supabase":
        if not settings.supabase_url or not settings.supabase_service_role_key:
            logger.warning("SUPABASE_URL / SUPABASE_SERVICE_ROLE_KEY not set; storage calls will fail")
        return SupabaseObjectStore(settings, logger)
    raise ValueError(f"Unknown storage backend: {settings.storage_backend}")
