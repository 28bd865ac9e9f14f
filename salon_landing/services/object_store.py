"""Object store for salon media: Cloudinary over its REST API.

The pipeline only needs four operations (rename, lookup, upload-by-URL,
delete-by-prefix) plus turning a delivery URL back into its public id.
"""

from __future__ import annotations

import hashlib
import logging
import re
import time
from abc import ABC, abstractmethod
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import httpx

from salon_landing.core.config import get_settings
from salon_landing.core.errors import ExternalServiceError, ObjectNotFoundError

logger = logging.getLogger(__name__)

# https://res.cloudinary.com/<cloud>/image/upload/v123/staging/salon_1_2/logo/abc.jpg
#   -> staging/salon_1_2/logo/abc
_PUBLIC_ID_RE = re.compile(r"/upload/(?:v\d+/)?(.+?)(?:\.\w+)?$")


def extract_key(url: str | None) -> str | None:
    """Public id (object key) of a Cloudinary delivery URL, or None."""
    if not url:
        return None
    match = _PUBLIC_ID_RE.search(url)
    return match.group(1) if match else None


class ObjectStore(ABC):
    """Operations the provisioning pipeline needs from a media host."""

    @abstractmethod
    async def rename(self, from_key: str, to_key: str) -> str:
        """Move an object. Returns the new URL; ObjectNotFoundError if the source is gone."""

    @abstractmethod
    async def lookup(self, key: str) -> str | None:
        """URL of the object at ``key`` or None."""

    @abstractmethod
    async def upload_from_url(self, source_url: str, key: str) -> str:
        """Fetch ``source_url`` and store it at ``key``. Returns the new URL."""

    @abstractmethod
    async def delete_prefix(self, prefix: str) -> int:
        """Delete every object whose key starts with ``prefix``."""

    def extract_key(self, url: str | None) -> str | None:
        return extract_key(url)


class CloudinaryObjectStore(ObjectStore):
    """Signed Upload API calls plus Basic-auth Admin API calls."""

    API_BASE = "https://api.cloudinary.com/v1_1"
    RESOURCE_TYPE = "image"

    def __init__(
        self,
        cloud_name: str,
        api_key: str,
        api_secret: str,
        client: httpx.AsyncClient | None = None,
        timeout: float = 30,
    ) -> None:
        self._cloud_name = cloud_name
        self._api_key = api_key
        self._api_secret = api_secret
        self._client = client
        self._timeout = timeout

    @classmethod
    def from_settings(cls) -> CloudinaryObjectStore:
        settings = get_settings()
        return cls(
            cloud_name=settings.cloudinary_cloud_name,
            api_key=settings.cloudinary_api_key,
            api_secret=settings.cloudinary_api_secret,
        )

    # ── Helpers ───────────────────────────────────────────────

    @property
    def _base_url(self) -> str:
        return f"{self.API_BASE}/{self._cloud_name}"

    @asynccontextmanager
    async def _http(self) -> AsyncIterator[httpx.AsyncClient]:
        if self._client is not None:
            yield self._client
            return
        async with httpx.AsyncClient(timeout=self._timeout) as client:
            yield client

    def sign(self, params: dict[str, str]) -> str:
        """SHA-1 over the sorted ``k=v`` pairs followed by the API secret."""
        to_sign = "&".join(f"{k}={params[k]}" for k in sorted(params) if params[k] != "")
        return hashlib.sha1((to_sign + self._api_secret).encode()).hexdigest()

    def _signed(self, params: dict[str, str]) -> dict[str, str]:
        params = {**params, "timestamp": str(int(time.time()))}
        return {**params, "signature": self.sign(params), "api_key": self._api_key}

    @staticmethod
    def _error_message(response: httpx.Response) -> str:
        try:
            return response.json().get("error", {}).get("message", response.text)
        except ValueError:
            return response.text

    async def _request(self, method: str, url: str, **kwargs) -> httpx.Response:
        try:
            async with self._http() as client:
                response = await client.request(method, url, **kwargs)
        except httpx.HTTPError as exc:
            raise ExternalServiceError(f"Cloudinary unreachable: {exc}") from exc
        return response

    @staticmethod
    def _secure_url(response: httpx.Response) -> str:
        try:
            return response.json()["secure_url"]
        except (ValueError, KeyError, TypeError) as exc:
            raise ExternalServiceError(f"Unexpected Cloudinary response: {response.text[:200]}") from exc

    def _raise_for_status(self, response: httpx.Response, key: str) -> None:
        if response.status_code == 404:
            raise ObjectNotFoundError(key)
        if response.status_code >= 400:
            raise ExternalServiceError(
                f"Cloudinary error {response.status_code}: {self._error_message(response)}"
            )

    # ── ObjectStore ───────────────────────────────────────────

    async def rename(self, from_key: str, to_key: str) -> str:
        data = self._signed({
            "from_public_id": from_key,
            "to_public_id": to_key,
            "overwrite": "true",
            "invalidate": "true",
        })
        response = await self._request(
            "POST", f"{self._base_url}/{self.RESOURCE_TYPE}/rename", data=data
        )
        self._raise_for_status(response, from_key)
        return self._secure_url(response)

    async def lookup(self, key: str) -> str | None:
        response = await self._request(
            "GET",
            f"{self._base_url}/resources/{self.RESOURCE_TYPE}/upload/{key}",
            auth=(self._api_key, self._api_secret),
        )
        if response.status_code == 404:
            return None
        self._raise_for_status(response, key)
        return self._secure_url(response)

    async def upload_from_url(self, source_url: str, key: str) -> str:
        data = self._signed({"public_id": key, "overwrite": "true"})
        data["file"] = source_url
        response = await self._request(
            "POST", f"{self._base_url}/{self.RESOURCE_TYPE}/upload", data=data
        )
        self._raise_for_status(response, key)
        return self._secure_url(response)

    async def delete_prefix(self, prefix: str) -> int:
        response = await self._request(
            "DELETE",
            f"{self._base_url}/resources/{self.RESOURCE_TYPE}/upload",
            params={"prefix": prefix},
            auth=(self._api_key, self._api_secret),
        )
        self._raise_for_status(response, prefix)
        deleted = response.json().get("deleted", {})
        logger.info("Deleted %d objects under %s", len(deleted), prefix)
        return len(deleted)
