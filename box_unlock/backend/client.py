"""
Backend HTTP client.

Thin wrapper over ``httpx.AsyncClient`` that adds bearer auth and the
configured timeouts, and turns every transport or HTTP failure into a
``BackendError``.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from box_unlock.config import UnlockConfig
from box_unlock.errors import BackendError

logger = logging.getLogger(__name__)


class ApiClient:
    """Authenticated JSON client for the box backend.

    Example:
        async with ApiClient(UnlockConfig(api_token=token)) as api:
            boxes = await api.get("api/boxes/host/7")
    """

    def __init__(
        self,
        config: UnlockConfig | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.config = config or UnlockConfig()
        headers = {"Accept": "application/json"}
        if self.config.api_token:
            headers["Authorization"] = f"Bearer {self.config.api_token}"

        self._http = httpx.AsyncClient(
            base_url=self.config.api_url + "/",
            headers=headers,
            timeout=httpx.Timeout(
                self.config.read_timeout,
                connect=self.config.connect_timeout,
            ),
            transport=transport,
        )

    async def request(
        self,
        method: str,
        path: str,
        json: dict[str, Any] | None = None,
    ) -> Any:
        """Send a request and return the decoded JSON body.

        Raises:
            BackendError: On transport failure, non-2xx status, or a body
                that is not JSON.
        """
        try:
            response = await self._http.request(method, path.lstrip("/"), json=json)
        except httpx.HTTPError as e:
            logger.debug("%s %s failed: %s", method, path, e)
            raise BackendError(f"{method} {path} failed: {e}", cause=e) from e

        if response.is_error:
            raise BackendError(
                f"{method} {path} returned {response.status_code}: {_error_message(response)}",
                status_code=response.status_code,
            )

        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as e:
            raise BackendError(
                f"{method} {path} returned invalid JSON",
                status_code=response.status_code,
                cause=e,
            ) from e

    async def get(self, path: str) -> Any:
        return await self.request("GET", path)

    async def post(self, path: str, json: dict[str, Any] | None = None) -> Any:
        return await self.request("POST", path, json=json)

    async def patch(self, path: str, json: dict[str, Any] | None = None) -> Any:
        return await self.request("PATCH", path, json=json)

    async def aclose(self) -> None:
        await self._http.aclose()

    async def __aenter__(self) -> "ApiClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()


def _error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text[:200]
    if isinstance(body, dict) and body.get("message"):
        return str(body["message"])
    return response.reason_phrase
