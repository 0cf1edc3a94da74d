"""Bearer-token JSON client shared by the voice platform and contact feed."""

from __future__ import annotations

import logging
from typing import Any

import httpx

from callboard.exceptions import UpstreamError, UpstreamFormatError

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30.0


class JsonApiClient:
    service = "upstream"

    def __init__(
        self,
        base_url: str,
        token: str,
        transport: httpx.BaseTransport | None = None,
        timeout: float = DEFAULT_TIMEOUT,
    ):
        self.base_url = base_url.rstrip("/")
        self._token = token
        self._transport = transport
        self.timeout = timeout

    def _client(self) -> httpx.Client:
        return httpx.Client(
            base_url=self.base_url,
            headers={
                "Authorization": f"Bearer {self._token}",
                "Content-Type": "application/json",
            },
            timeout=self.timeout,
            transport=self._transport,
        )

    def get_json(self, path: str, params: dict[str, Any] | None = None) -> Any:
        """GET ``path`` and decode the JSON body."""
        query = {k: v for k, v in (params or {}).items() if v is not None}
        try:
            with self._client() as client:
                response = client.get(path, params=query)
        except httpx.HTTPError as exc:
            logger.error("%s request to %s failed: %s", self.service, path, exc)
            raise UpstreamError(0, str(exc), service=self.service) from exc

        if not response.is_success:
            logger.error(
                "%s API error on %s: %s %s", self.service, path, response.status_code, response.text
            )
            raise UpstreamError(response.status_code, response.text, service=self.service)

        try:
            return response.json()
        except ValueError as exc:
            raise UpstreamFormatError(f"{self.service} returned invalid JSON for {path}") from exc
