"""Google Drive v2 client using httpx.

Endpoints:
- GET /files (paged listing, metadata fields only)
- GET /files/{id} (download URL and size)
- GET <downloadUrl> (streamed file bytes)
"""

from __future__ import annotations

from typing import TypeVar

import httpx
import structlog
from pydantic import BaseModel, ValidationError

from drivetune.config import DriveConfig
from drivetune.drive.models import DriveFile, FilePage, OAuthToken

log = structlog.get_logger(__name__)

_LIST_FIELDS = "nextPageToken,items(id,fileExtension,fileSize,title)"
_DOWNLOAD_FIELDS = "id,downloadUrl,fileSize"

_M = TypeVar("_M", bound=BaseModel)


class DriveAuthError(Exception):
    """Raised when Drive rejects the credential."""


class DriveAPIError(Exception):
    """Raised for Drive API and transport errors."""


class DriveClient:
    """Synchronous Drive client bound to one account's bearer token.

    A 401 triggers a single access-token refresh when refresh material and
    client credentials are available.  No other retries are made.
    """

    def __init__(
        self,
        token: OAuthToken,
        config: DriveConfig,
        *,
        _transport: httpx.BaseTransport | None = None,
    ) -> None:
        self._config = config
        self._refresh_token = token.refresh_token.get_secret_value()
        self._access_token = token.access_token.get_secret_value()
        kw: dict = {"timeout": config.timeout, "follow_redirects": True}
        if _transport is not None:
            kw["transport"] = _transport
        self._client = httpx.Client(**kw)

    def __enter__(self) -> DriveClient:
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()

    def close(self) -> None:
        self._client.close()

    # -- auth --

    def _can_refresh(self) -> bool:
        return bool(self._refresh_token and self._config.client_id)

    def _refresh_access_token(self) -> None:
        try:
            resp = self._client.post(
                self._config.token_url,
                data={
                    "grant_type": "refresh_token",
                    "refresh_token": self._refresh_token,
                    "client_id": self._config.client_id,
                    "client_secret": self._config.client_secret.get_secret_value(),
                },
            )
        except httpx.TransportError as exc:
            raise DriveAPIError(f"Network error during token refresh: {exc}") from exc
        if resp.status_code != 200:
            raise DriveAuthError(f"Token refresh failed: {resp.status_code} {resp.text}")
        try:
            self._access_token = resp.json()["access_token"]
        except (ValueError, KeyError, TypeError) as exc:
            raise DriveAuthError(f"Token refresh returned no access token: {exc}") from exc
        log.info("drive_token_refreshed")

    # -- request helper --

    def _request(
        self,
        method: str,
        url: str,
        *,
        params: dict | None = None,
        stream: bool = False,
    ) -> httpx.Response:
        for attempt in range(2):
            request = self._client.build_request(
                method,
                url,
                params=params,
                headers={"Authorization": f"Bearer {self._access_token}"},
            )
            try:
                resp = self._client.send(request, stream=stream)
            except httpx.TransportError as exc:
                raise DriveAPIError(f"Network error: {exc}") from exc

            if resp.status_code != 401:
                return resp

            resp.close()
            if attempt == 0 and self._can_refresh():
                # Access token expired, refresh once and retry
                self._refresh_access_token()
                continue
            break

        raise DriveAuthError(
            "Drive rejected the access token. Re-authorize the account or run: "
            "drivetune config set credential.refresh_token <token>"
        )

    def _get_model(self, url: str, params: dict, model: type[_M]) -> _M:
        resp = self._request("GET", url, params=params)
        if resp.status_code >= 400:
            raise DriveAPIError(f"Drive API error: {resp.status_code} {resp.text}")
        try:
            return model.model_validate(resp.json())
        except (ValueError, ValidationError) as exc:
            raise DriveAPIError(f"Drive API error: malformed response from {url}: {exc}") from exc

    # -- public API --

    def list_files(self, page_token: str | None = None, *, page_size: int | None = None) -> FilePage:
        """Fetch one page of the account's file listing (metadata only)."""
        params: dict = {
            "fields": _LIST_FIELDS,
            "maxResults": page_size or self._config.page_size,
        }
        if page_token:
            params["pageToken"] = page_token
        return self._get_model(f"{self._config.api_base}/files", params, FilePage)

    def get_file(self, file_id: str) -> DriveFile:
        """Fetch one file's metadata, including its download URL."""
        return self._get_model(f"{self._config.api_base}/files/{file_id}", {"fields": _DOWNLOAD_FIELDS}, DriveFile)

    def open_stream(self, url: str) -> httpx.Response:
        """Open a streamed GET against *url*; the caller must close the response."""
        resp = self._request("GET", url, stream=True)
        if resp.status_code != 200:
            resp.close()
            raise DriveAPIError(f"{resp.status_code} {resp.reason_phrase}")
        return resp
