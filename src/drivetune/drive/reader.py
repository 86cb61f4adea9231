"""Deferred byte streams over Drive downloads."""

from __future__ import annotations

import io
from typing import TYPE_CHECKING, BinaryIO, cast

import httpx
import structlog

from drivetune.drive.client import DriveAPIError

if TYPE_CHECKING:
    from drivetune.drive.client import DriveClient

log = structlog.get_logger(__name__)


class ResponseStream(io.RawIOBase):
    """Readable file object over a streamed ``httpx.Response``."""

    def __init__(self, response: httpx.Response) -> None:
        self._response = response
        self._chunks = response.iter_bytes()
        self._pending = b""

    def readable(self) -> bool:
        return True

    def readinto(self, buffer) -> int:  # type: ignore[override]
        while not self._pending:
            try:
                self._pending = next(self._chunks)
            except StopIteration:
                return 0
            except httpx.TransportError as exc:
                raise DriveAPIError(f"Network error while reading: {exc}") from exc
        n = min(len(buffer), len(self._pending))
        buffer[:n] = self._pending[:n]
        self._pending = self._pending[n:]
        return n

    def close(self) -> None:
        if not self.closed:
            self._response.close()
        super().close()


class StreamingReader:
    """Opens one Drive file's bytes when called, never before.

    Each call resolves the download URL, opens a fresh stream and returns it
    with the file's declared size.
    """

    def __init__(self, client: DriveClient, file_id: str) -> None:
        self._client = client
        self.file_id = file_id

    def __repr__(self) -> str:
        return f"StreamingReader({self.file_id!r})"

    def __call__(self) -> tuple[BinaryIO, int]:
        meta = self._client.get_file(self.file_id)
        if not meta.download_url:
            raise DriveAPIError(f"file {self.file_id} has no download URL")
        response = self._client.open_stream(meta.download_url)
        log.debug("drive_stream_opened", file_id=self.file_id, size=meta.file_size)
        return cast(BinaryIO, ResponseStream(response)), meta.file_size
