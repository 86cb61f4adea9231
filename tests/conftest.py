"""Shared fixtures for drivetune tests."""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path
from typing import BinaryIO

import httpx
import pytest

from drivetune.codec.base import DecodeError, Reader, Song, SongInfo
from drivetune.codec.registry import CodecRegistry
from drivetune.config import DriveConfig
from drivetune.drive.models import OAuthToken
from drivetune.drive.source import DriveSource

_DOWNLOAD_HOST = "dl.example.test"


class _ResettingStream(httpx.SyncByteStream):
    """Download body that drops the connection after *head*."""

    def __init__(self, head: bytes) -> None:
        self._head = head

    def __iter__(self):
        yield self._head
        raise httpx.ReadError("connection reset")


@pytest.fixture()
def base_dir(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Redirect all drivetune runtime files to a temporary directory."""
    fake_base = tmp_path / ".drivetune"
    fake_base.mkdir()
    (fake_base / "logs").mkdir()

    monkeypatch.setattr("drivetune.config.get_base_dir", lambda: fake_base)

    return fake_base


# ---------------------------------------------------------------------------
# Fake Drive API
# ---------------------------------------------------------------------------


class FakeDrive:
    """In-memory Drive v2 API served through ``httpx.MockTransport``.

    Files are grouped into listing pages; page *n* is addressed by the page
    token ``"page-n"``.  ``reset_after[file_id] = n`` makes that download
    drop the connection after *n* bytes, once ``intact_downloads[file_id]``
    complete downloads have been served.
    """

    def __init__(self) -> None:
        self.pages: list[list[dict]] = [[]]
        self.contents: dict[str, bytes] = {}
        self.download_status: dict[str, int] = {}
        self.reset_after: dict[str, int] = {}
        self.intact_downloads: dict[str, int] = {}
        self.list_status = 200
        self.list_body: bytes | None = None
        self.requests: list[httpx.Request] = []

    def add_file(self, file_id: str, extension: str, content: bytes = b"", *, title: str | None = None) -> None:
        self.pages[-1].append(
            {
                "id": file_id,
                "fileExtension": extension,
                "fileSize": str(len(content)),
                "title": title or f"{file_id}.{extension}",
            }
        )
        self.contents[file_id] = content

    def new_page(self) -> None:
        self.pages.append([])

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    def listing_requests(self) -> list[httpx.Request]:
        return [r for r in self.requests if r.url.path == "/drive/v2/files"]

    def downloads(self) -> list[str]:
        return [r.url.path.lstrip("/") for r in self.requests if r.url.host == _DOWNLOAD_HOST]

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path

        if path == "/drive/v2/files":
            if self.list_status != 200:
                return httpx.Response(self.list_status, json={"error": "listing failed"})
            if self.list_body is not None:
                return httpx.Response(200, content=self.list_body)
            token = request.url.params.get("pageToken")
            index = int(token.removeprefix("page-")) if token else 0
            body: dict = {"items": self.pages[index]}
            if index + 1 < len(self.pages):
                body["nextPageToken"] = f"page-{index + 1}"
            return httpx.Response(200, json=body)

        if path.startswith("/drive/v2/files/"):
            file_id = path.rsplit("/", 1)[1]
            if file_id not in self.contents:
                return httpx.Response(404, json={"error": "not found"})
            return httpx.Response(
                200,
                json={
                    "id": file_id,
                    "fileSize": str(len(self.contents[file_id])),
                    "downloadUrl": f"https://{_DOWNLOAD_HOST}/{file_id}",
                },
            )

        if request.url.host == _DOWNLOAD_HOST:
            file_id = path.lstrip("/")
            status = self.download_status.get(file_id, 200)
            if status != 200:
                return httpx.Response(status)
            if file_id in self.reset_after:
                if self.intact_downloads.get(file_id, 0) > 0:
                    self.intact_downloads[file_id] -= 1
                else:
                    head = self.contents[file_id][: self.reset_after[file_id]]
                    return httpx.Response(200, stream=_ResettingStream(head))
            return httpx.Response(200, content=self.contents[file_id])

        return httpx.Response(404)


# ---------------------------------------------------------------------------
# Fake codec
# ---------------------------------------------------------------------------


class FakeSong(Song):
    def __init__(self, reader: Reader, index: int, *, broken: bool = False, untitled: bool = False) -> None:
        self._reader = reader
        self.index = index
        self._broken = broken
        self._untitled = untitled

    def info(self) -> SongInfo:
        if self._broken:
            raise ValueError(f"no metadata for track {self.index}")
        title = "" if self._untitled else f"Track {self.index}"
        return SongInfo(title=title, artist="Fake Artist", album="Fake Album", track=self.index + 1, duration=180.0)

    def open(self) -> tuple[BinaryIO, int]:
        return self._reader()


class FakeDecoder:
    """Decodes ``tracks=N[;broken=i][;untitled]`` payloads into N songs.

    Anything else is treated as a corrupt container.
    """

    def __init__(self) -> None:
        self.calls = 0

    def decode(self, reader: Reader) -> tuple[list[Song], dict[str, str]]:
        self.calls += 1
        stream, _length = reader()
        with stream:
            data = stream.read().decode()
        if not data.startswith("tracks="):
            raise DecodeError("corrupt container")
        count, _, flags = data.removeprefix("tracks=").partition(";")
        songs: list[Song] = [
            FakeSong(reader, i, broken=f"broken={i}" in flags, untitled="untitled" in flags)
            for i in range(int(count))
        ]
        return songs, {"format": "fake"}


@pytest.fixture()
def fake_drive() -> FakeDrive:
    return FakeDrive()


@pytest.fixture()
def fake_decoder() -> FakeDecoder:
    return FakeDecoder()


@pytest.fixture()
def codecs(fake_decoder: FakeDecoder) -> CodecRegistry:
    registry = CodecRegistry()
    registry.register(fake_decoder, "fake", "mka")
    return registry


@pytest.fixture()
def drive_config() -> DriveConfig:
    return DriveConfig(client_id="test-client-id", client_secret="test-client-secret")


@pytest.fixture()
def token() -> OAuthToken:
    return OAuthToken(access_token="test-access-token", refresh_token="test-refresh-token")


@pytest.fixture()
def make_source(
    fake_drive: FakeDrive,
    codecs: CodecRegistry,
    drive_config: DriveConfig,
    token: OAuthToken,
) -> Callable[..., DriveSource]:
    def _make(**kw) -> DriveSource:
        return DriveSource(
            kw.pop("token", token),
            config=kw.pop("config", drive_config),
            codecs=kw.pop("codecs", codecs),
            _transport=fake_drive.transport,
        )

    return _make
