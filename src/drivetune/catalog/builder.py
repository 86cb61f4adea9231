"""Catalog construction from a paged remote file listing."""

from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import TYPE_CHECKING, Protocol

import structlog
from pydantic import BaseModel, Field

from drivetune.codec.base import Reader, SongInfo
from drivetune.drive.models import DriveFile, FilePage
from drivetune.protocol.ids import make_id

if TYPE_CHECKING:
    from drivetune.codec.registry import CodecRegistry

log = structlog.get_logger(__name__)


class FileLister(Protocol):
    def list_files(self, page_token: str | None = None, *, page_size: int | None = None) -> FilePage: ...


class CatalogState(BaseModel):
    """Serialisable form of a :class:`Catalog`."""

    files: dict[str, DriveFile] = Field(default_factory=dict)
    songs: dict[str, SongInfo] = Field(default_factory=dict)


@dataclass(frozen=True)
class Catalog:
    """File table and track mapping, always published together."""

    files: Mapping[str, DriveFile] = field(default_factory=lambda: MappingProxyType({}))
    songs: Mapping[str, SongInfo] = field(default_factory=lambda: MappingProxyType({}))

    @classmethod
    def of(cls, files: Mapping[str, DriveFile], songs: Mapping[str, SongInfo]) -> Catalog:
        return cls(MappingProxyType(dict(files)), MappingProxyType(dict(songs)))

    @classmethod
    def from_state(cls, state: CatalogState) -> Catalog:
        return cls.of(state.files, state.songs)

    def to_state(self) -> CatalogState:
        return CatalogState(files=dict(self.files), songs=dict(self.songs))


@dataclass(frozen=True)
class SkippedItem:
    file_id: str
    reason: str
    track_id: str | None = None


@dataclass
class RefreshReport:
    """Counters and per-item failures collected during one build."""

    pages: int = 0
    listed: int = 0
    unsupported: int = 0
    cataloged: int = 0
    tracks: int = 0
    skipped: list[SkippedItem] = field(default_factory=list)

    def as_dict(self) -> dict:
        return {
            "pages": self.pages,
            "listed": self.listed,
            "unsupported": self.unsupported,
            "cataloged": self.cataloged,
            "tracks": self.tracks,
            "skipped": len(self.skipped),
        }


class CatalogBuilder:
    """Builds a fresh :class:`Catalog` by listing and probing every file.

    Listing errors propagate and abort the build.  Probe and per-track
    failures are recorded in the :class:`RefreshReport` and skipped.
    """

    def __init__(
        self,
        lister: FileLister,
        codecs: CodecRegistry,
        reader_factory: Callable[[str], Reader],
        *,
        page_size: int = 1000,
    ) -> None:
        self._lister = lister
        self._codecs = codecs
        self._reader_factory = reader_factory
        self._page_size = page_size

    def build(self) -> tuple[Catalog, RefreshReport]:
        files: dict[str, DriveFile] = {}
        songs: dict[str, SongInfo] = {}
        report = RefreshReport()

        page_token: str | None = None
        while True:
            page = self._lister.list_files(page_token, page_size=self._page_size)
            report.pages += 1
            for remote in page.items:
                report.listed += 1
                self._probe(remote, files, songs, report)
            page_token = page.next_page_token
            if not page_token:
                break

        report.cataloged = len(files)
        report.tracks = len(songs)
        log.info("catalog_built", **report.as_dict())
        return Catalog.of(files, songs), report

    def _probe(
        self,
        remote: DriveFile,
        files: dict[str, DriveFile],
        songs: dict[str, SongInfo],
        report: RefreshReport,
    ) -> None:
        if not remote.id or not self._codecs.supports(remote.file_extension):
            report.unsupported += 1
            return

        try:
            tracks, _meta = self._codecs.decode(remote.file_extension, self._reader_factory(remote.id))
        except Exception as exc:
            log.warning("probe_failed", file_id=remote.id, title=remote.title, error=str(exc))
            report.skipped.append(SkippedItem(remote.id, f"decode failed: {exc}"))
            return

        if not tracks:
            log.debug("probe_empty", file_id=remote.id, title=remote.title)
            report.skipped.append(SkippedItem(remote.id, "no tracks"))
            return

        files[remote.id] = remote
        for index, song in enumerate(tracks):
            track_id = make_id(index, remote.id)
            try:
                info = song.info()
            except Exception as exc:
                log.warning("track_info_failed", track_id=track_id, error=str(exc))
                report.skipped.append(SkippedItem(remote.id, f"info failed: {exc}", track_id=track_id))
                continue
            if not info.title:
                info = info.model_copy(update={"title": remote.title})
            songs[track_id] = info
