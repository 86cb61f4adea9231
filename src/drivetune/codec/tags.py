"""Single-track decoder backed by mutagen tag parsing.

The remote stream is spooled to a temporary file (in memory up to
``_SPOOL_MAX_BYTES``) because mutagen needs a seekable file object.  Every
recognised file yields exactly one song; playback bytes are re-opened through
the reader so the spooled copy is never kept around.
"""

from __future__ import annotations

import shutil
import tempfile
from typing import Any, BinaryIO

import mutagen
import structlog
from mutagen import MutagenError

from drivetune.codec.base import DecodeError, Reader, Song, SongInfo

log = structlog.get_logger(__name__)

_SPOOL_MAX_BYTES = 16 * 1024 * 1024

EXTENSIONS = ("mp3", "flac", "ogg", "oga", "opus", "m4a")


def _first(tags: Any, key: str) -> str:
    """Return the first value stored under *key*, or an empty string."""
    if tags is None:
        return ""
    try:
        value = tags.get(key)
    except (KeyError, ValueError):
        return ""
    if isinstance(value, list):
        return str(value[0]) if value else ""
    return str(value) if value is not None else ""


def _track_number(raw: str) -> int | None:
    """Parse ``"3"`` or ``"3/12"`` into 3."""
    head = raw.split("/", 1)[0].strip()
    return int(head) if head.isdigit() else None


class TagSong(Song):
    """A whole-file track whose metadata came from its tags."""

    def __init__(self, reader: Reader, info: SongInfo) -> None:
        self._reader = reader
        self._info = info

    def info(self) -> SongInfo:
        return self._info

    def open(self) -> tuple[BinaryIO, int]:
        return self._reader()


class TagDecoder:
    """Decoder for common single-track formats (MP3, FLAC, Ogg, Opus, MP4)."""

    def decode(self, reader: Reader) -> tuple[list[Song], dict[str, str]]:
        stream, _length = reader()
        with stream, tempfile.SpooledTemporaryFile(max_size=_SPOOL_MAX_BYTES) as spool:
            shutil.copyfileobj(stream, spool)
            spool.seek(0)
            try:
                audio = mutagen.File(spool, easy=True)
            except MutagenError as exc:
                raise DecodeError(f"unreadable audio: {exc}") from exc
            if audio is None:
                raise DecodeError("unrecognised audio content")

            tags = audio.tags
            length = getattr(audio.info, "length", 0) or None
            info = SongInfo(
                title=_first(tags, "title"),
                artist=_first(tags, "artist"),
                album=_first(tags, "album"),
                track=_track_number(_first(tags, "tracknumber")),
                duration=length,
            )
            meta = {"format": type(audio).__name__}
            if audio.mime:
                meta["mime"] = audio.mime[0]

        log.debug("tags_decoded", format=meta["format"], title=info.title)
        return [TagSong(reader, info)], meta
