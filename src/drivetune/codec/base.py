"""Codec interfaces: track metadata, decoded songs and the decoder contract."""

from __future__ import annotations

import abc
from collections.abc import Callable
from typing import BinaryIO, Protocol

from pydantic import BaseModel, ConfigDict

# Deferred byte-stream opener: returns a readable stream and its declared length.
Reader = Callable[[], tuple[BinaryIO, int]]


class DecodeError(Exception):
    """Raised when a byte stream cannot be decoded into tracks."""


class SongInfo(BaseModel):
    """Per-track metadata shown by the host."""

    model_config = ConfigDict(frozen=True)

    title: str = ""
    artist: str = ""
    album: str = ""
    track: int | None = None
    duration: float | None = None  # seconds
    image_url: str = ""


class Song(abc.ABC):
    """One playable track inside a container file."""

    @abc.abstractmethod
    def info(self) -> SongInfo:
        """Return the track's metadata."""
        raise NotImplementedError

    @abc.abstractmethod
    def open(self) -> tuple[BinaryIO, int]:
        """Open the track's audio bytes; the caller closes the stream."""
        raise NotImplementedError


class Decoder(Protocol):
    """Turns the bytes behind a :data:`Reader` into songs.

    Returns the songs in container order together with container-level
    metadata.  Malformed content raises :class:`DecodeError`.
    """

    def decode(self, reader: Reader) -> tuple[list[Song], dict[str, str]]: ...
