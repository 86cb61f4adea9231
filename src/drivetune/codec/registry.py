"""Decoders keyed by file extension."""

from __future__ import annotations

import structlog

from drivetune.codec.base import Decoder, Reader, Song

log = structlog.get_logger(__name__)


def normalize_extension(extension: str | None) -> str:
    return (extension or "").strip().lstrip(".").lower()


class CodecRegistry:
    """Maps file extensions to decoders.

    Unknown extensions decode to no songs without touching the reader, so
    files that are not audio containers are never downloaded.
    """

    def __init__(self) -> None:
        self._decoders: dict[str, Decoder] = {}

    def register(self, decoder: Decoder, *extensions: str) -> None:
        if not extensions:
            raise ValueError("at least one extension is required")
        for ext in extensions:
            key = normalize_extension(ext)
            if not key:
                raise ValueError(f"invalid extension {ext!r}")
            self._decoders[key] = decoder

    def extensions(self) -> list[str]:
        return sorted(self._decoders)

    def supports(self, extension: str | None) -> bool:
        return normalize_extension(extension) in self._decoders

    def decode(self, extension: str | None, reader: Reader) -> tuple[list[Song], dict[str, str]]:
        decoder = self._decoders.get(normalize_extension(extension))
        if decoder is None:
            return [], {}
        return decoder.decode(reader)
