"""Codec layer: decoders that turn remote byte streams into songs."""

from drivetune.codec.base import Decoder, DecodeError, Reader, Song, SongInfo
from drivetune.codec.registry import CodecRegistry
from drivetune.codec.tags import TagDecoder

__all__ = ["CodecRegistry", "DecodeError", "Decoder", "Reader", "Song", "SongInfo", "TagDecoder"]
