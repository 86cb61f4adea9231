"""Composite track identifiers.

A track ID is ``"<index>-<file id>"``: the position of the track inside its
container followed by the remote file identifier.  The index comes first so
that file identifiers containing ``-`` still parse unambiguously.
"""

from __future__ import annotations

from drivetune.protocol.errors import InvalidTrackIDError

_SEPARATOR = "-"


def make_id(index: int, file_id: str) -> str:
    """Build the track ID for track *index* of *file_id*."""
    if index < 0:
        raise ValueError(f"track index must be non-negative, got {index}")
    if not file_id:
        raise ValueError("file id must not be empty")
    return f"{index}{_SEPARATOR}{file_id}"


def parse_id(track_id: str) -> tuple[str, int]:
    """Split a track ID into ``(file_id, index)``.

    Only the canonical form produced by :func:`make_id` is accepted: the
    index is a non-negative decimal integer without leading zeros and the
    file id is non-empty.  Anything else raises :class:`InvalidTrackIDError`.
    """
    index_part, sep, file_id = track_id.partition(_SEPARATOR)
    if not sep:
        raise InvalidTrackIDError(f"bad track id {track_id!r}: missing separator")
    if not (index_part.isascii() and index_part.isdigit()):
        raise InvalidTrackIDError(f"bad track id {track_id!r}: index is not a non-negative integer")
    if len(index_part) > 1 and index_part.startswith("0"):
        raise InvalidTrackIDError(f"bad track id {track_id!r}: index has leading zeros")
    if not file_id:
        raise InvalidTrackIDError(f"bad track id {track_id!r}: empty file id")
    return file_id, int(index_part)
