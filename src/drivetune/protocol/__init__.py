"""Host-facing protocol: track IDs, errors and source registration."""

from drivetune.protocol.errors import (
    CredentialRequiredError,
    InvalidTrackIDError,
    MissingFileError,
    MissingTrackError,
    SourceError,
    TrackNotFoundError,
)
from drivetune.protocol.ids import make_id, parse_id
from drivetune.protocol.registry import Instance, OAuthSettings, SourceRegistry

__all__ = [
    "CredentialRequiredError",
    "Instance",
    "InvalidTrackIDError",
    "MissingFileError",
    "MissingTrackError",
    "OAuthSettings",
    "SourceError",
    "SourceRegistry",
    "TrackNotFoundError",
    "make_id",
    "parse_id",
]
