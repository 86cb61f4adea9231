"""Errors raised by music sources when resolving or constructing tracks."""

from __future__ import annotations


class SourceError(Exception):
    """Base class for lookup and construction errors raised by a source."""


class InvalidTrackIDError(SourceError, ValueError):
    """Raised when a track ID does not have the ``<index>-<file id>`` shape."""


class TrackNotFoundError(SourceError):
    """Raised when a track ID is not present in the current catalog."""


class MissingFileError(SourceError):
    """Raised when a track ID refers to a file absent from the file table."""


class MissingTrackError(SourceError):
    """Raised when a file decodes to fewer tracks than the requested index."""


class CredentialRequiredError(SourceError):
    """Raised when an OAuth-backed source is created without a token."""
