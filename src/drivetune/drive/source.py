"""Google Drive as a music source.

Lists the account's files, probes the ones with a registered codec and
exposes the resulting tracks by composite ID.  Audio bytes are streamed from
Drive only when a song is opened.
"""

from __future__ import annotations

import threading
from collections.abc import Mapping, Sequence
from functools import partial
from typing import TYPE_CHECKING, Any

import httpx
import structlog

from drivetune.catalog.builder import Catalog, CatalogBuilder, CatalogState, RefreshReport
from drivetune.drive.client import DriveClient
from drivetune.drive.models import DriveFile, OAuthToken
from drivetune.drive.reader import StreamingReader
from drivetune.protocol.errors import (
    CredentialRequiredError,
    MissingFileError,
    MissingTrackError,
    TrackNotFoundError,
)
from drivetune.protocol.ids import parse_id
from drivetune.protocol.registry import OAuthSettings, SourceRegistry

if TYPE_CHECKING:
    from drivetune.codec.base import Song, SongInfo
    from drivetune.codec.registry import CodecRegistry
    from drivetune.config import DriveConfig

log = structlog.get_logger(__name__)

SOURCE_NAME = "drive"
_SCOPES = ["https://www.googleapis.com/auth/drive.readonly"]
_AUTH_URL = "https://accounts.google.com/o/oauth2/auth"


class DriveSource:
    """One Drive account's music catalog.

    The catalog is rebuilt wholesale by :meth:`refresh` and swapped in as a
    single object, so readers never observe a half-built table.  Refreshes
    are serialised per instance.
    """

    name = SOURCE_NAME

    def __init__(
        self,
        token: OAuthToken,
        *,
        config: DriveConfig,
        codecs: CodecRegistry,
        _transport: httpx.BaseTransport | None = None,
    ) -> None:
        self._token = token
        self._config = config
        self._codecs = codecs
        self._client = DriveClient(token, config, _transport=_transport)
        self._lock = threading.RLock()
        self._catalog = Catalog()
        self._bootstrapped = False
        self._last_report: RefreshReport | None = None

    def __enter__(self) -> DriveSource:
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()

    def close(self) -> None:
        self._client.close()

    @property
    def catalog(self) -> Catalog:
        return self._catalog

    @property
    def files(self) -> Mapping[str, DriveFile]:
        return self._catalog.files

    @property
    def last_report(self) -> RefreshReport | None:
        return self._last_report

    def key(self) -> str:
        """Return the key the host uses to tell accounts apart.

        Prefers the stable account identifier; falls back to the access
        token, which changes whenever the token is renewed.
        """
        return self._token.account_id or self._token.access_token.get_secret_value()

    def reader(self, file_id: str) -> StreamingReader:
        return StreamingReader(self._client, file_id)

    # -- catalog lifecycle --

    def refresh(self) -> Mapping[str, SongInfo]:
        """Rebuild the catalog from a fresh listing and publish it."""
        with self._lock:
            builder = CatalogBuilder(
                self._client,
                self._codecs,
                self.reader,
                page_size=self._config.page_size,
            )
            try:
                catalog, report = builder.build()
            except Exception as exc:
                log.error("refresh_failed", source=self.name, error=str(exc))
                raise
            self._catalog = catalog
            self._last_report = report
            self._bootstrapped = True
            log.info("refresh_completed", source=self.name, tracks=len(catalog.songs))
            return catalog.songs

    def _ensure_catalog(self) -> Catalog:
        with self._lock:
            if not self._bootstrapped:
                self.refresh()
            return self._catalog

    def snapshot(self) -> CatalogState:
        return self._catalog.to_state()

    def restore(self, state: CatalogState) -> None:
        """Publish a previously saved catalog in place of a first refresh."""
        with self._lock:
            self._catalog = Catalog.from_state(state)
            self._bootstrapped = True

    # -- host operations --

    def list(self) -> Mapping[str, SongInfo]:
        return self._ensure_catalog().songs

    def info(self, track_id: str) -> SongInfo:
        info = self._catalog.songs.get(track_id)
        if info is None:
            raise TrackNotFoundError(f"could not find {track_id}")
        return info

    def get_song(self, track_id: str) -> Song:
        """Re-decode the track's file and return the requested song."""
        file_id, index = parse_id(track_id)
        remote = self._ensure_catalog().files.get(file_id)
        if remote is None:
            raise MissingFileError(f"missing file {file_id}")

        songs, _meta = self._codecs.decode(remote.file_extension, self.reader(file_id))
        if index >= len(songs):
            raise MissingTrackError(f"missing track {track_id}: file has {len(songs)} track(s)")
        log.debug("song_resolved", track_id=track_id)
        return songs[index]


# ---------------------------------------------------------------------------
# Host registration
# ---------------------------------------------------------------------------


def new(
    params: Sequence[str],
    token: OAuthToken | Mapping[str, Any] | None,
    *,
    config: DriveConfig,
    codecs: CodecRegistry,
    _transport: httpx.BaseTransport | None = None,
) -> DriveSource:
    """Source factory: Drive takes no parameters and requires a token."""
    if token is None:
        raise CredentialRequiredError("expected oauth token")
    if not isinstance(token, OAuthToken):
        token = OAuthToken.model_validate(token)
    return DriveSource(token, config=config, codecs=codecs, _transport=_transport)


def oauth_settings(config: DriveConfig) -> OAuthSettings:
    return OAuthSettings(
        client_id=config.client_id,
        client_secret=config.client_secret,
        redirect_url=config.redirect_base + SOURCE_NAME,
        scopes=_SCOPES,
        auth_url=_AUTH_URL,
        token_url=config.token_url,
    )


def register(
    sources: SourceRegistry,
    codecs: CodecRegistry,
    config: DriveConfig,
    *,
    _transport: httpx.BaseTransport | None = None,
) -> None:
    """Register the Drive source factory with the host's registry."""
    factory = partial(new, config=config, codecs=codecs, _transport=_transport)
    sources.register(SOURCE_NAME, factory, oauth=oauth_settings(config))
