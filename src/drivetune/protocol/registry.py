"""Source registration for the playback host.

The host owns a :class:`SourceRegistry` and hands it to each source's
``register`` function at startup.  OAuth-backed sources register their
:class:`OAuthSettings` alongside the factory so the host can drive the
consent flow and later construct instances from the resulting token.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping, Sequence
from typing import TYPE_CHECKING, Any, Protocol

import httpx
import structlog
from pydantic import BaseModel, Field, SecretStr

if TYPE_CHECKING:
    from drivetune.codec.base import Song, SongInfo

log = structlog.get_logger(__name__)


class Instance(Protocol):
    """A configured music source the host can browse and play from."""

    def key(self) -> str: ...

    def list(self) -> Mapping[str, SongInfo]: ...

    def info(self, track_id: str) -> SongInfo: ...

    def get_song(self, track_id: str) -> Song: ...

    def refresh(self) -> Mapping[str, SongInfo]: ...


SourceFactory = Callable[[Sequence[str], Any], Instance]


class OAuthSettings(BaseModel):
    """OAuth client description for a source that requires a user token."""

    client_id: str
    client_secret: SecretStr = Field(default=SecretStr(""))
    redirect_url: str
    scopes: list[str] = Field(default_factory=list)
    auth_url: str
    token_url: str

    def authorization_url(self, state: str) -> str:
        """Return the consent URL the host should send the user to."""
        url = httpx.URL(
            self.auth_url,
            params={
                "response_type": "code",
                "client_id": self.client_id,
                "redirect_uri": self.redirect_url,
                "scope": " ".join(self.scopes),
                "state": state,
                "access_type": "offline",
            },
        )
        return str(url)


class SourceRegistry:
    """Named source factories, populated explicitly by the composition root."""

    def __init__(self) -> None:
        self._factories: dict[str, SourceFactory] = {}
        self._oauth: dict[str, OAuthSettings] = {}

    def register(
        self,
        name: str,
        factory: SourceFactory,
        *,
        oauth: OAuthSettings | None = None,
    ) -> None:
        if name in self._factories:
            raise ValueError(f"source {name!r} is already registered")
        self._factories[name] = factory
        if oauth is not None:
            self._oauth[name] = oauth
        log.debug("source_registered", source=name, oauth=oauth is not None)

    def names(self) -> list[str]:
        return sorted(self._factories)

    def requires_oauth(self, name: str) -> bool:
        return name in self._oauth

    def oauth_settings(self, name: str) -> OAuthSettings:
        try:
            return self._oauth[name]
        except KeyError:
            raise KeyError(f"source {name!r} is not an OAuth source") from None

    def create(self, name: str, params: Sequence[str] = (), token: Any = None) -> Instance:
        """Construct an instance of source *name*.

        Raises ``KeyError`` for unknown names; factory errors propagate.
        """
        try:
            factory = self._factories[name]
        except KeyError:
            raise KeyError(f"unknown source {name!r}") from None
        return factory(params, token)
