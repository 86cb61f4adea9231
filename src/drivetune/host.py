"""Composition root: wires codecs and sources into explicit registries."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

import httpx
import structlog

from drivetune.codec import tags
from drivetune.codec.registry import CodecRegistry
from drivetune.drive import source as drive_source
from drivetune.drive.models import OAuthToken
from drivetune.protocol.registry import Instance, SourceRegistry

if TYPE_CHECKING:
    from drivetune.config import AppConfig

log = structlog.get_logger(__name__)


@dataclass
class Host:
    """Registries a playback host resolves sources and decoders from."""

    codecs: CodecRegistry
    sources: SourceRegistry

    def open_source(self, name: str, params: Sequence[str] = (), token: Any = None) -> Instance:
        return self.sources.create(name, params, token)


def create_host(config: AppConfig, *, _transport: httpx.BaseTransport | None = None) -> Host:
    """Build the registries in a fixed order: decoders first, then sources."""
    codecs = CodecRegistry()
    codecs.register(tags.TagDecoder(), *tags.EXTENSIONS)

    sources = SourceRegistry()
    drive_source.register(sources, codecs, config.drive, _transport=_transport)

    log.debug("host_ready", sources=sources.names(), extensions=codecs.extensions())
    return Host(codecs=codecs, sources=sources)


def token_from_config(config: AppConfig) -> OAuthToken | None:
    """Return the stored credential, or None if no access token is configured."""
    if not config.has_credential():
        return None
    return OAuthToken(
        access_token=config.credential.access_token,
        refresh_token=config.credential.refresh_token,
        account_id=config.credential.account_id,
    )
