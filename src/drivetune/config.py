"""Configuration for drivetune, stored as ``~/.drivetune/config.toml``.

The file has one table per :class:`AppConfig` section (``[log]``,
``[drive]``, ``[credential]``).  Missing tables and keys take their defaults.
"""

from __future__ import annotations

import tomllib
from pathlib import Path

from pydantic import BaseModel, Field, SecretStr, ValidationError

_BASE_DIR_NAME = ".drivetune"
_CONFIG_FILE = "config.toml"
_CATALOG_FILE = "catalog.json"
_LOG_DIR = "logs"


class ConfigError(Exception):
    """Raised for an unreadable config file or an invalid setting."""


def get_base_dir() -> Path:
    """Return the directory holding config, logs and the saved catalog."""
    return Path.home() / _BASE_DIR_NAME


def config_path() -> Path:
    return get_base_dir() / _CONFIG_FILE


# ---------------------------------------------------------------------------
# Sections
# ---------------------------------------------------------------------------


class LogConfig(BaseModel):
    level: str = Field(default="info", description="Logging level")


class DriveConfig(BaseModel):
    """OAuth client and Drive API settings."""

    client_id: str = Field(default="", description="OAuth client ID")
    client_secret: SecretStr = Field(default=SecretStr(""), description="OAuth client secret")
    redirect_base: str = Field(
        default="http://127.0.0.1:8080/oauth/",
        description="Host OAuth callback prefix; the source name is appended",
    )
    page_size: int = Field(default=1000, ge=1, le=1000, description="Files requested per listing page")
    timeout: float = Field(default=30.0, gt=0, description="HTTP timeout in seconds")
    api_base: str = Field(default="https://www.googleapis.com/drive/v2", description="Drive API root")
    token_url: str = Field(default="https://accounts.google.com/o/oauth2/token", description="OAuth token endpoint")


class CredentialConfig(BaseModel):
    """Token material for the configured account."""

    access_token: SecretStr = Field(default=SecretStr(""))
    refresh_token: SecretStr = Field(default=SecretStr(""))
    account_id: str = Field(default="", description="Stable account identifier used as the instance key")


class AppConfig(BaseModel):
    log: LogConfig = Field(default_factory=LogConfig)
    drive: DriveConfig = Field(default_factory=DriveConfig)
    credential: CredentialConfig = Field(default_factory=CredentialConfig)

    @property
    def base_dir(self) -> Path:
        return get_base_dir()

    @property
    def log_dir(self) -> Path:
        return self.base_dir / _LOG_DIR

    @property
    def catalog_path(self) -> Path:
        return self.base_dir / _CATALOG_FILE

    def has_credential(self) -> bool:
        return bool(self.credential.access_token.get_secret_value())


def ensure_dirs() -> None:
    """Create the base and log directories (owner-only) if missing."""
    base = get_base_dir()
    base.mkdir(mode=0o700, parents=True, exist_ok=True)
    (base / _LOG_DIR).mkdir(mode=0o700, exist_ok=True)


def config_exists() -> bool:
    return config_path().is_file()


# ---------------------------------------------------------------------------
# Reading and writing
# ---------------------------------------------------------------------------


def load_config() -> AppConfig:
    """Read config.toml; a missing file yields the defaults."""
    path = config_path()
    if not path.is_file():
        return AppConfig()
    try:
        raw = tomllib.loads(path.read_text(encoding="utf-8"))
    except tomllib.TOMLDecodeError as exc:
        raise ConfigError(f"{path} is not valid TOML: {exc}") from exc
    try:
        return AppConfig.model_validate(raw)
    except ValidationError as exc:
        raise ConfigError(f"{path} has {exc.error_count()} invalid setting(s):\n{exc}") from exc


def _toml_literal(value: object) -> str:
    if isinstance(value, SecretStr):
        value = value.get_secret_value()
    if isinstance(value, bool):
        return str(value).lower()
    if isinstance(value, (int, float)):
        return repr(value)
    if isinstance(value, str):
        return '"' + value.replace("\\", "\\\\").replace('"', '\\"') + '"'
    raise TypeError(f"Unsupported TOML value type: {type(value)}")


def dump_toml(config: AppConfig) -> str:
    """Render *config* as TOML, one table per section in declaration order."""
    tables = []
    for section in AppConfig.model_fields:
        values = getattr(config, section).model_dump()
        body = "".join(f"{key} = {_toml_literal(value)}\n" for key, value in values.items())
        tables.append(f"[{section}]\n{body}")
    return "\n".join(tables)


def save_config(config: AppConfig) -> Path:
    """Write config.toml readable by the owner only and return its path."""
    ensure_dirs()
    path = config_path()
    path.write_text(dump_toml(config), encoding="utf-8")
    path.chmod(0o600)
    return path


def update_config(config: AppConfig, key: str, raw: str) -> AppConfig:
    """Return a copy of *config* with ``section.field`` *key* set from *raw*.

    The string is validated by the field's own type, so ``"500"`` becomes an
    int for ``drive.page_size`` and is range-checked.
    """
    section, sep, name = key.partition(".")
    if not sep or not name:
        raise ConfigError(f"key {key!r} must look like section.field, e.g. log.level")
    if section not in AppConfig.model_fields:
        raise ConfigError(f"unknown section {section!r}; expected one of: {', '.join(AppConfig.model_fields)}")
    fields = type(getattr(config, section)).model_fields
    if name not in fields:
        raise ConfigError(f"unknown setting {key!r}; {section} has: {', '.join(fields)}")

    data = config.model_dump()
    data[section][name] = raw
    try:
        return AppConfig.model_validate(data)
    except ValidationError as exc:
        raise ConfigError(f"invalid value for {key}: {exc.errors()[0]['msg']}") from exc
