"""Command line for browsing and fetching music from a Drive account."""

from __future__ import annotations

import re
import shutil
from collections import deque
from collections.abc import Mapping
from pathlib import Path

import typer
from pydantic import SecretStr
from rich.console import Console
from rich.table import Table

from drivetune.catalog.builder import CatalogState, RefreshReport
from drivetune.codec.base import DecodeError, SongInfo
from drivetune.config import AppConfig, ConfigError, ensure_dirs, load_config, save_config, update_config
from drivetune.drive.client import DriveAPIError, DriveAuthError
from drivetune.drive.source import SOURCE_NAME, DriveSource
from drivetune.host import create_host, token_from_config
from drivetune.logging import setup_logging
from drivetune.protocol.errors import SourceError
from drivetune.protocol.ids import parse_id

app = typer.Typer(
    name="drivetune",
    help="Browse and stream the music stored in a Google Drive account.",
    add_completion=False,
    no_args_is_help=True,
)
config_app = typer.Typer(name="config", help="Inspect or change config.toml.", add_completion=False)
app.add_typer(config_app)

console = Console()

_REMOTE_ERRORS = (DriveAuthError, DriveAPIError)
_LEVEL_RE = re.compile(r'^\S*\s*\[(?P<text>[a-z]+)\s*\]|"level":\s*"(?P<json>[a-z]+)"')
_LEVEL_STYLES = {"critical": "red", "error": "red", "warning": "yellow", "debug": "dim"}


def main() -> None:
    try:
        app()
    except KeyboardInterrupt:
        console.print("Interrupted.")
        raise SystemExit(130) from None


@app.callback()
def _startup(
    ctx: typer.Context,
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Also print log events to stderr"),
) -> None:
    try:
        cfg = load_config()
    except ConfigError as exc:
        console.print(f"[red]Bad configuration:[/red] {exc}", highlight=False)
        raise typer.Exit(1) from exc
    setup_logging(cfg.log.level, cfg.log_dir, console=verbose)
    ctx.obj = cfg


def _abort(label: str, exc: Exception) -> typer.Exit:
    console.print(f"[red]{label}:[/red] {exc}", highlight=False)
    return typer.Exit(1)


# ---------------------------------------------------------------------------
# Source and catalog file
# ---------------------------------------------------------------------------


def _open_source(cfg: AppConfig) -> DriveSource:
    token = token_from_config(cfg)
    if token is None:
        console.print(
            "[red]No credential configured.[/red] "
            "Set one with [bold]drivetune config set credential.access_token <token>[/bold]."
        )
        raise typer.Exit(1)
    return create_host(cfg).open_source(SOURCE_NAME, token=token)  # type: ignore[return-value]


def _restore_saved(source: DriveSource, cfg: AppConfig) -> bool:
    """Load ``catalog.json`` into *source*; False when there is none."""
    if not cfg.catalog_path.is_file():
        return False
    source.restore(CatalogState.model_validate_json(cfg.catalog_path.read_text(encoding="utf-8")))
    return True


def _write_saved(source: DriveSource, cfg: AppConfig) -> None:
    ensure_dirs()
    cfg.catalog_path.write_text(source.snapshot().model_dump_json(indent=2), encoding="utf-8")


# ---------------------------------------------------------------------------
# Rendering
# ---------------------------------------------------------------------------


def _format_duration(seconds: float | None) -> str:
    if seconds is None:
        return "—"
    minutes, secs = divmod(int(seconds), 60)
    return f"{minutes}:{secs:02d}"


def _track_table(songs: Mapping[str, SongInfo]) -> Table:
    table = Table(header_style="bold cyan")
    for column in ("ID", "Artist", "Title", "Album"):
        table.add_column(column, no_wrap=column == "ID", style="dim" if column == "ID" else None)
    table.add_column("Length", justify="right")

    ordered = sorted(songs.items(), key=lambda item: (item[1].artist, item[1].album, item[1].track or 0, item[0]))
    for track_id, song in ordered:
        table.add_row(track_id, song.artist, song.title, song.album, _format_duration(song.duration))
    return table


def _print_report(report: RefreshReport) -> None:
    console.print(
        f"  {report.listed} file(s) listed over {report.pages} page(s): "
        f"{report.cataloged} playable, {report.unsupported} not audio, {len(report.skipped)} skipped",
        highlight=False,
    )
    for item in report.skipped:
        console.print(f"  [yellow]skipped[/yellow] {item.track_id or item.file_id}: {item.reason}", highlight=False)


def _log_line_style(line: str) -> str | None:
    """Pick a Rich style from the level in a text or JSON log line."""
    match = _LEVEL_RE.search(line.lower())
    if match is None:
        return None
    return _LEVEL_STYLES.get(match.group("text") or match.group("json"))


def _display(value: object) -> str:
    if isinstance(value, SecretStr):
        return "***" if value.get_secret_value() else "(not set)"
    if value == "":
        return "(not set)"
    return str(value)


# ---------------------------------------------------------------------------
# Catalog commands
# ---------------------------------------------------------------------------


@app.command(name="ls")
def list_tracks(ctx: typer.Context) -> None:
    """List tracks, refreshing from Drive only when no catalog is saved."""
    cfg: AppConfig = ctx.obj
    with _open_source(cfg) as source:
        restored = _restore_saved(source, cfg)
        try:
            songs = source.list()
        except _REMOTE_ERRORS as exc:
            raise _abort("Refresh failed", exc) from exc
        if not restored:
            _write_saved(source, cfg)

    if not songs:
        console.print("[dim]No playable tracks found.[/dim]")
        return
    console.print(_track_table(songs))
    console.print(f"[dim]{len(songs)} track(s)[/dim]")


@app.command()
def refresh(ctx: typer.Context) -> None:
    """Re-list the Drive account, probe every audio file and save the catalog."""
    cfg: AppConfig = ctx.obj
    with _open_source(cfg) as source:
        try:
            songs = source.refresh()
        except _REMOTE_ERRORS as exc:
            raise _abort("Refresh failed", exc) from exc
        _write_saved(source, cfg)
        report = source.last_report

    console.print(f"[green]Catalog refreshed:[/green] {len(songs)} track(s)")
    if report is not None:
        _print_report(report)


@app.command()
def info(ctx: typer.Context, track_id: str = typer.Argument(help="Track ID such as 0-1AbCdEf")) -> None:
    """Show one track's metadata from the saved catalog (no network access)."""
    cfg: AppConfig = ctx.obj
    with _open_source(cfg) as source:
        if not _restore_saved(source, cfg):
            console.print("[yellow]No saved catalog.[/yellow] Run [bold]drivetune refresh[/bold] first.")
            raise typer.Exit(1)
        try:
            song = source.info(track_id)
        except SourceError as exc:
            raise _abort("Lookup failed", exc) from exc
        remote = source.files.get(parse_id(track_id)[0])

    rows = [
        ("artist", song.artist or "—"),
        ("album", song.album or "—"),
        ("track", "—" if song.track is None else str(song.track)),
        ("length", _format_duration(song.duration)),
    ]
    if remote is not None:
        rows.append(("file", f"{remote.title} ({remote.file_size} bytes)"))

    console.print(f"[bold]{song.title}[/bold]", highlight=False)
    for label, value in rows:
        console.print(f"  {label:<8}{value}", highlight=False, markup=False)


@app.command()
def get(
    ctx: typer.Context,
    track_id: str = typer.Argument(help="Track ID such as 0-1AbCdEf"),
    output: Path = typer.Option(..., "--output", "-o", help="Destination file for the audio bytes"),
) -> None:
    """Download one track's audio bytes."""
    cfg: AppConfig = ctx.obj
    with _open_source(cfg) as source:
        _restore_saved(source, cfg)
        try:
            stream, length = source.get_song(track_id).open()
        except SourceError as exc:
            raise _abort("Lookup failed", exc) from exc
        except (*_REMOTE_ERRORS, DecodeError) as exc:
            raise _abort("Download failed", exc) from exc
        # Bytes land in a sibling file that replaces the destination only once complete.
        partial = output.with_name(f".{output.name}.part")
        try:
            with stream, partial.open("wb") as fh:
                shutil.copyfileobj(stream, fh)
            partial.replace(output)
        except _REMOTE_ERRORS as exc:
            raise _abort("Download failed", exc) from exc
        finally:
            partial.unlink(missing_ok=True)

    console.print(f"[green]Wrote[/green] {output} ({length} bytes)", highlight=False)


@app.command()
def logs(
    ctx: typer.Context,
    lines: int = typer.Option(50, "--lines", "-n", min=1, help="How many trailing lines to print"),
    catalog: bool = typer.Option(False, "--catalog", help="Read the JSON catalog log instead of the main log"),
) -> None:
    """Print the end of a log file."""
    cfg: AppConfig = ctx.obj
    path = cfg.log_dir / ("catalog.log" if catalog else "drivetune.log")
    if not path.is_file():
        console.print(f"[yellow]No log file at[/yellow] {path}")
        raise typer.Exit(1)

    with path.open(encoding="utf-8") as fh:
        tail = [line.rstrip("\n") for line in deque(fh, maxlen=lines)]
    tail = [line for line in tail if line]
    if not tail:
        console.print("[dim]Log file is empty.[/dim]")
        return
    for line in tail:
        console.print(line, style=_log_line_style(line), markup=False, highlight=False)


# ---------------------------------------------------------------------------
# config
# ---------------------------------------------------------------------------


@config_app.command(name="show")
def config_show(ctx: typer.Context) -> None:
    """Print every setting; secrets are masked."""
    cfg: AppConfig = ctx.obj
    table = Table(header_style="bold cyan")
    table.add_column("Setting", no_wrap=True)
    table.add_column("Value")
    for section in AppConfig.model_fields:
        for name, value in getattr(cfg, section).model_dump().items():
            table.add_row(f"{section}.{name}", _display(value))
    console.print(table)


@config_app.command(name="set")
def config_set(
    ctx: typer.Context,
    key: str = typer.Argument(help="section.field, e.g. drive.page_size"),
    value: str = typer.Argument(help="New value"),
) -> None:
    """Change one setting and save config.toml."""
    try:
        updated = update_config(ctx.obj, key, value)
    except ConfigError as exc:
        raise _abort("Cannot set", exc) from exc
    path = save_config(updated)

    shown = "***" if key.startswith("credential.") and key != "credential.account_id" else value
    console.print(f"[green]Saved[/green] {key} = {shown} to {path}", highlight=False)
