"""Command-line entry point for spotictl."""

from __future__ import annotations

from contextlib import contextmanager
from datetime import timedelta
from pathlib import Path
from typing import Iterator, List, NoReturn, Optional

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table
from spotipy.oauth2 import SpotifyOauthError

from .app_context import AppContext, determine_paths, load_context
from .auth import SpotifyClientFactory
from .config import ConfigError, bootstrap, load_global_config
from .durations import DurationError, format_duration, parse_duration
from .errors import NotRunning, SpotictlError
from .logging import configure_logging, get_logger
from .models import Artist, SearchKind
from .process import ProcessController
from .services import SearchClient, SearchPage

app = typer.Typer(help="Command-line controller for the Spotify desktop app.")
search_app = typer.Typer(help="Search the Spotify catalog for artists, albums or tracks.")
app.add_typer(search_app, name="search")
console = Console()

# Lets "seek -10s" through without Click reading it as an option.
_NEGATIVE_ARGS = {"ignore_unknown_options": True}


def _determine_default_log_level(config_dir: Optional[Path]) -> str:
    paths = determine_paths(config_dir)
    try:
        config = load_global_config(paths.global_config)
    except ConfigError:
        return "WARNING"
    level = config.runtime.log_level
    return level.upper() if level.strip() else "WARNING"


def _bootstrap_logging(
    ctx: typer.Context,
    verbose: bool,
    json_logs: bool,
    log_file: Optional[Path],
    config_dir: Optional[Path],
) -> None:
    """Initialise logging once per CLI invocation."""

    if ctx.obj is None:
        ctx.obj = {}

    if ctx.obj.get("_logging_configured"):
        return

    level = "DEBUG" if verbose else _determine_default_log_level(config_dir)
    configure_logging(level=level, json_output=json_logs, log_file=log_file)
    ctx.obj["logger"] = get_logger("spotictl.cli")
    ctx.obj["log_level"] = level
    ctx.obj["_logging_configured"] = True


@app.callback(invoke_without_command=True)
def cli(  # noqa: D401 - Typer generates help text.
    ctx: typer.Context,
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging."),
    json_logs: bool = typer.Option(False, "--json-logs", help="Emit JSON-formatted logs."),
    log_file: Optional[Path] = typer.Option(
        None,
        "--log-file",
        dir_okay=False,
        file_okay=True,
        writable=True,
        resolve_path=True,
        help="Optional file to append structured logs to.",
    ),
    config_dir: Optional[Path] = typer.Option(
        None,
        "--config-dir",
        dir_okay=True,
        file_okay=False,
        resolve_path=True,
        help="Base directory for config files (defaults to ~/.spotictl).",
    ),
) -> None:
    """spotictl command group."""

    _bootstrap_logging(ctx, verbose, json_logs, log_file, config_dir)
    ctx.obj.setdefault("config_dir", config_dir)

    if ctx.invoked_subcommand is None:
        typer.echo(ctx.get_help())


# ----------------------------------------------------------------------
# Shared helpers
# ----------------------------------------------------------------------
def _logger(ctx: typer.Context):
    return ctx.obj.get("logger", get_logger("spotictl.cli"))


def _fail(ctx: typer.Context, event: str, exc: BaseException) -> NoReturn:
    _logger(ctx).error(event, error=str(exc), error_type=type(exc).__name__)
    typer.echo(f"Error: {exc}", err=True)
    raise typer.Exit(code=1) from exc


@contextmanager
def _reporting(ctx: typer.Context, command: str) -> Iterator[None]:
    """Turn controller errors into a logged message and exit code 1."""

    try:
        yield
    except SpotictlError as exc:
        _fail(ctx, f"{command}.failed", exc)


def _context(ctx: typer.Context) -> AppContext:
    if "context" not in ctx.obj:
        try:
            ctx.obj["context"] = load_context(determine_paths(ctx.obj.get("config_dir")))
        except ConfigError as exc:
            _fail(ctx, "config.failed", exc)
    return ctx.obj["context"]


def _process(ctx: typer.Context) -> ProcessController:
    if "process" not in ctx.obj:
        settings = _context(ctx).global_config.process
        ctx.obj["process"] = ProcessController(
            name=settings.name,
            executable=settings.executable,
            logger=_logger(ctx),
        )
    return ctx.obj["process"]


def _transport(ctx: typer.Context):
    if "transport" not in ctx.obj:
        # sd-bus is only available on Linux; import on demand.
        from .mpris import TransportController

        settings = _context(ctx).global_config.mpris
        ctx.obj["transport"] = TransportController(
            settings.service_name,
            settings.object_path,
            logger=_logger(ctx),
        )
    return ctx.obj["transport"]


def _search_client(ctx: typer.Context) -> SearchClient:
    if "search" not in ctx.obj:
        config = _context(ctx).global_config
        try:
            spotify_client = SpotifyClientFactory(config).get_client()
        except SpotifyOauthError as exc:
            _fail(ctx, "search.spotify_init_failed", exc)
        ctx.obj["search"] = SearchClient(
            spotify_client,
            page_size=config.search.page_size,
            logger=_logger(ctx),
        )
    return ctx.obj["search"]


def _parse_duration_arg(value: str) -> timedelta:
    try:
        return parse_duration(value)
    except DurationError as exc:
        raise typer.BadParameter(str(exc)) from exc


def _yes_no(value: bool) -> str:
    return "true" if value else "false"


# ----------------------------------------------------------------------
# Configuration
# ----------------------------------------------------------------------
@app.command()
def init(
    ctx: typer.Context,
    force: bool = typer.Option(False, "--force", help="Overwrite existing config.yml"),
) -> None:
    """Write a starter configuration file."""

    log = _logger(ctx)
    paths = determine_paths(ctx.obj.get("config_dir"))

    try:
        report = bootstrap(paths, overwrite=force)
    except OSError as exc:
        _fail(ctx, "init.failed", exc)

    typer.echo(f"Configuration directory: {paths.base_dir}")
    if report.global_config_created:
        if report.global_config_overwritten:
            typer.echo(f"Global config overwritten at: {paths.global_config}")
        else:
            typer.echo(f"Global config created at: {paths.global_config}")
            typer.echo("Add Spotify client credentials before searching.")
    else:
        typer.echo(f"Global config already exists at: {paths.global_config}")
        typer.echo("Use --force to regenerate with default values.")

    log.info(
        "init.completed",
        base_dir=str(paths.base_dir),
        global_config=str(paths.global_config),
        force=force,
        base_created=report.base_created,
        global_config_created=report.global_config_created,
        global_config_overwritten=report.global_config_overwritten,
    )


# ----------------------------------------------------------------------
# Process lifecycle
# ----------------------------------------------------------------------
@app.command()
def run(ctx: typer.Context) -> None:
    """Start the Spotify desktop app."""

    with _reporting(ctx, "run"):
        process = _process(ctx)
        pid = process.start()
    typer.echo(f"Started {process.name} (PID {pid})")


@app.command()
def kill(ctx: typer.Context) -> None:
    """Kill the Spotify desktop app."""

    with _reporting(ctx, "kill"):
        process = _process(ctx)
        pid = process.kill()
    typer.echo(f"Killed {process.name} (PID {pid})")


@app.command()
def ping(ctx: typer.Context) -> None:
    """Report whether the Spotify desktop app is running."""

    process = _process(ctx)
    try:
        pid = process.ping()
    except NotRunning as exc:
        _logger(ctx).debug("ping.not_running", error=str(exc))
        typer.echo("Not running")
        return
    typer.echo(f"Running (PID {pid})")


# ----------------------------------------------------------------------
# Transport control
# ----------------------------------------------------------------------
@app.command("raise")
def raise_window(ctx: typer.Context) -> None:
    """Raise the Spotify desktop app window."""

    with _reporting(ctx, "raise"):
        _transport(ctx).raise_window()


@app.command("quit")
def quit_app(ctx: typer.Context) -> None:
    """Ask the Spotify desktop app to quit."""

    with _reporting(ctx, "quit"):
        _transport(ctx).quit()


@app.command("next")
def next_track(ctx: typer.Context) -> None:
    """Play the next track."""

    with _reporting(ctx, "next"):
        _transport(ctx).next()


@app.command("prev")
def previous_track(ctx: typer.Context) -> None:
    """Play the previous track."""

    with _reporting(ctx, "prev"):
        _transport(ctx).previous()


@app.command()
def play(ctx: typer.Context) -> None:
    """Start or resume playback."""

    with _reporting(ctx, "play"):
        _transport(ctx).play()


@app.command()
def pause(ctx: typer.Context) -> None:
    """Pause playback."""

    with _reporting(ctx, "pause"):
        _transport(ctx).pause()


@app.command()
def stop(ctx: typer.Context) -> None:
    """Stop playback."""

    with _reporting(ctx, "stop"):
        _transport(ctx).stop()


@app.command()
def toggle(ctx: typer.Context) -> None:
    """Toggle between play and pause."""

    with _reporting(ctx, "toggle"):
        _transport(ctx).toggle()


@app.command("open")
def open_uri(
    ctx: typer.Context,
    uri: str = typer.Argument(..., help="Spotify URI to play, e.g. spotify:track:<id>."),
) -> None:
    """Play music identified by a URI."""

    with _reporting(ctx, "open"):
        _transport(ctx).open(uri)


@app.command(context_settings=_NEGATIVE_ARGS)
def seek(
    ctx: typer.Context,
    offset: str = typer.Argument(..., help="Relative offset such as 30s, -1m or 250ms."),
) -> None:
    """Seek relative to the current position."""

    delta = _parse_duration_arg(offset)
    with _reporting(ctx, "seek"):
        _transport(ctx).seek(delta)


@app.command()
def setpos(
    ctx: typer.Context,
    position: str = typer.Argument(..., help="Absolute position such as 1m30s."),
    uri: Optional[str] = typer.Option(None, "--uri", help="Track id; defaults to the current track."),
) -> None:
    """Jump to an absolute position in the current track."""

    delta = _parse_duration_arg(position)
    with _reporting(ctx, "setpos"):
        _transport(ctx).set_position(delta, track_uri=uri)


@app.command()
def status(ctx: typer.Context) -> None:
    """Show the playback status."""

    with _reporting(ctx, "status"):
        current = _transport(ctx).status()
    typer.echo(current.value)


@app.command()
def track(ctx: typer.Context) -> None:
    """Show the current track."""

    with _reporting(ctx, "track"):
        current = _transport(ctx).current_track()
    console.print(f"[bold]{escape(current.name)}[/bold]")
    console.print(f"Artist: {escape(_artist_names(current.artists))}")
    console.print(f"Album:  {escape(current.album_name)}")
    console.print(f"URI:    {escape(current.uri)}")


@app.command()
def length(ctx: typer.Context) -> None:
    """Show the length of the current track."""

    with _reporting(ctx, "length"):
        value = _transport(ctx).length()
    typer.echo(format_duration(value))


@app.command()
def pos(ctx: typer.Context) -> None:
    """Show the playback position."""

    with _reporting(ctx, "pos"):
        value = _transport(ctx).position()
    typer.echo(format_duration(value))


@app.command()
def canplay(ctx: typer.Context) -> None:
    """Whether playback can be started."""

    with _reporting(ctx, "canplay"):
        value = _transport(ctx).can_play()
    typer.echo(_yes_no(value))


@app.command()
def cannext(ctx: typer.Context) -> None:
    """Whether there is a next track."""

    with _reporting(ctx, "cannext"):
        value = _transport(ctx).can_go_next()
    typer.echo(_yes_no(value))


@app.command()
def canprev(ctx: typer.Context) -> None:
    """Whether there is a previous track."""

    with _reporting(ctx, "canprev"):
        value = _transport(ctx).can_go_previous()
    typer.echo(_yes_no(value))


@app.command()
def canctrl(ctx: typer.Context) -> None:
    """Whether the player accepts control commands."""

    with _reporting(ctx, "canctrl"):
        value = _transport(ctx).can_control()
    typer.echo(_yes_no(value))


# ----------------------------------------------------------------------
# Search
# ----------------------------------------------------------------------
def _artist_names(artists: List[Artist]) -> str:
    return ", ".join(artist.name for artist in artists) or "-"


def _artist_table(page: SearchPage) -> Table:
    table = _page_table(page)
    table.add_column("Name", style="cyan")
    table.add_column("URI", no_wrap=True)
    for artist in page.items:
        table.add_row(escape(artist.name), escape(artist.uri))
    return table


def _album_table(page: SearchPage) -> Table:
    table = _page_table(page)
    table.add_column("Name", style="cyan")
    table.add_column("Artists")
    table.add_column("URI", no_wrap=True)
    for album in page.items:
        table.add_row(escape(album.name), escape(_artist_names(album.artists)), escape(album.uri))
    return table


def _track_table(page: SearchPage) -> Table:
    table = _page_table(page)
    table.add_column("Name", style="cyan")
    table.add_column("Artists")
    table.add_column("Album")
    table.add_column("URI", no_wrap=True)
    for item in page.items:
        table.add_row(
            escape(item.name),
            escape(_artist_names(item.artists)),
            escape(item.album_name),
            escape(item.uri),
        )
    return table


def _page_table(page: SearchPage) -> Table:
    first = page.offset + 1
    last = page.offset + len(page.items)
    return Table(title=f"{page.kind.value.capitalize()} results {first}-{last}")


_TABLE_BUILDERS = {
    SearchKind.ARTIST: _artist_table,
    SearchKind.ALBUM: _album_table,
    SearchKind.TRACK: _track_table,
}


def _search(ctx: typer.Context, kind: SearchKind, term: str, interactive: bool) -> None:
    log = _logger(ctx).bind(kind=kind.value, term=term)
    stream = _search_client(ctx).search(kind, term)

    found = 0
    for event in stream:
        if isinstance(event, SearchPage):
            if event.items:
                console.print(_TABLE_BUILDERS[kind](event))
            found += len(event.items)
        elif not event.ok:
            _fail(ctx, "search.failed", event.error)

    log.info("search.completed", results=found)
    if not found:
        console.print("[yellow]No results.[/yellow]")

    if interactive:
        uri = typer.prompt("Play")
        with _reporting(ctx, "open"):
            _transport(ctx).open(uri.strip())


_TERM = typer.Argument(..., help="Search term.")
_INTERACTIVE = typer.Option(False, "--interactive", "-i", help="Prompt for a URI to play afterwards.")


@search_app.command("artist")
def search_artist(ctx: typer.Context, term: str = _TERM, interactive: bool = _INTERACTIVE) -> None:
    """Search for artists."""

    _search(ctx, SearchKind.ARTIST, term, interactive)


@search_app.command("album")
def search_album(ctx: typer.Context, term: str = _TERM, interactive: bool = _INTERACTIVE) -> None:
    """Search for albums."""

    _search(ctx, SearchKind.ALBUM, term, interactive)


@search_app.command("track")
def search_track(ctx: typer.Context, term: str = _TERM, interactive: bool = _INTERACTIVE) -> None:
    """Search for tracks."""

    _search(ctx, SearchKind.TRACK, term, interactive)


def main() -> None:
    """Run the Typer application."""

    app()


if __name__ == "__main__":  # pragma: no cover - direct execution convenience
    main()
