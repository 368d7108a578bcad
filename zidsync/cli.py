"""CLI interface for zidsync."""

import logging
from pathlib import Path
from typing import Any, NoReturn, Optional

import click

from .api import ZidClient
from .auth import BrowserAuthenticator
from .config import COOKIES_FILE_NAME, Credentials, load_env_file
from .exceptions import ZidConfigError, ZidError
from .output import OutputFormatter
from .packager import ThemePackager
from .session import SessionCache
from .sync import ThemeSync
from .watcher import ChangeWatcher

logger = logging.getLogger(__name__)

SAMPLE_FILE_COUNT = 5


def build_theme_sync(credentials: Credentials, out: OutputFormatter) -> ThemeSync:
    """Wire the components used by every command."""
    cache = SessionCache(credentials.cookies_path)
    return ThemeSync(
        credentials=credentials,
        client=ZidClient(credentials.base_url),
        cache=cache,
        authenticator=BrowserAuthenticator(cache),
        packager=ThemePackager(credentials.archiver_path, credentials.archive_path),
        output=out,
    )


def _load_credentials(ctx: Any, require_theme: bool = False) -> Credentials:
    out: OutputFormatter = ctx.obj["out"]
    try:
        return Credentials.from_env(require_theme=require_theme)
    except ZidConfigError as e:
        out.error(str(e))
        ctx.exit(1)


def _abort(ctx: Any, message: str, error: Exception) -> NoReturn:
    """Report an error that ends the command and exit with status 1."""
    out: OutputFormatter = ctx.obj["out"]
    # Tracebacks only with --verbose
    logger.debug(f"{message}: {error}", exc_info=True)
    out.error(f"{message}: {error}")
    ctx.exit(1)


def _print_watch_diagnostics(credentials: Credentials, out: OutputFormatter) -> None:
    folder = credentials.folder_path
    rows = [
        ("Working directory", str(Path.cwd())),
        ("Theme folder", str(folder)),
        ("Archive", str(credentials.archive_path)),
        ("Cookies file", str(credentials.cookies_path)),
        ("Folder exists", "yes" if folder.is_dir() else "no"),
    ]
    if folder.is_dir():
        entries = sorted(p.name for p in folder.iterdir())
        rows.append(("Files in folder", str(len(entries))))
        rows.append(("Sample files", ", ".join(entries[:SAMPLE_FILE_COUNT])))
    out.print_summary("Watch configuration", rows)


@click.group()
@click.option(
    "--env-file",
    type=click.Path(dir_okay=False),
    default=None,
    help="Read settings from this .env file (default: ./.env)",
)
@click.option("--quiet", "-q", is_flag=True, help="Suppress non-essential output")
@click.option(
    "--verbose",
    "-v",
    is_flag=True,
    help="Enable verbose/debug logging output",
)
@click.version_option(package_name="zidsync")
@click.pass_context
def main(ctx: Any, env_file: Optional[str], quiet: bool, verbose: bool) -> None:
    """zidsync - Log in to Zid, list themes and upload your local theme."""
    ctx.ensure_object(dict)
    ctx.obj["out"] = OutputFormatter(quiet=quiet)

    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            datefmt="%H:%M:%S",
        )
        logging.getLogger("zidsync").setLevel(logging.DEBUG)
    else:
        logging.basicConfig(level=logging.WARNING)

    load_env_file(env_file)


@main.command()
@click.option("--json", "json_output", is_flag=True, help="Output in JSON format")
@click.pass_context
def themes(ctx: Any, json_output: bool) -> None:
    """List the themes of your Zid account.

    Use this to find the value for THEME_ID.
    """
    out: OutputFormatter = ctx.obj["out"]
    out.json_output = json_output
    credentials = _load_credentials(ctx)
    theme_sync = build_theme_sync(credentials, out)

    try:
        theme_list = theme_sync.list_themes()
    except ZidError as e:
        out.error(f"Error listing themes: {e}")
        ctx.exit(1)
    except Exception as e:
        _abort(ctx, "Unexpected error listing themes", e)
    finally:
        theme_sync.client.close()

    out.print_themes(theme_list, current_id=credentials.theme_id or None)
    out.info("To use a theme, copy its ID and set THEME_ID in your .env file")
    out.info(f"Current THEME_ID: {credentials.theme_id or 'not set'}")


@main.command()
@click.pass_context
def upload(ctx: Any) -> None:
    """Zip the theme folder and upload it once."""
    out: OutputFormatter = ctx.obj["out"]
    credentials = _load_credentials(ctx, require_theme=True)
    theme_sync = build_theme_sync(credentials, out)

    try:
        ok = theme_sync.upload_theme()
    except Exception as e:
        _abort(ctx, "Unexpected upload error", e)
    finally:
        theme_sync.client.close()
    if not ok:
        ctx.exit(1)


@main.command()
@click.option(
    "--debounce",
    type=float,
    default=1.0,
    show_default=True,
    help="Seconds to wait after the last change before uploading",
)
@click.pass_context
def watch(ctx: Any, debounce: float) -> None:
    """Upload the theme every time a file in the theme folder changes.

    Runs until interrupted with Ctrl+C. Failed uploads are reported and
    the watcher keeps running.
    """
    out: OutputFormatter = ctx.obj["out"]
    credentials = _load_credentials(ctx, require_theme=True)
    _print_watch_diagnostics(credentials, out)

    if not credentials.folder_path.is_dir():
        out.error(f"Theme folder does not exist: {credentials.folder_path}")
        ctx.exit(1)

    theme_sync = build_theme_sync(credentials, out)

    def upload_cycle() -> None:
        out.info("Starting upload...")
        theme_sync.upload_theme()
        out.info("Upload cycle completed")

    watcher = ChangeWatcher(credentials.folder_path, debounce=debounce)
    watcher.on_change(upload_cycle)
    out.success(f"Watching {credentials.folder_path} for changes (Ctrl+C to stop)")
    try:
        watcher.run_forever()
    finally:
        theme_sync.client.close()


@main.command()
@click.pass_context
def login(ctx: Any) -> None:
    """Log in through the browser and save the session cookies."""
    out: OutputFormatter = ctx.obj["out"]
    credentials = _load_credentials(ctx)
    theme_sync = build_theme_sync(credentials, out)

    out.info("Opening browser, complete any extra verification in the window")
    try:
        theme_sync.ensure_auth(force=True)
    except ZidError as e:
        out.error(f"Login failed: {e}")
        ctx.exit(1)
    except Exception as e:
        _abort(ctx, "Login failed unexpectedly", e)
    finally:
        theme_sync.client.close()
    out.success(f"Logged in, cookies saved to {credentials.cookies_path}")


@main.command()
@click.pass_context
def logout(ctx: Any) -> None:
    """Delete the saved session cookies."""
    out: OutputFormatter = ctx.obj["out"]
    cache = SessionCache(Path.cwd() / COOKIES_FILE_NAME)
    try:
        removed = cache.invalidate()
    except OSError as e:
        _abort(ctx, f"Could not remove {cache.path}", e)
    if removed:
        out.success(f"Removed {cache.path}")
    else:
        out.info("No saved session")


@main.command()
@click.pass_context
def status(ctx: Any) -> None:
    """Check whether the saved session is still accepted.

    Never opens a browser.
    """
    out: OutputFormatter = ctx.obj["out"]
    credentials = _load_credentials(ctx)
    theme_sync = build_theme_sync(credentials, out)

    try:
        session = theme_sync.check_session()
    except Exception as e:
        _abort(ctx, "Error checking session", e)
    finally:
        theme_sync.client.close()

    if session is None:
        out.error("No valid session. Run 'zidsync login' to log in.")
        ctx.exit(1)
    out.print_summary(
        "Session",
        [
            ("Status", "valid"),
            ("Cookies", str(len(session.cookies))),
            ("Cookies file", str(credentials.cookies_path)),
        ],
    )


if __name__ == "__main__":
    main()
