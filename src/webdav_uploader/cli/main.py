"""CLI interface for uploading files and directories to WebDAV."""

import logging
import re
import sys

import click
import urllib3
from rich.console import Console
from rich.progress import (
    BarColumn,
    DownloadColumn,
    Progress,
    SpinnerColumn,
    TextColumn,
    TransferSpeedColumn,
)

from .. import __version__
from ..core.api import WebDAVUploaderAPI
from ..core.exceptions import ConfigurationError, UploadError, WebDAVUploaderError
from ..core.models import MIB, EmptyFilePolicy, human_mb_per_s

# Set up logging
logging.basicConfig(
    level=logging.INFO,
    format="[%(asctime)s] %(levelname)s: %(message)s",
    datefmt="%H:%M:%S",
)
logger = logging.getLogger(__name__)

# Rich console for pretty output
console = Console()


def validate_exclude(ctx, param, value):
    """Reject an invalid exclusion regex before any network I/O."""
    if value is None:
        return None
    try:
        return re.compile(value)
    except re.error as e:
        raise click.BadParameter(f"invalid regular expression: {e}")


@click.command()
@click.option(
    "--local", "-local", "local_path",
    required=True,
    type=click.Path(exists=True),
    help="Local file or directory to upload",
)
@click.option(
    "--remote", "-remote", "remote_path",
    required=True,
    help="Remote destination directory",
)
@click.option(
    "--url", "-url",
    envvar="WEBDAV_URL",
    required=True,
    help="WebDAV URL (or set WEBDAV_URL env var)",
)
@click.option(
    "--user", "-user",
    envvar="DAV_USER",
    required=True,
    help="WebDAV username (or set DAV_USER env var)",
)
@click.option(
    "--pwd", "-pwd", "--password", "password",
    envvar="DAV_PWD",
    required=True,
    help="WebDAV password (or set DAV_PWD env var)",
)
@click.option(
    "--exclude", "-exclude",
    callback=validate_exclude,
    help="Skip entries whose path relative to --local matches this regex",
)
@click.option(
    "--chunk-size",
    type=click.IntRange(min=1),
    default=32,
    show_default=True,
    help="Chunk size in MiB",
)
@click.option(
    "--workers",
    type=click.IntRange(1, 64),
    default=4,
    show_default=True,
    help="Concurrent chunk uploads per file",
)
@click.option(
    "--max-attempts",
    type=click.IntRange(min=1),
    default=10,
    show_default=True,
    help="Attempts per chunk before the file upload is abandoned",
)
@click.option(
    "--empty-files",
    type=click.Choice([p.value for p in EmptyFilePolicy], case_sensitive=False),
    default=EmptyFilePolicy.CREATE.value,
    show_default=True,
    help="What to do with zero-length files",
)
@click.option(
    "--verify-ssl/--no-verify-ssl",
    default=False,
    show_default=True,
    help="Verify the server TLS certificate",
)
@click.option(
    "--timeout",
    type=click.FloatRange(min=0, min_open=True),
    default=60,
    show_default=True,
    help="Per-request timeout in seconds",
)
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose logging")
@click.version_option(__version__)
def cli(
    local_path,
    remote_path,
    url,
    user,
    password,
    exclude,
    chunk_size,
    workers,
    max_attempts,
    empty_files,
    verify_ssl,
    timeout,
    verbose,
):
    """Upload a local file or directory tree to a WebDAV server."""
    if verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    config = {
        "chunk_size": chunk_size * MIB,
        "workers": workers,
        "max_attempts": max_attempts,
        "empty_files": empty_files.lower(),
    }
    try:
        api = WebDAVUploaderAPI(url, user, password, config, verify_ssl, timeout)
    except ConfigurationError as e:
        console.print(f"[red]{e}[/red]")
        sys.exit(2)

    if not verify_ssl:
        urllib3.disable_warnings(urllib3.exceptions.InsecureRequestWarning)
        console.print("[yellow]TLS certificate verification is disabled[/yellow]")

    try:
        api.connect()
    except WebDAVUploaderError as e:
        console.print(f"[red]Can not connect to WebDAV: {e}[/red]")
        sys.exit(1)

    console.print(f"Uploading [cyan]{local_path}[/cyan] to [green]{url} {remote_path}[/green]")
    try:
        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            BarColumn(),
            DownloadColumn(),
            TransferSpeedColumn(),
            console=console,
            transient=True,
        ) as progress:
            task = progress.add_task("Uploading...", total=None)

            def update_progress(bytes_uploaded, total_bytes, speed_mbps):
                progress.update(task, completed=bytes_uploaded, total=total_bytes)

            result = api.upload(local_path, remote_path, exclude, update_progress)
    except UploadError as e:
        console.print(f"[red]Can not upload to WebDAV: {e.message}[/red]")
        if e.cleanup_error is not None:
            console.print(
                f"[yellow]Partial remote file {e.remote_path} could not be removed: "
                f"{e.cleanup_error}[/yellow]"
            )
        sys.exit(1)
    except (WebDAVUploaderError, OSError) as e:
        console.print(f"[red]Can not upload to WebDAV: {e}[/red]")
        sys.exit(1)
    finally:
        api.close()

    for file_result in result.files:
        note = " (skipped, empty)" if file_result.skipped else ""
        console.print(
            f"[green]✓[/green] {file_result.remote_path} "
            f"{file_result.size} bytes, {file_result.speed_mbps:.2f} MB/s{note}"
        )
    console.print(
        f"[green]✓[/green] Upload completed successfully! "
        f"{len(result.files)} files, {len(result.directories)} directories, "
        f"{len(result.excluded)} excluded"
    )
    console.print(
        f"Total: {result.total_bytes} bytes in {result.total_time:.2f}s "
        f"({human_mb_per_s(result.total_bytes, result.total_time):.2f} MB/s)"
    )


def main():
    """Main entry point."""
    cli()
