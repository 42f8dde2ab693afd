"""Command-line interface for femdown."""

import asyncio
import sys
from pathlib import Path
from typing import List, Optional, Tuple

import click
from rich.console import Console
from rich.prompt import Confirm, Prompt
from rich.table import Table

from . import __version__
from .app import FemdownApp, create_app
from .config import ConfigManager
from .course_manager import parse_course_id
from .download_manager import DownloadProgress
from .models import DownloadOptions, VIDEO_FORMATS, resolution_tiers
from .exceptions import ConfigurationError, FemdownError, InvalidCourseIdError
from .logging_config import setup_logging as setup_comprehensive_logging

console = Console()


def setup_logging(verbose: bool, config_manager: ConfigManager) -> None:
    """Install file logging; verbose also shows debug output on the console."""
    logger_instance = setup_comprehensive_logging(config_manager.config)
    logger_instance.configure_debug_mode(verbose)


def fail(message: str) -> None:
    console.print(f"[red]✗[/red] {message}")
    sys.exit(1)


def ask_course_ids(course_inputs: Tuple[str, ...], all_courses: bool) -> Tuple[List[str], bool]:
    """Resolve which courses to fetch, prompting when nothing was given on the command line."""
    if not all_courses and not course_inputs:
        all_courses = Confirm.ask("Do you want to download all courses?", default=False)

    if all_courses:
        return [], True

    if not course_inputs:
        while True:
            value = Prompt.ask("Enter course ID")
            try:
                return [parse_course_id(value)], False
            except InvalidCourseIdError as e:
                console.print(f"[red]{e}[/red]")

    return [parse_course_id(value) for value in course_inputs], False


def check_output_directory(directory: str) -> Path:
    """Make sure the destination is usable before anything is downloaded."""
    path = Path(directory).expanduser().resolve()
    if path.exists() and not path.is_dir():
        raise ConfigurationError(f"Not a directory: {path}", config_key='output_directory')
    try:
        path.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise ConfigurationError(f"Cannot create directory {path}: {e}", config_key='output_directory')
    return path


async def run_download(config_manager: ConfigManager, course_ids: List[str], all_courses: bool,
                       options: DownloadOptions, fresh_login: bool) -> DownloadProgress:
    """Log in, list courses if needed and download everything."""
    async with create_app(config_manager=config_manager) as app:
        with console.status("[bold green]Attempting to login.. (use the browser window)"):
            await app.initialize(fresh_login=fresh_login)

        if all_courses:
            with console.status("[bold blue]Scanning course IDs.."):
                course_ids = await app.resolve_course_ids([], all_courses=True)
            console.print(f"[green]✓[/green] Found {len(course_ids)} courses")

        with console.status("downloading..") as status:
            def on_progress(progress: DownloadProgress) -> None:
                status.update(progress.description)

            return await app.download(course_ids, options, on_progress)


@click.group()
@click.version_option(version=__version__)
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose logging")
@click.option("--config-file", help="Path to configuration file")
@click.pass_context
def cli(ctx, verbose: bool, config_file: Optional[str]):
    """Download Frontend Masters courses: videos and subtitles."""
    ctx.ensure_object(dict)
    ctx.obj['verbose'] = verbose

    try:
        config_manager = ConfigManager(config_file)
        setup_logging(verbose, config_manager)
    except ConfigurationError as e:
        console.print(f"[red]Configuration error: {e}[/red]")
        sys.exit(1)

    ctx.obj['config_manager'] = config_manager


@cli.command()
@click.argument("courses", nargs=-1)
@click.option("--all", "-a", "all_courses", is_flag=True, help="Download every course on the account")
@click.option("--format", "-f", "video_format", type=click.Choice(VIDEO_FORMATS), help="Video format")
@click.option("--resolution", "-r", type=click.Choice(resolution_tiers()), help="Video resolution")
@click.option("--dir", "-d", "output_dir", help="Directory to save into")
@click.option("--concurrent", "-c", type=click.IntRange(min=1), help="Number of simultaneous downloads")
@click.option("--fresh-login", is_flag=True, help="Ignore the stored session and log in again")
@click.pass_context
def download(ctx, courses: Tuple[str, ...], all_courses: bool, video_format: Optional[str],
             resolution: Optional[str], output_dir: Optional[str], concurrent: Optional[int],
             fresh_login: bool):
    """Download courses by id or URL (or --all).

    \b
    Examples:
      femdown download
      femdown download https://frontendmasters.com/courses/intermediate-gatsby/
      femdown download -a -f webm -r high
    """
    config_manager: ConfigManager = ctx.obj['config_manager']
    config = config_manager.config

    try:
        course_ids, all_courses = ask_course_ids(courses, all_courses)
    except InvalidCourseIdError as e:
        fail(str(e))

    if not video_format:
        video_format = Prompt.ask("Select a video format", choices=list(VIDEO_FORMATS),
                                  default=config.video_format)
    if not resolution:
        resolution = Prompt.ask("Select a video resolution", choices=resolution_tiers(),
                                default=config.resolution)
    if not output_dir:
        output_dir = Prompt.ask("Enter a directory to save", default=str(Path.cwd()))

    try:
        output_path = check_output_directory(output_dir)
        options = FemdownApp(config_manager=config_manager).download_options(
            output_dir=str(output_path),
            video_format=video_format,
            resolution=resolution,
            concurrent_downloads=concurrent
        )
    except ConfigurationError as e:
        fail(str(e))

    try:
        asyncio.run(run_download(config_manager, course_ids, all_courses, options, fresh_login))
    except FemdownError as e:
        fail(str(e))
    except KeyboardInterrupt:
        fail("Interrupted")

    console.print("[green]✓[/green] Download Complete!")


@cli.command()
@click.pass_context
def config(ctx):
    """Show current configuration."""
    config_manager: ConfigManager = ctx.obj['config_manager']
    current = config_manager.config

    table = Table(title="Current Configuration")
    table.add_column("Setting", style="cyan")
    table.add_column("Value", style="green")

    settings = {
        "Default Output Directory": current.default_output_dir,
        "Max Concurrent Downloads": str(current.max_concurrent_downloads),
        "Video Format": current.video_format,
        "Resolution": current.resolution,
        "Retry Delay": f"{current.retry_delay}s",
        "Rate Limit Delay": f"{current.rate_limit_delay}s",
        "Session Max Age": f"{current.session_max_age}s",
        "Cache Directory": current.cache_directory,
    }

    for setting, value in settings.items():
        table.add_row(setting, value)

    console.print(table)


@cli.command()
@click.pass_context
def logout(ctx):
    """Forget the stored login session."""
    config_manager: ConfigManager = ctx.obj['config_manager']
    try:
        FemdownApp(config_manager=config_manager).logout()
    except ConfigurationError as e:
        fail(str(e))
    console.print("[green]✓[/green] Stored session removed")


def main():
    cli(obj={})


if __name__ == "__main__":
    main()
