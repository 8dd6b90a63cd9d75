"""MediaForge doctor command for checking external tool health.

This module provides the 'mediaforge doctor' command to check that yt-dlp
and ffmpeg are installed and that the download directory is usable.
"""

import json

import click

from mediaforge.cli import load_cli_config
from mediaforge.cli.exit_codes import ExitCode
from mediaforge.core.formatting import format_file_size
from mediaforge.jobs.exceptions import ResourceError
from mediaforge.jobs.preflight import check_free_space, ensure_writable_dir
from mediaforge.tools import ToolInfo, detect_tools

_INSTALL_HINTS = {
    "yt-dlp": "Install yt-dlp: https://github.com/yt-dlp/yt-dlp#installation",
    "ffmpeg": "Install ffmpeg: https://ffmpeg.org/download.html",
}


def _format_status(available: bool) -> str:
    """Format status for display."""
    return "✓" if available else "✗"


def _format_version(tool: ToolInfo) -> str:
    if tool.version:
        return tool.version
    return tool.status_message or "not found"


@click.command("doctor")
@click.option(
    "--verbose",
    "-v",
    is_flag=True,
    help="Show tool paths.",
)
@click.option(
    "--json",
    "json_output",
    is_flag=True,
    help="Output results as JSON",
)
@click.pass_context
def doctor_command(ctx: click.Context, verbose: bool, json_output: bool) -> None:
    """Check external tool availability and the download directory.

    Exit codes:
      0 - All tools available
      30 - A required tool is missing
    """
    config = load_cli_config(ctx)
    registry = detect_tools(config.tools)

    download_dir = config.download_dir.expanduser()
    dir_problem = None
    free_bytes = None
    try:
        ensure_writable_dir(download_dir)
        free_bytes = check_free_space(download_dir, config.jobs.min_free_space_mb)
    except ResourceError as e:
        dir_problem = str(e)

    if json_output:
        click.echo(
            json.dumps(
                {
                    "tools": {t.name: t.to_dict() for t in registry.all_tools()},
                    "download_dir": {
                        "path": str(download_dir),
                        "free_bytes": free_bytes,
                        "problem": dir_problem,
                    },
                },
                indent=2,
            )
        )
    else:
        click.echo("MediaForge External Tool Health Check")
        click.echo("=" * 40)
        for tool in registry.all_tools():
            status = _format_status(tool.is_available())
            path_info = f" ({tool.path})" if tool.path and verbose else ""
            click.echo(f"  {status} {tool.name:<7} {_format_version(tool)}{path_info}")
            if not tool.is_available():
                click.echo(f"    └─ {_INSTALL_HINTS[tool.name]}")

        click.echo()
        click.echo(f"Download directory: {download_dir}")
        if dir_problem:
            click.echo(f"  {_format_status(False)} {dir_problem}")
        elif free_bytes:
            click.echo(f"  {_format_status(True)} {format_file_size(free_bytes)} free")

    if not registry.all_available:
        ctx.exit(ExitCode.TOOL_NOT_AVAILABLE)
    if dir_problem:
        ctx.exit(ExitCode.GENERAL_ERROR)
