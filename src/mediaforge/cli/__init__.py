"""CLI module for MediaForge."""

import logging
from pathlib import Path

import click

from mediaforge.cli.exit_codes import ExitCode

logger = logging.getLogger(__name__)


def _configure_logging(
    config_path: Path | None,
    log_level: str | None,
    log_file: Path | None,
    log_json: bool,
) -> None:
    """Configure logging from CLI options.

    Args:
        config_path: Config file to read logging defaults from.
        log_level: Override log level (debug, info, warning, error).
        log_file: Override log file path.
        log_json: Use JSON log format.
    """
    from mediaforge.config.logging_factory import configure_logging_from_cli

    configure_logging_from_cli(
        config_path=config_path,
        level=log_level,
        file=log_file,
        format="json" if log_json else None,
    )


def load_cli_config(ctx: click.Context):
    """Load the effective configuration for a subcommand.

    Exits with CONFIG_ERROR when the configuration is invalid.
    """
    from mediaforge.config import get_config

    obj = ctx.find_root().obj or {}
    try:
        return get_config(config_path=obj.get("config_path"))
    except ValueError as e:
        click.echo(f"Error: invalid configuration: {e}", err=True)
        ctx.exit(ExitCode.CONFIG_ERROR)


@click.group()
@click.version_option(package_name="mediaforge")
@click.option(
    "--config",
    "config_path",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    default=None,
    help="Path to configuration file (default: ~/.mediaforge/config.toml).",
)
@click.option(
    "--log-level",
    type=click.Choice(["debug", "info", "warning", "error"], case_sensitive=False),
    default=None,
    help="Override log level (default: info).",
)
@click.option(
    "--log-file",
    type=click.Path(path_type=Path),
    default=None,
    help="Override log file path.",
)
@click.option(
    "--log-json",
    is_flag=True,
    default=False,
    help="Use JSON log format.",
)
@click.pass_context
def main(
    ctx: click.Context,
    config_path: Path | None,
    log_level: str | None,
    log_file: Path | None,
    log_json: bool,
) -> None:
    """MediaForge - fetch and transcode media with yt-dlp and ffmpeg."""
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path

    try:
        _configure_logging(config_path, log_level, log_file, log_json)
    except ValueError as e:
        click.echo(f"Error: invalid logging configuration: {e}", err=True)
        ctx.exit(ExitCode.CONFIG_ERROR)


# Defer import to avoid circular dependency
def _register_commands():
    from mediaforge.cli.doctor import doctor_command
    from mediaforge.cli.jobs import fetch_command, run_command, transcode_command
    from mediaforge.cli.serve import serve_command

    main.add_command(fetch_command)
    main.add_command(transcode_command)
    main.add_command(run_command)
    main.add_command(doctor_command)
    main.add_command(serve_command)


_register_commands()
