"""CLI commands that run jobs to completion.

``fetch`` and ``transcode`` build requests from options, ``run`` reads
them from a YAML batch file. All three drive an Orchestrator until every
task is terminal, showing a progress line on stderr. Ctrl+C cancels
every task and waits for the tools to exit.
"""

from __future__ import annotations

import asyncio
import json
import logging
import signal
import sys
from collections.abc import Sequence
from pathlib import Path
from typing import Any

import click
import yaml

from mediaforge.cli import load_cli_config
from mediaforge.cli.exit_codes import ExitCode
from mediaforge.cli.formatting import format_task_row
from mediaforge.config.models import MediaForgeConfig
from mediaforge.domain.enums import TaskStatus
from mediaforge.domain.models import TaskSnapshot
from mediaforge.jobs.exceptions import ValidationError
from mediaforge.jobs.notify import StderrNotifier
from mediaforge.jobs.orchestrator import Orchestrator
from mediaforge.jobs.requests import (
    FetchRequest,
    JobSpec,
    TranscodeRequest,
    build_request,
    parse_job_spec,
)

logger = logging.getLogger(__name__)


async def run_to_completion(
    specs: Sequence[JobSpec],
    config: MediaForgeConfig,
    *,
    show_progress: bool = True,
) -> list[TaskSnapshot]:
    """Submit ``specs`` and wait until every task is terminal.

    Returns:
        Final snapshots in submission order.
    """
    progress = StderrNotifier(enabled=show_progress)
    loop = asyncio.get_running_loop()

    async with Orchestrator.from_config(config, notifier=progress) as orchestrator:
        task_ids = await orchestrator.submit(specs)

        def cancel_all() -> None:
            logger.info("Interrupted, cancelling %d task(s)", len(task_ids))
            for task_id in task_ids:
                orchestrator.cancel(task_id)

        try:
            loop.add_signal_handler(signal.SIGINT, cancel_all)
            handler_installed = True
        except (ValueError, RuntimeError, NotImplementedError):
            handler_installed = False

        try:
            await orchestrator.join()
        finally:
            if handler_installed:
                loop.remove_signal_handler(signal.SIGINT)
            progress.finish()

        snapshots = [orchestrator.get_task(task_id) for task_id in task_ids]
    return [s for s in snapshots if s is not None]


def _exit_code(snapshots: list[TaskSnapshot]) -> ExitCode:
    statuses = {s.status for s in snapshots}
    if TaskStatus.FAILED in statuses:
        return ExitCode.JOB_FAILED
    if TaskStatus.CANCELLED in statuses:
        return ExitCode.JOB_CANCELLED
    return ExitCode.SUCCESS


def _print_summary(snapshots: list[TaskSnapshot], json_output: bool) -> None:
    if json_output:
        click.echo(json.dumps([s.to_dict() for s in snapshots], indent=2))
        return

    for snapshot in snapshots:
        task_id, status, color, name, detail = format_task_row(snapshot)
        styled = click.style(f"{status:<10}", fg=color)
        line = f"{task_id}  {styled} {name}"
        if detail:
            line = f"{line}  {detail}"
        click.echo(line)

    completed = sum(1 for s in snapshots if s.status is TaskStatus.COMPLETED)
    click.echo(f"\n{completed}/{len(snapshots)} task(s) completed")


def _execute(
    ctx: click.Context, specs: list[JobSpec], quiet: bool, json_output: bool
) -> None:
    config = load_cli_config(ctx)
    show_progress = not quiet and not json_output and sys.stderr.isatty()
    try:
        snapshots = asyncio.run(
            run_to_completion(specs, config, show_progress=show_progress)
        )
    except KeyboardInterrupt:
        click.echo("Interrupted", err=True)
        ctx.exit(ExitCode.INTERRUPTED)

    _print_summary(snapshots, json_output)
    ctx.exit(_exit_code(snapshots))


def _build_all(
    ctx: click.Context, model: type, payloads: list[dict[str, Any]]
) -> list[JobSpec]:
    try:
        return [build_request(model, payload) for payload in payloads]
    except ValidationError as e:
        click.echo(f"Error: {e}", err=True)
        ctx.exit(ExitCode.INVALID_REQUEST)


def _drop_unset(values: dict[str, Any]) -> dict[str, Any]:
    return {k: v for k, v in values.items() if v is not None}


def _trim(start: str | None, end: str | None) -> dict[str, str] | None:
    if end is None:
        if start is not None:
            raise click.UsageError("--trim-start requires --trim-end")
        return None
    return _drop_unset({"start": start, "end": end})


_output_options = [
    click.option(
        "--quiet", "-q", is_flag=True, help="Do not show the progress line."
    ),
    click.option(
        "--json", "json_output", is_flag=True, help="Output final tasks as JSON."
    ),
]


def _with_output_options(func):
    for option in reversed(_output_options):
        func = option(func)
    return func


@click.command("fetch")
@click.argument("urls", nargs=-1, required=True)
@click.option(
    "--output-dir",
    "-o",
    type=click.Path(file_okay=False, path_type=Path),
    default=None,
    help="Download directory (default: download_dir from config).",
)
@click.option(
    "--format",
    "media_format",
    type=click.Choice(["mp4", "mp3"]),
    default="mp4",
    show_default=True,
    help="Video (mp4) or audio only (mp3).",
)
@click.option("--quality", default=None, help="Maximum video height, e.g. 720.")
@click.option(
    "--audio-quality", default=None, help="mp3 quality: 0 (best) to 10, or e.g. 192k."
)
@click.option("--trim-start", default=None, help="Section start (HH:MM:SS).")
@click.option("--trim-end", default=None, help="Section end (HH:MM:SS).")
@click.option(
    "--playlist/--no-playlist",
    default=False,
    help="Download the whole playlist a URL belongs to.",
)
@_with_output_options
@click.pass_context
def fetch_command(
    ctx: click.Context,
    urls: tuple[str, ...],
    output_dir: Path | None,
    media_format: str,
    quality: str | None,
    audio_quality: str | None,
    trim_start: str | None,
    trim_end: str | None,
    playlist: bool,
    quiet: bool,
    json_output: bool,
) -> None:
    """Download one job per URL with yt-dlp.

    \b
    Examples:
        mediaforge fetch https://example.com/watch?v=abc
        mediaforge fetch --format mp3 --audio-quality 192k URL
        mediaforge fetch --quality 720 --trim-start 0:30 --trim-end 1:45 URL
    """
    shared = _drop_unset(
        {
            "output_dir": output_dir,
            "media_format": media_format,
            "quality": quality,
            "audio_quality": audio_quality,
            "trim": _trim(trim_start, trim_end),
            "playlist": playlist,
        }
    )
    specs = _build_all(ctx, FetchRequest, [{**shared, "url": url} for url in urls])
    _execute(ctx, specs, quiet, json_output)


@click.command("transcode")
@click.argument(
    "files",
    nargs=-1,
    required=True,
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
)
@click.option(
    "--to",
    "output_format",
    required=True,
    help="Output container/extension, e.g. mp4, mkv, mp3, png.",
)
@click.option(
    "--type",
    "conversion_type",
    type=click.Choice(["video", "audio", "image"]),
    default="video",
    show_default=True,
)
@click.option(
    "--output-dir",
    "-o",
    type=click.Path(file_okay=False, path_type=Path),
    default=None,
    help="Output directory (default: next to each input).",
)
@click.option("--resolution", default=None, help="Output size WIDTHxHEIGHT.")
@click.option("--video-bitrate", default=None, help="Video bitrate, e.g. 2M.")
@click.option("--audio-bitrate", default=None, help="Audio bitrate, e.g. 192k.")
@click.option("--sample-rate", type=int, default=None, help="Audio sample rate.")
@_with_output_options
@click.pass_context
def transcode_command(
    ctx: click.Context,
    files: tuple[Path, ...],
    output_format: str,
    conversion_type: str,
    output_dir: Path | None,
    resolution: str | None,
    video_bitrate: str | None,
    audio_bitrate: str | None,
    sample_rate: int | None,
    quiet: bool,
    json_output: bool,
) -> None:
    """Convert local files with ffmpeg, one job per file.

    \b
    Examples:
        mediaforge transcode --to mp4 clip.mkv
        mediaforge transcode --to mp3 --type audio --audio-bitrate 192k talk.wav
    """
    video = _drop_unset({"resolution": resolution, "bitrate": video_bitrate})
    audio = _drop_unset({"bitrate": audio_bitrate, "sample_rate": sample_rate})
    shared = _drop_unset(
        {
            "output_format": output_format,
            "conversion_type": conversion_type,
            "output_dir": output_dir,
            "video": video or None,
            "audio": audio or None,
        }
    )
    specs = _build_all(
        ctx,
        TranscodeRequest,
        [{**shared, "input_file": path} for path in files],
    )
    _execute(ctx, specs, quiet, json_output)


def load_batch_file(path: Path) -> list[JobSpec]:
    """Read a YAML batch file into job specs.

    The file holds a list of jobs, or a mapping with a ``jobs`` list. Each
    job is a mapping with ``kind: fetch`` or ``kind: transcode`` plus the
    request fields.

    Raises:
        ValidationError: If the file is malformed or any job is invalid.
    """
    try:
        with path.open(encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ValidationError(f"Invalid YAML in {path}: {e}") from e
    except OSError as e:
        raise ValidationError(f"Cannot read {path}: {e}") from e

    if isinstance(data, dict):
        data = data.get("jobs")
    if not isinstance(data, list) or not data:
        raise ValidationError(f"{path} must contain a non-empty list of jobs")

    specs = []
    for index, item in enumerate(data, start=1):
        try:
            specs.append(parse_job_spec(item))
        except ValidationError as e:
            raise ValidationError(f"Job {index}: {e}", e.errors) from e
    return specs


@click.command("run")
@click.argument(
    "batch_file", type=click.Path(exists=True, dir_okay=False, path_type=Path)
)
@_with_output_options
@click.pass_context
def run_command(
    ctx: click.Context, batch_file: Path, quiet: bool, json_output: bool
) -> None:
    """Run every job listed in a YAML batch file.

    \b
    Example batch file:
        jobs:
          - kind: fetch
            url: https://example.com/watch?v=abc
            media_format: mp3
          - kind: transcode
            input_file: ~/Videos/clip.mkv
            output_format: mp4
    """
    try:
        specs = load_batch_file(batch_file)
    except ValidationError as e:
        click.echo(f"Error: {e}", err=True)
        ctx.exit(ExitCode.BATCH_FILE_ERROR)
    _execute(ctx, specs, quiet, json_output)
