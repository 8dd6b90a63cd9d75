"""Job engine for MediaForge.

This module provides the asynchronous engine that runs external tools:
- exceptions: Error taxonomy for job outcomes and API misuse
- requests: Validated fetch/transcode request models
- registry: Task state store with per-task atomic updates
- limiter: Per-family concurrency limits
- handles: In-flight execution handles and cancel events
- kinds: Per-kind argv, parser, policy and output handling
- executor: Drives one job from Queued to a terminal state
- notify: Task change notifiers
- orchestrator: Public API (submit, list, pause, cancel, remove)

Names are resolved lazily so that low-level modules (tool detection) can
import ``mediaforge.jobs.exceptions`` without loading the whole engine.
"""

from importlib import import_module

_EXPORTS = {
    "FetchRequest": "mediaforge.jobs.requests",
    "TranscodeRequest": "mediaforge.jobs.requests",
    "JobSpec": "mediaforge.jobs.requests",
    "parse_job_spec": "mediaforge.jobs.requests",
    "TaskRegistry": "mediaforge.jobs.registry",
    "ConcurrencyLimiter": "mediaforge.jobs.limiter",
    "HandleTable": "mediaforge.jobs.handles",
    "TaskHandle": "mediaforge.jobs.handles",
    "JobExecutor": "mediaforge.jobs.executor",
    "Orchestrator": "mediaforge.jobs.orchestrator",
    "TaskNotifier": "mediaforge.jobs.notify",
    "NullNotifier": "mediaforge.jobs.notify",
    "LoggingNotifier": "mediaforge.jobs.notify",
    "CompositeNotifier": "mediaforge.jobs.notify",
    "CoalescingNotifier": "mediaforge.jobs.notify",
    "StderrNotifier": "mediaforge.jobs.notify",
    "MediaForgeError": "mediaforge.jobs.exceptions",
    "ValidationError": "mediaforge.jobs.exceptions",
    "SpawnError": "mediaforge.jobs.exceptions",
    "JobRuntimeError": "mediaforge.jobs.exceptions",
    "JobTimeoutError": "mediaforge.jobs.exceptions",
    "JobCancelledError": "mediaforge.jobs.exceptions",
    "ResourceError": "mediaforge.jobs.exceptions",
    "TaskNotFoundError": "mediaforge.jobs.exceptions",
    "TaskStateError": "mediaforge.jobs.exceptions",
    "UnsupportedOperationError": "mediaforge.jobs.exceptions",
    "InvalidTransitionError": "mediaforge.jobs.exceptions",
}

__all__ = sorted(_EXPORTS)


def __getattr__(name: str):
    module_name = _EXPORTS.get(name)
    if module_name is None:
        raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
    value = getattr(import_module(module_name), name)
    globals()[name] = value
    return value
