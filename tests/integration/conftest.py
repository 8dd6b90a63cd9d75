"""Fixtures for engine integration tests."""

import dataclasses

import pytest_asyncio

from mediaforge.jobs.orchestrator import Orchestrator


@pytest_asyncio.fixture
async def make_orchestrator(fast_jobs_config, fake_tools, output_dir, recorder):
    """Return a factory for orchestrators wired to the fake tools.

    Keyword arguments override JobsConfig fields. Every orchestrator made
    is shut down when the test ends.
    """
    created = []

    def make(tool_paths=None, **overrides) -> Orchestrator:
        config = dataclasses.replace(fast_jobs_config, **overrides)
        orchestrator = Orchestrator(
            config,
            tool_paths=tool_paths or fake_tools,
            download_dir=output_dir,
            notifier=recorder,
        )
        created.append(orchestrator)
        return orchestrator

    yield make
    for orchestrator in created:
        await orchestrator.shutdown()
