"""Run the HTTP server on a real socket and drive it like a client."""

import asyncio
import os
import signal
import sys

import aiohttp
import pytest

from mediaforge.cli.exit_codes import ExitCode
from mediaforge.cli.serve import run_server
from mediaforge.config.models import MediaForgeConfig, ServerConfig

pytestmark = [
    pytest.mark.integration,
    pytest.mark.skipif(sys.platform == "win32", reason="POSIX signals"),
]


async def _wait_for_health(session: aiohttp.ClientSession, base: str) -> dict:
    for _ in range(200):
        try:
            async with session.get(f"{base}/health") as resp:
                return await resp.json()
        except aiohttp.ClientConnectionError:
            await asyncio.sleep(0.05)
    raise AssertionError("server did not start")


@pytest.mark.asyncio
async def test_serve_fetch_and_shutdown(
    fast_jobs_config, fake_tools, output_dir, unused_tcp_port, monkeypatch
):
    monkeypatch.setenv("FAKE_TOOL_DELAY", "0.05")
    config = MediaForgeConfig(
        tools=fake_tools,
        jobs=fast_jobs_config,
        server=ServerConfig(port=unused_tcp_port, shutdown_timeout=5),
        download_dir=output_dir,
    )
    server = asyncio.create_task(run_server(config, "127.0.0.1", unused_tcp_port))
    base = f"http://127.0.0.1:{unused_tcp_port}"

    try:
        async with aiohttp.ClientSession() as session:
            health = await _wait_for_health(session, base)
            assert health["status"] == "healthy"

            async with session.post(
                f"{base}/api/tasks/fetch",
                json={"urls": ["https://example.com/a", "https://example.com/b"]},
            ) as resp:
                assert resp.status == 201
                task_ids = (await resp.json())["task_ids"]

            for _ in range(400):
                async with session.get(f"{base}/api/tasks?status=completed") as resp:
                    if (await resp.json())["total"] == len(task_ids):
                        break
                await asyncio.sleep(0.05)
            else:
                raise AssertionError("tasks did not complete")

            async with session.get(f"{base}/api/tasks/{task_ids[0]}") as resp:
                task = await resp.json()
            assert task["output_path"] == str(output_dir / "Sample Video.mp4")
    finally:
        if not server.done():
            os.kill(os.getpid(), signal.SIGTERM)
        exit_code = await asyncio.wait_for(server, timeout=15)

    assert exit_code == ExitCode.SUCCESS
