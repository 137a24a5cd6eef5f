import asyncio
import os
import tempfile

import pytest

# 日志写到临时目录，避免测试在仓库里留下 logs/
os.environ.setdefault("CHAT_WIDGET_LOG_DIR", tempfile.mkdtemp(prefix="chat-widget-logs-"))


class SettingsStub:
    base_url = "http://backend.test"
    http_timeout = 1.0
    feedback_enabled = True


async def _wait_until(predicate, timeout: float = 2.0) -> None:
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not reached in time")
        await asyncio.sleep(0.005)


def _sse(*records: str) -> bytes:
    return "".join(f"data: {r}\n" for r in records).encode("utf-8")


@pytest.fixture
def settings_stub():
    return SettingsStub()


@pytest.fixture
def wait_until():
    return _wait_until


@pytest.fixture
def sse():
    return _sse
