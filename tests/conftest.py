"""Test configuration: import path and the fake filesystem provider.

Provider, gateway and service tests talk to tests/fake_provider.py, started
with the running interpreter, instead of the real npx filesystem server.
"""

import os
import sys

import pytest

# Add parent to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from core.provider import ToolProviderClient

FAKE_PROVIDER = os.path.join(os.path.dirname(os.path.abspath(__file__)), "fake_provider.py")


def fake_client(roots, *flags, log_path=None, timeout_seconds=10):
    """An unstarted ToolProviderClient pointing at the fake provider."""
    env = {"FAKE_PROVIDER_LOG": log_path} if log_path else None
    return ToolProviderClient(
        [str(r) for r in roots],
        command=sys.executable,
        args=[FAKE_PROVIDER, *flags],
        timeout_seconds=timeout_seconds,
        env=env,
    )


@pytest.fixture
def project_dir(tmp_path):
    """A small project tree under the pytest temp directory."""
    root = tmp_path / "project"
    (root / "src").mkdir(parents=True)
    (root / "README.md").write_text("hello from hostgate\n", encoding="utf-8")
    (root / "src" / "app.txt").write_text("line one\nline two\n", encoding="utf-8")
    return root


@pytest.fixture
def call_log(tmp_path):
    """Path of the JSONL file the fake provider appends its tools/call requests to."""
    return tmp_path / "calls.jsonl"


def read_calls(log_path) -> list[str]:
    if not os.path.exists(log_path):
        return []
    with open(log_path, "r", encoding="utf-8") as f:
        return [line for line in f if line.strip()]
