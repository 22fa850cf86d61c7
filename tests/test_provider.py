"""Tests for the stdio JSON-RPC tool-provider client, against tests/fake_provider.py."""

import pytest

from conftest import fake_client
from core.errors import ProviderConnectionError, ProviderError
from core.provider import ToolProviderClient, content_text, default_roots


def test_handshake_and_tool_listing(project_dir):
    client = fake_client([project_dir])
    try:
        client.start()
        assert client.running
        assert client.server_info["name"] == "fake-filesystem"
        names = [t["name"] for t in client.list_tools()]
        assert names == ["read_multiple_files", "read_file", "write_file", "list_directory"]
    finally:
        client.close()
    assert not client.running


def test_start_is_idempotent(project_dir):
    client = fake_client([project_dir])
    try:
        client.start()
        proc = client._proc
        client.start()
        assert client._proc is proc
    finally:
        client.close()


def test_close_twice_is_safe(project_dir):
    client = fake_client([project_dir])
    client.start()
    client.close()
    client.close()
    assert not client.running


def test_call_tool_returns_content_blocks(project_dir):
    client = fake_client([project_dir])
    try:
        client.start()
        content = client.call_tool("read_file", {"path": str(project_dir / "README.md")})
        assert content == [{"type": "text", "text": "hello from hostgate\n"}]
    finally:
        client.close()


def test_tool_error_raises_provider_error(project_dir, tmp_path):
    outside = tmp_path / "outside.txt"
    outside.write_text("nope", encoding="utf-8")
    client = fake_client([project_dir])
    try:
        client.start()
        with pytest.raises(ProviderError) as exc:
            client.call_tool("read_file", {"path": str(outside)})
        assert "path outside allowed directories" in str(exc.value)
    finally:
        client.close()


def test_jsonrpc_error_raises_provider_error(project_dir):
    client = fake_client([project_dir])
    try:
        client.start()
        with pytest.raises(ProviderError) as exc:
            client.request("resources/list")
        assert "-32601" in str(exc.value)
    finally:
        client.close()


def test_pagination_collects_every_page(project_dir):
    client = fake_client([project_dir], "--paginate")
    try:
        client.start()
        assert len(client.list_tools()) == 4
    finally:
        client.close()


def test_notifications_and_noise_are_skipped(project_dir):
    client = fake_client([project_dir], "--noisy")
    try:
        client.start()
        assert client.list_tools()
    finally:
        client.close()


def test_request_timeout(project_dir):
    client = fake_client([project_dir], "--slow", timeout_seconds=1)
    try:
        client.start()
        with pytest.raises(ProviderError) as exc:
            client.call_tool("read_file", {"path": str(project_dir / "README.md")})
        assert "did not answer" in str(exc.value)
    finally:
        client.close()


def test_provider_that_exits_fails_handshake(project_dir):
    client = fake_client([project_dir], "--exit-immediately")
    with pytest.raises(ProviderConnectionError) as exc:
        client.start()
    assert "handshake failed" in str(exc.value)
    assert not client.running


def test_missing_provider_binary(project_dir):
    client = ToolProviderClient([str(project_dir)], command="hostgate-no-such-provider", args=[])
    with pytest.raises(ProviderConnectionError) as exc:
        client.start()
    assert "Failed to start filesystem provider" in str(exc.value)


def test_roots_are_fixed_at_construction(project_dir):
    roots = [str(project_dir)]
    client = ToolProviderClient(roots)
    roots.append("/")
    assert client.roots == (str(project_dir),)


# ============================================================
# Helpers
# ============================================================

def test_content_text():
    assert content_text("plain") == "plain"
    assert content_text([{"type": "text", "text": "a"}, {"type": "text", "text": "b"}]) == "a\nb"
    assert content_text(["x", {"type": "text", "text": "y"}]) == "x\ny"
    assert '"uri"' in content_text([{"type": "resource", "uri": "file:///x"}])
    assert content_text(None) == ""


def test_default_roots(tmp_path):
    existing = tmp_path / "data"
    existing.mkdir()
    missing = tmp_path / "missing"
    roots = default_roots([str(existing), str(missing), str(existing)], project_root=str(tmp_path))
    assert roots == [str(existing), str(tmp_path)]
