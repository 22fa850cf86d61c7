"""Tests for the JSONL audit log."""

import json
import os
import re

from core.audit_log import AuditLog


def read_events(audit):
    with open(audit.log_path, "r", encoding="utf-8") as f:
        return [json.loads(line) for line in f]


def test_file_is_created_lazily(tmp_path):
    audit = AuditLog(str(tmp_path / "logs"))
    assert re.search(r"\.hostgate-audit-\d{8}-\d{6}\.jsonl$", audit.log_path)
    assert not os.path.exists(audit.log_path)
    audit.command_blocked("rm -rf /", "Dangerous command blocked: rm -rf")
    assert os.path.exists(audit.log_path)
    audit.close()


def test_event_fields_and_sequence(tmp_path):
    audit = AuditLog(str(tmp_path))
    audit.session_start("posix", "/tmp/project", ["/tmp"])
    audit.command_run("ls -la", 0, 12)
    audit.path_blocked("read", "/etc/shadow", "Path is in restricted system area")
    audit.file_op("write", "/tmp/x.txt", "write_file", True)
    audit.provider_connect(False, ["/tmp"], "boom")
    audit.error("run", "Command execution failed")
    audit.session_end(commands=1, file_ops=1, blocked=1)

    events = read_events(audit)
    assert [e["event"] for e in events] == [
        "session_start", "command_run", "path_blocked", "file_op",
        "provider_connect", "error", "session_end",
    ]
    assert [e["seq"] for e in events] == list(range(1, 8))
    assert all("ts" in e and "elapsed_s" in e for e in events)
    assert events[0]["session_id"] == audit.session_id
    assert events[1]["timed_out"] is False
    assert events[4]["error"] == "boom"
    assert events[6]["blocked"] == 1
    assert audit.event_count == 7


def test_long_values_are_clipped(tmp_path):
    audit = AuditLog(str(tmp_path))
    audit.command_blocked("echo " + "a" * 2000, "r" * 1000)
    audit.close()
    event = read_events(audit)[0]
    assert len(event["command"]) == 500
    assert len(event["reason"]) == 300


def test_non_string_input_is_logged(tmp_path):
    audit = AuditLog(str(tmp_path))
    audit.command_blocked(None, "Invalid command: must be a non-empty string")
    audit.path_blocked("read", 42, "Invalid path: path must be a non-empty string")
    audit.close()
    events = read_events(audit)
    assert events[0]["command"] == "None"
    assert events[1]["path"] == "42"


def test_close_is_idempotent(tmp_path):
    audit = AuditLog(str(tmp_path))
    audit.error("x", "y")
    audit.close()
    audit.close()
    # Writing after close reopens in append mode
    audit.error("x", "z")
    audit.close()
    assert len(read_events(audit)) == 2
