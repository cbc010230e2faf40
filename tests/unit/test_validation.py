"""Unit tests for registry entry validation."""
from __future__ import annotations

import pytest

from deployguard.domain.entities.service_descriptor import RegistryDocument, ServiceDescriptor
from deployguard.engine.registry.validation import (
    check_argument,
    check_capability,
    check_command,
    check_env,
    command_basename,
    validate_document,
    validate_entry,
)


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


@pytest.mark.parametrize("command", ["node", "python3", "npx", "uvx", "docker", "/usr/local/bin/mytool", "C:\\tools\\srv.exe"])
def test_allowed_commands(command: str) -> None:
    assert check_command(command) is None


@pytest.mark.parametrize(
    "command",
    [
        "bash",
        "sh",
        "PowerShell",
        "/bin/bash",
        "/usr/bin/zsh",
        "C:\\Windows\\System32\\WindowsPowerShell\\v1.0\\powershell.exe",
    ],
)
def test_denied_commands(command: str) -> None:
    assert "denied" in check_command(command)


def test_unknown_relative_command_is_rejected() -> None:
    assert "allowed launcher" in check_command("ruby")


def test_command_basename() -> None:
    assert command_basename("C:\\bin\\PWSH.EXE") == "pwsh"
    assert command_basename("/usr/bin/node") == "node"


# ---------------------------------------------------------------------------
# Arguments
# ---------------------------------------------------------------------------


@pytest.mark.parametrize(
    "arg",
    [
        "./server.js",
        "../lib/server.js",
        "~/mcp/server.py",
        "-y",
        "--stdio",
        "node:18",
        "ghcr.io/acme/weather:1.2",
        "API_MODE=readonly",
        "@modelcontextprotocol/server-filesystem",
        "/opt/data",
    ],
)
def test_safe_arguments(arg: str) -> None:
    assert check_argument(arg) is None


@pytest.mark.parametrize("arg", ["../../etc/passwd", "~/../root", "lib/../../secret", ".."])
def test_traversal_arguments(arg: str) -> None:
    assert "traversal" in check_argument(arg)


@pytest.mark.parametrize("arg", ["foo; rm -rf /", "$(whoami)", "`id`", "sudo", "a && b", "format"])
def test_dangerous_arguments(arg: str) -> None:
    assert "dangerous" in check_argument(arg)


# ---------------------------------------------------------------------------
# Environment and capabilities
# ---------------------------------------------------------------------------


@pytest.mark.parametrize("key", ["LD_PRELOAD", "ld_library_path", "DYLD_INSERT_LIBRARIES"])
def test_library_hijack_env_names(key: str) -> None:
    assert "library loading" in check_env(key, "/tmp/x.so")


def test_hardcoded_env_secret() -> None:
    assert "hardcoded secret" in check_env("API_TOKEN", "abcdefghijklmnopqrstuvwxyz123")


def test_common_env_names_are_exempt() -> None:
    assert check_env("OPENAI_API_KEY", "abcdefghijklmnopqrstuvwxyz123") is None
    assert check_env("NODE_ENV", "production") is None


def test_short_or_non_token_values_pass() -> None:
    assert check_env("MY_TOKEN", "short") is None
    assert check_env("DB_PASSWORD", "has spaces in it so not a token") is None


@pytest.mark.parametrize("capability, rejected", [("read_file", False), ("execute_command", True), ("Admin_Panel", True), ("run_shell", True)])
def test_capabilities(capability: str, rejected: bool) -> None:
    assert (check_capability(capability) is not None) is rejected


# ---------------------------------------------------------------------------
# Entries and documents
# ---------------------------------------------------------------------------


def test_valid_entry() -> None:
    body = ServiceDescriptor(name="weather", command="node", args=["./weather-server.js"]).to_registry()
    assert validate_entry("weather", body) == []


def test_every_violation_is_reported() -> None:
    entry = {
        "command": "bash",
        "args": ["; rm -rf /"],
        "env": {"LD_PRELOAD": "/tmp/evil.so"},
        "disabled": "no",
        "autoApprove": ["shell_exec"],
    }
    problems = validate_entry("evil", entry)
    assert len(problems) == 5
    assert all(p.startswith("evil: ") for p in problems)


@pytest.mark.parametrize(
    "entry, fragment",
    [
        ({}, "command must be a non-empty string"),
        ({"command": "node", "args": "server.js"}, "args must be a list of strings"),
        ({"command": "node", "env": {"A": 1}}, "env must map strings to strings"),
        ({"command": "node", "autoApprove": "all"}, "autoApprove must be a list of strings"),
    ],
)
def test_schema_violations(entry: dict, fragment: str) -> None:
    assert any(fragment in p for p in validate_entry("svc", entry))


def test_non_object_entry() -> None:
    assert validate_entry("svc", ["node"]) == ["svc: entry must be a JSON object"]


def test_validate_document_orders_by_name() -> None:
    document = RegistryDocument(entries={"zeta": {"command": "sh"}, "alpha": {"command": "ruby"}, "ok": {"command": "node"}})
    problems = validate_document(document)
    assert [p.split(":")[0] for p in problems] == ["alpha", "zeta"]
