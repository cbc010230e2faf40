"""Schema and safety validation of registry entries.

Validation works on raw entry bodies so that every problem in a document
is collected and reported together.  A document with any violation is never
written.

Argument checks run in this order:

1. a legitimate relative path (``./x``, ``../x``, ``~/x`` with no further
   ``..`` component) is accepted;
2. any other ``..`` traversal is rejected;
3. a recognised safe parameter shape (flag, image reference, ``KEY=value``)
   is accepted;
4. anything matching a dangerous-content pattern is rejected.
"""
from __future__ import annotations

import re
from typing import Any

from deployguard.domain.entities.service_descriptor import RegistryDocument

ALLOWED_COMMANDS: frozenset[str] = frozenset(
    {"node", "python", "python3", "npx", "uvx", "cmd", "docker", "java", "go", "rust"}
)
DENIED_COMMANDS: frozenset[str] = frozenset({"powershell", "pwsh", "bash", "sh", "zsh", "eval", "exec"})

_ABSOLUTE_PATH = re.compile(r"^(?:[A-Za-z]:\\|/)")

DANGEROUS_ARG_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(r"[;&|`$(){}\[\]]"),
    re.compile(r"\b(?:rm|del|format|mkfs|dd)\b", re.IGNORECASE),
    re.compile(r"\b(?:eval|exec|system)\b", re.IGNORECASE),
    re.compile(r"\b(?:sudo|su|runas)\b", re.IGNORECASE),
)

_TRAVERSAL = re.compile(r"\.\.[/\\]|[/\\]\.\.$|^\.\.$")

SAFE_ARG_SHAPES: tuple[re.Pattern[str], ...] = (
    re.compile(r"^-[a-zA-Z]$"),
    re.compile(r"^--[a-zA-Z][a-zA-Z0-9-]*$"),
    re.compile(r"^[a-zA-Z0-9._-]+:[a-zA-Z0-9._-]+$"),
    re.compile(r"^(?:ghcr|docker)\.io/[a-zA-Z0-9._/-]+(?::[a-zA-Z0-9._-]+)?$"),
    re.compile(r"^[A-Z_][A-Z0-9_]*=[^;|&`$]*$"),
)

_RELATIVE_PATH_CHARS = re.compile(r"^[\w./-]+$")

SENSITIVE_ENV_KEY = re.compile(r"password|passwd|secret|token|key|credential", re.IGNORECASE)
COMMON_DEV_ENV_VARS: frozenset[str] = frozenset(
    {
        "NODE_ENV",
        "LOG_LEVEL",
        "DEBUG",
        "PORT",
        "HOST",
        "PATH",
        "NODE_OPTIONS",
        "GITHUB_PERSONAL_ACCESS_TOKEN",
        "OPENAI_API_KEY",
    }
)
DANGEROUS_ENV_NAMES: frozenset[str] = frozenset(
    {"LD_LIBRARY_PATH", "LD_PRELOAD", "DYLD_LIBRARY_PATH", "DYLD_INSERT_LIBRARIES"}
)
_BASE64_LIKE = re.compile(r"^[A-Za-z0-9+/]+=*$")
_TOKEN_LIKE = re.compile(r"^[A-Za-z0-9_-]+$")

DANGEROUS_CAPABILITIES: tuple[str, ...] = ("exec", "eval", "system", "shell", "file_delete", "admin")


# ---------------------------------------------------------------------------
# Individual checks
# ---------------------------------------------------------------------------


def is_absolute_command(command: str) -> bool:
    return bool(_ABSOLUTE_PATH.match(command))


def command_basename(command: str) -> str:
    base = re.split(r"[\\/]", command)[-1].lower()
    return base[:-4] if base.endswith(".exe") else base


def check_command(command: str) -> str | None:
    """Return a violation message for *command*, or None when it is acceptable."""
    if command.lower() in DENIED_COMMANDS or command_basename(command) in DENIED_COMMANDS:
        return f"command '{command}' is a denied shell or interpreter"
    if command in ALLOWED_COMMANDS or is_absolute_command(command):
        return None
    return f"command '{command}' is neither an absolute path nor an allowed launcher"


def is_legitimate_relative_path(arg: str) -> bool:
    parts = arg.split("/")
    if len(parts) < 2 or parts[0] not in {".", "..", "~"} or not parts[1]:
        return False
    return ".." not in parts[1:] and bool(_RELATIVE_PATH_CHARS.match(arg[len(parts[0]):]))


def is_safe_parameter(arg: str) -> bool:
    return any(shape.match(arg) for shape in SAFE_ARG_SHAPES)


def check_argument(arg: str) -> str | None:
    if is_legitimate_relative_path(arg):
        return None
    if _TRAVERSAL.search(arg):
        return f"argument '{arg}' contains a path traversal sequence"
    if is_safe_parameter(arg):
        return None
    if any(p.search(arg) for p in DANGEROUS_ARG_PATTERNS):
        return f"argument '{arg}' contains dangerous content"
    return None


def looks_like_secret_value(value: str) -> bool:
    return (len(value) > 16 and bool(_BASE64_LIKE.match(value))) or (
        len(value) > 20 and bool(_TOKEN_LIKE.match(value))
    )


def check_env(key: str, value: str) -> str | None:
    if key.upper() in DANGEROUS_ENV_NAMES:
        return f"environment variable '{key}' can hijack library loading"
    if key.upper() in COMMON_DEV_ENV_VARS:
        return None
    if SENSITIVE_ENV_KEY.search(key) and looks_like_secret_value(value):
        return f"environment variable '{key}' appears to hold a hardcoded secret"
    return None


def check_capability(capability: str) -> str | None:
    lowered = capability.lower()
    for marker in DANGEROUS_CAPABILITIES:
        if marker in lowered:
            return f"autoApprove capability '{capability}' is too dangerous to pre-approve"
    return None


# ---------------------------------------------------------------------------
# Entry / document validation
# ---------------------------------------------------------------------------


def _is_str_list(value: Any) -> bool:
    return isinstance(value, list) and all(isinstance(v, str) for v in value)


def validate_entry(name: Any, entry: Any) -> list[str]:
    """Return every violation in one entry, prefixed with its name."""
    if not isinstance(name, str) or not name.strip():
        return [f"{name!r}: entry name must be a non-empty string"]
    if not isinstance(entry, dict):
        return [f"{name}: entry must be a JSON object"]

    problems: list[str] = []
    command = entry.get("command")
    if not isinstance(command, str) or not command.strip():
        problems.append("command must be a non-empty string")
    elif (msg := check_command(command)) is not None:
        problems.append(msg)

    args = entry.get("args", [])
    if not _is_str_list(args):
        problems.append("args must be a list of strings")
    else:
        problems.extend(msg for arg in args if (msg := check_argument(arg)) is not None)

    env = entry.get("env")
    if env is not None:
        if not isinstance(env, dict) or not all(isinstance(k, str) and isinstance(v, str) for k, v in env.items()):
            problems.append("env must map strings to strings")
        else:
            problems.extend(msg for k, v in env.items() if (msg := check_env(k, v)) is not None)

    if "disabled" in entry and not isinstance(entry["disabled"], bool):
        problems.append("disabled must be a boolean")

    auto_approve = entry.get("autoApprove")
    if auto_approve is not None:
        if not _is_str_list(auto_approve):
            problems.append("autoApprove must be a list of strings")
        else:
            problems.extend(msg for cap in auto_approve if (msg := check_capability(cap)) is not None)

    return [f"{name}: {p}" for p in problems]


def validate_document(document: RegistryDocument) -> list[str]:
    """Return every violation across all entries, in name order."""
    violations: list[str] = []
    for name in sorted(document.entries, key=str):
        violations.extend(validate_entry(name, document.entries[name]))
    return violations
