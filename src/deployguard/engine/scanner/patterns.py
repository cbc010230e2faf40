"""Pattern library for the static security scanner.

Declarative rule tables.  Every code rule is a tagged ``(regex, severity,
family)`` record evaluated uniformly by the code analyzer, so the rule set
can be extended or tested without touching scanner logic.

Families:

* ``javascript`` -- ``.js .mjs .cjs .jsx .ts .tsx``
* ``python`` -- ``.py``
* ``common`` -- applied to every source file

All regexes are compiled at import time.  Avoid nested quantifiers.
"""

from __future__ import annotations

import math
import re
from collections import Counter
from dataclasses import dataclass

from deployguard.domain.value_objects.severity import FindingSeverity

JAVASCRIPT = "javascript"
PYTHON = "python"
COMMON = "common"

EXTENSION_FAMILIES: dict[str, str] = {
    ".js": JAVASCRIPT,
    ".mjs": JAVASCRIPT,
    ".cjs": JAVASCRIPT,
    ".jsx": JAVASCRIPT,
    ".ts": JAVASCRIPT,
    ".tsx": JAVASCRIPT,
    ".py": PYTHON,
}

SOURCE_EXTENSIONS: frozenset[str] = frozenset(EXTENSION_FAMILIES)


@dataclass(frozen=True, slots=True)
class PatternRule:
    """A single code pattern.

    Attributes:
        rule_id: Stable identifier, unique across all families.
        family: Language family the rule applies to.
        severity: Bucket a match is filed into.
        regex: Compiled pattern.
        message: Human-readable description of a match.
    """

    rule_id: str
    family: str
    severity: FindingSeverity
    regex: re.Pattern[str]
    message: str


def _p(
    rule_id: str,
    family: str,
    severity: FindingSeverity,
    pattern: str,
    message: str,
    *,
    flags: int = 0,
) -> PatternRule:
    """Shorthand factory for PatternRule construction."""
    return PatternRule(
        rule_id=rule_id,
        family=family,
        severity=severity,
        regex=re.compile(pattern, flags),
        message=message,
    )


_D = FindingSeverity.DANGEROUS
_S = FindingSeverity.SUSPICIOUS
_M = FindingSeverity.MALICIOUS

# ---------------------------------------------------------------------------
# Code rules
# ---------------------------------------------------------------------------

CODE_RULES: tuple[PatternRule, ...] = (
    # javascript
    _p("js-eval", JAVASCRIPT, _D, r"(?<![\w.$])eval\s*\(", "eval() executes arbitrary code"),
    _p("js-function-constructor", JAVASCRIPT, _D, r"\bnew\s+Function\s*\(", "Function constructor executes arbitrary code"),
    _p(
        "js-child-process",
        JAVASCRIPT,
        _S,
        r"""require\s*\(\s*['"](?:node:)?child_process['"]\s*\)|from\s+['"](?:node:)?child_process['"]""",
        "child_process module imported",
    ),
    _p("js-exec-call", JAVASCRIPT, _S, r"\.exec(?:Sync)?\s*\(", "exec() call spawns a shell"),
    _p("js-spawn-call", JAVASCRIPT, _S, r"\.spawn(?:Sync)?\s*\(", "spawn() call starts a process"),
    _p("js-process-exit", JAVASCRIPT, _S, r"\bprocess\.exit\s*\(", "process.exit() terminates the host"),
    _p("js-fs-delete", JAVASCRIPT, _S, r"\bfs\.(?:unlinkSync|rmSync|rmdirSync)\s*\(", "synchronous file deletion"),
    # python
    _p("py-eval", PYTHON, _D, r"(?<![\w.])eval\s*\(", "eval() executes arbitrary code"),
    _p("py-exec", PYTHON, _D, r"(?<![\w.])exec\s*\(", "exec() executes arbitrary code"),
    _p("py-os-system", PYTHON, _S, r"\bos\.system\s*\(", "os.system() runs a shell command"),
    _p(
        "py-subprocess-shell",
        PYTHON,
        _S,
        r"\bsubprocess\.\w+\s*\([^)]*shell\s*=\s*True",
        "subprocess call with shell=True",
    ),
    _p(
        "py-subprocess-import",
        PYTHON,
        _S,
        r"^\s*(?:import\s+subprocess\b|from\s+subprocess\s+import\b)",
        "subprocess module imported",
        flags=re.MULTILINE,
    ),
    _p("py-dynamic-import", PYTHON, _S, r"(?<![\w.])__import__\s*\(", "dynamic import via __import__()"),
    _p("py-pickle-load", PYTHON, _S, r"\bpickle\.loads?\s*\(", "pickle deserialisation"),
    # common
    _p(
        "hardcoded-password",
        COMMON,
        _S,
        r"""password\s*[:=]\s*['"][^'"\n]+['"]""",
        "hardcoded password literal",
        flags=re.IGNORECASE,
    ),
    _p(
        "hardcoded-api-key",
        COMMON,
        _S,
        r"""api[_-]?key\s*[:=]\s*['"][^'"\n]+['"]""",
        "hardcoded API key literal",
        flags=re.IGNORECASE,
    ),
    _p(
        "destructive-shell",
        COMMON,
        _M,
        r"\brm\s+-rf\b|\bdel\s+/s\b|\bformat\s+c:",
        "destructive shell command",
        flags=re.IGNORECASE,
    ),
    _p(
        "scanning-tool",
        COMMON,
        _M,
        r"\b(?:nmap|masscan|sqlmap|nikto)\b",
        "network scanning tool invocation",
        flags=re.IGNORECASE,
    ),
    _p(
        "attack-keyword",
        COMMON,
        _M,
        r"\b(?:ddos|flood|attack)\b",
        "attack-related keyword",
        flags=re.IGNORECASE,
    ),
    _p(
        "sensitive-system-path",
        COMMON,
        _M,
        r"/etc/(?:passwd|shadow)\b|C:\\\\?Windows\\\\?System32",
        "access to sensitive system path",
        flags=re.IGNORECASE,
    ),
)


def rules_for_family(family: str | None) -> tuple[PatternRule, ...]:
    """Return the family-specific rules followed by the common rules."""
    return tuple(r for r in CODE_RULES if r.family == family) + tuple(
        r for r in CODE_RULES if r.family == COMMON
    )


def family_for(suffix: str) -> str | None:
    return EXTENSION_FAMILIES.get(suffix.lower())


# ---------------------------------------------------------------------------
# Configuration rules
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class SecretRule:
    """A key/value assignment whose value must look like a real secret.

    Attributes:
        rule_id: Stable identifier.
        regex: Pattern whose first group captures the assigned value.
        min_length: Shortest value considered secret-like.
    """

    rule_id: str
    regex: re.Pattern[str]
    min_length: int


def _assignment(keys: str) -> re.Pattern[str]:
    return re.compile(
        r"""[\w.-]*(?:""" + keys + r""")[\w.-]*["']?\s*[:=]\s*["']?([^"'\s,;#]+)""",
        re.IGNORECASE,
    )


SECRET_RULES: tuple[SecretRule, ...] = (
    SecretRule("config-password", _assignment(r"password|passwd|pwd"), 8),
    SecretRule("config-api-key", _assignment(r"api[_-]?key"), 16),
    SecretRule("config-secret-token", _assignment(r"secret|token"), 16),
    SecretRule("config-access-key", _assignment(r"access[_-]?key"), 16),
)

# Values that reference an indirection rather than a literal.
_INDIRECT_VALUE = re.compile(r"^(?:\$|process\.env|os\.environ|os\.getenv|<|\{\{|%\()", re.IGNORECASE)

MIN_SECRET_ENTROPY = 2.5


@dataclass(frozen=True, slots=True)
class FlagRule:
    rule_id: str
    regex: re.Pattern[str]
    message: str


INSECURE_FLAG_RULES: tuple[FlagRule, ...] = (
    FlagRule(
        "tls-disabled",
        re.compile(r"""\b(?:ssl|tls)[\w-]*["']?\s*[:=]\s*["']?false\b""", re.IGNORECASE),
        "TLS disabled",
    ),
    FlagRule(
        "verification-disabled",
        re.compile(
            r"""\b(?:verify[\w-]*|rejectUnauthorized)["']?\s*[:=]\s*["']?false\b|NODE_TLS_REJECT_UNAUTHORIZED\s*=\s*["']?0""",
            re.IGNORECASE,
        ),
        "certificate verification disabled",
    ),
    FlagRule(
        "debug-enabled",
        re.compile(r"""\bdebug["']?\s*[:=]\s*["']?true\b""", re.IGNORECASE),
        "debug mode enabled",
    ),
)


def shannon_entropy(value: str) -> float:
    """Bits per character of *value*."""
    if not value:
        return 0.0
    length = len(value)
    return -sum((n / length) * math.log2(n / length) for n in Counter(value).values())


def looks_secret(value: str, min_length: int) -> bool:
    """Return True when *value* is a long, random-looking literal and not a URL."""
    if len(value) < min_length or _INDIRECT_VALUE.match(value) or "://" in value:
        return False
    return shannon_entropy(value) >= MIN_SECRET_ENTROPY
