"""Unit tests for the configuration check."""
from __future__ import annotations

from pathlib import Path

import pytest

from deployguard.engine.scanner.config_checker import ConfigChecker, inspect_config_text


def _ids(text: str) -> list[str]:
    return [f.rule_id for f in inspect_config_text(text, ".env")]


def test_hardcoded_password_is_secret() -> None:
    assert _ids("DB_HOST=localhost\nDB_PASSWORD=Xk9mP2qLz7vR4t\n") == ["config-password"]


def test_short_and_placeholder_values_are_ignored() -> None:
    assert _ids("PASSWORD=abc\nAPI_KEY=changeme\nSECRET_TOKEN=xxxxxxxxxxxxxxxxxxxx\n") == []


def test_indirect_values_are_ignored() -> None:
    text = 'password: process.env.DB_PASSWORD\napiKey: "${API_KEY}"\n'
    assert _ids(text) == []


def test_url_values_are_not_secrets() -> None:
    text = (
        "TOKEN_URL=https://auth.example.com/oauth/token\n"
        'secretStore: "vault://kv-prod.internal/svc/credentials"\n'
    )
    assert _ids(text) == []


def test_api_key_in_json() -> None:
    text = '{"apiKey": "sk-live-9fQ2mZ7xLp4RtV8wN3bK"}'
    findings = inspect_config_text(text, "config.json")
    assert [f.rule_id for f in findings] == ["config-api-key"]
    assert findings[0].line == 1


def test_secret_rule_fires_once_per_file() -> None:
    text = "A_PASSWORD=Xk9mP2qLz7vR4t\nB_PASSWORD=Rt5nW8yQe3uI0o\n"
    assert _ids(text) == ["config-password"]


@pytest.mark.parametrize(
    "text, rule_id",
    [
        ("ssl: false", "tls-disabled"),
        ("verify=False", "verification-disabled"),
        ('{"rejectUnauthorized": false}', "verification-disabled"),
        ("NODE_TLS_REJECT_UNAUTHORIZED=0", "verification-disabled"),
        ('{"debug": true}', "debug-enabled"),
    ],
)
def test_insecure_flags(text: str, rule_id: str) -> None:
    assert _ids(text) == [rule_id]


class TestConfigChecker:
    @pytest.mark.asyncio
    async def test_secret_fails_check(self, tmp_path: Path) -> None:
        (tmp_path / ".env").write_text("DB_PASSWORD=Xk9mP2qLz7vR4t\n")
        (tmp_path / "config.yaml").write_text("debug: true\n")
        result = await ConfigChecker().check(tmp_path)
        assert result.passed is False
        assert len(result.files_checked) == 2
        assert len(result.secrets) == 1
        assert len(result.insecure) == 1

    @pytest.mark.asyncio
    async def test_endpoint_urls_pass(self, tmp_path: Path) -> None:
        (tmp_path / ".env").write_text("TOKEN_URL=https://auth.example.com/oauth/token\nPORT=8080\n")
        result = await ConfigChecker().check(tmp_path)
        assert result.passed is True
        assert result.secrets == []

    @pytest.mark.asyncio
    async def test_insecure_flags_alone_pass(self, tmp_path: Path) -> None:
        (tmp_path / "config.toml").write_text("tls_enabled = false\n")
        result = await ConfigChecker().check(tmp_path)
        assert result.passed is True
        assert [f.rule_id for f in result.insecure] == ["tls-disabled"]

    @pytest.mark.asyncio
    async def test_unrelated_files_are_not_read(self, tmp_path: Path) -> None:
        (tmp_path / "settings.ini").write_text("password=Xk9mP2qLz7vR4t\n")
        result = await ConfigChecker().check(tmp_path)
        assert result.files_checked == []
        assert result.passed is True
