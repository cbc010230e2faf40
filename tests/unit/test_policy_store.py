"""Unit tests for policy and standards persistence."""
from __future__ import annotations

import json
from pathlib import Path

import pytest

from deployguard.domain.entities.policy import GlobalPolicy, SecurityStandards
from deployguard.engine.enforcer.policy_store import (
    STANDARD_MINIMUM_SCORE,
    STRICT_MINIMUM_SCORE,
    PolicyStore,
)
from deployguard.shared.exceptions import ConfigurationError, PolicyError


@pytest.fixture
def policy_store(tmp_path: Path) -> PolicyStore:
    return PolicyStore(tmp_path / "policy.json", tmp_path / "standards.json")


def test_policy_update_accepts_camel_and_snake_case() -> None:
    policy = GlobalPolicy()
    updated = policy.updated({"minimumScore": 70, "strict_mode": True})
    assert updated.minimum_score == 70
    assert updated.strict_mode is True
    assert updated.last_updated >= policy.last_updated


def test_policy_update_rejects_unknown_fields() -> None:
    with pytest.raises(ValueError, match="bogus"):
        GlobalPolicy().updated({"bogus": 1})


class TestPolicyStore:
    @pytest.mark.asyncio
    async def test_missing_policy_is_regenerated_from_defaults(self, policy_store: PolicyStore) -> None:
        policy = await policy_store.load_policy()

        assert policy.enforced is True
        assert policy.minimum_score == 85
        on_disk = json.loads(policy_store.policy_path.read_text())
        assert on_disk["minimumScore"] == 85
        assert on_disk["allowedBypass"] is False

    @pytest.mark.asyncio
    async def test_missing_standards_are_regenerated(self, policy_store: PolicyStore) -> None:
        standards = await policy_store.load_standards()

        assert standards == SecurityStandards()
        on_disk = json.loads(policy_store.standards_path.read_text())
        assert "event-stream" in on_disk["vulnerableNpmPackages"]
        assert on_disk["scoring"]["codeCap"] == 40

    @pytest.mark.asyncio
    async def test_update_persists(self, policy_store: PolicyStore) -> None:
        await policy_store.update_policy({"allowedBypass": True, "bypassFloor": 60})
        reloaded = await PolicyStore(policy_store.policy_path, policy_store.standards_path).load_policy()

        assert reloaded.allowed_bypass is True
        assert reloaded.bypass_floor == 60

    @pytest.mark.asyncio
    async def test_invalid_update_raises_policy_error(self, policy_store: PolicyStore) -> None:
        with pytest.raises(PolicyError):
            await policy_store.update_policy({"minimumScore": 150})
        with pytest.raises(PolicyError):
            await policy_store.update_policy({"unknownField": True})
        assert (await policy_store.load_policy()).minimum_score == 85

    @pytest.mark.asyncio
    async def test_enable_and_disable(self, policy_store: PolicyStore) -> None:
        strict = await policy_store.enable(strict=True)
        assert strict.enforced is True
        assert strict.strict_mode is True
        assert strict.minimum_score == STRICT_MINIMUM_SCORE

        standard = await policy_store.enable()
        assert standard.strict_mode is False
        assert standard.minimum_score == STANDARD_MINIMUM_SCORE

        advisory = await policy_store.disable()
        assert advisory.enforced is False
        assert advisory.minimum_score == STANDARD_MINIMUM_SCORE

    @pytest.mark.asyncio
    async def test_corrupt_policy_is_a_configuration_error(self, policy_store: PolicyStore) -> None:
        policy_store.policy_path.write_text("{broken")
        with pytest.raises(ConfigurationError):
            await policy_store.load_policy()
        assert policy_store.policy_path.read_text() == "{broken"

    @pytest.mark.asyncio
    async def test_save_standards_round_trip(self, policy_store: PolicyStore) -> None:
        custom = SecurityStandards(secure_path_prefixes=["/srv/"], max_scan_depth=1)
        await policy_store.save_standards(custom)
        assert await policy_store.load_standards() == custom

    @pytest.mark.asyncio
    async def test_status(self, policy_store: PolicyStore) -> None:
        status = await policy_store.status()
        assert status["policy"]["enforced"] is True
        assert status["policy_path"] == str(policy_store.policy_path)
        assert status["standards"]["max_scan_depth"] == 3
