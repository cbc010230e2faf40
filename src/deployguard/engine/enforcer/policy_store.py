"""Persistence for the global policy and the security standards tables.

Both documents live outside the registry directory.  A missing file is
regenerated from the built-in defaults on first use; a file that exists but
cannot be parsed is a configuration error rather than a silent reset.
"""
from __future__ import annotations

import asyncio
import json
from pathlib import Path
from typing import Any, TypeVar

import structlog
from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from deployguard.domain.entities.policy import GlobalPolicy, SecurityStandards
from deployguard.infrastructure.logging import audit_log
from deployguard.shared.exceptions import ConfigurationError, PolicyError
from deployguard.shared.fileio import atomic_write_json

logger = structlog.get_logger(__name__)

STANDARD_MINIMUM_SCORE = 85
STRICT_MINIMUM_SCORE = 90

_M = TypeVar("_M", bound=BaseModel)


class PolicyStore:
    """Reads and writes ``global-security-policy.json`` and ``global-security-standards.json``.

    Args:
        policy_path: Location of the policy document.
        standards_path: Location of the standards document.
    """

    def __init__(self, policy_path: Path, standards_path: Path) -> None:
        self.policy_path = policy_path
        self.standards_path = standards_path

    # -- generic load/save ---------------------------------------------------

    def _load_sync(self, path: Path, model: type[_M]) -> _M:
        if not path.exists():
            default = model()
            atomic_write_json(path, default.model_dump(mode="json", by_alias=True))
            logger.info("policy_document_regenerated", path=str(path), model=model.__name__)
            return default
        try:
            return model.model_validate(json.loads(path.read_text(encoding="utf-8")))
        except (ValueError, PydanticValidationError) as exc:
            raise ConfigurationError(
                f"{path.name} is not a valid {model.__name__} document: {exc}",
                context={"path": str(path)},
            ) from exc

    async def _save(self, path: Path, document: BaseModel) -> None:
        await asyncio.to_thread(atomic_write_json, path, document.model_dump(mode="json", by_alias=True))

    # -- policy --------------------------------------------------------------

    async def load_policy(self) -> GlobalPolicy:
        return await asyncio.to_thread(self._load_sync, self.policy_path, GlobalPolicy)

    async def save_policy(self, policy: GlobalPolicy) -> None:
        await self._save(self.policy_path, policy)

    async def update_policy(self, changes: dict[str, Any]) -> GlobalPolicy:
        """Apply a partial update and persist it.

        Raises:
            PolicyError: *changes* names an unknown field or an invalid value.
        """
        current = await self.load_policy()
        try:
            updated = current.updated(changes)
        except (ValueError, PydanticValidationError) as exc:
            raise PolicyError(f"Invalid policy update: {exc}", context={"changes": changes}) from exc
        await self.save_policy(updated)
        audit_log("policy_update", changes=changes, policy=updated.model_dump(mode="json"))
        logger.info(
            "policy_updated",
            enforced=updated.enforced,
            minimum_score=updated.minimum_score,
            strict_mode=updated.strict_mode,
            allowed_bypass=updated.allowed_bypass,
        )
        return updated

    async def enable(self, strict: bool = False) -> GlobalPolicy:
        """Turn enforcement on, in strict or standard mode."""
        return await self.update_policy(
            {
                "enforced": True,
                "strict_mode": strict,
                "minimum_score": STRICT_MINIMUM_SCORE if strict else STANDARD_MINIMUM_SCORE,
            }
        )

    async def disable(self) -> GlobalPolicy:
        """Switch to advisory mode: scans still run, the gate always accepts."""
        return await self.update_policy({"enforced": False})

    # -- standards -----------------------------------------------------------

    async def load_standards(self) -> SecurityStandards:
        return await asyncio.to_thread(self._load_sync, self.standards_path, SecurityStandards)

    async def save_standards(self, standards: SecurityStandards) -> None:
        await self._save(self.standards_path, standards)
        audit_log("standards_update", version=standards.version)

    async def status(self) -> dict[str, Any]:
        policy, standards = await asyncio.gather(self.load_policy(), self.load_standards())
        return {
            "policy": policy.model_dump(mode="json"),
            "standards": standards.model_dump(mode="json"),
            "policy_path": str(self.policy_path),
            "standards_path": str(self.standards_path),
        }
